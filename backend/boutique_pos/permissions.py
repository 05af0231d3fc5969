# Overview: Permission codes and the roles that hold them.

"""
Permission System Constants and Definitions

Routes are gated by permission code, never by role name, so the
role -> capability map lives in one place. Roles are fixed:
admin, manager, cashier, stock_controller.
"""

# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, description)
PERMISSION_DEFINITIONS = [
    # SALES
    ("CREATE_SALE", "Ring up sales at the POS"),
    ("REFUND_SALE", "Refund a completed sale and restock its items"),

    # INVENTORY
    ("ADJUST_INVENTORY", "Record damage, loss, return, correction or restock"),
    ("UPDATE_REORDER_LEVEL", "Change a product's reorder level"),
    ("MANAGE_PRODUCTS", "Create and edit products"),
    ("DELETE_PRODUCTS", "Deactivate products"),
    ("MANAGE_CATEGORIES", "Create product categories"),

    # CUSTOMERS
    ("CREDIT_LOYALTY", "Manually credit loyalty points"),

    # USERS
    ("CREATE_USER", "Register staff accounts"),
    ("VIEW_USERS", "List staff accounts"),
    ("EDIT_USER", "Change a staff account's name, role or active flag"),
]

PERMISSION_CODES = frozenset(code for code, _ in PERMISSION_DEFINITIONS)


# =============================================================================
# DEFAULT ROLE PERMISSIONS
# =============================================================================

DEFAULT_ROLE_PERMISSIONS = {
    "admin": PERMISSION_CODES,
    "manager": frozenset({
        "CREATE_SALE",
        "REFUND_SALE",
        "ADJUST_INVENTORY",
        "UPDATE_REORDER_LEVEL",
        "MANAGE_PRODUCTS",
        "DELETE_PRODUCTS",
        "MANAGE_CATEGORIES",
        "CREDIT_LOYALTY",
        "CREATE_USER",
        "VIEW_USERS",
    }),
    "cashier": frozenset({
        "CREATE_SALE",
        "CREDIT_LOYALTY",
    }),
    "stock_controller": frozenset({
        "ADJUST_INVENTORY",
        "MANAGE_PRODUCTS",
    }),
}


def get_role_permissions(role: str) -> frozenset:
    return DEFAULT_ROLE_PERMISSIONS.get(role, frozenset())


def role_has_permission(role: str, permission_code: str) -> bool:
    return permission_code in get_role_permissions(role)
