# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every sale, adjustment and refund must be attributable to a person.
Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, with upper/lower case, a digit and a special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from ..models import ROLES, User
from ..time_utils import utcnow
from .concurrency import transaction

DEFAULT_BCRYPT_ROUNDS = 12


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _bcrypt_rounds() -> int:
    try:
        return int(current_app.config.get("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS))
    except RuntimeError:
        # Outside an app context (CLI scripts, unit tests of pure helpers)
        return DEFAULT_BCRYPT_ROUNDS


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash. Timing-safe via bcrypt.checkpw.

    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def validate_role(role: str) -> str:
    if role not in ROLES:
        raise ValidationError("Invalid role provided.", details={"allowed": list(ROLES)})
    return role


def create_user(session, *, name: str, email: str, password: str, role: str) -> User:
    """
    Create a staff account.

    Raises ValidationError for missing fields, bad role or weak password and
    ConflictError if the email is already registered.
    """
    if not all([name, email, password, role]):
        raise ValidationError("All fields are required.")
    validate_role(role)
    email = email.strip().lower()

    password_hash = hash_password(password)

    with transaction(session):
        if session.query(User).filter_by(email=email).first() is not None:
            raise ConflictError("Email already registered.")
        user = User(name=name.strip(), email=email, password_hash=password_hash, role=role)
        session.add(user)
        session.flush()
    return user


def authenticate(session, email: str, password: str) -> User:
    """
    Check credentials and stamp last_login_at.

    Unknown email and wrong password produce the same message.
    """
    if not email or not password:
        raise ValidationError("Email and password are required.")

    user = session.query(User).filter_by(email=email.strip().lower()).first()
    if user is None:
        raise AuthenticationError("Invalid email or password.")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated. Contact admin.")
    if not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password.")

    with transaction(session):
        user.last_login_at = utcnow()
    return user


def get_user(session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return user


def list_users(session) -> list[User]:
    return session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def update_user(
    session,
    user_id: int,
    *,
    name: str | None = None,
    role: str | None = None,
    is_active: bool | None = None,
) -> User:
    if role is not None:
        validate_role(role)
    if is_active is not None and not isinstance(is_active, bool):
        raise ValidationError("is_active must be true or false")

    with transaction(session):
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found.")
        if name:
            user.name = name.strip()
        if role is not None:
            user.role = role
        if is_active is not None:
            user.is_active = is_active
    return user
