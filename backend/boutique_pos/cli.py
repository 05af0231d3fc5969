# Overview: Flask CLI command groups for bootstrap and maintenance.

# backend/boutique_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and one default user per role.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --name "Jane" --email jane@boutique.local --password "Password123!" --role cashier
#   Create a user (prompts if options are omitted).

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import ROLES, User
from .services.auth_service import create_user

DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--password', default=DEFAULT_PASSWORD, show_default=True, help='Password for seeded users')
@with_appcontext
def init_system(password):
    """
    Create tables and one account per role.

    Users: admin@boutique.local, manager@boutique.local,
    cashier@boutique.local, stock@boutique.local

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing boutique POS...")
    db.create_all()

    defaults = [
        ("Admin", "admin@boutique.local", "admin"),
        ("Manager", "manager@boutique.local", "manager"),
        ("Cashier", "cashier@boutique.local", "cashier"),
        ("Stock Controller", "stock@boutique.local", "stock_controller"),
    ]
    for name, email, role in defaults:
        if db.session.query(User).filter_by(email=email).first() is not None:
            click.echo(f"SKIP {email} already exists")
            continue
        try:
            create_user(db.session, name=name, email=email, password=password, role=role)
        except PosError as e:
            raise click.ClickException(f"Failed to create {email}: {e.message}")
        click.echo(f"PASS Created {role}: {email}")

    click.echo("PASS Initialization complete.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, email, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(db.session, name=name, email=email, password=password, role=role)
    except PosError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{user.role}'")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<24} {'Email':<32} {'Role':<18} {'Active'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name:<24} {user.email:<32} {user.role:<18} {active_str}")

    click.echo("="*90 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
