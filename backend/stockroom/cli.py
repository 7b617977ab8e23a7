# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, the system access levels and the admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with their access level and lock status.
# - python -m flask users create --username maria --display-name "Maria" --password "secret123" --level User
#   Create a user (prompts if options are omitted).
# - python -m flask users unlock maria
#   Clear failed login attempts and any lockout.
#
# Permission inspection:
# - python -m flask perms list
#   List the capability catalogue.
# - python -m flask perms check admin delete_products
#   Check whether a user's access level grants a capability.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
#   Delete expired and revoked session rows older than the retention window.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User, AccessLevel
from .permissions import get_all_capability_codes, get_capability_definition, parse_capability
from .services import permission_service, session_service, user_service
from .services.auth_service import PasswordValidationError
from .services.bootstrap_service import bootstrap_defaults
from .services.login_throttle_service import unlock_account
from .validation import ValidationError, ConflictError, enforce_rules_user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the database and default records.

    Creates:
    - All tables (if missing)
    - Access levels: Administrator, User
    - The administrator account, when no users exist yet
      (ADMIN_USERNAME / ADMIN_PASSWORD from config)

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing stockroom...")

    db.create_all()
    result = bootstrap_defaults()

    click.echo(f"PASS Access levels created: {result['access_levels_created']}")
    if result["admin_created"]:
        click.echo(f"PASS Created administrator '{current_app.config['ADMIN_USERNAME']}'")
        click.echo("SECURITY Change the default admin password immediately!")
    else:
        click.echo("WARN  Users already exist, administrator not created")

    click.echo("DONE Stockroom initialized.")


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


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their access level."""
    users = user_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Display name':<25} {'Level':<18} {'Locked'}")
    click.echo("="*90)

    for user in users:
        level_name = user.access_level.name if user.access_level else "Unknown"
        locked_str = "Yes" if user.locked_until else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.display_name:<25} {level_name:<18} {locked_str}")

    click.echo("="*90 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--display-name', prompt=True, help='Name shown in the movement history')
@click.option('--email', default=None, help='Email address (needed for password reset)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--level', 'level_name', default=None, help='Access level name (default: User)')
@with_appcontext
def create_user_cli(username, display_name, email, password, level_name):
    """
    Create a new user.

    Password must be at least 8 characters with a letter and a digit.
    """
    try:
        enforce_rules_user({"username": username.strip(), "display_name": display_name, "email": email})

        level_id = None
        if level_name:
            level = db.session.query(AccessLevel).filter(
                db.func.lower(AccessLevel.name) == level_name.strip().lower()
            ).first()
            if not level:
                click.echo(f"FAIL Access level '{level_name}' not found")
                return
            level_id = level.id

        user = user_service.create_user(
            username=username,
            password=password,
            display_name=display_name,
            email=email,
            access_level_id=level_id,
        )

        click.echo(f"PASS Created user: {user.username} ({user.to_dict()['access_level_name']})")
        click.echo("SECURITY Password securely hashed with bcrypt")

    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {str(e)}")


@users_group.command('unlock')
@click.argument('username')
@with_appcontext
def unlock_user_cli(username):
    """Clear failed login attempts and lockout for a user."""
    user = db.session.query(User).filter_by(username=username.strip().lower()).first()

    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return

    unlock_account(user)
    permission_service.log_security_event(
        user_id=user.id,
        event_type="ACCOUNT_UNLOCKED",
        success=True,
        action="cli",
        commit=False,
    )
    db.session.commit()

    click.echo(f"PASS User '{user.username}' unlocked")


@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@with_appcontext
def list_capabilities_cli():
    """List all capabilities."""
    click.echo("\n" + "="*80)
    click.echo(f"{'Code':<20} {'Name':<25} {'Description'}")
    click.echo("="*80)

    for code in get_all_capability_codes():
        definition = get_capability_definition(code)
        click.echo(f"{code:<20} {definition['name']:<25} {definition['description']}")

    click.echo("="*80 + "\n")


@perms_group.command('check')
@click.argument('username')
@click.argument('capability_code')
@with_appcontext
def check_permission_cli(username, capability_code):
    """Check if a user's access level grants a specific capability."""
    try:
        capability = parse_capability(capability_code)
    except ValueError:
        click.echo(f"FAIL Unknown capability '{capability_code}'")
        click.echo(f"Known capabilities: {', '.join(get_all_capability_codes())}")
        return

    user = db.session.query(User).filter_by(username=username.strip().lower()).first()

    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return

    if permission_service.user_has_capability(user.id, capability):
        click.echo(f"PASS User '{user.username}' HAS capability '{capability.value}'")
    else:
        click.echo(f"FAIL User '{user.username}' DOES NOT HAVE capability '{capability.value}'")

    permissions = permission_service.resolve_permissions(user.id)
    if permissions is None:
        click.echo("\nAccess level: unresolved (no permissions)")
        return

    granted = permissions.granted()
    click.echo(f"\nAccess level: {user.access_level.name}")
    click.echo(f"Granted: {', '.join(granted) if granted else 'none'}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """
    Cleanup expired and revoked sessions.

    Default retention: 30 days.
    """
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} sessions older than {older_than_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(maintenance_group)
