# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/omni/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@omni.local --admin-password "Password123!"]
#   Create tables and (optionally) the first admin account. Idempotent.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --email dealer@omni.local --name "Volt Motors" --password "Password123!" --role dealer
# - python -m flask users set-role someone@example.com dealer
#
# Permission inspection:
# - python -m flask perms list [--role dealer | --category WARRANTIES]
# - python -m flask perms check dealer@omni.local REVIEW_WARRANTIES
#
# Dealers:
# - python -m flask dealers create --user-email dealer@omni.local --business-name "Volt Motors" --city Pune
#
# Warranties:
# - python -m flask warranties list [--status PendingReview]
# - python -m flask warranties expiring [--within-days 30]
#   Approved registrations whose coverage ends inside the window.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired/revoked session tokens older than 30 days.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import VALID_ROLES
from .permissions import (
    PermissionCategory,
    get_permission_definition,
    get_permissions_by_category,
    get_role_permissions,
    validate_permission_code,
)
from .services.auth_service import create_user, set_role, PasswordValidationError
from .services import dealer_service, permission_service, session_service, warranty_service, warranty_store
from .services.warranty_status import ReviewStatus


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default=None, help='Create an admin account with this email')
@click.option('--admin-password', default=None, help='Password for the admin account')
@with_appcontext
def init_system(admin_email, admin_password):
    """
    Initialize the Omni warranty back office.

    Creates all tables (no-op for tables that exist) and, when
    --admin-email is given, the first admin account.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing Omni...")

    db.create_all()
    click.echo("PASS Tables created")

    if admin_email:
        existing = db.session.query(User).filter_by(email=admin_email.strip().lower()).first()
        if existing:
            click.echo(f"WARN  User '{admin_email}' already exists, skipping...")
        else:
            try:
                create_user(
                    email=admin_email,
                    password=admin_password or "Password123!",
                    role="admin",
                    name="Administrator",
                )
                click.echo(f"PASS Created admin: {admin_email}")
            except PasswordValidationError as e:
                click.echo(f"FAIL Password validation failed for '{admin_email}': {str(e)}")
            except ValueError as e:
                click.echo(f"FAIL Failed to create admin '{admin_email}': {str(e)}")

    click.echo("DONE Omni initialized")


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
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', default=None, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(email, name, password, role):
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
        user = create_user(email=email, password=password, role=role, name=name)
        click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{role}'")
        click.echo("SECURITY Password securely hashed with bcrypt")

    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<25} {'Role':<10} {'Active'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {(user.name or ''):<25} {user.role:<10} {active_str}")

    click.echo("="*90 + "\n")


@users_group.command('set-role')
@click.argument('email')
@click.argument('role', type=click.Choice(list(VALID_ROLES)))
@with_appcontext
def set_role_cli(email, role):
    """Change a user's role (e.g. promote a customer account to dealer)."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return

    set_role(user.id, role)
    click.echo(f"PASS User '{user.email}' now has role '{role}'")


@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), help='Filter by role name')
@click.option('--category', help='Filter by category')
@with_appcontext
def list_permissions_cli(role, category):
    """List permissions, optionally filtered by role or category."""
    if role:
        codes = sorted(get_role_permissions(role))
        title = f"Permissions for role: {role.upper()}"
    elif category:
        codes = [perm[0] for perm in get_permissions_by_category(category.upper())]
        title = f"Permissions in category: {category.upper()}"
    else:
        codes = [
            perm[0]
            for category_name in (
                PermissionCategory.WARRANTIES,
                PermissionCategory.DEALERS,
                PermissionCategory.NOTIFICATIONS,
                PermissionCategory.SYSTEM,
            )
            for perm in get_permissions_by_category(category_name)
        ]
        title = "All Permissions"

    click.echo(f"\n{'='*80}")
    click.echo(title)
    click.echo(f"{'='*80}\n")

    click.echo(f"{'Code':<30} {'Name':<35} {'Category'}")
    click.echo("-"*80)

    for code in codes:
        perm = get_permission_definition(code)
        click.echo(f"{perm['code']:<30} {perm['name']:<35} {perm['category']}")

    click.echo(f"\n Total: {len(codes)} permissions\n")


@perms_group.command('check')
@click.argument('email')
@click.argument('permission_code')
@with_appcontext
def check_permission_cli(email, permission_code):
    """Check if a user has a specific permission."""
    if not validate_permission_code(permission_code):
        click.echo(f"FAIL Unknown permission '{permission_code}'")
        return

    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return

    if permission_service.user_has_permission(user, permission_code):
        click.echo(f"PASS User '{user.email}' HAS permission '{permission_code}'")
    else:
        click.echo(f"FAIL User '{user.email}' DOES NOT HAVE permission '{permission_code}'")

    click.echo(f"\nUser role: {user.role}")


@click.group('dealers')
def dealers_group():
    """Dealer profile commands."""


@dealers_group.command('create')
@click.option('--user-email', required=True, help='Email of an existing dealer-role user')
@click.option('--business-name', required=True, help='Dealership name shown on registrations')
@click.option('--city', default=None)
@click.option('--phone', default=None)
@with_appcontext
def create_dealer_cli(user_email, business_name, city, phone):
    """Attach a dealer profile to a dealer-role user."""
    user = db.session.query(User).filter_by(email=user_email.strip().lower()).first()
    if not user:
        click.echo(f"FAIL User '{user_email}' not found")
        return

    try:
        dealer = dealer_service.create_dealer(user.id, business_name, city=city, phone=phone)
        click.echo(f"PASS Created dealer: {dealer.business_name} (ID: {dealer.id}) for {user.email}")
    except ValueError as e:
        click.echo(f"FAIL {str(e)}")


@click.group('warranties')
def warranties_group():
    """Warranty registration inspection commands."""


@warranties_group.command('list')
@click.option('--status', type=click.Choice([s.value for s in ReviewStatus]), default=None,
              help='Filter by review status')
@click.option('--limit', type=int, default=50, help='Max rows when not filtering')
@with_appcontext
def list_warranties_cli(status, limit):
    """List warranty registrations, newest first."""
    if status:
        records = warranty_store.list_by_review_status(status)
    else:
        records = warranty_store.list_all(limit=limit)

    if not records:
        click.echo("No warranty registrations found.")
        return

    click.echo("\n" + "="*110)
    click.echo(f"{'ID':<14} {'VIN':<20} {'Customer':<28} {'Dealer':<22} {'Years':<6} {'Label'}")
    click.echo("="*110)

    for record in records:
        label = warranty_service.display_for(record).label.value
        click.echo(
            f"{record.id:<14} {record.vin:<20} {record.customer_email:<28} "
            f"{record.dealer_name:<22} {record.period_years:<6} {label}"
        )

    click.echo("="*110 + "\n")


@warranties_group.command('expiring')
@click.option('--within-days', type=int, default=None,
              help='Window in days (defaults to WARRANTY_EXPIRING_SOON_DAYS)')
@with_appcontext
def expiring_warranties_cli(within_days):
    """List approved registrations whose coverage ends soon."""
    expiring = warranty_service.list_expiring(within_days=within_days)

    if not expiring:
        click.echo("No approved warranties expiring in the window.")
        return

    for record, status in expiring:
        click.echo(
            f"{record.id:<14} {record.vin:<20} {record.customer_email:<28} "
            f"{status.days_remaining:>4} days left ({status.percent_remaining}%)"
        )
    click.echo(f"\n{len(expiring)} warranties expiring")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired and revoked session tokens older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} session tokens")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(dealers_group)
    app.cli.add_command(warranties_group)
    app.cli.add_command(maintenance_group)
