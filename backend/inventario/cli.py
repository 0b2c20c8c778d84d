# Overview: Flask CLI command groups for bootstrap and maintenance.

# backend/inventario/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--org "Mi Empresa"] [--inventory "Principal"]
#   Idempotent: creates tables, a superuser, the default organization and
#   inventory, the default chart of accounts and the exchange rate.
#
# Organizations and inventories:
# - python -m flask orgs create --name "Acme"
# - python -m flask orgs list
# - python -m flask inventories create --org-id 1 --name "Deposito"
# - python -m flask inventories list [--org-id 1]
#
# Users:
# - python -m flask users create --username ana --email ana@example.com [--superuser]
# - python -m flask users grant --username ana --org-id 1 --role admin
# - python -m flask users list
#
# Ledger:
# - python -m flask ledger check [--org-id 1]
#   Recompute balances from posted entries and report drift.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Organization, Inventory, User, UserOrganization
from .permissions import Role
from .services.auth_service import create_user, grant_membership, PasswordValidationError
from .services.ledger_service import ensure_default_accounts, find_balance_drift
from .services.settings_service import get_setting, set_exchange_rate, EXCHANGE_RATE_KEY
from .validation import ValidationError, ConflictError


def _create_organization(name: str) -> Organization:
    org = Organization(name=name, is_active=True)
    db.session.add(org)
    db.session.commit()
    ensure_default_accounts(org.id)
    return org


# =============================================================================
# SYSTEM COMMANDS
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Mi Empresa', help='Default organization name')
@click.option('--inventory', 'inventory_name', default='Principal', help='Default inventory name')
@click.option('--username', default='admin', show_default=True, help='Superuser username')
@click.option('--email', default='admin@inventario.local', show_default=True, help='Superuser email')
@click.option('--password', default='Password123!', show_default=True, help='Superuser password')
@with_appcontext
def init_system(org_name, inventory_name, username, email, password):
    """
    Initialize the system.

    Creates (when missing):
    - all tables
    - a superuser
    - the default organization with the default chart of accounts
    - the default inventory
    - the organization's exchange rate (DEFAULT_EXCHANGE_RATE)

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing Inventario...")
    db.create_all()

    org = db.session.query(Organization).filter_by(name=org_name).first()
    if not org:
        org = _create_organization(org_name)
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id})")
    else:
        created = ensure_default_accounts(org.id)
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id}), {created} accounts added")

    inventory = db.session.query(Inventory).filter_by(organization_id=org.id, name=inventory_name).first()
    if not inventory:
        inventory = Inventory(organization_id=org.id, name=inventory_name)
        db.session.add(inventory)
        db.session.commit()
        click.echo(f"PASS Created inventory: {inventory.name} (ID: {inventory.id})")
    else:
        click.echo(f"PASS Using existing inventory: {inventory.name} (ID: {inventory.id})")

    if get_setting(org.id, EXCHANGE_RATE_KEY) is None:
        rate = set_exchange_rate(org.id, current_app.config["DEFAULT_EXCHANGE_RATE"])
        click.echo(f"PASS Exchange rate set to {rate}")

    user = db.session.query(User).filter_by(username=username).first()
    if user:
        click.echo(f"WARN  User '{username}' already exists, skipping...")
    else:
        try:
            user = create_user(username, email, password, is_superuser=True, rounds=current_app.config["BCRYPT_ROUNDS"])
            click.echo(f"PASS Created superuser: {user.username} ({user.email})")
        except ValidationError as e:
            click.echo(f"FAIL Could not create superuser '{username}': {e}")
            return

    grant_membership(user.id, org.id, Role.OWNER.value)

    click.echo("\n" + "="*60)
    click.echo("DONE Inventario initialized")
    click.echo("="*60)
    click.echo(f"\nOrganization: {org.name} (ID: {org.id})")
    click.echo(f"Inventory: {inventory.name} (ID: {inventory.id})")
    click.echo("\nSECURITY WARNING: change the default password in production!")


# =============================================================================
# ORGANIZATION / INVENTORY COMMANDS
# =============================================================================

@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@with_appcontext
def create_org_cli(name):
    """Create an organization with the default chart of accounts."""
    if db.session.query(Organization).filter_by(name=name).first():
        click.echo(f"FAIL Organization '{name}' already exists")
        return

    org = _create_organization(name)
    click.echo(f"PASS Created organization: {org.name} (ID: {org.id})")


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.id).all()
    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Active':<8} {'Inventories':<12} {'Members'}")
    click.echo("="*70)
    for org in orgs:
        members = db.session.query(UserOrganization).filter_by(organization_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"
        click.echo(f"{org.id:<5} {org.name:<30} {active_str:<8} {len(org.inventories):<12} {members}")
    click.echo("="*70 + "\n")


@click.group('inventories')
def inventories_group():
    """Inventory management commands."""


@inventories_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--name', required=True, help='Inventory name')
@click.option('--description', default=None, help='Optional description')
@with_appcontext
def create_inventory_cli(org_id, name, description):
    """Add an inventory to an organization."""
    org = db.session.get(Organization, org_id)
    if not org:
        click.echo(f"FAIL Organization ID {org_id} not found")
        return

    if db.session.query(Inventory).filter_by(organization_id=org_id, name=name).first():
        click.echo(f"FAIL Inventory '{name}' already exists in this organization")
        return

    inventory = Inventory(organization_id=org_id, name=name, description=description)
    db.session.add(inventory)
    db.session.commit()
    click.echo(f"PASS Created inventory: {inventory.name} (ID: {inventory.id}) in org '{org.name}'")


@inventories_group.command('list')
@click.option('--org-id', type=int, help='Filter by organization ID')
@with_appcontext
def list_inventories(org_id):
    query = db.session.query(Inventory)
    if org_id:
        query = query.filter_by(organization_id=org_id)
    inventories = query.order_by(Inventory.organization_id, Inventory.name).all()
    if not inventories:
        click.echo("No inventories found.")
        return

    for inv in inventories:
        click.echo(f"{inv.id:<5} org={inv.organization_id:<5} {inv.name}")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--superuser', is_flag=True, help='Grant every capability in every organization')
@with_appcontext
def create_user_cli(username, email, password, superuser):
    """Create a user."""
    try:
        user = create_user(username, email, password, is_superuser=superuser, rounds=current_app.config["BCRYPT_ROUNDS"])
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return

    kind = "superuser" if user.is_superuser else "user"
    click.echo(f"PASS Created {kind}: {user.username} (ID: {user.id})")


@users_group.command('grant')
@click.option('--username', required=True, help='Username')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--role', type=click.Choice([r.value for r in Role]), required=True, help='Role in the organization')
@with_appcontext
def grant_role_cli(username, org_id, role):
    """Give a user a role in an organization (replaces any previous role there)."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return
    try:
        grant_membership(user.id, org_id, role)
    except LookupError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS {username} is now {role} in organization {org_id}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their memberships."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Roles'}")
    click.echo("="*100)
    for user in users:
        roles = [f"{m.organization.name}:{m.role}" for m in user.memberships]
        if user.is_superuser:
            roles.insert(0, "SUPERUSER")
        roles_str = ", ".join(roles) if roles else "none"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {roles_str}")
    click.echo("="*100 + "\n")


# =============================================================================
# LEDGER COMMANDS
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Ledger integrity commands."""


@ledger_group.command('check')
@click.option('--org-id', type=int, help='Only check this organization')
@with_appcontext
def check_ledger(org_id):
    """Compare stored account balances with the balances implied by posted entries."""
    query = db.session.query(Organization)
    if org_id:
        query = query.filter_by(id=org_id)

    problems = 0
    for org in query.order_by(Organization.id).all():
        drift = find_balance_drift(org.id)
        if not drift:
            click.echo(f"PASS {org.name}: balances match posted entries")
            continue
        problems += len(drift)
        for row in drift:
            click.echo(
                f"FAIL {org.name}: account {row['code']} {row['name']} "
                f"stored={row['stored_balance']} expected={row['expected_balance']}"
            )

    if problems:
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)
    app.cli.add_command(inventories_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
