# Overview: Flask CLI command groups for bootstrap, inspection, and ledger maintenance.

# backend/orderledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create all tables and a default admin (admin@orderledger.local) if none exists.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Brands, products, a salesman with two assigned shops and a local customer.
#
# User inspection/bootstrap:
# - python -m flask users list [--role retailer]
#   List users with role, active flag and pending limit.
# - python -m flask users create --name "Shop A" --email shop@a.local --role retailer --pending-limit 500000
#   Create a user (prompts if options are omitted). Omit --pending-limit for 0, use --unbounded for NULL.
#
# Client financials:
# - python -m flask clients set-limit 12 500000
#   Set a client's pending amount limit in cents (use --unbounded to clear it).
# - python -m flask clients status 12
#   Print limit, current pending and remaining headroom.
#
# Permission inspection:
# - python -m flask perms list [--role salesman] [--category PAYMENTS]
# - python -m flask perms check salesman RECORD_FIELD_PAYMENTS
#
# Ledger maintenance:
# - python -m flask ledger reconcile [--fix]
#   Recompute every order from its completed payments and report (or repair) drift.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import LedgerError
from .models import User, Brand, Product, SalesmanShopAssignment, SalesmanBrand
from .permissions import (
    Role,
    DEFAULT_ROLE_PERMISSIONS,
    PERMISSION_DEFINITIONS,
    get_permissions_by_category,
    get_permission_definition,
    validate_permission_code,
    role_has_permission,
)
from .services.authz import ActorContext
from .services.ledger_math import format_cents
from .services import pending_limit_service
from .services.payment_service import reconcile_order_ledgers


ROLE_CHOICES = [r.value for r in Role]


def _system_admin() -> ActorContext:
    """First active admin; CLI writes run as this actor so they stay audited."""
    admin = (
        db.session.query(User)
        .filter(User.role == Role.ADMIN.value, User.is_active.is_(True))
        .order_by(User.id.asc())
        .first()
    )
    if admin is None:
        raise click.ClickException("No active admin user. Run 'python -m flask system init' first.")
    return ActorContext.for_user(admin)


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@orderledger.local', show_default=True, help='Default admin email')
@click.option('--admin-name', default='Administrator', show_default=True, help='Default admin name')
@with_appcontext
def init_system(admin_email, admin_name):
    """
    Create the schema and a default admin.

    Idempotent: existing tables and users are left alone. Production
    databases should be upgraded with 'python -m flask db upgrade' instead.
    """
    click.echo("START Initializing orderledger...")
    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter_by(email=admin_email).first()
    if existing:
        click.echo(f"WARN  User '{admin_email}' already exists (ID: {existing.id}), skipping...")
        return

    admin = User(full_name=admin_name, email=admin_email, role=Role.ADMIN.value, is_active=True, pending_limit_cents=None)
    db.session.add(admin)
    db.session.commit()
    click.echo(f"PASS Created admin: {admin.full_name} ({admin.email}) ID {admin.id}")


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


@system_group.command('seed-demo')
@click.option('--stock', type=int, default=100, show_default=True, help='Starting stock per product')
@with_appcontext
def seed_demo(stock):
    """Seed a small demo catalog and a salesman route. Skips rows that already exist."""
    brand_names = ["Glow", "Silk Touch"]
    brands = []
    for name in brand_names:
        brand = db.session.query(Brand).filter_by(name=name).first()
        if brand is None:
            brand = Brand(name=name, is_active=True)
            db.session.add(brand)
            db.session.flush()
        brands.append(brand)

    products = [
        ("GLOW-SER-01", "Glow Serum 30ml", brands[0], 150000, 120000, 110000),
        ("GLOW-CRM-02", "Glow Night Cream", brands[0], 90000, 75000, 70000),
        ("SILK-SHP-01", "Silk Touch Shampoo", brands[1], 60000, 50000, 48000),
    ]
    for sku, name, brand, price, retailer_price, beauty_price in products:
        if db.session.query(Product).filter_by(sku=sku).first():
            continue
        db.session.add(Product(
            sku=sku,
            name=name,
            brand_id=brand.id,
            price_cents=price,
            retailer_price_cents=retailer_price,
            beauty_price_cents=beauty_price,
            stock_quantity=stock,
            is_active=True,
        ))

    users = [
        ("Demo Salesman", "salesman@orderledger.local", Role.SALESMAN, None),
        ("Corner Retail", "retailer@orderledger.local", Role.RETAILER, 500000),
        ("Bella Parlor", "parlor@orderledger.local", Role.BEAUTY_PARLOR, 300000),
        ("Walk-in Customer", "customer@orderledger.local", Role.LOCAL_CUSTOMER, 0),
    ]
    created = {}
    for full_name, email, role, limit in users:
        user = db.session.query(User).filter_by(email=email).first()
        if user is None:
            user = User(full_name=full_name, email=email, role=role.value, is_active=True, pending_limit_cents=limit)
            db.session.add(user)
            db.session.flush()
            click.echo(f"PASS Created {role.value}: {email} (ID: {user.id})")
        created[role] = user

    salesman = created[Role.SALESMAN]
    for role in (Role.RETAILER, Role.BEAUTY_PARLOR):
        shop = created[role]
        exists = db.session.query(SalesmanShopAssignment).filter_by(salesman_id=salesman.id, shop_id=shop.id).first()
        if not exists:
            db.session.add(SalesmanShopAssignment(salesman_id=salesman.id, shop_id=shop.id))
        if shop.assigned_salesman_id is None:
            shop.assigned_salesman_id = salesman.id
    for brand in brands:
        exists = db.session.query(SalesmanBrand).filter_by(salesman_id=salesman.id, brand_id=brand.id).first()
        if not exists:
            db.session.add(SalesmanBrand(salesman_id=salesman.id, brand_id=brand.id))

    db.session.commit()
    click.echo("DONE Demo data ready")


# =============================================================================
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('create')
@click.option('--name', 'full_name', prompt=True, help='Full name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(ROLE_CHOICES), prompt=True, help='Role')
@click.option('--phone', default=None, help='Phone number')
@click.option('--pending-limit', type=int, default=0, show_default=True, help='Pending amount limit in cents')
@click.option('--unbounded', is_flag=True, help='No pending limit (stored as NULL)')
@with_appcontext
def create_user_cli(full_name, email, role, phone, pending_limit, unbounded):
    """Create a user. Credentials are managed by the auth provider."""
    if db.session.query(User).filter_by(email=email).first():
        click.echo(f"FAIL User '{email}' already exists")
        return
    if pending_limit < 0:
        click.echo("FAIL --pending-limit must be >= 0")
        return

    user = User(
        full_name=full_name,
        email=email,
        phone=phone,
        role=role,
        is_active=True,
        pending_limit_cents=None if unbounded else pending_limit,
    )
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {full_name} ({email}) with role '{role}' (ID: {user.id})")


@users_group.command('list')
@click.option('--role', type=click.Choice(ROLE_CHOICES), help='Filter by role')
@with_appcontext
def list_users(role):
    """List users with their roles and pending limits."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)

    users = query.order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<25} {'Email':<32} {'Role':<15} {'Active':<8} {'Limit'}")
    click.echo("="*100)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        if user.pending_limit_cents is None:
            limit_str = "unbounded"
        else:
            limit_str = format_cents(user.pending_limit_cents)
        click.echo(f"{user.id:<5} {user.full_name[:24]:<25} {user.email[:31]:<32} {user.role:<15} {active_str:<8} {limit_str}")

    click.echo("="*100 + "\n")


# =============================================================================
# CLIENTS
# =============================================================================

@click.group('clients')
def clients_group():
    """Client financial profile commands."""


@clients_group.command('set-limit')
@click.argument('client_id', type=int)
@click.argument('limit_cents', type=int, required=False)
@click.option('--unbounded', is_flag=True, help='Remove the limit (NULL)')
@with_appcontext
def set_limit_cli(client_id, limit_cents, unbounded):
    """Set a client's pending amount limit in cents."""
    if limit_cents is None and not unbounded:
        raise click.UsageError("Provide LIMIT_CENTS or --unbounded")

    actor = _system_admin()
    try:
        client = pending_limit_service.set_pending_limit(actor, client_id, None if unbounded else limit_cents)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        return

    shown = "unbounded" if client.pending_limit_cents is None else format_cents(client.pending_limit_cents)
    click.echo(f"PASS Pending limit for {client.full_name} (ID: {client.id}) set to {shown}")


@clients_group.command('status')
@click.argument('client_id', type=int)
@with_appcontext
def client_status_cli(client_id):
    """Print a client's limit, current pending and remaining headroom."""
    actor = _system_admin()
    try:
        status = pending_limit_service.get_client_financial_status(actor, client_id)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        return

    limit = status["pending_limit_cents"]
    remaining = status["remaining_limit_cents"]
    click.echo(f"\n{status['full_name']} ({status['role']}, ID {status['client_id']})")
    click.echo(f"  Limit:           {'unbounded' if limit is None else format_cents(limit)}")
    click.echo(f"  Current pending: {format_cents(status['current_pending_cents'])}")
    click.echo(f"  Remaining:       {'unbounded' if remaining is None else format_cents(remaining)}")
    click.echo(f"  Lifetime value:  {format_cents(status['lifetime_value_cents'])}")
    click.echo(f"  Total paid:      {format_cents(status['total_paid_cents'])}\n")


# =============================================================================
# PERMISSIONS
# =============================================================================

@click.group('perms')
def perms_group():
    """Permission inspection."""


@perms_group.command('list')
@click.option('--role', type=click.Choice(ROLE_CHOICES), help='Filter by role')
@click.option('--category', help='Filter by category')
@with_appcontext
def list_permissions_cli(role, category):
    """List permissions, optionally filtered by role or category."""
    if role:
        codes = sorted(DEFAULT_ROLE_PERMISSIONS.get(Role(role), frozenset()))
        perms = [get_permission_definition(code) for code in codes]
        title = f"Permissions for role: {role.upper()}"
    elif category:
        perms = [get_permission_definition(p[0]) for p in get_permissions_by_category(category.upper())]
        title = f"Permissions in category: {category.upper()}"
    else:
        perms = [get_permission_definition(p[0]) for p in PERMISSION_DEFINITIONS]
        title = "All permissions"

    click.echo(f"\n{'='*80}")
    click.echo(title)
    click.echo(f"{'='*80}\n")
    click.echo(f"{'Code':<30} {'Name':<35} {'Category'}")
    click.echo("-"*80)
    for perm in perms:
        if perm:
            click.echo(f"{perm['code']:<30} {perm['name']:<35} {perm['category']}")
    click.echo(f"\n Total: {len(perms)} permissions\n")


@perms_group.command('check')
@click.argument('role', type=click.Choice(ROLE_CHOICES))
@click.argument('permission_code')
@with_appcontext
def check_permission_cli(role, permission_code):
    """Check whether a role has a permission."""
    if not validate_permission_code(permission_code):
        click.echo(f"FAIL Unknown permission '{permission_code}'")
        return
    if role_has_permission(role, permission_code):
        click.echo(f"PASS {role} has {permission_code}")
    else:
        click.echo(f"FAIL {role} does NOT have {permission_code}")


# =============================================================================
# LEDGER
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Ledger maintenance."""


@ledger_group.command('reconcile')
@click.option('--fix', is_flag=True, help='Rewrite drifted orders from their payments')
@with_appcontext
def reconcile_cli(fix):
    """Recompute paid/pending/status for every order and report drift."""
    drift = reconcile_order_ledgers(fix=fix)
    if not drift:
        click.echo("PASS All order ledgers match their payments")
        return

    for entry in drift:
        stored = entry["stored"]
        recomputed = entry["recomputed"]
        click.echo(
            f"{'FIXED' if entry['fixed'] else 'DRIFT'} {entry['order_number']}: "
            f"paid {stored['paid_cents']} -> {recomputed['paid_cents']}, "
            f"pending {stored['pending_cents']} -> {recomputed['pending_cents']}, "
            f"status {stored['payment_status']} -> {recomputed['payment_status']}"
        )
    click.echo(f"\n{len(drift)} order(s) {'repaired' if fix else 'drifted'}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(clients_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(ledger_group)
