# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py and FREE_FOR_LIFE_THRESHOLD_CENTS in the environment.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --admin-email admin@example.com --admin-password "Password123!"
#   Idempotent bootstrap: seeds plans and creates a platform admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Plans:
# - python -m flask plans seed
#   Create any missing launch tiers (free, starter, growth, professional, millionaire).
# - python -m flask plans list [--all]
#   List plans with prices and limits.
#
# Merchants:
# - python -m flask merchants create --name "Acme" --email owner@acme.com --password "Password123!" [--plan starter]
#   Register a merchant with its owner user and a trial subscription.
# - python -m flask merchants list
#   List merchants with plan, status and lifetime sales.
# - python -m flask merchants add-sales --merchant-id 1 --amount-cents 50000
#   Manually book sales toward FREE FOR LIFE (support tooling).
#
# Suppliers:
# - python -m flask suppliers create --name "Acme Wholesale" --type custom
#
# Maintenance:
# - python -m flask maintenance reset-daily-ads
#   Zero ad counters from previous days (schedule once a day, after midnight UTC).
# - python -m flask maintenance recompute-progress
#   Recompute FREE FOR LIFE progress after the threshold changes.
# - python -m flask maintenance expire-invitations
# - python -m flask maintenance cleanup-sessions
# - python -m flask maintenance cleanup-activity --retention-days 365

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Merchant, Plan, Subscription, Supplier, User
from .models.auth import ROLE_ADMIN
from .services.auth_service import create_user, register_merchant, PasswordValidationError
from .services import maintenance_service, plan_service, subscription_service
from .services.subscription_service import ConfigurationError
from .validation import ConflictError, ValidationError


def _fmt_limit(value: int) -> str:
    return "unlimited" if value == -1 else str(value)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@dropship.local', show_default=True)
@click.option('--admin-password', default='Password123!', show_default=True)
@with_appcontext
def init_system(admin_email, admin_password):
    """
    Seed plans and create a platform admin.

    SECURITY: Change the admin password immediately in production!
    """
    created = plan_service.seed_default_plans()
    click.echo(f"PASS Plans seeded ({created} created)")

    existing = db.session.query(User).filter_by(email=admin_email).first()
    if existing:
        click.echo(f"PASS Using existing admin: {existing.email}")
        return

    try:
        admin = create_user(admin_email, "Platform Admin", admin_password, role=ROLE_ADMIN)
    except (PasswordValidationError, ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created admin: {admin.email} (ID: {admin.id})")


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
    click.echo("BUILD  Creating tables...")
    db.create_all()
    click.echo("PASS Database reset. Run 'flask system init' next.")


# =============================================================================
# PLAN COMMANDS
# =============================================================================

@click.group('plans')
def plans_group():
    """Subscription plan commands."""


@plans_group.command('seed')
@with_appcontext
def seed_plans():
    """Create missing launch tiers. Existing plans are left untouched."""
    created = plan_service.seed_default_plans()
    click.echo(f"PASS {created} plans created")


@plans_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive plans')
@with_appcontext
def list_plans(include_inactive):
    """List plans with prices and limits."""
    plans = plan_service.list_plans(active_only=not include_inactive)
    if not plans:
        click.echo("No plans found. Run 'flask plans seed'.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'Slug':<14} {'Name':<14} {'Monthly':>9} {'Products':>10} {'Orders':>10} {'Team':>10} {'Ads/day':>10}")
    click.echo("="*90)
    for plan in plans:
        click.echo(
            f"{plan.slug:<14} {plan.name:<14} {plan.monthly_price_cents / 100:>9.2f} "
            f"{_fmt_limit(plan.product_limit):>10} {_fmt_limit(plan.order_limit):>10} "
            f"{_fmt_limit(plan.team_member_limit):>10} {_fmt_limit(plan.daily_ads_limit):>10}"
        )
    click.echo("="*90 + "\n")


# =============================================================================
# MERCHANT COMMANDS
# =============================================================================

@click.group('merchants')
def merchants_group():
    """Merchant (tenant) management commands."""


@merchants_group.command('create')
@click.option('--name', required=True, help='Business name')
@click.option('--email', required=True, help='Owner email (login)')
@click.option('--owner-name', default=None, help='Owner display name')
@click.option('--password', required=True, help='Owner password')
@click.option('--plan', 'plan_slug', default=None, help='Plan slug (defaults to DEFAULT_PLAN_SLUG)')
@with_appcontext
def create_merchant_cli(name, email, owner_name, password, plan_slug):
    """Register a merchant, its owner user and a trial subscription."""
    try:
        merchant, owner = register_merchant(
            business_name=name,
            owner_email=email,
            owner_name=owner_name or name,
            password=password,
            plan_slug=plan_slug,
        )
    except (PasswordValidationError, ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created merchant: {merchant.business_name} (ID: {merchant.id}, owner: {owner.email})")


@merchants_group.command('list')
@with_appcontext
def list_merchants():
    """List merchants with plan, subscription status and lifetime sales."""
    rows = (
        db.session.query(Merchant, Subscription, Plan)
        .outerjoin(Subscription, Subscription.merchant_id == Merchant.id)
        .outerjoin(Plan, Plan.id == Subscription.plan_id)
        .order_by(Merchant.id.asc())
        .all()
    )
    if not rows:
        click.echo("No merchants found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Business':<28} {'Plan':<14} {'Status':<14} {'Lifetime sales':>16} {'Progress':>9}")
    click.echo("="*90)
    for merchant, subscription, plan in rows:
        status = subscription.status if subscription else "-"
        sales = f"{subscription.lifetime_sales_cents / 100:.2f}" if subscription else "-"
        progress = f"{subscription.progress_to_free_for_life}%" if subscription else "-"
        click.echo(
            f"{merchant.id:<5} {merchant.business_name[:28]:<28} {(plan.slug if plan else '-'):<14} "
            f"{status:<14} {sales:>16} {progress:>9}"
        )
    click.echo("="*90 + "\n")


@merchants_group.command('add-sales')
@click.option('--merchant-id', type=int, required=True)
@click.option('--amount-cents', type=int, required=True)
@with_appcontext
def add_sales_cli(merchant_id, amount_cents):
    """Book sales toward FREE FOR LIFE outside of order creation."""
    try:
        subscription = subscription_service.accumulate_lifetime_sales(merchant_id, amount_cents)
    except (ValidationError, ConfigurationError, subscription_service.SubscriptionError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(
        f"PASS Lifetime sales now {subscription.lifetime_sales_cents} cents "
        f"({subscription.progress_to_free_for_life}%, status {subscription.status})"
    )


# =============================================================================
# SUPPLIER COMMANDS
# =============================================================================

@click.group('suppliers')
def suppliers_group():
    """Supplier commands."""


@suppliers_group.command('create')
@click.option('--name', required=True)
@click.option('--type', 'supplier_type', default='custom', show_default=True,
              type=click.Choice(['gigab2b', 'shopify', 'amazon', 'woocommerce', 'custom']))
@with_appcontext
def create_supplier_cli(name, supplier_type):
    """Create a supplier for the global catalog."""
    if db.session.query(Supplier).filter_by(name=name).first():
        click.echo(f"FAIL Supplier '{name}' already exists")
        return
    supplier = Supplier(name=name, type=supplier_type)
    db.session.add(supplier)
    db.session.commit()
    click.echo(f"PASS Created supplier: {supplier.name} (ID: {supplier.id})")


# =============================================================================
# MAINTENANCE COMMANDS
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('reset-daily-ads')
@with_appcontext
def reset_daily_ads_cli():
    """Zero ad counters from previous days. Re-running the same day is a no-op."""
    count = maintenance_service.reset_daily_ads()
    click.echo(f"Reset ad counters on {count} subscriptions.")


@maintenance_group.command('recompute-progress')
@with_appcontext
def recompute_progress_cli():
    """Recompute FREE FOR LIFE progress against the configured threshold."""
    try:
        result = subscription_service.recompute_progress()
    except ConfigurationError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(
        f"Recomputed {result['updated']} subscriptions at threshold "
        f"{result['threshold_cents']} cents; {result['unlocked']} newly unlocked."
    )


@maintenance_group.command('expire-invitations')
@with_appcontext
def expire_invitations_cli():
    """Expire pending team invitations past their deadline."""
    count = maintenance_service.expire_invitations()
    click.echo(f"Expired {count} invitations.")


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired or revoked sessions older than 30 days."""
    count = maintenance_service.cleanup_sessions()
    click.echo(f"Deleted {count} sessions.")


@maintenance_group.command('cleanup-activity')
@click.option('--retention-days', type=int, default=365, show_default=True)
@with_appcontext
def cleanup_activity_cli(retention_days):
    """Delete activity events older than the retention window."""
    deleted = maintenance_service.cleanup_activity(retention_days=retention_days)
    click.echo(f"Deleted {deleted} activity events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(plans_group)
    app.cli.add_command(merchants_group)
    app.cli.add_command(suppliers_group)
    app.cli.add_command(maintenance_group)
