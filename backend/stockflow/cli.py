# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockflow/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--org "Org Name"] [--code "DEFAULT"]
#   Idempotent bootstrap: creates tables and the default organization.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
#   List all organizations with payment and notification counts.
# - python -m flask orgs create --name "Acme Corp" --code "ACME"
#   Create a new organization (tenant).
# - python -m flask orgs deactivate --org-id 2
#   Deactivate a tenant (its requests get 401).
#
# Payments:
# - python -m flask payments stats --org-id 1
#   Print the dashboard aggregates for a tenant.
# - python -m flask payments next-number --org-id 1
#   Show the payment number the next creation would receive.
#
# Notifications:
# - python -m flask notifications clear-read --org-id 1
#   Delete read notifications of a tenant.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Organization, Payment, Notification
from .services import notification_service, payment_stats_service
from .services.payment_number_service import generate_payment_number


def _require_org(org_id: int):
    org = db.session.query(Organization).filter_by(id=org_id).first()
    if not org:
        raise click.ClickException(f"Organization ID {org_id} not found")
    return org


# =============================================================================
# SYSTEM COMMANDS
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Default organization name')
@click.option('--code', default='DEFAULT', help='Default organization code')
@with_appcontext
def init_system(org_name, code):
    """Create tables and the default organization (safe to re-run)."""
    click.echo("BUILD  Creating tables...")
    db.create_all()

    org = db.session.query(Organization).filter_by(code=code).first()
    if org:
        click.echo(f"SKIP Organization '{org.name}' already exists (ID: {org.id})")
        return

    org = Organization(name=org_name, code=code, is_active=True)
    db.session.add(org)
    db.session.commit()
    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


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


# =============================================================================
# ORGANIZATION COMMANDS
# =============================================================================

@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.id).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Payments':<10} {'Notifs'}")
    click.echo("="*80)

    for org in orgs:
        payment_count = db.session.query(Payment).filter_by(org_id=org.id).count()
        notification_count = db.session.query(Notification).filter_by(org_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"

        click.echo(f"{org.id:<5} {org.name:<30} {org.code or '-':<15} {active_str:<8} {payment_count:<10} {notification_count}")

    click.echo("="*80 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_org_cli(name, code):
    """Create a new organization (tenant)."""
    existing = db.session.query(Organization).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Organization with code '{code}' already exists")
        return

    org = Organization(name=name, code=code, is_active=True)
    db.session.add(org)
    db.session.commit()

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


@orgs_group.command('deactivate')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def deactivate_org_cli(org_id):
    """Deactivate an organization; its API requests are rejected."""
    org = _require_org(org_id)
    if not org.is_active:
        click.echo(f"SKIP Organization '{org.name}' is already inactive")
        return
    org.is_active = False
    db.session.commit()
    click.echo(f"PASS Deactivated organization: {org.name} (ID: {org.id})")


# =============================================================================
# PAYMENT COMMANDS
# =============================================================================

@click.group('payments')
def payments_group():
    """Payment inspection commands."""


@payments_group.command('stats')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def payment_stats_cli(org_id):
    """Print dashboard aggregates for a tenant."""
    org = _require_org(org_id)
    stats = payment_stats_service.get_payment_stats(org.id)

    click.echo(f"\nPayments for {org.name} (ID: {org.id})")
    click.echo("="*50)
    for key in (
        "total_payments", "total_received", "total_pending", "total_processing",
        "total_refunded", "average_payment_value", "today_payments", "today_total",
        "week_payments", "week_total",
    ):
        value = stats[key]
        if isinstance(value, float):
            value = f"{value:,.2f}"
        elif isinstance(value, int):
            value = f"{value:,}"
        click.echo(f"{key:<25} {value}")

    click.echo("\nBy status:")
    for status, count in stats["payments_by_status"].items():
        click.echo(f"  {status:<15} {count}")
    click.echo("\nBy method:")
    for method, count in stats["payments_by_method"].items():
        click.echo(f"  {method:<15} {count}")
    click.echo("")


@payments_group.command('next-number')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def next_number_cli(org_id):
    """Show the payment number the next creation would receive."""
    org = _require_org(org_id)
    click.echo(generate_payment_number(org.id))


# =============================================================================
# NOTIFICATION COMMANDS
# =============================================================================

@click.group('notifications')
def notifications_group():
    """Notification maintenance commands."""


@notifications_group.command('clear-read')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def clear_read_cli(org_id):
    """Delete read notifications of a tenant."""
    org = _require_org(org_id)
    result = notification_service.clear_read(org.id)
    click.echo(f"PASS Deleted {result['deleted_count']} read notifications from '{org.name}'")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)  # Multi-tenant organization management
    app.cli.add_command(payments_group)
    app.cli.add_command(notifications_group)
