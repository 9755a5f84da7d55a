# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/backspace/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, seeds document sequences and default settings.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Billing inspection/maintenance:
# - python -m flask billing sessions
#   List open sessions with their live charge.
# - python -m flask billing expire-subscriptions
#   Mark subscriptions past their end date as expired.

import click
from flask.cli import with_appcontext

from .extensions import db
from .money import format_minor_units
from .services import session_service, subscription_service
from .services.billing_service import compute_session_charge, format_duration
from .services.document_service import ensure_sequences
from .services.settings_service import get_settings, update_settings
from .time_utils import utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the billing database (idempotent).

    Creates:
    - All tables (when missing)
    - Document sequences for invoice numbers and customer ids
    - The settings document with defaults
    """
    click.echo("START Initializing billing system...")

    db.create_all()
    click.echo("PASS Tables ready")

    created = ensure_sequences()
    click.echo(f"PASS Document sequences ready ({created} created)")

    settings = update_settings({})
    click.echo(f"PASS Settings ready (currency: {settings.currency})")

    click.echo("DONE Billing system initialized")


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


@click.group('billing')
def billing_group():
    """Session and subscription maintenance commands."""


@billing_group.command('sessions')
@with_appcontext
def list_sessions_cli():
    """
    List open sessions with their live charge.

    Example:
        flask billing sessions
    """
    sessions = session_service.list_active_sessions()
    if not sessions:
        click.echo("No open sessions.")
        return

    now = utcnow()
    settings = get_settings()

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Customer':<25} {'Resource':<20} {'Duration':<10} {'Items':<10} {'Total'}")
    click.echo("="*100)

    for session in sessions:
        charge = compute_session_charge(session, now, settings)
        click.echo(
            f"{session.id:<5} {session.customer_name[:24]:<25} {session.resource_name[:19]:<20} "
            f"{format_duration(charge.duration_minutes):<10} {format_minor_units(charge.inventory_subtotal):<10} "
            f"{format_minor_units(charge.total)}"
        )

    click.echo("="*100 + "\n")


@billing_group.command('expire-subscriptions')
@with_appcontext
def expire_subscriptions_cli():
    """Mark active subscriptions whose end date has passed as expired."""
    count = subscription_service.expire_subscriptions()
    click.echo(f"PASS Expired {count} subscription(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(billing_group)
