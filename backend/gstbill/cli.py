# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/gstbill/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--password "Password123!"]
#   Idempotent: creates tables and a default superadmin user.
#
# Users:
# - python -m flask users list
# - python -m flask users create --username billing1 --role billing_staff
#   Create a user (prompts for the password if omitted).
#
# Stock ledger:
# - python -m flask ledger verify
#   Check every item's ledger chain against its current stock.
#
# Document numbering:
# - python -m flask sequences list
#   Show the last number handed out per document class and fiscal year.

import click
from flask.cli import with_appcontext

from .errors import BillingError
from .extensions import db
from .models import Item, User
from .permissions import VALID_ROLES
from .services import document_service, report_service
from .services.auth_service import create_user


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--username', default='admin', help='Superadmin username')
@click.option('--password', default='Password123!', help='Superadmin password')
@with_appcontext
def init_system(username, password):
    """
    Create all tables and a superadmin account if none exists.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing GST billing database...")
    db.create_all()
    click.echo("PASS Tables created")

    existing = db.session.query(User).filter_by(role="superadmin").first()
    if existing:
        click.echo(f"PASS Using existing superadmin: {existing.username}")
        return

    try:
        user = create_user(username=username, password=password, role="superadmin", display_name="Administrator")
    except BillingError as e:
        click.echo(f"FAIL Could not create superadmin: {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created superadmin: {user.username}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), prompt=True, help='Role')
@click.option('--display-name', default=None, help='Name shown on documents and audit rows')
@with_appcontext
def create_user_cli(username, password, role, display_name):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter, lowercase letter, digit and special character
    """
    try:
        user = create_user(username=username, password=password, role=role, display_name=display_name)
    except BillingError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created user: {user.username} with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.username).all()
    if not users:
        click.echo("No users found. Run 'python -m flask system init' first.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<20} {user.role:<18} {status}")


@click.group('ledger')
def ledger_group():
    """Stock ledger integrity commands."""


@ledger_group.command('verify')
@with_appcontext
def verify_ledger():
    """Exit status 1 if any item's ledger does not explain its stock."""
    report = report_service.ledger_integrity_report()
    broken = report["items_with_problems"]
    click.echo(f"Checked {report['items_checked']} items")

    if not broken:
        click.echo("PASS Every ledger chain is consistent")
        return

    for item_id, problems in broken.items():
        item = db.session.get(Item, int(item_id))
        click.echo(f"FAIL Item {item_id} ({item.sku if item else '?'}):")
        for problem in problems:
            click.echo(f"     {problem}")
    raise SystemExit(1)


@click.group('sequences')
def sequences_group():
    """Document numbering commands."""


@sequences_group.command('list')
@with_appcontext
def list_sequences():
    sequences = document_service.list_sequences()
    if not sequences:
        click.echo("No document numbers issued yet")
        return
    for seq in sequences:
        click.echo(f"{seq.document_class:<10} {seq.fiscal_year}  last={seq.current_value}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(sequences_group)
