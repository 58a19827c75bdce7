# Overview: Flask CLI command group for bootstrap and inspection.

# backend/mypos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask ledger <command> [options]
#
# - python -m flask ledger init-db [--admin admin]
#   Idempotent bootstrap: creates tables, the walk-in customer and an admin user.
# - python -m flask ledger low-stock
#   List products at or below their minimum stock level.
# - python -m flask ledger next-invoice [--date 2026-01-14]
#   Preview the next invoice number (nothing is reserved).

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import User
from .services import customer_service, inventory_service, numbering_service, user_service
from .time_utils import parse_iso_date


@click.group('ledger')
def ledger_group():
    """POS ledger bootstrap and inspection commands."""


@ledger_group.command('init-db')
@click.option('--admin', 'admin_username', default='admin', help='Username of the default admin user')
@with_appcontext
def init_db(admin_username):
    """
    Create all tables, the walk-in customer (id 1) and a default admin user.

    Safe to run repeatedly.
    """
    click.echo("START Initializing ledger database...")
    db.create_all()

    walk_in = customer_service.ensure_walk_in_customer()
    click.echo(f"PASS Walk-in customer: {walk_in.name} (ID: {walk_in.id})")

    existing = db.session.query(User).filter_by(username=admin_username).first()
    if existing:
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
    else:
        try:
            user = user_service.create_user(admin_username, full_name="Administrator")
            click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")
        except LedgerError as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{admin_username}': {e}")
            return

    db.session.commit()
    click.echo("DONE Ledger database ready")


@ledger_group.command('low-stock')
@with_appcontext
def low_stock():
    """List products at or below their minimum stock level."""
    products = inventory_service.list_low_stock_products()
    if not products:
        click.echo("No low-stock products.")
        return

    click.echo(f"{'CODE':<16} {'NAME':<32} {'STOCK':>7} {'MIN':>7}")
    for p in products:
        click.echo(f"{p.code:<16} {p.name[:32]:<32} {p.stock_qty:>7} {p.min_stock_level:>7}")


@ledger_group.command('next-invoice')
@click.option('--date', 'on', default=None, help='Business date (YYYY-MM-DD), default today')
@with_appcontext
def next_invoice(on):
    """Preview the next invoice number without reserving it."""
    try:
        day = parse_iso_date(on)
    except ValueError:
        raise click.BadParameter("must be YYYY-MM-DD", param_hint="--date")
    click.echo(numbering_service.peek_invoice_number(day))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
