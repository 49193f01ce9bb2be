# Overview: Flask CLI command groups for bootstrap, stock repair, pawn sweeps and price quotes.

# backend/jewelry_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent). Prefer `flask db upgrade` in production.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Invoices:
# - python -m flask invoices apply-pending [--invoice-id 12]
#   Retry the stock effect of invoices still flagged stock_applied=False.
# - python -m flask invoices mark-overdue [--as-of 2026-10-19]
#   Move active pawn invoices past their due date to overdue.
#
# Pricing:
# - python -m flask pricing quote --weight 16.6 [--spot 3000000] [--grade p15] [--side buy --yway 2 --pe 1]
#   Print a gold quote; without --spot the latest recorded gold rate is used.

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .services import invoice_service, market_service
from .services.gold_price_service import (
    DEFAULT_GRADE,
    PURITY_GRADES,
    SIDE_BUY,
    SIDE_SELL,
    calculate_gold_price,
)
from .time_utils import parse_iso_datetime, utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables ready.")


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

    click.echo("PASS Database reset complete.")


@click.group('invoices')
def invoices_group():
    """Invoice maintenance commands."""


@invoices_group.command('apply-pending')
@click.option('--invoice-id', type=int, default=None, help='Only retry this invoice')
@with_appcontext
def apply_pending(invoice_id):
    """Retry stock application for invoices flagged stock_applied=False."""
    if invoice_id is not None:
        try:
            invoice = invoice_service.apply_pending_stock(invoice_id)
        except DomainError as e:
            raise click.ClickException(f"{e.code}: {e.message}")
        click.echo(f"PASS {invoice.invoice_number} stock applied")
        return

    applied, failed = invoice_service.apply_all_pending_stock()
    for invoice in applied:
        click.echo(f"PASS {invoice.invoice_number} stock applied")
    for failed_id, error in failed:
        click.echo(f"FAIL invoice {failed_id}: {error.code}: {error.message}")

    click.echo(f"\nApplied: {len(applied)}  Failed: {len(failed)}")
    if failed:
        raise SystemExit(1)


@invoices_group.command('mark-overdue')
@click.option('--as-of', 'as_of', default=None, help='ISO date/datetime (UTC); default now')
@with_appcontext
def mark_overdue(as_of):
    """Move active pawn invoices past their due date to overdue."""
    try:
        cutoff = parse_iso_datetime(as_of) if as_of else utcnow()
    except ValueError:
        raise click.BadParameter("must be an ISO-8601 date", param_hint="--as-of")

    updated = invoice_service.mark_overdue_pawns(cutoff)
    for invoice in updated:
        click.echo(f"OVERDUE {invoice.invoice_number} (due {invoice.due_date.date().isoformat()})")
    click.echo(f"PASS {len(updated)} pawn invoice(s) marked overdue")


@click.group('pricing')
def pricing_group():
    """Gold price calculator."""


@pricing_group.command('quote')
@click.option('--weight', 'weight_grams', type=float, required=True, help='Weight in grams')
@click.option('--spot', 'spot_price', type=float, default=None, help='Spot price per tickal')
@click.option('--grade', type=click.Choice(sorted(PURITY_GRADES)), default=DEFAULT_GRADE)
@click.option('--side', type=click.Choice([SIDE_SELL, SIDE_BUY]), default=SIDE_SELL)
@click.option('--yway', type=int, default=0, help='Buy deduction in yway (0-7)')
@click.option('--pe', type=int, default=0, help='Buy deduction in pe (0-15)')
@with_appcontext
def quote(weight_grams, spot_price, grade, side, yway, pe):
    """Print a gold quote."""
    try:
        if spot_price is None:
            result = market_service.quote_from_latest_rate(
                weight_grams=weight_grams, grade=grade, side=side, yway=yway, pe=pe,
            )
        else:
            result = calculate_gold_price(
                spot_price=spot_price, weight_grams=weight_grams, grade=grade, side=side, yway=yway, pe=pe,
            )
    except DomainError as e:
        raise click.ClickException(e.message)

    data = result.to_dict()
    click.echo(f"Grade:           {data['grade']} ({data['side']})")
    click.echo(f"Spot price:      {data['spot_price']:,.2f}")
    click.echo(f"Weight (tickal): {data['weight_in_tickal']}")
    click.echo(f"Adjusted price:  {data['adjusted_price']:,.2f}")
    click.echo(f"Total value:     {data['total_value']:,.2f}")
    click.echo(f"Deduction:       {data['deduction']:,.2f}")
    click.echo(f"Final price:     {data['final_price']:,.2f}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(invoices_group)
    app.cli.add_command(pricing_group)
