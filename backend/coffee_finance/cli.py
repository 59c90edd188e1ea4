# Overview: Flask CLI command groups for bootstrap, cash inspection, and maintenance.

# backend/coffee_finance/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Cash:
# - python -m flask cash balance
#   Show the current cash balance.
# - python -m flask cash reconcile
#   Compare the materialized balance with a replay of the transaction log.
# - python -m flask cash deposit --amount 500000 --actor "Finance Clerk"
#   Record cash received into the float.
# - python -m flask cash pending
#   List deposits waiting for confirmation.
# - python -m flask cash confirm-deposit 12 --actor "Finance Manager"
#   Confirm a pending deposit and credit the balance.
#
# Follow-ups:
# - python -m flask followups retry --limit 100
#   Re-run pending post-payment follow-ups (assessment status, day book, SMS).
#
# Approvals:
# - python -m flask approvals list [--status all] [--type "Bank Transfer"]
#   List approval requests waiting for a second authorizer.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import approval_service, cash_service, followup_service
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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


@click.group('cash')
def cash_group():
    """Cash balance inspection and deposits."""


@cash_group.command('balance')
@with_appcontext
def cash_balance():
    """Show the current cash balance."""
    click.echo(f"UGX {cash_service.current_balance():,}")


@cash_group.command('reconcile')
@with_appcontext
def cash_reconcile():
    """Compare the materialized balance with the transaction log."""
    report = cash_service.reconcile()
    materialized = report["materialized_ugx"]
    click.echo(f"Account:      {report['account']}")
    click.echo(f"Materialized: {'(none)' if materialized is None else f'UGX {materialized:,}'}")
    click.echo(f"Replayed:     UGX {report['replayed_ugx']:,}")
    if report["in_balance"]:
        click.echo("PASS Balance matches transaction log")
    else:
        click.echo(f"WARN Drift of UGX {report['drift_ugx']:,}")
        raise SystemExit(1)


@cash_group.command('deposit')
@click.option('--amount', required=True, type=int, help='Amount in UGX')
@click.option('--actor', required=True, help='Who received the cash')
@click.option('--reference', default=None, help='Deposit reference')
@click.option('--notes', default=None)
@click.option('--pending', is_flag=True, help='Log only; credit the balance on confirm-deposit')
@with_appcontext
def cash_deposit(amount, actor, reference, notes, pending):
    """Record cash received into the float."""
    try:
        txn = cash_service.record_deposit(amount, actor=actor, reference=reference, notes=notes, pending=pending)
    except ValidationError as e:
        raise click.ClickException(str(e))
    if pending:
        click.echo(f"PASS Deposit #{txn.id} logged as pending. Balance unchanged: UGX {txn.balance_after_ugx:,}")
    else:
        click.echo(f"PASS Deposit #{txn.id} recorded. Balance: UGX {txn.balance_after_ugx:,}")


@cash_group.command('pending')
@with_appcontext
def cash_pending():
    """List deposits waiting for confirmation."""
    deposits = cash_service.list_pending_deposits()
    if not deposits:
        click.echo("No pending deposits")
        return
    for txn in deposits:
        click.echo(f"#{txn.id}  UGX {txn.amount_ugx:,}  {txn.reference or '-'}  by {txn.created_by}")


@cash_group.command('confirm-deposit')
@click.argument('transaction_id', type=int)
@click.option('--actor', required=True, help='Finance user confirming the cash count')
@with_appcontext
def cash_confirm_deposit(transaction_id, actor):
    """Confirm a pending deposit and credit the balance."""
    try:
        txn = cash_service.confirm_deposit(transaction_id, actor=actor)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Deposit #{txn.id} confirmed. Balance: UGX {txn.balance_after_ugx:,}")


@click.group('followups')
def followups_group():
    """Post-payment follow-up maintenance."""


@followups_group.command('retry')
@click.option('--limit', default=100, type=int, help='Maximum tasks to run')
@with_appcontext
def followups_retry(limit):
    """Re-run pending follow-ups, oldest first."""
    summary = followup_service.retry_pending(limit=limit)
    click.echo(f"Attempted {summary['attempted']} task(s), {summary['failed']} failed")
    for warning in summary["warnings"]:
        click.echo(f"WARN {warning}")


@click.group('approvals')
def approvals_group():
    """Approval request inspection."""


@approvals_group.command('list')
@click.option('--status', default='Pending', help='Request status, or "all"')
@click.option('--type', 'request_type', default=None, help='Bank Transfer | Price Correction')
@with_appcontext
def approvals_list(status, request_type):
    """List approval requests, newest first."""
    requests = approval_service.list_requests(
        status=None if status == 'all' else status,
        request_type=request_type,
    )
    if not requests:
        click.echo("No approval requests found")
        return

    click.echo(f"{'ID':<6} {'Type':<18} {'Amount (UGX)':>14} {'Status':<10} Title")
    click.echo("-" * 72)
    for r in requests:
        click.echo(f"{r.id:<6} {r.request_type:<18} {r.amount_ugx:>14,} {r.status:<10} {r.title}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(cash_group)
    app.cli.add_command(followups_group)
    app.cli.add_command(approvals_group)
