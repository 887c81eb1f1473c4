# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/salon_finance/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "salon_finance:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent). Use Flask-Migrate (flask db upgrade) for managed schemas.
# - python -m flask system seed --company "Glow Salon" --code GLOW --branch "Downtown"
#   Create a company and its first branch.
#
# Accounts:
# - python -m flask accounts list --company-id 1 [--branch-id 1] [--type cash]
# - python -m flask accounts create --company-id 1 --branch-id 1 --name "Front Cash" --type cash --opening 100000
#
# Register sessions:
# - python -m flask sessions list --company-id 1 [--status open] [--limit 20]

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, Company
from .services import ledger_service, register_service
from .services.errors import FinanceError


def _money(cents) -> str:
    if cents is None:
        return "-"
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed')
@click.option('--company', 'company_name', required=True, help='Company name')
@click.option('--code', required=True, help='Company code (unique)')
@click.option('--branch', 'branch_name', default='Main', show_default=True, help='First branch name')
@click.option('--branch-code', default='MAIN', show_default=True)
@click.option('--tax-rate-bps', type=int, default=0, show_default=True, help='Sales tax in basis points')
@click.option('--currency', default=None, help='Defaults to DEFAULT_CURRENCY')
@click.option('--timezone', 'tz_name', default='UTC', show_default=True, help='Branch timezone (IANA name)')
@with_appcontext
def seed_company(company_name, code, branch_name, branch_code, tax_rate_bps, currency, tz_name):
    """Create a company and its first branch."""
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        click.echo(f"FAIL Unknown timezone '{tz_name}'")
        return

    existing = db.session.query(Company).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Company with code '{code}' already exists (ID: {existing.id})")
        return

    company = Company(
        name=company_name,
        code=code,
        currency=currency or current_app.config["DEFAULT_CURRENCY"],
        is_active=True,
    )
    db.session.add(company)
    db.session.flush()

    branch = Branch(
        company_id=company.id,
        name=branch_name,
        code=branch_code,
        tax_rate_bps=tax_rate_bps,
        timezone=tz_name,
    )
    db.session.add(branch)
    db.session.commit()

    click.echo(f"PASS Created company {company.name} (ID: {company.id}) with branch {branch.name} (ID: {branch.id})")


@click.group('accounts')
def accounts_group():
    """Financial account commands."""


@accounts_group.command('list')
@click.option('--company-id', type=int, required=True)
@click.option('--branch-id', type=int, help='Branch (company-wide accounts are always included)')
@click.option('--type', 'account_type', help='cash, bank, credit_card, digital_wallet, petty_cash')
@click.option('--status', help='active, inactive, closed')
@with_appcontext
def list_accounts_cli(company_id, branch_id, account_type, status):
    """
    List accounts.

    Example:
        flask accounts list --company-id 1
        flask accounts list --company-id 1 --type cash
    """
    accounts = ledger_service.list_accounts(company_id, branch_id=branch_id, type=account_type, status=status)

    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\n" + "="*96)
    click.echo(f"{'ID':<5} {'Name':<28} {'Type':<15} {'Branch':<8} {'Status':<10} {'Default':<8} {'Balance':>14}")
    click.echo("="*96)

    for account in accounts:
        branch = account.branch_id if account.branch_id is not None else "-"
        default = "Yes" if account.is_default else "No"
        click.echo(
            f"{account.id:<5} {account.name[:28]:<28} {account.type:<15} {branch!s:<8} "
            f"{account.status:<10} {default:<8} {_money(account.current_balance_cents):>14}"
        )

    click.echo("="*96 + "\n")


@accounts_group.command('create')
@click.option('--company-id', type=int, required=True)
@click.option('--branch-id', type=int, help='Omit for a company-wide account')
@click.option('--name', required=True)
@click.option('--type', 'account_type', required=True,
              type=click.Choice(list(ledger_service.ACCOUNT_TYPES)))
@click.option('--opening', 'opening_balance_cents', type=int, default=0, show_default=True,
              help='Opening balance in cents')
@click.option('--allow-negative', is_flag=True)
@click.option('--default', 'is_default', is_flag=True)
@click.option('--low-balance', 'low_balance_threshold_cents', type=int, help='Alert threshold in cents')
@with_appcontext
def create_account_cli(company_id, branch_id, name, account_type, opening_balance_cents,
                       allow_negative, is_default, low_balance_threshold_cents):
    """Create a financial account with an optional opening balance."""
    try:
        account = ledger_service.create_account(
            company_id=company_id,
            branch_id=branch_id,
            name=name,
            type=account_type,
            created_by="cli",
            opening_balance_cents=opening_balance_cents,
            allow_negative_balance=allow_negative,
            is_default=is_default,
            low_balance_threshold_cents=low_balance_threshold_cents,
        )
    except FinanceError as e:
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS Created account {account.name} (ID: {account.id}, balance {_money(account.current_balance_cents)})")


@click.group('sessions')
def sessions_group():
    """Register session commands."""


@sessions_group.command('list')
@click.option('--company-id', type=int, required=True)
@click.option('--branch-id', type=int)
@click.option('--status', type=click.Choice(['open', 'suspended', 'closed']), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max sessions to show')
@with_appcontext
def list_sessions_cli(company_id, branch_id, status, limit):
    """
    List register sessions.

    Example:
        flask sessions list --company-id 1
        flask sessions list --company-id 1 --status open
    """
    sessions = register_service.list_sessions(company_id, branch_id=branch_id, status=status, limit=limit)

    if not sessions:
        click.echo("No sessions found.")
        return

    click.echo("\n" + "="*110)
    click.echo(f"{'ID':<5} {'Register':<12} {'Opened by':<15} {'Status':<10} {'Opened':<20} {'Discrepancy':>12}  {'Notes'}")
    click.echo("="*110)

    for session in sessions:
        notes = session.notes[:30] if session.notes else "-"
        click.echo(
            f"{session.id:<5} {session.register_id[:12]:<12} {session.opened_by[:15]:<15} {session.status:<10} "
            f"{str(session.opened_at)[:19]:<20} {_money(session.total_discrepancy_cents):>12}  {notes}"
        )

    click.echo("="*110 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(sessions_group)
