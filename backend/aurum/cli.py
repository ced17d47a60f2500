# Overview: Flask CLI command groups for bootstrap, identity and ledger checks.

# backend/aurum/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create any missing tables and the shop_assets singleton row (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users (audit identity only):
# - python -m flask users create --username counter1
# - python -m flask users issue-token --username counter1
#   Prints a bearer token once; only its hash is stored.
#
# Ledger checks:
# - python -m flask ledger verify-vendors
#   Replay every vendor ledger and report balances that disagree.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Vendor
from .services import session_service, vendor_service
from .services.balances import ensure_assets_row
from .services.concurrency import atomic
from .validation import AurumError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables and seed the cash/bank singleton."""
    click.echo("START Initializing aurum ledger...")
    db.create_all()
    with atomic() as session:
        assets = ensure_assets_row(session)
        cash, bank = assets.cash_balance, assets.bank_balance
    click.echo(f"PASS shop_assets ready (cash: {cash}, bank: {bank})")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.confirm("This deletes ALL data. Continue?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """Audit identity commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@with_appcontext
def create_user_cli(username):
    try:
        user = session_service.create_user(username)
    except AurumError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user {user.username} (ID: {user.id})")


@users_group.command('issue-token')
@click.option('--username', prompt=True, help='Username')
@with_appcontext
def issue_token_cli(username):
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        raise click.ClickException(f"User {username} not found")
    try:
        record, token = session_service.create_session(user.id)
    except AurumError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Token for {username} (expires {record.expires_at:%Y-%m-%d %H:%M} UTC):")
    click.echo(token)


@click.group('ledger')
def ledger_group():
    """Ledger consistency checks."""


@ledger_group.command('verify-vendors')
@with_appcontext
def verify_vendors_cli():
    vendors = db.session.query(Vendor).order_by(Vendor.id.asc()).all()
    bad = 0
    for vendor in vendors:
        report = vendor_service.verify_vendor_balance(vendor.id)
        if report["consistent"]:
            continue
        bad += 1
        click.echo(
            f"FAIL {vendor.business_name} (ID: {vendor.id}): balance {report['balance_pure_weight']}, "
            f"ledger {report['ledger_sum']}, last balance_after {report['last_balance_after']}"
        )
    if bad:
        raise click.ClickException(f"{bad} of {len(vendors)} vendor ledgers disagree")
    click.echo(f"PASS {len(vendors)} vendor ledgers consistent")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
