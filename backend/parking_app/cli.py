# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/parking_app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create the SQL tables (STORE_BACKEND=sql) or the data directory (json). Idempotent.
# - python -m flask system hash-password
#   Print a bcrypt hash to use as ADMIN_PASSWORD_HASH.
#
# Voucher inspection/bootstrap:
# - python -m flask vouchers list [--status active] [--q note]
#   List vouchers, newest first.
# - python -m flask vouchers create --total 50 --note "March batch"
#   Register a purchase (same audit trail as the admin UI).
# - python -m flask vouchers disable VCH_20260101_ABC123
#   Soft-disable a voucher.
# - python -m flask vouchers enable VCH_20260101_ABC123
#   Re-activate a disabled voucher.
#
# Audit inspection:
# - python -m flask audit tail --limit 20 [--type WEBHOOK_USE]
#   Show the most recent audit entries.

import json
from pathlib import Path

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .services import voucher_service
from .services.auth_service import hash_password, validate_password_strength, PasswordValidationError
from .services.reporting_service import query_logs


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """
    Prepare storage for the configured backend.

    - sql: create all tables (use `flask db upgrade` for managed migrations)
    - json: create DATA_DIR
    - memory: nothing to do
    """
    backend = current_app.config["STORE_BACKEND"]
    if backend == "sql":
        db.create_all()
        click.echo(f"PASS Tables ready at {current_app.config['SQLALCHEMY_DATABASE_URI']}")
    elif backend == "json":
        data_dir = Path(current_app.config["DATA_DIR"])
        data_dir.mkdir(parents=True, exist_ok=True)
        click.echo(f"PASS Data directory ready: {data_dir.resolve()}")
    else:
        click.echo(f"SKIP Nothing to initialize for STORE_BACKEND={backend}")


@system_group.command('hash-password')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@click.option('--rounds', type=int, default=None, help='bcrypt cost (defaults to BCRYPT_ROUNDS)')
@click.option('--skip-checks', is_flag=True, help='Skip password strength checks')
@with_appcontext
def hash_password_command(password, rounds, skip_checks):
    """Print a bcrypt hash for ADMIN_PASSWORD_HASH."""
    if not skip_checks:
        try:
            validate_password_strength(password)
        except PasswordValidationError as e:
            raise click.ClickException(str(e))
    click.echo(hash_password(password, rounds=rounds or current_app.config["BCRYPT_ROUNDS"]))


@click.group('vouchers')
def vouchers_group():
    """Voucher inspection and bootstrap."""


@vouchers_group.command('list')
@click.option('--status', type=click.Choice(['active', 'disabled']), help='Filter by status')
@click.option('--q', help='Substring of id or note')
@click.option('--page', type=int, default=1)
@with_appcontext
def list_vouchers(status, q, page):
    """List vouchers, newest first."""
    result = voucher_service.list_vouchers(q=q, status=status, page=page)
    items = result["items"]
    if not items:
        click.echo("No vouchers found.")
        return

    for v in items:
        click.echo(
            f"{v['id']}  {v['status']:<8}  remain {v['remain']}/{v['total']}  "
            f"created {v['createdAt']}  {v['note']}"
        )

    pagination = result["pagination"]
    summary = result["summary"]
    click.echo(
        f"\nPage {pagination['page']}/{pagination['totalPages']}, {summary['count']} vouchers, "
        f"issued {summary['totalIssued']}, used {summary['totalUsed']}, remaining {summary['totalRemain']}"
    )


@vouchers_group.command('create')
@click.option('--total', type=int, required=True, help='Number of uses purchased')
@click.option('--note', default='', help='Free-text note')
@with_appcontext
def create_voucher(total, note):
    """Register a purchase."""
    try:
        voucher = voucher_service.create_voucher(total, note=note)
    except ServiceError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created {voucher.id} with {voucher.total} uses")


@vouchers_group.command('disable')
@click.argument('voucher_id')
@with_appcontext
def disable_voucher(voucher_id):
    """Soft-disable a voucher."""
    try:
        voucher = voucher_service.disable_voucher(voucher_id)
    except ServiceError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Disabled {voucher.id} (remain {voucher.remain})")


@vouchers_group.command('enable')
@click.argument('voucher_id')
@with_appcontext
def enable_voucher(voucher_id):
    """Re-activate a disabled voucher."""
    try:
        voucher = voucher_service.enable_voucher(voucher_id)
    except ServiceError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Enabled {voucher.id} (remain {voucher.remain})")


@click.group('audit')
def audit_group():
    """Audit log inspection."""


@audit_group.command('tail')
@click.option('--limit', type=int, default=20, help='Number of entries')
@click.option('--type', 'event_type', help='Filter by event type')
@with_appcontext
def tail_audit(limit, event_type):
    """Show the most recent audit entries, newest first."""
    try:
        result = query_logs(event_type=event_type, page=1, page_size=limit)
    except ServiceError as e:
        raise click.ClickException(e.message)

    if not result["items"]:
        click.echo("No audit entries.")
        return
    for entry in result["items"]:
        meta = json.dumps(entry["meta"], ensure_ascii=False, sort_keys=True)
        click.echo(f"{entry['ts']}  {entry['type']:<12}  {entry['voucherId'] or '-':<22}  {meta}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(vouchers_group)
    app.cli.add_command(audit_group)
