# Overview: Flask CLI command groups for bootstrap and register operations.

# backend/cashdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: flask --app cashdesk <group> <command> [options]
#
# System bootstrap/repair:
# - flask --app cashdesk system init [--store "Main Shop"] [--code MAIN] [--username admin]
#   Idempotent bootstrap: creates the schema, a default store and an admin user.
# - flask --app cashdesk system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - flask --app cashdesk users create --store-id 1 --username cashier
# - flask --app cashdesk users issue-token --username cashier [--ttl-hours 12]
#   Prints a bearer token for the API (shown once).
#
# Cash registers:
# - flask --app cashdesk registers open --store-id 1 --username admin --starting 100000
# - flask --app cashdesk registers current --store-id 1
# - flask --app cashdesk registers close --session-id 3 --username admin --actual 130000
# - flask --app cashdesk registers sessions --store-id 1 [--status CLOSED]
# - flask --app cashdesk registers summary --session-id 3
#
# Settlements:
# - flask --app cashdesk settlements list --store-id 1 [--start 2026-01-01] [--end 2026-01-31]
#
# Payments and cash reports:
# - flask --app cashdesk payments list --store-id 1 [--method CASH] [--sale-id 42] [--start ...] [--end ...]
# - flask --app cashdesk payments summary --store-id 1 [--start 2026-01-01] [--end 2026-01-31]
# - flask --app cashdesk movements list --store-id 1 [--direction OUT] [--start ...] [--end ...]

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Store, User
from .services import (
    movement_service,
    payment_service,
    register_service,
    session_service,
    settlement_service,
    store_service,
)
from .time_utils import parse_range_bound
from .validation import CashRegisterError


def _money(cents) -> str:
    if cents is None:
        return "-"
    return f"{cents / 100:,.2f}"


def _user_by_username(username: str) -> User:
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        raise click.ClickException(f"User '{username}' not found")
    return user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--store', 'store_name', default='Main Shop', help='Store name')
@click.option('--code', 'store_code', default='MAIN', help='Store code')
@click.option('--username', default='admin', help='Admin username')
@with_appcontext
def init_system(store_name, store_code, username):
    """
    Create tables, a default store and an admin user.

    Safe to run repeatedly.
    """
    db.create_all()

    store = db.session.query(Store).filter_by(code=store_code).first()
    if store:
        click.echo(f"= Store exists: {store.name} (id={store.id})")
    else:
        store = store_service.create_store(store_name, store_code)
        click.echo(f"+ Store created: {store.name} (id={store.id})")

    user = db.session.query(User).filter_by(username=username).first()
    if user:
        click.echo(f"= User exists: {user.username} (id={user.id})")
    else:
        user = store_service.create_user(store.id, username, display_name="Administrator")
        click.echo(f"+ User created: {user.username} (id={user.id})")

    click.echo("Done. Issue a token with: flask --app cashdesk users issue-token --username " + username)


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate every table."""
    if not yes:
        click.confirm("This deletes ALL data. Continue?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("Database reset.")


@click.group('users')
def users_group():
    """Staff account commands."""


@users_group.command('create')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--username', prompt=True, help='Username')
@click.option('--display-name', default=None, help='Display name')
@with_appcontext
def create_user_cli(store_id, username, display_name):
    try:
        user = store_service.create_user(store_id, username, display_name)
    except CashRegisterError as e:
        raise click.ClickException(e.message)
    click.echo(f"+ User created: {user.username} (id={user.id}, store={user.store_id})")


@users_group.command('issue-token')
@click.option('--username', required=True, help='Username')
@click.option('--ttl-hours', type=int, default=None, help='Token lifetime (defaults to config)')
@with_appcontext
def issue_token_cli(username, ttl_hours):
    user = _user_by_username(username)
    try:
        session, token = session_service.create_session(user.id, ttl_hours=ttl_hours)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"Token for {user.username} (store={session.store_id}, expires {session.expires_at:%Y-%m-%d %H:%M} UTC):")
    click.echo(token)


@click.group('registers')
def registers_group():
    """Cash register session commands."""


@registers_group.command('open')
@click.option('--store-id', type=int, required=True)
@click.option('--username', required=True)
@click.option('--starting', 'starting_cents', type=int, required=True, help='Starting balance in cents')
@with_appcontext
def open_register_cli(store_id, username, starting_cents):
    user = _user_by_username(username)
    try:
        session = register_service.open_register(store_id, user.id, starting_cents)
    except CashRegisterError as e:
        raise click.ClickException(f"[{e.kind.value}] {e.message}")
    click.echo(f"Opened session {session.id} for store {store_id} with {_money(session.starting_balance_cents)}")


@registers_group.command('close')
@click.option('--session-id', type=int, required=True)
@click.option('--username', required=True)
@click.option('--actual', 'actual_cents', type=int, required=True, help='Counted cash in cents')
@click.option('--notes', default=None)
@with_appcontext
def close_register_cli(session_id, username, actual_cents, notes):
    user = _user_by_username(username)
    try:
        record = register_service.close_register(session_id, user.id, actual_cents, notes)
    except CashRegisterError as e:
        raise click.ClickException(f"[{e.kind.value}] {e.message}")
    click.echo(f"Closed session {session_id}")
    click.echo(f"  expected:   {_money(record.expected_balance_cents)}")
    click.echo(f"  actual:     {_money(record.actual_balance_cents)}")
    click.echo(f"  difference: {_money(record.difference_cents)}")


@registers_group.command('current')
@click.option('--store-id', type=int, required=True)
@with_appcontext
def current_register_cli(store_id):
    session = register_service.get_current_open_session(store_id)
    if not session:
        click.echo("No open cash register.")
        return
    click.echo(f"Session {session.id} opened {session.opened_at:%Y-%m-%d %H:%M} by user {session.opened_by_user_id}")


@registers_group.command('sessions')
@click.option('--store-id', type=int, required=True)
@click.option('--status', type=click.Choice(['OPEN', 'CLOSED'], case_sensitive=False), default=None)
@with_appcontext
def list_sessions_cli(store_id, status):
    sessions = register_service.list_store_sessions(store_id, status)
    if not sessions:
        click.echo("No sessions.")
        return
    for s in sessions:
        click.echo(
            f"{s.id:>5}  {s.status:<6}  opened {s.opened_at:%Y-%m-%d %H:%M}  "
            f"start {_money(s.starting_balance_cents):>12}  diff {_money(s.difference_cents):>10}"
        )


@registers_group.command('summary')
@click.option('--session-id', type=int, required=True)
@with_appcontext
def summary_cli(session_id):
    try:
        summary = register_service.get_session_summary(session_id)
    except CashRegisterError as e:
        raise click.ClickException(e.message)
    click.echo(f"Session {session_id} ({summary['session']['status']})")
    click.echo(f"  starting: {_money(summary['starting_balance_cents'])}")
    click.echo(f"  in:       {_money(summary['total_cash_in_cents'])}")
    click.echo(f"  out:      {_money(summary['total_cash_out_cents'])}")
    click.echo(f"  running:  {_money(summary['running_balance_cents'])}")
    for kind, count in sorted(summary["movements_by_kind"].items()):
        click.echo(f"  {kind:<18} x{count}")


@click.group('settlements')
def settlements_group():
    """Settlement reporting commands."""


@settlements_group.command('list')
@click.option('--store-id', type=int, required=True)
@click.option('--start', default=None, help='ISO date/time, inclusive')
@click.option('--end', default=None, help='ISO date/time, inclusive')
@with_appcontext
def list_settlements_cli(store_id, start, end):
    try:
        records = settlement_service.list_settlements(
            store_id,
            start=parse_range_bound(start),
            end=parse_range_bound(end, end=True),
        )
    except (CashRegisterError, ValueError) as e:
        raise click.ClickException(str(e))
    if not records:
        click.echo("No settlements.")
        return
    for r in records:
        variance = r.variance.variance_type if r.variance else "-"
        click.echo(
            f"{r.id:>5}  session {r.session_id:>5}  {r.settled_at:%Y-%m-%d %H:%M}  "
            f"expected {_money(r.expected_balance_cents):>12}  actual {_money(r.actual_balance_cents):>12}  "
            f"diff {_money(r.difference_cents):>10}  {variance}"
        )


def _range(start, end):
    try:
        return parse_range_bound(start), parse_range_bound(end, end=True)
    except ValueError as e:
        raise click.ClickException(str(e))


@click.group('payments')
def payments_group():
    """Payment reporting commands."""


@payments_group.command('list')
@click.option('--store-id', type=int, required=True)
@click.option('--method', default=None)
@click.option('--sale-id', type=int, default=None)
@click.option('--purchase-id', type=int, default=None)
@click.option('--start', default=None, help='ISO date/time, inclusive')
@click.option('--end', default=None, help='ISO date/time, inclusive')
@with_appcontext
def list_payments_cli(store_id, method, sale_id, purchase_id, start, end):
    start_at, end_at = _range(start, end)
    try:
        payments = payment_service.list_payments(
            store_id, method, start=start_at, end=end_at, sale_id=sale_id, purchase_id=purchase_id,
        )
    except CashRegisterError as e:
        raise click.ClickException(e.message)
    if not payments:
        click.echo("No payments.")
        return
    for p in payments:
        click.echo(
            f"{p.id:>5}  {p.created_at:%Y-%m-%d %H:%M}  {p.method:<13}  {p.direction:<3}  "
            f"{_money(p.amount_cents):>12}  {p.reference or ''}"
        )
    if sale_id is not None or purchase_id is not None:
        total = payment_service.total_payments(store_id, sale_id=sale_id, purchase_id=purchase_id)
        click.echo(f"Total: {_money(total)}")


@payments_group.command('summary')
@click.option('--store-id', type=int, required=True)
@click.option('--start', default=None, help='ISO date/time, inclusive')
@click.option('--end', default=None, help='ISO date/time, inclusive')
@with_appcontext
def payments_summary_cli(store_id, start, end):
    start_at, end_at = _range(start, end)
    try:
        summary = payment_service.summarize_payments_by_method(store_id, start_at, end_at)
    except CashRegisterError as e:
        raise click.ClickException(e.message)
    for method, bucket in summary["methods"].items():
        click.echo(
            f"  {method:<13} in {_money(bucket['in_cents']):>12}  out {_money(bucket['out_cents']):>12}"
            f"  x{bucket['count']}"
        )
    click.echo(f"  total in:  {_money(summary['total_in_cents'])}")
    click.echo(f"  total out: {_money(summary['total_out_cents'])}")
    click.echo(f"  net:       {_money(summary['net_cents'])}")


@click.group('movements')
def movements_group():
    """Cash movement reporting commands."""


@movements_group.command('list')
@click.option('--store-id', type=int, required=True)
@click.option('--direction', type=click.Choice(['IN', 'OUT'], case_sensitive=False), default=None)
@click.option('--start', default=None, help='ISO date/time, inclusive')
@click.option('--end', default=None, help='ISO date/time, inclusive')
@with_appcontext
def list_movements_cli(store_id, direction, start, end):
    start_at, end_at = _range(start, end)
    try:
        movements = movement_service.list_store_movements(store_id, start_at, end_at, direction)
    except CashRegisterError as e:
        raise click.ClickException(e.message)
    if not movements:
        click.echo("No movements.")
        return
    for m in movements:
        click.echo(
            f"{m.id:>5}  session {m.session_id:>5}  {m.created_at:%Y-%m-%d %H:%M}  "
            f"{m.kind:<18}  {_money(m.amount_cents):>12}"
        )


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(registers_group)
    app.cli.add_command(settlements_group)
    app.cli.add_command(payments_group)
    app.cli.add_command(movements_group)
