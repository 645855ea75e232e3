# Overview: Flask CLI command groups for bootstrap, periodic sweeps, and store hours.

# backend/salonpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--store "Main Salon"]
#   Idempotent bootstrap: creates the default store with its hours and an owner.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Periodic sweeps (one-shot commands; schedule them with cron or a systemd timer):
# - python -m flask sweeps auto-approve [--now 2025-10-24T12:00:00Z]
#   Auto-approve pending tickets whose approval deadline has passed.
# - python -m flask sweeps closing-checkout
#   Auto-check-out sessions and clear ready queues at store closing time.
# - python -m flask sweeps inactivity-checkout
#   Auto-check-out daily-paid employees idle since their last completed service.
# - python -m flask sweeps run-all
#   Run all three sweeps once.
#
# Example crontab (every 15 minutes for approvals, every 5 for checkouts):
#   */15 * * * * cd /srv/salonpos/backend && FLASK_APP=wsgi.py python -m flask sweeps auto-approve
#   */5 * * * *  cd /srv/salonpos/backend && FLASK_APP=wsgi.py python -m flask sweeps closing-checkout
#   */5 * * * *  cd /srv/salonpos/backend && FLASK_APP=wsgi.py python -m flask sweeps inactivity-checkout
#
# Store hours:
# - python -m flask stores list
# - python -m flask stores set-hours --store-id 1 --day wednesday --open 09:30 --close 17:30

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Employee, EmployeeStore, Store
from .roles import PermissionTier, Role
from .services.attendance_scheduler import run_closing_checkout, run_inactivity_checkout
from .services.auto_approval_service import auto_approve_expired_tickets
from .services.schedule_service import WEEKDAYS, ScheduleError, parse_clock
from .time_utils import parse_iso_datetime


DEFAULT_OPENING_HOURS = {
    "monday": "09:30", "tuesday": "09:30", "wednesday": "09:30",
    "thursday": "09:00", "friday": "09:00",
    "saturday": "09:00", "sunday": "10:00",
}
DEFAULT_CLOSING_HOURS = {
    "monday": "17:30", "tuesday": "17:30", "wednesday": "17:30",
    "thursday": "21:00", "friday": "21:00",
    "saturday": "17:00", "sunday": "17:00",
}


def _parse_now(value):
    if not value:
        return None
    try:
        return parse_iso_datetime(value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--now")


now_option = click.option(
    '--now', 'now_value', default=None,
    help='Evaluate as of this ISO-8601 instant (default: current time)',
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--store', 'store_name', default='Main Salon', help='Default store name')
@click.option('--store-code', default='MAIN', help='Default store code')
@click.option('--timezone', 'tz_name', default='America/New_York', help='Store IANA timezone')
@with_appcontext
def init_system(store_name, store_code, tz_name):
    """
    Initialize the salon: default store with weekly hours and an owner.

    Safe to run repeatedly; existing rows are left alone.
    """
    click.echo("START Initializing salon...")

    store = db.session.query(Store).filter_by(code=store_code).first()
    if not store:
        store = Store(
            name=store_name,
            code=store_code,
            timezone=tz_name,
            opening_hours=dict(DEFAULT_OPENING_HOURS),
            closing_hours=dict(DEFAULT_CLOSING_HOURS),
        )
        db.session.add(store)
        db.session.commit()
        click.echo(f"PASS Created store: {store.name} (ID: {store.id}, TZ: {store.timezone})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    owner = db.session.query(Employee).filter_by(display_name="Owner").first()
    if not owner:
        owner = Employee(
            legal_name="Salon Owner",
            display_name="Owner",
            roles=[Role.OWNER],
            permission_tier=PermissionTier.ADMIN,
        )
        db.session.add(owner)
        db.session.flush()
        db.session.add(EmployeeStore(employee_id=owner.id, store_id=store.id))
        db.session.commit()
        click.echo(f"PASS Created owner employee (ID: {owner.id})")
    else:
        click.echo(f"WARN  Owner employee already exists (ID: {owner.id}), skipping...")

    click.echo("DONE Salon initialized.")


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


@click.group('sweeps')
def sweeps_group():
    """Periodic approval and attendance sweeps."""


@sweeps_group.command('auto-approve')
@now_option
@with_appcontext
def auto_approve_cli(now_value):
    summary = auto_approve_expired_tickets(now=_parse_now(now_value))
    click.echo(
        f"Auto-approved {len(summary['auto_approved'])} tickets "
        f"(skipped {summary['skipped']}, errors {summary['errors']})."
    )


@sweeps_group.command('closing-checkout')
@now_option
@with_appcontext
def closing_checkout_cli(now_value):
    summary = run_closing_checkout(now=_parse_now(now_value))
    click.echo(
        f"Closed {len(summary['stores_closed'])} stores: "
        f"{summary['sessions_checked_out']} sessions checked out, "
        f"{summary['stale_sessions_checked_out']} from earlier days, "
        f"{summary['queue_entries_cleared']} queue entries cleared "
        f"(skipped stores {summary['skipped_stores']}, errors {summary['errors']})."
    )


@sweeps_group.command('inactivity-checkout')
@now_option
@with_appcontext
def inactivity_checkout_cli(now_value):
    summary = run_inactivity_checkout(now=_parse_now(now_value))
    click.echo(
        f"Checked out {summary['sessions_checked_out']} inactive daily-pay sessions "
        f"(errors {summary['errors']})."
    )


def _run_all(now=None) -> dict:
    return {
        "auto_approve": auto_approve_expired_tickets(now=now),
        "closing_checkout": run_closing_checkout(now=now),
        "inactivity_checkout": run_inactivity_checkout(now=now),
    }


@sweeps_group.command('run-all')
@now_option
@with_appcontext
def run_all_cli(now_value):
    results = _run_all(_parse_now(now_value))
    for name, summary in results.items():
        click.echo(f"{name}: {summary}")



@click.group('stores')
def stores_group():
    """Store inspection and operating hours."""


@stores_group.command('list')
@with_appcontext
def list_stores():
    stores = db.session.query(Store).order_by(Store.id).all()
    if not stores:
        click.echo("No stores found.")
        return
    for store in stores:
        status = "active" if store.is_active else "inactive"
        click.echo(f"{store.id}: {store.name} [{store.code}] {store.timezone} ({status})")
        for day in WEEKDAYS:
            opening = (store.opening_hours or {}).get(day, "-")
            closing = (store.closing_hours or {}).get(day, "-")
            click.echo(f"    {day:<9} {opening} - {closing}")


@stores_group.command('set-hours')
@click.option('--store-id', type=int, required=True)
@click.option('--day', type=click.Choice(WEEKDAYS, case_sensitive=False), required=True)
@click.option('--open', 'opening', default=None, help='Opening time HH:MM')
@click.option('--close', 'closing', default=None, help='Closing time HH:MM')
@with_appcontext
def set_hours(store_id, day, opening, closing):
    """Set one weekday's opening and/or closing time (store-local wall clock)."""
    store = db.session.get(Store, store_id)
    if not store:
        raise click.ClickException(f"Store {store_id} not found")
    if opening is None and closing is None:
        raise click.UsageError("Provide --open and/or --close")

    day = day.lower()
    try:
        if opening is not None:
            parse_clock(opening)
        if closing is not None:
            parse_clock(closing)
    except ScheduleError as e:
        raise click.BadParameter(str(e))

    # Reassign the JSON maps so the change is detected
    if opening is not None:
        store.opening_hours = {**(store.opening_hours or {}), day: opening}
    if closing is not None:
        store.closing_hours = {**(store.closing_hours or {}), day: closing}
    db.session.commit()

    click.echo(
        f"PASS {store.name} {day}: "
        f"{(store.opening_hours or {}).get(day, '-')} - {(store.closing_hours or {}).get(day, '-')}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(sweeps_group)
    app.cli.add_command(stores_group)
