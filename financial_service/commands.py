# financial_service/commands.py
"""
Operational commands, run through the Flask CLI:

    flask --app manage expire-enrollments        # daily at 00:00 Asia/Kolkata (host cron)
    flask --app manage create-invoice-bucket
    flask --app manage init-db
"""
from __future__ import annotations

import logging

import click
from flask import Flask
from flask.cli import with_appcontext

from .extensions import db
from .services.enrollments import expire_enrollments
from .services.storage import get_invoice_storage
from .utils.tz import local_today

logger = logging.getLogger(__name__)


@click.command("expire-enrollments")
@click.option("--date", "on_date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Treat this day as today (YYYY-MM-DD).")
@with_appcontext
def expire_enrollments_command(on_date):
    """Deactivate non-permanent enrollments whose end date has passed."""
    today = on_date.date() if on_date else local_today()
    try:
        count = expire_enrollments(today)
    except Exception:
        db.session.rollback()
        logger.exception("Enrollment expiry run failed for %s", today.isoformat())
        raise click.ClickException("enrollment expiry failed")
    click.echo(f"Expired {count} enrollment(s) (end_date < {today.isoformat()})")


@click.command("create-invoice-bucket")
@with_appcontext
def create_invoice_bucket_command():
    """Create the public invoice PDF bucket if it does not exist."""
    storage = get_invoice_storage()
    created = storage.ensure_bucket()
    click.echo(f"Bucket '{storage.bucket}' {'created' if created else 'already exists'}")


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create all tables (development databases)."""
    db.create_all()
    click.echo("Database tables created")


def register_commands(app: Flask):
    app.cli.add_command(expire_enrollments_command)
    app.cli.add_command(create_invoice_bucket_command)
    app.cli.add_command(init_db_command)
