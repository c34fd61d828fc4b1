# Overview: Flask CLI command groups for schema inspection and maintenance.

# backend/pharmapos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask db upgrade
#   Apply migrations (Flask-Migrate).
# - python -m flask schema check
#   Show which sales columns exist and how cashier attribution is recorded.
#   Exits non-zero when the sales table cannot carry a sale.
#
# Sessions:
# - python -m flask sessions cleanup
#   Delete expired/revoked sessions older than 30 days.
# - python -m flask sessions issue --email cashier@example.com
#   Issue a session token for an existing user (support/testing).

import click
from flask.cli import with_appcontext

from .errors import StructuralStorageMismatch
from .extensions import db
from .models import User
from .services import schema_service
from .services import session_service


@click.group('schema')
def schema_group():
    """Sales schema drift inspection."""


@schema_group.command('check')
@with_appcontext
def schema_check():
    """Report sales table capabilities."""
    try:
        caps = schema_service.get_capabilities(refresh=True)
    except StructuralStorageMismatch as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"Columns: {', '.join(sorted(caps.columns))}")

    if caps.missing_optional:
        click.echo(f"WARN  Optional columns missing (fields dropped): {', '.join(caps.missing_optional)}")
    else:
        click.echo("PASS All optional columns present")

    mode = caps.attribution_mode
    if mode == schema_service.ATTRIBUTION_MODE_COLUMN:
        click.echo(f"PASS Cashier attribution: {caps.attribution_column}")
    elif mode == schema_service.ATTRIBUTION_MODE_LEGACY_UPDATE:
        click.echo(f"WARN  Cashier attribution via legacy column {caps.attribution_column!r}")
    else:
        click.echo("FAIL No cashier attribution column; sales will be refused")

    if caps.missing_required:
        click.echo(f"FAIL Required columns missing: {', '.join(caps.missing_required)}")

    if caps.missing_required or mode is None:
        click.echo("Run: python -m flask db upgrade")
        raise SystemExit(1)


@click.group('sessions')
def sessions_group():
    """Session maintenance commands."""


@sessions_group.command('cleanup')
@with_appcontext
def cleanup_sessions():
    """Delete expired and revoked sessions older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired or revoked sessions.")


@sessions_group.command('issue')
@click.option('--email', required=True, help='Email of an existing user')
@with_appcontext
def issue_session(email):
    """Issue a session token for a user (prints the plaintext token once)."""
    user = db.session.query(User).filter_by(email=email.strip()).first()
    if not user:
        click.echo(f"FAIL User not found: {email}")
        raise SystemExit(1)
    try:
        session, token = session_service.create_session(user.id)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Session {session.id} for {user.email} (store {session.store_id}), expires {session.expires_at}")
    click.echo(token)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(schema_group)
    app.cli.add_command(sessions_group)
