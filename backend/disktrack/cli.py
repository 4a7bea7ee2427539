# Overview: Flask CLI command groups for bootstrap, account management, and maintenance.

# backend/disktrack/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and, when ADMIN_EMAIL/ADMIN_PASSWORD
#   are set, the first admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Accounts:
# - python -m flask users create-admin --email admin@example.com --password "Password123!"
# - python -m flask users list
#
# Maintenance:
# - python -m flask maintenance cleanup-rate-limits
#   Delete rate limit hits that have aged out of the window.
# - python -m flask maintenance cleanup-sessions
#   Delete sessions that expired or were revoked more than 30 days ago.

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import User
from .services.auth_service import PasswordValidationError, create_admin
from .services.rate_limit_service import get_rate_limiter
from .services.session_service import cleanup_expired_sessions


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create all tables and the first admin account.

    The admin is taken from ADMIN_EMAIL / ADMIN_PASSWORD and is only created
    if no account with that email exists yet.
    """
    click.echo("START Initializing disktrack...")
    db.create_all()
    click.echo("PASS Tables created")

    email = current_app.config.get("ADMIN_EMAIL")
    password = current_app.config.get("ADMIN_PASSWORD")
    if not email or not password:
        click.echo("SKIP ADMIN_EMAIL / ADMIN_PASSWORD not set; no admin account created")
        return

    if db.session.query(User).filter_by(email=email.strip().lower()).first():
        click.echo(f"PASS Admin {email} already exists")
        return

    try:
        create_admin(email, password)
    except ServiceError as e:
        click.echo(f"FAIL Failed to create admin: {e.message}")
        return
    click.echo(f"PASS Created admin: {email}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    Drop and recreate every disktrack table (units, warranties, returns,
    inquiries, bills, accounts, sessions, rate limit hits).

    Stored bill blobs under UPLOAD_FOLDER are left on disk.
    """
    if not yes:
        click.confirm("WARN Units, returns, inquiries and admin accounts will be erased. Continue?", abort=True)

    db.drop_all()
    click.echo("DELETE Tables dropped")
    db.create_all()
    click.echo("PASS Empty schema created. Run 'python -m flask system init' to add the first admin.")


@click.group('users')
def users_group():
    """Admin account commands."""


@users_group.command('create-admin')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_admin_cli(email, password):
    """
    Create an admin account.

    The password needs 8+ characters mixing upper and lower case letters,
    a digit and a special character.
    """
    try:
        user = create_admin(email, password)
    except PasswordValidationError as e:
        click.echo(f"FAIL Weak password: {e.message}")
        return
    except ServiceError as e:
        click.echo(f"FAIL Failed to create admin: {e.message}")
        return

    click.echo(f"PASS Created admin: {user.email}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all admin accounts."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Email':<40} {'Active':<8}")
    click.echo("=" * 70)
    for user in users:
        click.echo(f"{user.id:<5} {user.email:<40} {'Yes' if user.is_active else 'No':<8}")
    click.echo("=" * 70 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-rate-limits')
@with_appcontext
def cleanup_rate_limits_cli():
    """Delete rate limit hits older than the current window."""
    deleted = get_rate_limiter().cleanup()
    click.echo(f"Deleted {deleted} rate limit hits outside the window.")


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    deleted = cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired or revoked sessions.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
