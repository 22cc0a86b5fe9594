# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/marketplace/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init --admin-email admin@makhil.com --admin-password "Password123!"
#   Idempotent bootstrap: creates tables if missing, the admin settings row and an admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list [--role seller]
# - python -m flask users create-admin --email ops@makhil.com --password "Password123!" --name "Ops"
# - python -m flask users deactivate --email someone@example.com
#
# Settings:
# - python -m flask settings show
# - python -m flask settings admin-notifications on|off
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete revoked and expired session tokens.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Profile, SessionToken
from .models.accounts import ROLE_ADMIN, VALID_ROLES
from .services.auth_service import create_profile, PasswordValidationError
from .services import settings_service
from .time_utils import utcnow
from .validation import ValidationError, ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@makhil.local', help='Admin login email')
@click.option('--admin-password', default='Password123!', help='Admin password')
@click.option('--admin-name', default='MakHil Admin', help='Admin display name')
@with_appcontext
def init_system(admin_email, admin_password, admin_name):
    """Create tables, the admin settings singleton and the first admin account."""
    click.echo("START Initializing MakHil marketplace...")

    db.create_all()
    settings = settings_service.get_admin_settings()
    click.echo(f"PASS Admin settings ready (email notifications: {settings.email_notifications_enabled})")

    existing = db.session.query(Profile).filter_by(email=admin_email.lower()).first()
    if existing:
        click.echo(f"WARN  Profile '{admin_email}' already exists (role: {existing.role}), skipping...")
    else:
        try:
            profile = create_profile(
                email=admin_email,
                password=admin_password,
                full_name=admin_name,
                role=ROLE_ADMIN,
                allow_admin=True,
            )
            click.echo(f"PASS Created admin: {profile.email} (ID: {profile.id})")
        except (PasswordValidationError, ValidationError) as e:
            click.echo(f"FAIL Could not create admin '{admin_email}': {e}")

    click.echo("DONE Marketplace initialized. Change the admin password in production!")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """Account inspection and admin creation."""


@users_group.command('list')
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), default=None)
@with_appcontext
def list_users(role):
    query = db.session.query(Profile).order_by(Profile.id)
    if role:
        query = query.filter_by(role=role)
    for profile in query.all():
        status = "active" if profile.is_active else "disabled"
        click.echo(f"{profile.id:>5}  {profile.role:<7} {status:<9} {profile.email}  {profile.full_name or ''}")


@users_group.command('create-admin')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--name', 'full_name', default=None)
@with_appcontext
def create_admin(email, password, full_name):
    try:
        profile = create_profile(
            email=email,
            password=password,
            full_name=full_name,
            role=ROLE_ADMIN,
            allow_admin=True,
        )
    except (PasswordValidationError, ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created admin: {profile.email} (ID: {profile.id})")


@users_group.command('deactivate')
@click.option('--email', required=True)
@with_appcontext
def deactivate_user(email):
    profile = db.session.query(Profile).filter_by(email=email.strip().lower()).first()
    if not profile:
        raise click.ClickException(f"No profile with email {email}")
    profile.is_active = False
    db.session.commit()
    click.echo(f"PASS Deactivated {profile.email}")


@click.group('settings')
def settings_group():
    """Admin settings singleton."""


@settings_group.command('show')
@with_appcontext
def show_settings():
    settings = settings_service.get_admin_settings()
    for key, value in settings.to_dict().items():
        click.echo(f"{key}: {value}")


@settings_group.command('admin-notifications')
@click.argument('state', type=click.Choice(['on', 'off']))
@with_appcontext
def set_admin_notifications(state):
    settings = settings_service.update_admin_settings(email_notifications_enabled=(state == 'on'))
    click.echo(f"PASS Admin email notifications: {settings.email_notifications_enabled}")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    now = utcnow()
    deleted = db.session.query(SessionToken).filter(
        (SessionToken.is_revoked.is_(True)) | (SessionToken.expires_at < now)
    ).delete(synchronize_session=False)
    db.session.commit()
    click.echo(f"PASS Deleted {deleted} session tokens")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(settings_group)
    app.cli.add_command(maintenance_group)
