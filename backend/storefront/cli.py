# Overview: Flask CLI command groups for bootstrap and tenant administration.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--org "Org Name"]
#   Idempotent: creates tables, a default organization, a SuperAdmin and an org Admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
# - python -m flask orgs create --title "Acme Corp"
#
# Users and tokens:
# - python -m flask users create --email admin@acme.test --role Admin --org-id 1
# - python -m flask users list [--org-id 1]
# - python -m flask tokens issue --email admin@acme.test [--minutes 60]
#   Print a bearer token for the user (the identity provider's own format).
#
# Capabilities:
# - python -m flask caps list
#   Show which roles hold each capability.

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import StorefrontError
from .extensions import db
from .models import Organization, User
from .permissions import CAPABILITY_DEFINITIONS, Role
from .services import get_services
from .services.access_service import Caller
from .services.tenant_service import create_organization, create_user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--org', 'org_title', default='Default Organization', help='Organization title')
@click.option('--admin-email', default='admin@storefront.local', help='Org admin email')
@click.option('--superadmin-email', default='superadmin@storefront.local', help='SuperAdmin email')
@with_appcontext
def init_system(org_title, admin_email, superadmin_email):
    """
    Create tables and seed a default organization, one SuperAdmin (no org)
    and one Admin inside the organization. Safe to re-run.
    """
    click.echo("START Initializing storefront...")
    db.create_all()

    org = db.session.query(Organization).filter_by(title=org_title).first()
    if not org:
        org = create_organization(title=org_title)
        click.echo(f"PASS Created organization: {org.title} (ID: {org.id})")
    else:
        click.echo(f"PASS Using existing organization: {org.title} (ID: {org.id})")

    for email, role, org_id in (
        (superadmin_email, Role.SUPER_ADMIN, None),
        (admin_email, Role.ADMIN, org.id),
    ):
        if db.session.query(User.id).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        user = create_user(email=email, role=role, org_id=org_id)
        click.echo(f"PASS Created user: {user.email} with role '{user.role}'")

    if not org.default_admin_id:
        admin = db.session.query(User).filter_by(email=admin_email).first()
        if admin is not None and admin.org_id == org.id:
            org.default_admin_id = admin.id
            db.session.commit()

    click.echo("DONE Storefront initialized.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        raise click.ClickException("Refusing to reset without --yes")
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset.")


@click.group('orgs')
def orgs_group():
    """Organization (tenant) management."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    orgs = db.session.query(Organization).order_by(Organization.id).all()
    if not orgs:
        click.echo("No organizations found.")
        return
    for org in orgs:
        click.echo(f"{org.id:>4}  {org.status:<8}  {org.title}")


@orgs_group.command('create')
@click.option('--title', required=True, help='Organization title')
@with_appcontext
def create_org(title):
    try:
        org = create_organization(title=title)
    except StorefrontError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created organization {org.title} (ID: {org.id})")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('create')
@click.option('--email', required=True)
@click.option('--role', required=True, type=click.Choice([r.value for r in Role]))
@click.option('--org-id', type=int, default=None)
@click.option('--first-name', default=None)
@click.option('--last-name', default=None)
@with_appcontext
def create_user_cmd(email, role, org_id, first_name, last_name):
    try:
        user = create_user(email=email, role=role, org_id=org_id, first_name=first_name, last_name=last_name)
    except StorefrontError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user {user.email} (ID: {user.id}, role: {user.role}, org: {user.org_id})")


@users_group.command('list')
@click.option('--org-id', type=int, default=None)
@with_appcontext
def list_users(org_id):
    query = db.session.query(User)
    if org_id is not None:
        query = query.filter(User.org_id == org_id)
    for user in query.order_by(User.id).all():
        state = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.role:<10}  org={user.org_id!s:<4}  {state:<8}  {user.email}")


@click.group('tokens')
def tokens_group():
    """Bearer token helpers for local development."""


@tokens_group.command('issue')
@click.option('--email', required=True)
@click.option('--minutes', type=int, default=None, help='Lifetime; defaults to JWT_EXPIRE_MINUTES')
@with_appcontext
def issue_token(email, minutes):
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if user is None:
        raise click.ClickException(f"No user with email {email}")
    if not user.is_active:
        raise click.ClickException(f"User {email} is inactive")
    caller = Caller(user_id=user.id, role=user.role, org_id=user.org_id)
    click.echo(get_services(current_app).identity.issue(caller, expire_minutes=minutes))


@click.group('caps')
def caps_group():
    """Capability table inspection."""


@caps_group.command('list')
def list_capabilities():
    for code, name, _description, roles in CAPABILITY_DEFINITIONS:
        allowed = ", ".join(sorted(r.value for r in roles))
        click.echo(f"{code:<24} {name:<24} {allowed}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)
    app.cli.add_command(users_group)
    app.cli.add_command(tokens_group)
    app.cli.add_command(caps_group)
