# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/kgl/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Database:
# - python -m flask kgl init-db
#   Create all tables (idempotent). Use "flask db upgrade" for migrated deployments.
# - python -m flask kgl reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Branches:
# - python -m flask branches list [--all]
# - python -m flask branches create --name "Maganjo" --location "Kampala" --code MAG
#
# Users:
# - python -m flask users create --username director --full-name "Director" --role director --password "Password123"
# - python -m flask users create --username mgr1 --full-name "Manager" --role manager --branch-id 1
#
# Credit maintenance:
# - python -m flask credit refresh-overdue [--branch-id 1]
#   Persist overdue status for past-due open credit sales.

import click
from flask.cli import with_appcontext

from .errors import KGLError
from .extensions import db
from .models.auth import ROLES
from .services import branch_service, credit_service
from .services.auth_service import create_user


@click.group('kgl')
def kgl_group():
    """Database bootstrap commands."""


@kgl_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@kgl_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('branches')
def branches_group():
    """Branch management commands."""


@branches_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive branches')
@with_appcontext
def list_branches(include_inactive):
    branches = branch_service.list_branches(include_inactive=include_inactive)
    if not branches:
        click.echo("No branches found")
        return
    for b in branches:
        state = "active" if b.is_active else "inactive"
        click.echo(f"{b.id:>4}  {b.code:<10} {b.name} ({b.location}) [{state}]")


@branches_group.command('create')
@click.option('--name', required=True)
@click.option('--location', required=True)
@click.option('--code', required=True)
@with_appcontext
def create_branch(name, location, code):
    try:
        branch = branch_service.create_branch(name=name, location=location, code=code)
    except KGLError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created branch {branch.code} (ID: {branch.id})")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--full-name', prompt=True)
@click.option('--role', type=click.Choice(ROLES), prompt=True)
@click.option('--branch-id', type=int, default=None, help='Required for managers and agents')
@click.option('--email', default=None)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_user_cmd(username, full_name, role, branch_id, email, password):
    try:
        user = create_user(
            username=username,
            password=password,
            full_name=full_name,
            role=role,
            branch_id=branch_id,
            email=email,
        )
    except KGLError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created user {user.username} with role '{user.role}' (ID: {user.id})")


@click.group('credit')
def credit_group():
    """Credit sale maintenance commands."""


@credit_group.command('refresh-overdue')
@click.option('--branch-id', type=int, default=None, help='Limit to one branch')
@with_appcontext
def refresh_overdue(branch_id):
    changed = credit_service.refresh_overdue(branch_id)
    click.echo(f"PASS {changed} credit sale(s) updated")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(kgl_group)
    app.cli.add_command(branches_group)
    app.cli.add_command(users_group)
    app.cli.add_command(credit_group)
