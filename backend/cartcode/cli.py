# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/cartcode/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates a demo store and an organizer who owns it.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Store management:
# - python -m flask stores list
#   List all stores with their owning organizer.
# - python -m flask stores create --name "Corner Shop" --slug corner --organizer-id 1
#   Create a store.
#
# User inspection/bootstrap:
# - python -m flask users create --name "Ada" --role organizer --store-id 1
#   Create a user record (identity itself comes from the auth provider).
# - python -m flask users token --user-id 1
#   Register a bearer token for a user and print it once.
#
# Codes:
# - python -m flask codes staff-code --store-id 1
#   Print the current deterministic staff code for a store.
# - python -m flask codes sweep
#   Mark overdue join codes and pending transfer codes as expired.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Store, User
from .roles import ALL_ROLES, ROLE_ORGANIZER
from .services import maintenance_service, session_service, staff_code_service, store_service
from .time_utils import to_utc_z
from .validation import ServiceError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--store-name', default='Demo Store', help='Store name')
@click.option('--store-slug', default='demo', help='Store slug')
@with_appcontext
def init_system(store_name, store_slug):
    """
    Create the schema, a demo store and an organizer that owns it.

    Safe to run repeatedly: existing rows are reused.
    """
    click.echo("START Initializing cartcode...")
    db.create_all()

    organizer = db.session.query(User).filter_by(role=ROLE_ORGANIZER).first()
    if not organizer:
        organizer = User(name="Organizer", role=ROLE_ORGANIZER)
        db.session.add(organizer)
        db.session.commit()
        click.echo(f"PASS Created organizer (ID: {organizer.id})")
    else:
        click.echo(f"PASS Using existing organizer (ID: {organizer.id})")

    store = db.session.query(Store).filter_by(slug=store_slug).first()
    if not store:
        store = store_service.create_store(store_name, store_slug, organizer_id=organizer.id)
        click.echo(f"PASS Created store: {store.name} (ID: {store.id})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    click.echo("DONE Run 'python -m flask users token --user-id %d' to get a bearer token." % organizer.id)


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


@click.group('stores')
def stores_group():
    """Store management commands."""


@stores_group.command('list')
@with_appcontext
def list_stores_cli():
    """List all stores."""
    stores = store_service.list_stores()
    if not stores:
        click.echo("No stores found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Slug':<20} {'Name':<30} {'Organizer'}")
    click.echo("="*70)
    for store in stores:
        organizer = store.organizer_id if store.organizer_id is not None else "-"
        click.echo(f"{store.id:<5} {store.slug:<20} {store.name:<30} {organizer}")
    click.echo("="*70 + "\n")


@stores_group.command('create')
@click.option('--name', required=True, help='Store name')
@click.option('--slug', required=True, help='Unique store slug')
@click.option('--organizer-id', type=int, help='Owning organizer user ID')
@with_appcontext
def create_store_cli(name, slug, organizer_id):
    """Create a new store."""
    try:
        if organizer_id is not None:
            organizer = db.session.get(User, organizer_id)
            if not organizer or organizer.role != ROLE_ORGANIZER:
                click.echo(f"FAIL User ID {organizer_id} is not an organizer")
                return
        store = store_service.create_store(name, slug, organizer_id=organizer_id)
        click.echo(f"PASS Created store: {store.name} (ID: {store.id}, Slug: {store.slug})")
    except ServiceError as e:
        click.echo(f"FAIL {e}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--role', type=click.Choice(list(ALL_ROLES)), prompt=True, help='Role')
@click.option('--store-id', type=int, help='Primary store affiliation')
@click.option('--email', help='Email address')
@with_appcontext
def create_user_cli(name, role, store_id, email):
    """Create a user record."""
    if store_id is not None and not db.session.get(Store, store_id):
        click.echo(f"FAIL Store ID {store_id} not found")
        return

    user = User(name=name, role=role, store_id=store_id, email=email)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {user.name} (ID: {user.id}) with role '{role}'")


@users_group.command('token')
@click.option('--user-id', type=int, required=True, help='User ID')
@with_appcontext
def issue_token_cli(user_id):
    """Register a bearer token for a user. The token is printed once and only its hash is stored."""
    try:
        session, token = session_service.create_session(user_id)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Token for user {user_id} (expires {to_utc_z(session.expires_at)}):")
    click.echo(token)


@click.group('codes')
def codes_group():
    """Join, staff and transfer code commands."""


@codes_group.command('staff-code')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def staff_code_cli(store_id):
    """Print the current staff code for a store."""
    if not db.session.get(Store, store_id):
        click.echo(f"FAIL Store ID {store_id} not found")
        return
    current = staff_code_service.current_code(store_id)
    click.echo(f"{current['code']}  (window ends {to_utc_z(current['expires_at'])})")


@codes_group.command('sweep')
@with_appcontext
def sweep_codes_cli():
    """Expire overdue join codes and pending transfer codes."""
    swept = maintenance_service.sweep_expired_codes()
    click.echo(
        f"Expired {swept['join_codes']} join codes and {swept['transfer_codes']} transfer codes."
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(users_group)
    app.cli.add_command(codes_group)
