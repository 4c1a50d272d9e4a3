# Overview: Flask CLI command groups for bootstrap, session tokens and cash-posting maintenance.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app wsgi.py <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--tenant "Tenant Name"] [--features CASH,SALES,FASTSERVICE]
#   Idempotent bootstrap: creates a tenant, a main store and an admin user.
#
# Session tokens:
# - python -m flask sessions issue --user-id 1
#   Issue a bearer token for a user (prints the plaintext token once).
#
# Cash postings (cash movements that failed after their order committed):
# - python -m flask postings list [--status PENDING|RESOLVED|ABANDONED|ALL] [--limit 50]
#   List parked postings.
# - python -m flask postings retry [--limit 50] [--max-attempts 5]
#   Re-attempt PENDING postings, oldest first.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Tenant, Store, StoreMembership, User
from .principal import ROLE_ADMIN, VALID_FEATURES
from .services import posting_service, session_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--tenant', 'tenant_name', default='Default Tenant', help='Tenant name')
@click.option('--features', default='', help='Comma-separated tenant features')
@click.option('--admin-email', default='admin@backoffice.local', help='Admin user email')
@with_appcontext
def init_system(tenant_name, features, admin_email):
    """
    Create the first tenant, its main store and an ADMIN user.

    Safe to run repeatedly: existing rows are reused.
    """
    requested = {f.strip().upper() for f in features.split(",") if f.strip()}
    unknown = requested - VALID_FEATURES
    if unknown:
        raise click.BadParameter(f"Unknown features: {', '.join(sorted(unknown))}", param_hint="--features")

    tenant = db.session.query(Tenant).filter_by(name=tenant_name).first()
    if not tenant:
        tenant = Tenant(name=tenant_name)
        tenant.feature_set = requested
        db.session.add(tenant)
        db.session.commit()
        click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id})")
    else:
        click.echo(f"PASS Using existing tenant: {tenant.name} (ID: {tenant.id})")

    store = db.session.query(Store).filter_by(tenant_id=tenant.id).order_by(Store.id).first()
    if not store:
        store = Store(tenant_id=tenant.id, name="Main Store")
        db.session.add(store)
        db.session.commit()
        click.echo(f"PASS Created store: {store.name} (ID: {store.id})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    admin = db.session.query(User).filter_by(tenant_id=tenant.id, email=admin_email).first()
    if not admin:
        admin = User(tenant_id=tenant.id, name="Administrator", username="admin", email=admin_email, role=ROLE_ADMIN)
        db.session.add(admin)
        db.session.flush()
        db.session.add(StoreMembership(store_id=store.id, user_id=admin.id))
        db.session.commit()
        click.echo(f"PASS Created admin user: {admin.email} (ID: {admin.id})")
    else:
        click.echo(f"WARN  Admin user '{admin.email}' already exists, skipping...")


@click.group('sessions')
def sessions_group():
    """Bearer token commands."""


@sessions_group.command('issue')
@click.option('--user-id', type=int, required=True)
@with_appcontext
def issue_session(user_id):
    """Issue a bearer token for a user."""
    try:
        session, token = session_service.create_session(user_id)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"Token (expires {session.expires_at:%Y-%m-%d %H:%M} UTC):")
    click.echo(token)


@click.group('postings')
def postings_group():
    """Cash postings that failed after their order committed."""


@postings_group.command('list')
@click.option('--status', default='PENDING', type=click.Choice(['PENDING', 'RESOLVED', 'ABANDONED', 'ALL']))
@click.option('--limit', default=50, show_default=True)
@with_appcontext
def list_postings(status, limit):
    failures = posting_service.list_posting_failures(None if status == 'ALL' else status, limit)
    if not failures:
        click.echo("No postings found.")
        return

    click.echo(f"{'ID':<6} {'ORDER':<8} {'SESSION':<8} {'TYPE':<8} {'AMOUNT':>10} {'TRIES':>5}  STATUS")
    for f in failures:
        click.echo(
            f"{f.id:<6} {f.order_id:<8} {f.cash_session_id:<8} {f.movement_type:<8} "
            f"{f.amount_cents / 100:>10.2f} {f.attempts:>5}  {f.status}"
        )


@postings_group.command('retry')
@click.option('--limit', default=50, show_default=True)
@click.option('--max-attempts', type=int, default=None, help='Defaults to POSTING_MAX_ATTEMPTS')
@with_appcontext
def retry_postings(limit, max_attempts):
    """Re-attempt PENDING postings, oldest first."""
    summary = posting_service.retry_failed_postings(limit=limit, max_attempts=max_attempts)
    click.echo(
        f"Resolved: {summary['resolved']}  Still failing: {summary['failed']}  "
        f"Abandoned: {summary['abandoned']}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(postings_group)
