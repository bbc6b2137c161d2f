# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/shopguard/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (development; use `flask db upgrade` for migrations).
#
# Identity/tenant stand-ins (normally owned by the host application):
# - python -m flask users create --username alice --email alice@example.com [--multi-shop-admin] [--superadmin]
# - python -m flask shops create --name "Main Street Repairs" --owner-id 1
# - python -m flask sessions issue --user-id 1
#   Print a bearer token for API testing.
#
# Audit inspection:
# - python -m flask audit list --shop-id 5 --limit 20
# - python -m flask audit list --user-id 77
#
# Maintenance:
# - python -m flask ratelimit sweep
#   Drop expired rate-limit windows from this process.

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import IntegrityError

from .extensions import db, rate_limiter
from .models import Shop, User
from .services import audit_service, session_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@click.group('users')
def users_group():
    """Principal management (development stand-in for the identity service)."""


@users_group.command('create')
@click.option('--username', required=True, help='Unique username')
@click.option('--email', required=True, help='Unique e-mail address')
@click.option('--multi-shop-admin', is_flag=True, help='Allow requesting access to other shops')
@click.option('--superadmin', is_flag=True, help='Platform operator')
@with_appcontext
def create_user(username, email, multi_shop_admin, superadmin):
    user = User(
        username=username.strip(),
        email=email.strip().lower(),
        is_active=True,
        is_multi_shop_admin=multi_shop_admin,
        is_superadmin=superadmin,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise click.ClickException(f"User '{username}' or e-mail '{email}' already exists")

    roles = [name for name, flag in (("multi-shop admin", multi_shop_admin), ("superadmin", superadmin)) if flag]
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}){' - ' + ', '.join(roles) if roles else ''}")


@click.group('shops')
def shops_group():
    """Shop management (development stand-in for the tenant directory)."""


@shops_group.command('create')
@click.option('--name', required=True, help='Shop display name')
@click.option('--owner-id', required=True, type=int, help='Owning user id')
@with_appcontext
def create_shop(name, owner_id):
    owner = db.session.get(User, owner_id)
    if not owner:
        raise click.ClickException(f"User {owner_id} not found")

    shop = Shop(name=name.strip(), owner_id=owner.id, is_active=True)
    db.session.add(shop)
    db.session.commit()
    click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id}, Owner: {owner.username})")


@click.group('sessions')
def sessions_group():
    """Session token utilities."""


@sessions_group.command('issue')
@click.option('--user-id', required=True, type=int, help='User to issue a token for')
@with_appcontext
def issue_session(user_id):
    try:
        session, token = session_service.create_session(user_id, user_agent="flask-cli")
    except ValueError as exc:
        raise click.ClickException(str(exc))
    click.echo(f"PASS Session {session.id} expires {session.expires_at.isoformat()}Z")
    click.echo(token)


@sessions_group.command('revoke-all')
@click.option('--user-id', required=True, type=int, help='User whose sessions are revoked')
@with_appcontext
def revoke_all_sessions(user_id):
    count = session_service.revoke_all_user_sessions(user_id, reason="Revoked from CLI")
    click.echo(f"PASS Revoked {count} sessions")


@click.group('audit')
def audit_group():
    """Audit log inspection."""


@audit_group.command('list')
@click.option('--shop-id', type=int, default=None, help='Entries for this shop (actor or target)')
@click.option('--user-id', type=int, default=None, help='Entries performed by this user')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_audit(shop_id, user_id, limit):
    if (shop_id is None) == (user_id is None):
        raise click.UsageError("Pass exactly one of --shop-id or --user-id")

    if shop_id is not None:
        entries = audit_service.query_by_shop(shop_id, limit)
    else:
        entries = audit_service.query_by_user(user_id, limit)

    if not entries:
        click.echo("No audit entries found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<6} {'When':<22} {'User':<6} {'Action':<32} {'Status':<8} {'Shop':<6} {'Target'}")
    click.echo("="*100)
    for entry in entries:
        data = entry.to_dict()
        click.echo(
            f"{entry.id:<6} {data['created_at']:<22} {entry.user_id:<6} {entry.action:<32} "
            f"{entry.status:<8} {str(entry.shop_id or '-'):<6} {entry.target_shop_id or '-'}"
        )
    click.echo("="*100 + "\n")


@click.group('ratelimit')
def ratelimit_group():
    """Rate limiter maintenance."""


@ratelimit_group.command('sweep')
@with_appcontext
def sweep_rate_limits():
    removed = rate_limiter.sweep()
    click.echo(f"PASS Removed {removed} expired rate-limit windows")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(shops_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(audit_group)
    app.cli.add_command(ratelimit_group)
