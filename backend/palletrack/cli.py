# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/palletrack/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Demo floor plan (UG, EG, OG, Halle 204, Halle 205 and sub-zones) and product variants.
#
# Users:
# - python -m flask users create --name "Anna" --pin 1234 [--admin]
# - python -m flask users list
# - python -m flask users set-pin --user-id 1 --pin 4321
#
# Inventory inspection:
# - python -m flask inventory rollup 3
#   Print capacity / stock roll-up for a location.

import click
from flask.cli import with_appcontext

from .errors import PalletTrackError
from .extensions import db
from .models import StorageLocation, ProductVariant, User
from .services import auth_service, location_service


# (name, description, x, y, width, height, color, sub-zones)
SEED_LOCATIONS = [
    ("UG", "Untergeschoss", 0, 0, 2, 2, "#6366f1", [
        ("Wachsraum", "UG - Wachsraum", 0, 0, 1, 1),
        ("Zwischenlager Produktion", "UG - Zwischenlager", 1, 0, 1, 1),
        ("Fertiglager", "UG - Fertiglager", 0, 1, 1, 1),
        ("Holzwollnische", "UG - Holzwollnische", 1, 1, 1, 1),
    ]),
    ("EG", "Erdgeschoss", 3, 0, 2, 2, "#22c55e", [
        ("MST", "EG - MST", 0, 0, 1, 2),
        ("Oberndorfer", "EG - Oberndorfer", 1, 0, 1, 2),
    ]),
    ("OG", "Obergeschoss", 6, 0, 2, 2, "#f59e0b", [
        ("Schachtelware", "OG - Schachtelware", 0, 0, 1, 2),
        ("Notreserve", "OG - Notreserve", 1, 0, 1, 2),
    ]),
    ("Halle 204", "Lagerhalle 204", 0, 3, 3, 2, "#ec4899", []),
    ("Halle 205", "Lagerhalle 205", 4, 3, 3, 2, "#14b8a6", []),
]

# (name, code, color, category)
SEED_PRODUCTS = [
    ("Feuermaxx 3kg", "FM3", "#ef4444", "finished"),
    ("Feuermaxx 2kg", "FM2", "#ef4444", "finished"),
    ("Feuermaxx 1kg", "FM1", "#ef4444", "finished"),
    ("Landi 2kg", "L2", "#22c55e", "finished"),
    ("Landi 1.5kg", "L15", "#22c55e", "finished"),
    ("Landi 1kg", "L1", "#22c55e", "finished"),
    ("Hellson 600g", "H600", "#3b82f6", "finished"),
    ("Hellson 400g", "H400", "#3b82f6", "finished"),
    ("Hellson 200g", "H200", "#3b82f6", "finished"),
    ("Jumbo 5kg", "J5", "#8b5cf6", "finished"),
    ("Jumbo 3kg", "J3", "#8b5cf6", "finished"),
    ("Eco Starter 2kg", "ES2", "#10b981", "finished"),
    ("Eco Starter 1kg", "ES1", "#10b981", "finished"),
    ("Profi 4kg", "P4", "#f97316", "finished"),
    ("Profi 2.5kg", "P25", "#f97316", "finished"),
    ("Kamin-Set Premium", "KSP", "#ec4899", "finished"),
    ("Grillanzünder Würfel", "GAW", "#06b6d4", "finished"),
    ("Holzwolle natur", "HWN", "#84cc16", "raw"),
    ("Wachs-Rollen", "WR", "#eab308", "raw"),
    ("Outdoor Mix", "OM", "#64748b", "finished"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Database tables created")


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

    click.echo("PASS Database reset complete")


def _active_location(name: str, parent_id):
    q = db.session.query(StorageLocation).filter(
        StorageLocation.name == name,
        StorageLocation.is_active.is_(True),
    )
    if parent_id is None:
        q = q.filter(StorageLocation.parent_id.is_(None))
    else:
        q = q.filter(StorageLocation.parent_id == parent_id)
    return q.first()


@system_group.command('seed')
@with_appcontext
def seed():
    """Idempotent demo data: floor plan and product variants."""
    click.echo("START Seeding database...")

    created_locations = 0
    for name, description, x, y, width, height, color, subs in SEED_LOCATIONS:
        root = _active_location(name, None)
        if root is None:
            root = location_service.create_location(
                name=name, description=description, x=x, y=y, width=width, height=height, color=color,
            )
            created_locations += 1
        for sub_name, sub_desc, sx, sy, sw, sh in subs:
            if _active_location(sub_name, root.id) is None:
                location_service.create_location(
                    name=sub_name, description=sub_desc, parent_id=root.id,
                    x=sx, y=sy, width=sw, height=sh, color=color,
                )
                created_locations += 1

    created_products = 0
    for name, code, color, category in SEED_PRODUCTS:
        exists = db.session.query(ProductVariant).filter_by(code=code, is_active=True).first()
        if exists:
            continue
        db.session.add(ProductVariant(name=name, code=code, color=color, category=category, is_active=True))
        created_products += 1
    db.session.commit()

    click.echo(f"PASS {created_locations} locations created")
    click.echo(f"PASS {created_products} product variants created")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--pin', prompt=True, hide_input=True, help='4-digit PIN')
@click.option('--admin', 'is_admin', is_flag=True, help='Grant floor-plan/product/user management')
@with_appcontext
def create_user_cli(name, pin, is_admin):
    """Create a staff account."""
    try:
        user = auth_service.create_user(name, pin, is_admin=is_admin)
    except PalletTrackError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user {user.name} (ID: {user.id}, admin: {user.is_admin})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Name':<30} {'Active':<8} {'Admin':<8} {'Last login'}")
    click.echo("-" * 72)
    for u in users:
        last_login = u.last_login_at.isoformat(timespec="minutes") if u.last_login_at else "-"
        click.echo(f"{u.id:<5} {u.name:<30} {str(u.is_active):<8} {str(u.is_admin):<8} {last_login}")


@users_group.command('set-pin')
@click.option('--user-id', type=int, required=True, help='User ID')
@click.option('--pin', prompt=True, hide_input=True, help='New 4-digit PIN')
@with_appcontext
def set_pin_cli(user_id, pin):
    """Set or reset a user's PIN."""
    try:
        user = auth_service.set_pin(user_id, pin)
    except PalletTrackError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS PIN updated for {user.name}")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('rollup')
@click.argument('location_id', type=int)
@with_appcontext
def rollup_cli(location_id):
    """Print capacity / stock roll-up for a location."""
    try:
        loc = location_service.get_location(location_id)
        rollup = location_service.get_rollup(location_id)
    except PalletTrackError as e:
        raise click.ClickException(str(e))

    capacity = rollup["capacity"] if rollup["capacity"] is not None else "unbounded"
    utilization = f"{rollup['utilization_percent']}%" if rollup["utilization_percent"] is not None else "-"
    click.echo(f"{loc.name} (ID: {loc.id})")
    click.echo(f"  leaves:      {rollup['leaf_count']}")
    click.echo(f"  capacity:    {capacity}")
    click.echo(f"  stock:       {rollup['stock']}")
    click.echo(f"  utilization: {utilization}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
