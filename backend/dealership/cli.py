# Overview: Flask CLI command groups for bootstrap, inspection, and development helpers.

# backend/dealership/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, the admin account and sample vehicles.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create-admin --email admin2@dealer.com --password "Password123!"
#   Create an ADMIN account (prompts if options are omitted).
#
# One-time codes (development, there is no mail/SMS channel):
# - python -m flask otp issue --email buyer@example.com --purpose PURCHASE --vehicle-id 7
#   Issue a code and print it.

import click
from flask.cli import with_appcontext

from .errors import DealershipError
from .extensions import db
from .models import User, Vehicle
from .models.otp import OTP_PURPOSES, OTP_PURPOSE_PURCHASE
from .services import otp_service, vehicle_service
from .services.user_service import create_admin, get_user_by_email

DEFAULT_ADMIN_EMAIL = "admin@dealer.com"
DEFAULT_ADMIN_PASSWORD = "Password123!"

# (make, model, year, price_cents, color)
SAMPLE_VEHICLES = [
    ("Toyota", "Camry", 2021, 8_800_000, "White"),
    ("Toyota", "Corolla", 2022, 7_600_000, "Silver"),
    ("Honda", "Civic", 2020, 7_200_000, "Black"),
    ("Honda", "Accord", 2023, 9_900_000, "Blue"),
    ("Hyundai", "Sonata", 2021, 8_300_000, None),
    ("Kia", "K5", 2022, 8_500_000, None),
    ("Ford", "Mustang", 2019, 13_500_000, "Red"),
    ("Chevrolet", "Malibu", 2020, 7_800_000, None),
    ("BMW", "330i", 2023, 21_000_000, None),
    ("Mercedes", "C200", 2022, 23_000_000, None),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the dealership database.

    Creates:
    - All tables (if missing)
    - Admin user: admin@dealer.com / "Password123!"
    - Ten sample vehicles (only when the inventory is empty)

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing dealership database...")
    db.create_all()

    if get_user_by_email(DEFAULT_ADMIN_EMAIL) is None:
        create_admin(DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD, full_name="Admin User")
        click.echo(f"PASS Created admin user: {DEFAULT_ADMIN_EMAIL}")
    else:
        click.echo(f"PASS Using existing admin user: {DEFAULT_ADMIN_EMAIL}")

    if db.session.query(Vehicle).count() == 0:
        for make, model, year, price_cents, color in SAMPLE_VEHICLES:
            db.session.add(Vehicle(
                make=make,
                model=model,
                year=year,
                price_cents=price_cents,
                color=color,
                is_available=True,
            ))
        db.session.commit()
        click.echo(f"PASS Seeded {len(SAMPLE_VEHICLES)} sample vehicles")
    else:
        click.echo("PASS Inventory already populated, skipping sample vehicles")

    click.echo("DONE Dealership initialized.")


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


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<35} {'Role':<10} {'Active':<8} {'Name'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {user.role:<10} {active_str:<8} {user.full_name or ''}")

    click.echo("="*80 + "\n")


@users_group.command('create-admin')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--full-name', default=None, help='Display name')
@with_appcontext
def create_admin_cli(email, password, full_name):
    """
    Create an ADMIN account.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_admin(email, password, full_name=full_name)
    except DealershipError as e:
        raise click.ClickException(f"FAIL {e.message}")

    click.echo(f"PASS Created admin user: {user.email} (ID: {user.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@click.group('otp')
def otp_group():
    """One-time code helpers (development)."""


@otp_group.command('issue')
@click.option('--email', required=True, help='Subject email')
@click.option('--purpose', type=click.Choice(list(OTP_PURPOSES), case_sensitive=False), required=True)
@click.option('--vehicle-id', type=int, default=None, help='Vehicle the code is bound to (PURCHASE only)')
@with_appcontext
def issue_otp_cli(email, purpose, vehicle_id):
    """Issue a one-time code and print it."""
    purpose = purpose.upper()
    if purpose == OTP_PURPOSE_PURCHASE and not vehicle_id:
        raise click.UsageError("--vehicle-id is required for PURCHASE codes")
    if purpose == OTP_PURPOSE_PURCHASE:
        try:
            vehicle_service.get_vehicle(vehicle_id)
        except DealershipError as e:
            raise click.ClickException(f"FAIL {e.message}")

    code = otp_service.issue_otp(email, purpose, vehicle_id)
    click.echo(f"PASS {purpose} code for {otp_service.normalize_subject(email)}: {code}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(otp_group)
