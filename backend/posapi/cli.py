# Overview: Flask CLI command groups for bootstrap and demo data.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and default admin/manager/cashier users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --email admin@pos.local --name Admin --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).
#
# Products:
# - python -m flask products seed-demo
#   Demo products with opening stock plus one demo customer.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Product, Customer
from .services.auth_service import create_user, PasswordValidationError
from .services.products_service import create_product

DEFAULT_PASSWORD = "Password123!"

DEFAULT_USERS = [
    ("admin@pos.local", "Admin", "admin"),
    ("manager@pos.local", "Manager", "manager"),
    ("cashier@pos.local", "Cashier", "cashier"),
]

DEMO_PRODUCTS = [
    # sku, name, price_cents, stock
    ("COF-001", "Coffee Beans 1kg", 10000, 50),
    ("MUG-001", "Ceramic Mug", 5000, 100),
    ("TEA-001", "Green Tea 100g", 2500, 80),
    ("FLT-001", "Paper Filters (100)", 750, 200),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and default users. Safe to run repeatedly.

    All passwords default to: "Password123!"
    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing POS system...")
    db.create_all()

    for email, name, role in DEFAULT_USERS:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            create_user(email=email, name=name, password=DEFAULT_PASSWORD, role=role)
            click.echo(f"PASS Created user: {email} with role '{role}'")
        except (PasswordValidationError, ValueError) as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{email}': {str(e)}")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for email, _, role in DEFAULT_USERS:
        click.echo(f"   {role:<8} -> {email} / {DEFAULT_PASSWORD}")


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
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'manager', 'cashier']), prompt=True, help='Role')
@with_appcontext
def create_user_cli(email, name, password, role):
    """
    Create a new user.

    Password must be 8+ chars with uppercase, lowercase, digit and special char.
    """
    try:
        user = create_user(email=email, name=name, password=password, role=role)
        click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@click.group('products')
def products_group():
    """Product and demo data commands."""


@products_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create demo products (with opening stock) and a demo customer."""
    for sku, name, price_cents, stock in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first():
            click.echo(f"WARN  Product '{sku}' already exists, skipping...")
            continue
        product = create_product(
            patch={"sku": sku, "name": name, "price_cents": price_cents},
            initial_stock=stock,
        )
        click.echo(f"PASS Created product: {product.sku} {product.name} (stock {stock})")

    if not db.session.query(Customer).filter_by(email="demo.customer@pos.local").first():
        customer = Customer(name="Demo Customer", email="demo.customer@pos.local")
        db.session.add(customer)
        db.session.commit()
        click.echo(f"PASS Created customer: {customer.name} (ID: {customer.id})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
