# Overview: Flask CLI commands for bootstrap and stock inspection.

# backend/smart_inventory/cli.py
# Commands Legend (run from the backend directory):
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# - python -m flask inventory init-db
#   Create all tables and the default roles (idempotent).
# - python -m flask inventory seed-demo
#   Create two branches, a manager, a sales user and a few stocked products.
# - python -m flask inventory add-stock --branch-id 1 --product-id 1 --quantity 25
#   Add stock through the ledger (writes an 'add' movement).
# - python -m flask inventory low-stock [--branch-id 1]
#   List inventory at or below LOW_STOCK_THRESHOLD.

import click
from flask.cli import with_appcontext

from .errors import InventoryError
from .extensions import db
from .models import Branch, ROLE_BRANCH_MANAGER, ROLE_SALES_USER, ROLE_SUPER_ADMIN, User
from .services import branch_service, inventory_service, products_service, reporting_service, user_service


@click.group('inventory')
def inventory_group():
    """Stock ledger bootstrap and inspection commands."""


@inventory_group.command('init-db')
@with_appcontext
def init_db_command():
    db.create_all()
    roles = user_service.create_default_roles()
    click.echo(f"Database ready; roles: {', '.join(r.name for r in roles)}")


@inventory_group.command('seed-demo')
@with_appcontext
def seed_demo_command():
    db.create_all()
    user_service.create_default_roles()

    if db.session.query(Branch.id).first() is not None:
        click.echo("Data already present; nothing to seed.")
        return

    admin = user_service.create_user("Super Admin", "admin@smart-inventory.local", ROLE_SUPER_ADMIN)
    manager = user_service.create_user("Branch Manager", "manager@smart-inventory.local", ROLE_BRANCH_MANAGER)

    main = branch_service.create_branch("Main Street", "1 Main Street", manager_id=manager.id)
    harbor = branch_service.create_branch("Harbor", "9 Harbor Road")
    user_service.create_user("Sales User", "sales@smart-inventory.local", ROLE_SALES_USER, branch_id=main.id)

    catalog = [
        {"name": "Notebook", "sku": "NB-001", "cost_price": "1.20", "sale_price": "2.50", "tax_percentage": "10"},
        {"name": "Ballpoint Pen", "sku": "PEN-001", "cost_price": "0.20", "sale_price": "0.75", "tax_percentage": "10"},
        {"name": "Desk Lamp", "sku": "LAMP-001", "cost_price": "12.00", "sale_price": "29.99", "tax_percentage": "20"},
    ]
    for patch in catalog:
        product = products_service.create_product(patch)
        inventory_service.add_stock(main.id, product.id, 40, actor_user_id=admin.id, note="Opening stock")
        inventory_service.add_stock(harbor.id, product.id, 8, actor_user_id=admin.id, note="Opening stock")

    click.echo("Seeded 2 branches, 3 users and 3 products.")


@inventory_group.command('add-stock')
@click.option('--branch-id', type=int, required=True)
@click.option('--product-id', type=int, required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--user-id', type=int, default=None, help='Acting user recorded on the movement.')
@click.option('--note', default=None)
@with_appcontext
def add_stock_command(branch_id, product_id, quantity, user_id, note):
    if user_id is not None and db.session.get(User, user_id) is None:
        raise click.ClickException(f"User {user_id} not found")
    try:
        record = inventory_service.add_stock(
            branch_id, product_id, quantity, actor_user_id=user_id, note=note
        )
    except InventoryError as exc:
        raise click.ClickException(exc.message)
    click.echo(f"branch={record.branch_id} product={record.product_id} quantity={record.quantity}")


@inventory_group.command('low-stock')
@click.option('--branch-id', type=int, default=None, help='Limit to one branch (default: all).')
@with_appcontext
def low_stock_command(branch_id):
    branch_ids = [branch_id] if branch_id is not None else branch_service.list_branch_ids()
    rows = reporting_service.low_stock(branch_ids)
    if not rows:
        click.echo("No low-stock items.")
        return
    for row in rows:
        click.echo(f"{row['branch_name']:<20} {row['product_name']:<30} {row['quantity']:>6}")


def register_commands(app):
    app.cli.add_command(inventory_group)
