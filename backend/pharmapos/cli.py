# Overview: Flask CLI command group for purchasing bootstrap and inspection.

# backend/pharmapos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# - python -m flask purchasing init-db
#   Create all tables (idempotent).
# - python -m flask purchasing fifo-preview P001 12
#   Show the FIFO cost of taking 12 units of product P001 right now.
# - python -m flask purchasing next-order-number [--kind purchase]
#   Allocate and print the next date-based order number (consumes a sequence value).

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import fifo_service, order_number_service, products_service
from .validation import ExhaustedError, NotFoundError, ValidationError


@click.group('purchasing')
def purchasing_group():
    """Purchase order and inventory costing commands."""


@purchasing_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    from . import models  # noqa: F401
    db.create_all()
    click.echo("OK Database tables created")


@purchasing_group.command('fifo-preview')
@click.argument('product_code')
@click.argument('quantity', type=int)
@with_appcontext
def fifo_preview(product_code, quantity):
    """Preview FIFO cost for QUANTITY units of PRODUCT_CODE."""
    product = products_service.find_by_code(product_code)
    if not product:
        raise click.ClickException(f"Product '{product_code}' not found")

    try:
        result = fifo_service.simulate(product.id, quantity)
    except (ValidationError, NotFoundError) as e:
        raise click.ClickException(str(e))

    click.echo(f"{result['product_code']} {result['product_name']}")
    click.echo(f"  requested: {result['requested_quantity']}  available: {result['available_quantity']}")
    for part in result["cost_parts"]:
        click.echo(
            f"  batch {part['batch_id']} ({part['source_number'] or '-'}): "
            f"{part['quantity']} x {part['unit_price']} = {part['cost']}"
        )
    click.echo(f"  total cost: {result['total_cost']}")
    if result["has_negative_inventory"]:
        click.echo(f"  WARN shortfall: {result['shortfall']}")


@purchasing_group.command('next-order-number')
@click.option('--kind', default='purchase', show_default=True, help='Order kind')
@with_appcontext
def next_order_number(kind):
    """Allocate the next order number for KIND and print it."""
    try:
        number = order_number_service.allocate(kind)
        db.session.commit()
    except (ValidationError, ExhaustedError) as e:
        db.session.rollback()
        raise click.ClickException(str(e))
    click.echo(number)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(purchasing_group)
