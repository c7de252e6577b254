# Overview: Product catalog lookups consumed by purchasing and FIFO costing.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Product


def find_by_code(code: str | None) -> Product | None:
    if not code:
        return None
    return db.session.query(Product).filter_by(code=code.strip()).first()


def find_by_id(product_id: int | None) -> Product | None:
    if product_id is None:
        return None
    return db.session.get(Product, product_id)


def update_last_purchase_price(product_id: int, unit_price: Decimal) -> None:
    """Record the most recent incoming unit cost on the product. Flushes only."""
    product = find_by_id(product_id)
    if product is None:
        return
    product.last_purchase_price = unit_price
    db.session.flush()
