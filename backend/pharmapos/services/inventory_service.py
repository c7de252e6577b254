# Overview: Inventory ledger operations; append-only batches keyed by source document.

"""
Inventory Ledger Invariants (authoritative)

- Inventory is ledger-derived from InventoryBatch rows; quantity on hand is
  SUM(quantity) and is never stored as a mutable field.
- Rows are appended or deleted, never updated. Deletion is per source
  document and happens in one statement.
- InventoryBatch.id is the creation sequence; FIFO consumption follows it.
- Positive purchase batches refresh Product.last_purchase_price. That update
  is best-effort and runs in a SAVEPOINT so it can never fail the append.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import InventoryBatch, BATCH_TYPES
from ..validation import UNIT_PRICE_QUANTUM, ValidationError
from .products_service import update_last_purchase_price


SOURCE_PURCHASE_ORDER = "purchase_order"


def derive_unit_price(total_amount: Decimal, quantity: int) -> Decimal:
    """total / quantity at four places; zero quantity prices at 0."""
    if not quantity:
        return Decimal("0")
    return (abs(Decimal(total_amount)) / abs(quantity)).quantize(UNIT_PRICE_QUANTUM, rounding=ROUND_HALF_UP)


def append_batch(
    *,
    product_id: int,
    quantity: int,
    total_amount: Decimal,
    type: str,
    source_type: str,
    source_id: int,
    source_number: str | None = None,
    batch_number: str | None = None,
    created_by_user_id: str | None = None,
) -> InventoryBatch:
    """
    Append one ledger row. Flushes, does not commit.

    Raises:
        ValidationError: Unknown batch type or missing source
    """
    if type not in BATCH_TYPES:
        raise ValidationError(f"Invalid batch type '{type}'. Must be one of: {', '.join(sorted(BATCH_TYPES))}")
    if not source_type or source_id is None:
        raise ValidationError("source_type and source_id are required")

    unit_price = derive_unit_price(total_amount, quantity)
    batch = InventoryBatch(
        product_id=product_id,
        quantity=quantity,
        total_amount=total_amount,
        unit_price=unit_price,
        type=type,
        source_type=source_type,
        source_id=source_id,
        source_number=source_number,
        batch_number=batch_number,
        created_by_user_id=created_by_user_id,
    )
    db.session.add(batch)
    db.session.flush()

    if type == "purchase" and quantity > 0:
        try:
            with db.session.begin_nested():
                update_last_purchase_price(product_id, unit_price)
        except SQLAlchemyError:
            current_app.logger.warning(
                "Failed to update last purchase price: product_id=%s batch_id=%s",
                product_id, batch.id, exc_info=True,
            )

    return batch


def delete_by_source(source_id: int, source_type: str = SOURCE_PURCHASE_ORDER) -> int:
    """Remove every batch of a source document. Returns rows deleted (0 if none)."""
    result = db.session.execute(
        delete(InventoryBatch)
        .where(
            InventoryBatch.source_type == source_type,
            InventoryBatch.source_id == source_id,
        )
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


def count_for_source(source_id: int, source_type: str = SOURCE_PURCHASE_ORDER) -> int:
    return (
        db.session.query(func.count(InventoryBatch.id))
        .filter_by(source_type=source_type, source_id=source_id)
        .scalar()
    ) or 0


def list_for_product(product_id: int) -> list[InventoryBatch]:
    """Batches of a product in creation order (FIFO order)."""
    return (
        db.session.query(InventoryBatch)
        .filter_by(product_id=product_id)
        .order_by(InventoryBatch.id.asc())
        .all()
    )


def get_quantity_on_hand(product_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(InventoryBatch.quantity), 0))
        .filter(InventoryBatch.product_id == product_id)
        .scalar()
    )
    return int(total or 0)
