from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z


# Batch types. Only purchase batches are written by this package; the others
# arrive from sales/shipping/adjustment flows and take part in FIFO costing.
BATCH_TYPES = {"purchase", "sale", "ship", "return", "adjustment"}


class InventoryBatch(db.Model):
    """
    Append-only inventory ledger row.

    ORDERING: id is the creation sequence and the FIFO key. sqlite_autoincrement
    keeps ids strictly increasing (never reused), so ordering never depends on
    wall-clock timestamps from different writers.

    SIGN: quantity > 0 is incoming stock, quantity < 0 is consumption.

    SOURCE: every row belongs to exactly one source document
    (source_type, source_id). Rows are removed per source in one statement
    and are never updated in place.
    """
    __tablename__ = "inventory_batches"
    __table_args__ = (
        db.Index("ix_inventory_batches_product_id_seq", "product_id", "id"),
        db.Index("ix_inventory_batches_source", "source_type", "source_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    type = db.Column(db.String(16), nullable=False, default="purchase")

    quantity = db.Column(db.Integer, nullable=False)
    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    unit_price = db.Column(db.Numeric(14, 4), nullable=True)

    source_type = db.Column(db.String(32), nullable=False)
    source_id = db.Column(db.Integer, nullable=False)
    source_number = db.Column(db.String(80), nullable=True)

    batch_number = db.Column(db.String(64), nullable=True)

    created_by_user_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def __repr__(self) -> str:
        return (
            f"<InventoryBatch id={self.id} product_id={self.product_id} "
            f"qty={self.quantity} source={self.source_type}:{self.source_id}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "total_amount": str(self.total_amount) if self.total_amount is not None else None,
            "unit_price": str(self.unit_price) if self.unit_price is not None else None,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "source_number": self.source_number,
            "batch_number": self.batch_number,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
