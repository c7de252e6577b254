from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z


def _money(value) -> str | None:
    return str(value) if value is not None else None


class PurchaseOrder(db.Model):
    """
    Purchase order header.

    LIFECYCLE:
    1. pending:   Created, lines editable, no inventory effect
    2. completed: Inventory batches posted for every line with a product,
                  accounting notified; cannot be deleted
    3. cancelled: Administrative state, no inventory effect

    Moving out of completed ("unlock") removes the posted batches again.

    IDENTIFIERS:
    - poid: user-facing display code, unique
    - order_number: allocator-assigned, unique for the lifetime of the system

    total_amount is always the sum of line total_cost; it is recomputed by
    the service on every mutation and never read from client input.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_purchase_orders_order_number"),
        db.UniqueConstraint("poid", name="uq_purchase_orders_poid"),
        db.Index("ix_purchase_orders_status", "status"),
        db.Index("ix_purchase_orders_supplier", "supplier_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    poid = db.Column(db.String(64), nullable=False)
    order_number = db.Column(db.String(80), nullable=False)

    # Supplier as typed on the form, plus the resolved link (may be empty)
    supplier_name = db.Column(db.String(255), nullable=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)

    bill_number = db.Column(db.String(128), nullable=True)
    bill_date = db.Column(db.Date, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending")
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")
    transaction_type = db.Column(db.String(16), nullable=False, default="purchase")

    notes = db.Column(db.Text, nullable=True)

    # Opaque pass-through attributes (tenancy and accounting configuration)
    organization_id = db.Column(db.String(64), nullable=True, index=True)
    selected_account_ids = db.Column(db.JSON, nullable=True)
    accounting_entry_type = db.Column(db.String(32), nullable=True)

    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    # Returned by the accounting integration on completion
    transaction_group_id = db.Column(db.String(64), nullable=True)

    # Acting users are opaque identifiers supplied by the caller
    created_by_user_id = db.Column(db.String(64), nullable=True)
    completed_by_user_id = db.Column(db.String(64), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier", backref=db.backref("purchase_orders", lazy=True))
    lines = db.relationship(
        "PurchaseOrderLine",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.position",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PurchaseOrder id={self.id} poid={self.poid!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "poid": self.poid,
            "order_number": self.order_number,
            "supplier_name": self.supplier_name,
            "supplier_id": self.supplier_id,
            "supplier": self.supplier.to_dict() if self.supplier else None,
            "bill_number": self.bill_number,
            "bill_date": self.bill_date.isoformat() if self.bill_date else None,
            "status": self.status,
            "payment_status": self.payment_status,
            "transaction_type": self.transaction_type,
            "notes": self.notes,
            "organization_id": self.organization_id,
            "selected_account_ids": self.selected_account_ids or [],
            "accounting_entry_type": self.accounting_entry_type,
            "items": [line.to_dict() for line in self.lines],
            "total_amount": _money(self.total_amount),
            "transaction_group_id": self.transaction_group_id,
            "created_by_user_id": self.created_by_user_id,
            "completed_by_user_id": self.completed_by_user_id,
            "completed_at": to_utc_z(self.completed_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class PurchaseOrderLine(db.Model):
    """
    Line item on a purchase order.

    Owned by its order (delete-orphan). code/name are snapshots taken at
    entry time; product_id is set only when the code resolved.
    """
    __tablename__ = "purchase_order_lines"
    __table_args__ = (
        db.Index("ix_po_lines_order", "purchase_order_id"),
        db.Index("ix_po_lines_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(
        db.Integer, db.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False
    )
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    total_cost = db.Column(db.Numeric(14, 2), nullable=False)
    unit_price = db.Column(db.Numeric(14, 4), nullable=False)

    batch_number = db.Column(db.String(64), nullable=True)
    package_quantity = db.Column(db.Integer, nullable=True)
    box_quantity = db.Column(db.Integer, nullable=True)

    purchase_order = db.relationship("PurchaseOrder", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "code": self.code,
            "name": self.name,
            "quantity": self.quantity,
            "total_cost": _money(self.total_cost),
            "unit_price": _money(self.unit_price),
            "batch_number": self.batch_number,
            "package_quantity": self.package_quantity,
            "box_quantity": self.box_quantity,
        }
