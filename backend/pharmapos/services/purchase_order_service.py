# Overview: Purchase order lifecycle; status transitions and their ledger/accounting effects.

"""
Purchase Order Service

LIFECYCLE:
1. pending:   Editable, no inventory effect
2. completed: Inventory batches posted per line, accounting notified
3. cancelled: Administrative, no inventory effect

Only the completed boundary has side effects:
- entering completed runs ENTER_COMPLETED_EFFECTS in order
- leaving completed ("unlock") runs EXIT_COMPLETED_EFFECTS in order

Every handler is idempotent, so a retried transition never double-posts.

TRANSACTIONS: each public mutation is one DB transaction committed at the
end. Ledger rows and the order change land together or not at all.
Concurrent edits are caught by PurchaseOrder.version_id (StaleDataError)
and retried through run_with_retry with fresh reads.

ERRORS:
- ledger deletion during unlock propagates (the whole update rolls back)
- accounting hook failures are logged; completion keeps its batches and
  stores no transaction group id
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import PurchaseOrder, PurchaseOrderLine
from ..time_utils import utcnow
from ..validation import (
    AuthorizationError,
    ConflictError,
    ExhaustedError,
    NotFoundError,
    coerce_choice,
    coerce_int,
)
from .accounting_integration import get_accounting_integration
from .concurrency import run_with_retry
from .inventory_service import SOURCE_PURCHASE_ORDER, append_batch, count_for_source, delete_by_source
from .order_number_service import allocate, generate_purchase_order_number
from .purchase_order_validation import (
    PAYMENT_STATUSES,
    STATUS_COMPLETED,
    STATUSES,
    TRANSACTION_TYPES,
    NormalizedLine,
    validate_purchase_order,
)


ORDER_KIND = "purchase"


# =============================================================================
# Completion effects
# =============================================================================

def post_inventory_batches(order: PurchaseOrder, acting_user_id: str | None) -> None:
    """Append one purchase batch per line with a resolved product."""
    if count_for_source(order.id, SOURCE_PURCHASE_ORDER):
        return

    for line in order.lines:
        if line.product_id is None:
            continue
        append_batch(
            product_id=line.product_id,
            quantity=line.quantity,
            total_amount=line.total_cost,
            type="purchase",
            source_type=SOURCE_PURCHASE_ORDER,
            source_id=order.id,
            source_number=order.order_number,
            batch_number=line.batch_number,
            created_by_user_id=acting_user_id,
        )


def record_accounting_completion(order: PurchaseOrder, acting_user_id: str | None) -> None:
    if order.transaction_group_id:
        return

    integration = get_accounting_integration()
    try:
        with db.session.begin_nested():
            group_id = integration.on_purchase_order_completed(order, acting_user_id)
    except Exception:
        current_app.logger.exception(
            "Accounting completion hook failed: purchase_order_id=%s poid=%s", order.id, order.poid
        )
        return

    order.transaction_group_id = group_id


def remove_inventory_batches(order: PurchaseOrder, acting_user_id: str | None) -> None:
    removed = delete_by_source(order.id, SOURCE_PURCHASE_ORDER)
    current_app.logger.info(
        "Removed %s inventory batches for purchase order %s", removed, order.poid
    )


def reverse_accounting_entries(order: PurchaseOrder, acting_user_id: str | None) -> None:
    integration = get_accounting_integration()
    try:
        with db.session.begin_nested():
            integration.on_purchase_order_unlocked(order)
    except Exception:
        current_app.logger.exception(
            "Accounting reversal hook failed: purchase_order_id=%s poid=%s", order.id, order.poid
        )
        return

    order.transaction_group_id = None


ENTER_COMPLETED_EFFECTS = (post_inventory_batches, record_accounting_completion)
EXIT_COMPLETED_EFFECTS = (remove_inventory_batches, reverse_accounting_entries)


def _enter_completed(order: PurchaseOrder, acting_user_id: str) -> None:
    order.completed_by_user_id = acting_user_id
    order.completed_at = utcnow()
    # Flush the status change first: a concurrent completion fails here on
    # version_id before either side appends batches.
    db.session.flush()
    for effect in ENTER_COMPLETED_EFFECTS:
        effect(order, acting_user_id)
    current_app.logger.info("Purchase order %s completed by user %s", order.poid, acting_user_id)


def _exit_completed(order: PurchaseOrder, acting_user_id: str | None) -> None:
    db.session.flush()
    for effect in EXIT_COMPLETED_EFFECTS:
        effect(order, acting_user_id)
    order.completed_by_user_id = None
    order.completed_at = None
    current_app.logger.info("Purchase order %s unlocked (now %s)", order.poid, order.status)


# =============================================================================
# Helpers
# =============================================================================

def _build_lines(lines: list[NormalizedLine]) -> list[PurchaseOrderLine]:
    return [
        PurchaseOrderLine(
            position=position,
            product_id=line.product_id,
            code=line.code,
            name=line.name,
            quantity=line.quantity,
            total_cost=line.total_cost,
            unit_price=line.unit_price,
            batch_number=line.batch_number,
            package_quantity=line.package_quantity,
            box_quantity=line.box_quantity,
        )
        for position, line in enumerate(lines)
    ]


def _recompute_total(order: PurchaseOrder) -> None:
    order.total_amount = sum((line.total_cost for line in order.lines), 0)


def _poid_taken(poid: str, *, exclude_id: int | None = None) -> bool:
    query = db.session.query(PurchaseOrder.id).filter(PurchaseOrder.poid == poid)
    if exclude_id is not None:
        query = query.filter(PurchaseOrder.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def _generate_free_poid() -> str:
    """Next date-based number not already typed in by hand as a poid."""
    max_attempts = current_app.config.get("ORDER_NUMBER_MAX_ATTEMPTS", 100)
    for _attempt in range(max_attempts):
        candidate = generate_purchase_order_number()
        if not _poid_taken(candidate):
            return candidate
    raise ExhaustedError("Could not generate a free purchase order number")


# Header fields copied straight from the validated payload
_HEADER_FIELDS = (
    "supplier_name",
    "supplier_id",
    "bill_number",
    "bill_date",
    "payment_status",
    "transaction_type",
    "notes",
    "organization_id",
    "selected_account_ids",
    "accounting_entry_type",
)


def _apply_header(order: PurchaseOrder, fields: dict) -> None:
    for key in _HEADER_FIELDS:
        if key in fields:
            setattr(order, key, fields[key])


# =============================================================================
# Queries
# =============================================================================

def get_purchase_order(order_id: int) -> PurchaseOrder:
    order = db.session.get(PurchaseOrder, order_id)
    if order is None:
        raise NotFoundError(f"Purchase order {order_id} not found")
    return order


def list_purchase_orders(
    *,
    status: str | None = None,
    supplier_id: int | None = None,
    payment_status: str | None = None,
    transaction_type: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[PurchaseOrder], int]:
    """
    List purchase orders, newest poid first.

    Returns:
        Tuple of (orders, total_count)

    Raises:
        ValidationError: A filter value is not a known status/type
    """
    query = db.session.query(PurchaseOrder)

    if status:
        query = query.filter(PurchaseOrder.status == coerce_choice(status, "status", STATUSES))
    if supplier_id is not None:
        query = query.filter(PurchaseOrder.supplier_id == supplier_id)
    if payment_status:
        query = query.filter(
            PurchaseOrder.payment_status == coerce_choice(payment_status, "payment_status", PAYMENT_STATUSES)
        )
    if transaction_type:
        query = query.filter(
            PurchaseOrder.transaction_type
            == coerce_choice(transaction_type, "transaction_type", TRANSACTION_TYPES)
        )

    total = query.count()
    orders = (
        query.order_by(PurchaseOrder.poid.desc(), PurchaseOrder.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return orders, total


def list_by_supplier(supplier_id: int) -> list[PurchaseOrder]:
    return (
        db.session.query(PurchaseOrder)
        .filter(PurchaseOrder.supplier_id == supplier_id)
        .order_by(PurchaseOrder.poid.desc(), PurchaseOrder.id.desc())
        .all()
    )


def list_by_product(product_id: int) -> list[PurchaseOrder]:
    """Completed orders that contain product_id, newest bill date first."""
    return (
        db.session.query(PurchaseOrder)
        .filter(
            PurchaseOrder.status == STATUS_COMPLETED,
            PurchaseOrder.lines.any(PurchaseOrderLine.product_id == product_id),
        )
        .order_by(PurchaseOrder.bill_date.desc(), PurchaseOrder.id.desc())
        .all()
    )


def list_recent(limit: int = 10) -> list[PurchaseOrder]:
    return (
        db.session.query(PurchaseOrder)
        .order_by(PurchaseOrder.id.desc())
        .limit(limit)
        .all()
    )


# =============================================================================
# Mutations
# =============================================================================

def create_purchase_order(payload: dict, *, acting_user_id: str | None = None) -> PurchaseOrder:
    """
    Create a purchase order.

    Blank poid gets a date-based number (e.g. "20240101001"); an existing
    poid is a conflict. order_number is allocated from the poid.

    Args:
        payload: Request body (see purchase_order_validation)
        acting_user_id: Opaque id of the acting user; required when the
            order is created directly as completed

    Returns:
        The committed PurchaseOrder

    Raises:
        ValidationError: Payload failed validation
        ConflictError: poid already in use
        AuthorizationError: Completed on create without an acting user
        ExhaustedError: No unique order number could be stored
    """
    def _op() -> PurchaseOrder:
        validated = validate_purchase_order(payload, partial=False)
        fields = validated.fields
        status = fields["status"]

        if status == STATUS_COMPLETED and not acting_user_id:
            raise AuthorizationError("An acting user is required to complete a purchase order")

        requested_poid = fields.get("poid")
        if requested_poid and _poid_taken(requested_poid):
            raise ConflictError(f"Purchase order '{requested_poid}' already exists")

        retries = current_app.config.get("ORDER_NUMBER_INSERT_RETRIES", 3)
        order = None
        for _attempt in range(retries + 1):
            poid = requested_poid or _generate_free_poid()
            order = PurchaseOrder(
                poid=poid,
                order_number=allocate(ORDER_KIND, poid),
                status=status,
                created_by_user_id=acting_user_id,
            )
            _apply_header(order, fields)
            order.lines = _build_lines(validated.items)
            _recompute_total(order)

            try:
                db.session.add(order)
                db.session.flush()
                break
            except IntegrityError:
                db.session.rollback()
                if requested_poid and _poid_taken(requested_poid):
                    raise ConflictError(f"Purchase order '{requested_poid}' already exists")
                current_app.logger.warning(
                    "Order number %s taken concurrently; re-allocating", order.order_number
                )
                order = None

        if order is None:
            raise ExhaustedError("Could not store purchase order with a unique order number")

        if status == STATUS_COMPLETED:
            _enter_completed(order, acting_user_id)

        db.session.commit()
        return order

    return run_with_retry(_op)


def update_purchase_order(
    order_id: int,
    payload: dict,
    *,
    acting_user_id: str | None = None,
) -> PurchaseOrder:
    """
    Update a purchase order and run any completed-boundary effects.

    Raises:
        NotFoundError: Unknown order
        ValidationError: Payload failed validation
        ConflictError: Stale version_id, new poid/order number in use, or
            poid change on an order that stays completed
        AuthorizationError: Completing without an acting user
    """
    def _op() -> PurchaseOrder:
        order = get_purchase_order(order_id)

        expected_version = payload.get("version_id") if isinstance(payload, dict) else None
        if expected_version is not None:
            if coerce_int(expected_version, "version_id") != order.version_id:
                raise ConflictError("Purchase order was modified by another request; reload and retry")

        validated = validate_purchase_order(payload, partial=True)
        fields = validated.fields

        old_status = order.status
        new_status = fields.get("status") or old_status
        entering = new_status == STATUS_COMPLETED and old_status != STATUS_COMPLETED
        leaving = old_status == STATUS_COMPLETED and new_status != STATUS_COMPLETED

        if entering and not acting_user_id:
            raise AuthorizationError("An acting user is required to complete a purchase order")

        new_poid = fields.get("poid")
        if new_poid and new_poid != order.poid:
            if old_status == STATUS_COMPLETED and not leaving:
                raise ConflictError("Unlock the purchase order before changing its poid")
            if _poid_taken(new_poid, exclude_id=order.id):
                raise ConflictError(f"Purchase order '{new_poid}' already exists")
            order.order_number = allocate(ORDER_KIND, new_poid, exclude_id=order.id)
            order.poid = new_poid

        _apply_header(order, fields)
        if validated.items is not None:
            order.lines = _build_lines(validated.items)
        _recompute_total(order)
        order.status = new_status

        if leaving:
            _exit_completed(order, acting_user_id)
        if entering:
            _enter_completed(order, acting_user_id)

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Purchase order number already in use; retry the update")
        return order

    return run_with_retry(_op)


def delete_purchase_order(order_id: int) -> None:
    """
    Delete a non-completed purchase order (lines cascade).

    Raises:
        NotFoundError: Unknown order
        ConflictError: Order is completed; unlock it first
    """
    order = get_purchase_order(order_id)
    if order.status == STATUS_COMPLETED:
        raise ConflictError("Completed purchase orders cannot be deleted")

    db.session.delete(order)
    db.session.commit()
