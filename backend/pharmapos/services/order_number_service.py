# Overview: Order number allocation; date-based sequences plus collision suffixes.

"""
Order Number Service

FORMAT: prefix + YYYYMMDD + zero-padded daily sequence, e.g. "20240101001".
Purchase orders use an empty prefix.

UNIQUENESS:
- The daily sequence comes from DocumentSequence, so two workers never
  synthesize the same base.
- A requested base (usually the user's poid) is checked against existing
  numbers of the same kind; on collision "-1", "-2", ... suffixes are tried.
- allocate() does not reserve anything. The order_number unique constraint
  is the final guard, and the lifecycle service re-allocates when an insert
  trips it.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import PurchaseOrder
from ..time_utils import period_key
from ..validation import ExhaustedError, ValidationError
from .document_service import next_sequence


@dataclass(frozen=True)
class OrderKind:
    model: type
    column: str
    prefix: str = ""


ORDER_KINDS: dict[str, OrderKind] = {
    "purchase": OrderKind(model=PurchaseOrder, column="order_number", prefix=""),
}


def _get_kind(kind: str) -> OrderKind:
    order_kind = ORDER_KINDS.get(kind)
    if order_kind is None:
        raise ValidationError(
            f"Invalid order kind '{kind}'. Must be one of: {', '.join(sorted(ORDER_KINDS))}"
        )
    return order_kind


def _number_taken(order_kind: OrderKind, candidate: str, exclude_id: int | None) -> bool:
    column = getattr(order_kind.model, order_kind.column)
    query = db.session.query(order_kind.model.id).filter(column == candidate)
    if exclude_id is not None:
        query = query.filter(order_kind.model.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def generate_date_based_number(kind: str = "purchase") -> str:
    """Take the next daily sequence number for kind and format it."""
    order_kind = _get_kind(kind)
    day = period_key()
    digits = current_app.config.get("ORDER_NUMBER_SEQUENCE_DIGITS", 3)
    seq = next_sequence(document_type=f"order:{kind}", period_key=day)
    return f"{order_kind.prefix}{day}{seq:0{digits}d}"


def generate_purchase_order_number() -> str:
    return generate_date_based_number("purchase")


def allocate(kind: str, requested_base: str | None = None, *, exclude_id: int | None = None) -> str:
    """
    Return an order number not currently used by any record of kind.

    Args:
        kind: Registered order kind (e.g. "purchase")
        requested_base: Preferred number; blank means synthesize a date-based one
        exclude_id: Record whose own current number should not count as a collision

    Returns:
        The base itself if free, otherwise the first free "base-N"

    Raises:
        ValidationError: Unknown kind
        ExhaustedError: No free candidate within ORDER_NUMBER_MAX_ATTEMPTS
    """
    order_kind = _get_kind(kind)
    base = (requested_base or "").strip()
    if not base:
        base = generate_date_based_number(kind)

    if not _number_taken(order_kind, base, exclude_id):
        return base

    max_attempts = current_app.config.get("ORDER_NUMBER_MAX_ATTEMPTS", 100)
    for suffix in range(1, max_attempts + 1):
        candidate = f"{base}-{suffix}"
        if not _number_taken(order_kind, candidate, exclude_id):
            return candidate

    current_app.logger.error(
        "Order number allocation exhausted: kind=%s base=%s attempts=%s",
        kind, base, max_attempts,
    )
    raise ExhaustedError(f"Could not allocate a unique {kind} order number from '{base}'")
