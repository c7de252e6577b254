# Overview: Boundary validation for purchase order payloads; parses numbers once.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from ..time_utils import parse_iso_date
from ..validation import (
    ValidationError,
    coerce_choice,
    coerce_int,
    coerce_money,
    coerce_text,
    coerce_unit_price,
)
from .inventory_service import derive_unit_price
from .products_service import find_by_code
from .supplier_service import resolve_supplier


STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUSES = {STATUS_PENDING, STATUS_COMPLETED, STATUS_CANCELLED}

PAYMENT_STATUSES = {"unpaid", "received", "remitted"}

DEFAULT_TRANSACTION_TYPE = "purchase"
TRANSACTION_TYPES = {"purchase", "return", "expense"}

# Plain text header fields: payload key -> max length
_TEXT_FIELDS = {
    "bill_number": 128,
    "notes": None,
    "organization_id": 64,
    "accounting_entry_type": 32,
}


@dataclass
class NormalizedLine:
    code: str
    name: str
    quantity: int
    total_cost: Decimal
    unit_price: Decimal
    product_id: int | None = None
    batch_number: str | None = None
    package_quantity: int | None = None
    box_quantity: int | None = None


@dataclass
class ValidatedPurchaseOrder:
    """
    Normalized header fields plus lines.

    fields only holds keys present in the payload (on create, defaults are
    filled in). items is None when the payload did not mention items.
    """
    fields: dict[str, Any] = field(default_factory=dict)
    items: list[NormalizedLine] | None = None

    @property
    def total_amount(self) -> Decimal:
        return sum((line.total_cost for line in self.items or []), Decimal("0.00"))


def _optional_int(value: Any, field_name: str) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_int(value, field_name, minimum=0)


def _validate_line(raw: Any, index: int) -> NormalizedLine:
    prefix = f"items[{index}]"
    if not isinstance(raw, dict):
        raise ValidationError(f"{prefix} must be an object")

    code = coerce_text(raw.get("code"), f"{prefix}.code", required=True, max_length=64)
    name = coerce_text(raw.get("name"), f"{prefix}.name", required=True, max_length=255)
    quantity = coerce_int(raw.get("quantity"), f"{prefix}.quantity", minimum=0)
    total_cost = coerce_money(raw.get("total_cost"), f"{prefix}.total_cost")

    explicit_price = raw.get("unit_price")
    if explicit_price is None or (isinstance(explicit_price, str) and not explicit_price.strip()):
        unit_price = derive_unit_price(total_cost, quantity)
    else:
        unit_price = coerce_unit_price(explicit_price, f"{prefix}.unit_price")

    product = find_by_code(code)

    return NormalizedLine(
        code=code,
        name=name,
        quantity=quantity,
        total_cost=total_cost,
        unit_price=unit_price,
        product_id=product.id if product else None,
        batch_number=coerce_text(raw.get("batch_number"), f"{prefix}.batch_number", max_length=64),
        package_quantity=_optional_int(raw.get("package_quantity"), f"{prefix}.package_quantity"),
        box_quantity=_optional_int(raw.get("box_quantity"), f"{prefix}.box_quantity"),
    )


def validate_line_items(items: Any) -> list[NormalizedLine]:
    """
    Validate and normalize line items.

    Raises:
        ValidationError: items is not a list, or a line is missing/invalid
            (message names the field and index, e.g. "items[2].quantity")
    """
    if not isinstance(items, list):
        raise ValidationError("items must be a list")
    return [_validate_line(raw, i) for i, raw in enumerate(items)]


def _parse_bill_date(value: Any) -> date | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError("bill_date must be an ISO date (YYYY-MM-DD)")


def validate_purchase_order(payload: Any, *, partial: bool = False) -> ValidatedPurchaseOrder:
    """
    Validate a create (partial=False) or update (partial=True) payload.

    Create fills defaults for status, payment_status and transaction_type,
    and normalizes an unknown transaction_type to the default. Update only
    touches keys present in the payload and rejects unknown transaction types.

    poid is returned stripped but not checked for uniqueness; that needs the
    lifecycle's view of the database.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    result = ValidatedPurchaseOrder()
    out = result.fields

    def present(key: str) -> bool:
        return not partial or key in payload

    if present("poid"):
        out["poid"] = coerce_text(payload.get("poid"), "poid", max_length=64)

    if present("status"):
        if payload.get("status") is None and not partial:
            out["status"] = STATUS_PENDING
        else:
            out["status"] = coerce_choice(payload.get("status"), "status", STATUSES)

    if present("payment_status"):
        if payload.get("payment_status") is None and not partial:
            out["payment_status"] = "unpaid"
        else:
            out["payment_status"] = coerce_choice(payload.get("payment_status"), "payment_status", PAYMENT_STATUSES)

    if present("transaction_type"):
        raw_type = payload.get("transaction_type")
        if partial:
            out["transaction_type"] = coerce_choice(raw_type, "transaction_type", TRANSACTION_TYPES)
        else:
            text = coerce_text(raw_type, "transaction_type")
            out["transaction_type"] = text if text in TRANSACTION_TYPES else DEFAULT_TRANSACTION_TYPE

    for key, max_length in _TEXT_FIELDS.items():
        if present(key):
            out[key] = coerce_text(payload.get(key), key, max_length=max_length)

    if present("bill_date"):
        out["bill_date"] = _parse_bill_date(payload.get("bill_date"))

    if present("selected_account_ids"):
        accounts = payload.get("selected_account_ids")
        if accounts is not None and not isinstance(accounts, list):
            raise ValidationError("selected_account_ids must be a list")
        out["selected_account_ids"] = accounts

    if present("supplier_id") or present("supplier_name"):
        supplier_id = _optional_int(payload.get("supplier_id"), "supplier_id")
        supplier_name = coerce_text(payload.get("supplier_name"), "supplier_name", max_length=255)
        supplier = resolve_supplier(supplier_id=supplier_id, supplier_name=supplier_name)
        out["supplier_id"] = supplier.id if supplier else None
        if "supplier_name" in payload or not partial:
            out["supplier_name"] = supplier_name if supplier_name else (supplier.name if supplier else None)

    if "items" in payload:
        result.items = validate_line_items(payload.get("items"))
    elif not partial:
        result.items = []

    return result
