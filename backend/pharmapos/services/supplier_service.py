# Overview: Supplier lookups used when resolving a purchase order's supplier link.

from __future__ import annotations

from ..extensions import db
from ..models import Supplier


def find_by_id(supplier_id: int | None) -> Supplier | None:
    if supplier_id is None:
        return None
    return db.session.get(Supplier, supplier_id)


def find_by_name(name: str | None) -> Supplier | None:
    """Exact-name match; blank names never match."""
    if not name or not name.strip():
        return None
    return db.session.query(Supplier).filter_by(name=name.strip()).first()


def resolve_supplier(*, supplier_id: int | None, supplier_name: str | None) -> Supplier | None:
    """Prefer an existing id, fall back to the typed name."""
    supplier = find_by_id(supplier_id)
    if supplier is not None:
        return supplier
    return find_by_name(supplier_name)
