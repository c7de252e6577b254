# Overview: FIFO cost matching over the inventory ledger; read-only.

"""
FIFO Cost Matcher

Prices a requested quantity of a product by consuming its inventory
batches oldest first.

RUNNING BALANCE:
- Batches are replayed in creation order (InventoryBatch.id).
- A positive batch opens a lot. If earlier consumption left a deficit
  (oversold stock), the new lot pays that deficit down first.
- A negative batch consumes the oldest open lots; anything it cannot cover
  becomes a carried deficit.
- The request then consumes whatever lots remain, oldest first.
- Lots are priced at total_amount / quantity without intermediate rounding.

Shortfall never raises. Negative inventory is permitted; callers show the
shortfall as a warning.

Total cost is rounded to currency precision once, at the end.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from ..models import InventoryBatch
from ..validation import NotFoundError, coerce_int, quantize_money, quantize_unit_price
from .inventory_service import list_for_product
from .products_service import find_by_id


@dataclass
class CostPart:
    batch_id: int
    source_number: str | None
    quantity: int
    unit_price: Decimal

    @property
    def cost(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "source_number": self.source_number,
            "quantity": self.quantity,
            "unit_price": str(quantize_unit_price(self.unit_price)),
            "cost": str(quantize_money(self.cost)),
        }


@dataclass
class FIFOMatchResult:
    product_id: int | None
    requested_quantity: int
    cost_parts: list[CostPart] = field(default_factory=list)
    matched_quantity: int = 0
    total_cost: Decimal = Decimal("0.00")
    shortfall: int = 0
    has_negative_inventory: bool = False
    available_quantity: int = 0

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "requested_quantity": self.requested_quantity,
            "cost_parts": [part.to_dict() for part in self.cost_parts],
            "matched_quantity": self.matched_quantity,
            "total_cost": str(self.total_cost),
            "shortfall": self.shortfall,
            "has_negative_inventory": self.has_negative_inventory,
            "available_quantity": self.available_quantity,
        }


@dataclass
class _Lot:
    batch_id: int
    source_number: str | None
    remaining: int
    unit_price: Decimal


def _unit_price(batch: InventoryBatch) -> Decimal:
    # Exact total / quantity; the stored 4-place unit_price is for display only
    if not batch.quantity or batch.total_amount is None:
        return Decimal("0")
    return abs(Decimal(batch.total_amount)) / abs(batch.quantity)


def _open_lots(batches: Iterable[InventoryBatch]) -> tuple[list[_Lot], int]:
    """Replay the ledger; returns (open lots oldest first, carried deficit)."""
    lots: list[_Lot] = []
    deficit = 0

    for batch in batches:
        qty = batch.quantity or 0
        if qty > 0:
            covered = min(deficit, qty)
            deficit -= covered
            if qty - covered > 0:
                lots.append(_Lot(batch.id, batch.source_number, qty - covered, _unit_price(batch)))
        elif qty < 0:
            need = -qty
            while need and lots:
                lot = lots[0]
                take = min(lot.remaining, need)
                lot.remaining -= take
                need -= take
                if lot.remaining == 0:
                    lots.pop(0)
            deficit += need

    return lots, deficit


def match_batches(
    batches: Iterable[InventoryBatch],
    requested_quantity: int,
    *,
    product_id: int | None = None,
) -> FIFOMatchResult:
    """Pure FIFO walk over batches already in creation order."""
    lots, deficit = _open_lots(batches)
    available = sum(lot.remaining for lot in lots) - deficit

    result = FIFOMatchResult(
        product_id=product_id,
        requested_quantity=requested_quantity,
        available_quantity=available,
    )
    if requested_quantity <= 0:
        return result

    need = requested_quantity
    running = Decimal("0")
    for lot in lots:
        if not need:
            break
        take = min(lot.remaining, need)
        part = CostPart(lot.batch_id, lot.source_number, take, lot.unit_price)
        result.cost_parts.append(part)
        running += part.cost
        need -= take

    result.matched_quantity = requested_quantity - need
    result.shortfall = need
    result.has_negative_inventory = need > 0
    result.total_cost = quantize_money(running)
    return result


def match(product_id: int, requested_quantity: int) -> FIFOMatchResult:
    return match_batches(list_for_product(product_id), requested_quantity, product_id=product_id)


def simulate(product_id, quantity) -> dict:
    """
    Preview the FIFO cost of taking quantity units of a product now.

    Raises:
        ValidationError: quantity missing, negative or not an integer
        NotFoundError: Unknown product
    """
    qty = coerce_int(quantity, "quantity", minimum=0)
    pid = coerce_int(product_id, "product_id")

    product = find_by_id(pid)
    if product is None:
        raise NotFoundError(f"Product {pid} not found")

    payload = match(product.id, qty).to_dict()
    payload["product_code"] = product.code
    payload["product_name"] = product.name
    return payload
