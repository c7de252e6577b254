# Overview: Error taxonomy and boundary coercion for client-supplied values.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable


# Maximum money amount accepted on any single field: 9,999,999,999.99
# This prevents database overflow issues and nonsensical totals
MAX_MONEY = Decimal("9999999999.99")

MONEY_QUANTUM = Decimal("0.01")
UNIT_PRICE_QUANTUM = Decimal("0.0001")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate poid)."""


class NotFoundError(LookupError):
    """404-level missing entity."""


class AuthorizationError(PermissionError):
    """401-level: an operation needs an acting user and none was supplied."""


class ExhaustedError(RuntimeError):
    """500-level: a bounded retry loop ran out of attempts."""


def quantize_money(value: Decimal) -> Decimal:
    """Round half-up to currency precision."""
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_unit_price(value: Decimal) -> Decimal:
    return value.quantize(UNIT_PRICE_QUANTUM, rounding=ROUND_HALF_UP)


def coerce_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """
    Parse an integer from JSON/form input.

    Strict: rejects floats, decimal strings and scientific notation so that
    "12.5" never silently becomes 12.
    """
    if value is None:
        raise ValidationError(f"{field} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} is required")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer, not a decimal")
        result = int(value)
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return result


def _to_decimal(value: Any, field: str) -> Decimal:
    if value is None:
        raise ValidationError(f"{field} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        # str() first so 0.1 stays 0.1 instead of its binary expansion
        amount = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip().replace(",", "")
        if not stripped:
            raise ValidationError(f"{field} is required")
        try:
            amount = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return amount


def coerce_money(value: Any, field: str, *, minimum: Decimal | None = Decimal("0")) -> Decimal:
    """Parse a money amount into a Decimal rounded to currency precision."""
    amount = _to_decimal(value, field)
    if minimum is not None and amount < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if abs(amount) > MAX_MONEY:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY:,}")
    return quantize_money(amount)


def coerce_unit_price(value: Any, field: str) -> Decimal:
    """Unit prices keep four places so derived totals round-trip."""
    amount = _to_decimal(value, field)
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_MONEY:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY:,}")
    return quantize_unit_price(amount)


def coerce_text(
    value: Any,
    field: str,
    *,
    required: bool = False,
    max_length: int | None = None,
) -> str | None:
    """Strip a text value; blank becomes None unless required."""
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None

    text = str(value).strip()
    if not text:
        if required:
            raise ValidationError(f"{field} cannot be blank")
        return None

    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def coerce_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    allowed = set(choices)
    text = coerce_text(value, field, required=True)
    if text not in allowed:
        raise ValidationError(
            f"Invalid {field} '{text}'. Must be one of: {', '.join(sorted(allowed))}"
        )
    return text
