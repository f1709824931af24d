from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError


CENT = Decimal("0.01")

# Maximum price: 9,999,999,999.99, the widest value Numeric(12, 2) holds
MAX_PRICE = Decimal("9999999999.99")

# Largest value an Integer (int4) column holds; ids, quantities and stock totals
MAX_QUANTITY = 2_147_483_647


def to_money(value: Any) -> Decimal:
    """Normalize a numeric value (Decimal, int, float, str, None) to a 2dp Decimal."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(to_money(value))


def _parse_int(value: Any, field: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", {"field": field})
        if "e" in stripped.lower():
            raise ValidationError(
                f"{field} must be a plain integer (scientific notation not allowed)",
                {"field": field},
            )
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", {"field": field})
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", {"field": field})
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", {"field": field})
    raise ValidationError(f"{field} must be an integer", {"field": field})


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion bounded to the Integer column range.

    Rejects bools, floats, decimals and scientific notation so "2.5" or
    True never silently become a quantity.
    """
    number = _parse_int(value, field)
    if abs(number) > MAX_QUANTITY:
        raise ValidationError(
            f"{field} cannot exceed {MAX_QUANTITY}",
            {"field": field, "max": MAX_QUANTITY},
        )
    return number


def require_positive_quantity(value: Any, field: str = "quantity") -> int:
    qty = coerce_int(value, field)
    if qty <= 0:
        raise ValidationError(f"{field} must be > 0", {"field": field, "value": qty})
    return qty


def coerce_decimal(value: Any, field: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", {"field": field})
    try:
        dec = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", {"field": field})
    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number", {"field": field})
    return dec


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("cost_price", "sale_price"):
        if field in patch:
            price = to_money(coerce_decimal(patch[field], field))
            if price < 0:
                raise ValidationError(f"{field} must be >= 0", {"field": field})
            if price > MAX_PRICE:
                raise ValidationError(f"{field} cannot exceed {MAX_PRICE}", {"field": field})
            patch[field] = price

    if "tax_percentage" in patch:
        pct = to_money(coerce_decimal(patch["tax_percentage"], "tax_percentage"))
        if pct < 0 or pct > 100:
            raise ValidationError("tax_percentage must be between 0 and 100", {"field": "tax_percentage"})
        patch["tax_percentage"] = pct

    if "sku" in patch:
        sku = str(patch["sku"] or "").strip()
        if not sku:
            raise ValidationError("sku cannot be blank", {"field": "sku"})
        if len(sku) > 64:
            raise ValidationError("sku exceeds max length 64", {"field": "sku"})
        patch["sku"] = sku

    if "name" in patch:
        name = str(patch["name"] or "").strip()
        if not name:
            raise ValidationError("name cannot be blank", {"field": "name"})
        if len(name) > 255:
            raise ValidationError("name exceeds max length 255", {"field": "name"})
        patch["name"] = name

    if "is_active" in patch and not isinstance(patch["is_active"], bool):
        raise ValidationError("is_active must be a boolean", {"field": "is_active"})


def parse_order_lines(lines: Any) -> list[tuple[int, int]]:
    """Validate a raw list of {product_id, quantity} dicts into (product_id, qty) pairs."""
    if not isinstance(lines, (list, tuple)) or not lines:
        raise ValidationError("Order must contain at least one line")

    parsed: list[tuple[int, int]] = []
    for index, line in enumerate(lines):
        if isinstance(line, dict):
            product_id = line.get("product_id")
            quantity = line.get("quantity")
        elif isinstance(line, (list, tuple)) and len(line) == 2:
            product_id, quantity = line
        else:
            raise ValidationError(f"Line {index + 1} must have product_id and quantity", {"line": index + 1})

        if product_id is None or quantity is None:
            raise ValidationError(f"Line {index + 1} must have product_id and quantity", {"line": index + 1})

        parsed.append((
            coerce_int(product_id, "product_id"),
            require_positive_quantity(quantity, "quantity"),
        ))
    return parsed
