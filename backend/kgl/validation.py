from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import request

from kgl import derived
from kgl.errors import ValidationError
from kgl.time_utils import parse_iso_datetime


# Largest money value a Numeric(14, 2) column can hold
MAX_MONEY = Decimal("999999999999.99")
# Largest quantity a Numeric(12, 3) column can hold
MAX_QUANTITY = Decimal("999999999.999")


def require_text(value, field: str, *, max_length: int | None = None) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", {"field": field})
    text = str(value).strip()
    if max_length is not None and len(text) > max_length:
        raise ValidationError(
            f"{field} cannot exceed {max_length} characters", {"field": field}
        )
    return text


def optional_text(value, field: str, *, max_length: int | None = None) -> str | None:
    if value is None or not str(value).strip():
        return None
    return require_text(value, field, max_length=max_length)


def parse_decimal(
    value,
    field: str,
    *,
    minimum: Decimal | int | None = None,
    maximum: Decimal | int | None = None,
    exclusive_minimum: bool = False,
) -> Decimal:
    """
    Strict decimal parsing for money/quantity inputs.

    Accepts ints, Decimals, floats and numeric strings. Booleans, blanks,
    NaN and infinities are rejected.
    """
    try:
        result = derived.to_decimal(value, field=field)
    except ValueError as e:
        raise ValidationError(str(e), {"field": field})

    if minimum is not None:
        minimum = Decimal(minimum)
        if exclusive_minimum and result <= minimum:
            raise ValidationError(f"{field} must be greater than {minimum}", {"field": field})
        if not exclusive_minimum and result < minimum:
            raise ValidationError(f"{field} cannot be less than {minimum}", {"field": field})
    if maximum is not None and result > Decimal(maximum):
        raise ValidationError(f"{field} cannot exceed {maximum}", {"field": field})
    return result


def parse_quantity(value, field: str = "quantity") -> Decimal:
    """Strictly positive quantity, three decimal places."""
    result = parse_decimal(value, field, minimum=0, maximum=MAX_QUANTITY, exclusive_minimum=True)
    result = derived.quantity(result)
    if result <= 0:
        raise ValidationError(f"{field} must be greater than 0", {"field": field})
    return result


def parse_money(value, field: str, *, allow_zero: bool = True) -> Decimal:
    result = parse_decimal(
        value,
        field,
        minimum=0,
        maximum=MAX_MONEY,
        exclusive_minimum=not allow_zero,
    )
    return derived.money(result)


def parse_percent(value, field: str) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return parse_decimal(value, field, minimum=0, maximum=100)


def parse_choice(value, field: str, choices, *, default: str | None = None) -> str:
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError(f"{field} is required", {"field": field})
    value = str(value).strip().lower()
    if value not in choices:
        raise ValidationError(
            f"{field} must be one of: {', '.join(choices)}",
            {"field": field, "allowed": list(choices)},
        )
    return value


def parse_datetime(value, field: str, *, required: bool = False) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required", {"field": field})
        return None
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date or datetime", {"field": field})


def parse_int(value, field: str, *, minimum: int | None = None, maximum: int | None = None, default: int | None = None) -> int | None:
    # Integers - reject floats, booleans and decimal strings
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", {"field": field})
    if isinstance(value, int):
        result = value
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        result = int(value.strip())
    else:
        raise ValidationError(f"{field} must be an integer", {"field": field})

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} cannot be less than {minimum}", {"field": field})
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}", {"field": field})
    return result


def clamp_pagination(limit, offset, *, default_limit: int = 100, max_limit: int = 500) -> tuple[int, int]:
    limit = parse_int(limit, "limit", default=default_limit)
    offset = parse_int(offset, "offset", default=0)
    # Clamp limit
    if limit < 1:
        limit = 1
    if limit > max_limit:
        limit = max_limit
    if offset < 0:
        offset = 0
    return limit, offset


def json_body() -> dict:
    """Request JSON as a dict; anything else is a validation error."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
