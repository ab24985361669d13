"""
Shared Pydantic validators for common data types.
"""

from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field


def validate_money(v: Any) -> Decimal:
    """
    Validate a dollar amount.

    Must be non-negative; rounded to cents.
    """
    if v is None:
        raise ValueError("Amount is required")

    try:
        amount = Decimal(str(v))
    except Exception:
        raise ValueError(f"Invalid amount: {v}")

    if amount < Decimal("0"):
        raise ValueError(f"Amount must not be negative, got {amount}")

    return amount.quantize(Decimal("0.01"))


def validate_money_optional(v: Any) -> Decimal | None:
    if v is None or v == "":
        return None
    return validate_money(v)


def validate_phone(v: Any) -> str | None:
    """
    Validate phone number format.

    Accepts formats like:
    - (555) 123-4567
    - +1 555 123 4567
    - 5551234567
    """
    if v is None or v == "":
        return None

    phone = str(v).strip()

    cleaned = "".join(c for c in phone if c.isdigit() or c == "+")

    if len(cleaned) < 7:
        raise ValueError(f"Phone number too short: {phone}")

    if len(cleaned) > 15:
        raise ValueError(f"Phone number too long: {phone}")

    return phone


def validate_blank_as_none(v: Any) -> Any:
    """Treat empty form strings as missing."""
    if isinstance(v, str) and not v.strip():
        return None
    return v


Money = Annotated[
    Decimal,
    BeforeValidator(validate_money),
    Field(ge=0, description="Amount in dollars"),
]

MoneyOptional = Annotated[
    Decimal | None,
    BeforeValidator(validate_money_optional),
    Field(default=None, ge=0, description="Optional amount in dollars"),
]

PhoneNumber = Annotated[
    str | None,
    BeforeValidator(validate_phone),
    Field(default=None, max_length=50, description="Phone number"),
]

OptionalText = Annotated[
    str | None,
    BeforeValidator(validate_blank_as_none),
    Field(default=None),
]


def reject_explicit_nulls(model: BaseModel, fields: tuple[str, ...]) -> BaseModel:
    """
    Partial updates may omit a required column but not send it as null.

    Call from a mode="after" model validator; only fields the client
    actually sent are checked.
    """
    nulls = [name for name in fields if name in model.model_fields_set and getattr(model, name) is None]
    if nulls:
        raise ValueError(f"{', '.join(nulls)} cannot be null")
    return model
