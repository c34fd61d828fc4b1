from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pharmapos.money import MAX_AMOUNT_CENTS, to_cents
from pharmapos.time_utils import parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Date, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


class ValidationError(ValueError):
    """400-level input problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - aliases: wire name -> column key (the API speaks camelCase)
    - money_fields: wire names holding decimal amounts, stored as cents
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    aliases: dict[str, str] | None = None
    money_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        # Other types
        raise ValidationError(f"{col.key} must be an integer")

    # Decimals (percentages)
    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{col.key} must be a number")
        if not number.is_finite():
            raise ValidationError(f"{col.key} must be a number")
        return number

    # Dates (accept ISO-8601 date or datetime strings)
    if isinstance(coltype, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                parsed = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            if parsed is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return parsed
        raise ValidationError(f"{col.key} must be a date")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def remap_payload(payload: dict, policy: ModelValidationPolicy) -> dict:
    """
    Translate wire names to column keys and decimal amounts to cents.

    Unknown wire names pass through unchanged so validate_payload can
    reject them by name.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    aliases = policy.aliases or {}
    money_fields = policy.money_fields or set()

    remapped: dict = {}
    for wire_name, raw in payload.items():
        key = aliases.get(wire_name, wire_name)
        if wire_name in money_fields and raw is not None:
            try:
                raw = to_cents(raw)
            except ValueError:
                raise ValidationError(f"{wire_name} must be a number")
        remapped[key] = raw
    return remapped


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    payload = remap_payload(payload, policy)

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if patch.get("quantity") is not None and patch["quantity"] < 0:
        raise ValidationError("quantity must be a non-negative integer")

    for key in ("cost_price_cents", "mrp_cents"):
        amount = patch.get(key)
        if amount is None:
            continue
        if amount < 0:
            raise ValidationError(f"{key} must be >= 0")
        if amount > MAX_AMOUNT_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_CENTS} ({MAX_AMOUNT_CENTS / 100:,.2f})")

    discount = patch.get("discount_percent")
    if discount is not None and not (0 <= discount <= 100):
        raise ValidationError("discount_percent must be between 0 and 100")

    if patch.get("reorder_level") is not None and patch["reorder_level"] < 0:
        raise ValidationError("reorder_level must be >= 0")
