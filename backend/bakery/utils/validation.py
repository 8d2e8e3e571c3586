"""Reusable input validation helpers.

All helpers raise BadRequest with a message naming the offending field so
route handlers and services can stay free of scattered try/except blocks.
"""
from __future__ import annotations
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from bakery.utils.errors import BadRequest


def sanitize_string(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ''


def parse_positive_int(value: Any, field_name: str = 'id') -> int:
    """Parse an identifier-like value; bools are rejected."""
    if isinstance(value, bool):
        raise BadRequest(f'{field_name} must be a positive integer')
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise BadRequest(f'{field_name} must be a positive integer')
    if parsed <= 0:
        raise BadRequest(f'{field_name} must be a positive integer')
    return parsed


def parse_quantity(value: Any, field_name: str = 'quantity') -> int:
    if isinstance(value, float):
        if not value.is_integer():
            raise BadRequest(f'{field_name} must be a positive integer')
        value = int(value)
    return parse_positive_int(value, field_name)


def parse_money(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool):
        raise BadRequest(f'{field_name} must be a number')
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise BadRequest(f'{field_name} must be a number')
    if not amount.is_finite():
        raise BadRequest(f'{field_name} must be a number')
    return amount


def parse_iso_date(value: Any, field_name: str) -> date:
    if isinstance(value, date):
        return value
    text = sanitize_string(value)
    try:
        # accept full timestamps, only the calendar day is kept
        return date.fromisoformat(text[:10])
    except ValueError:
        raise BadRequest(f'{field_name} must be an ISO date (YYYY-MM-DD)')


def parse_bool_param(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in ('true', '1', 'yes'):
        return True
    if normalized in ('false', '0', 'no'):
        return False
    raise BadRequest('boolean parameter invalid')


__all__ = [
    'sanitize_string', 'parse_positive_int', 'parse_quantity', 'parse_money', 'parse_iso_date',
    'parse_bool_param',
]
