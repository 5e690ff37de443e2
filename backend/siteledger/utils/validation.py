from __future__ import annotations
"""Reusable validation helpers for request payloads and domain inputs.

All helpers raise InvalidInputError so callers get a consistent 400 mapping.
"""
from datetime import date, datetime
from typing import Any, Iterable, Optional

from siteledger.errors import InvalidInputError


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or raises InvalidInputError.
    """
    if new_status not in allowed:
        raise InvalidInputError(f"{field_name} invalid")
    return new_status


def require_text(value: Any, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInputError(f'{field_name} required')
    return str(value).strip()


def optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_date(value: Any, field_name: str = 'date', required: bool = True) -> Optional[date]:
    if value is None or value == '':
        if required:
            raise InvalidInputError(f'{field_name} required')
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    for fmt in ('%Y-%m-%d', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M:%S.%fZ', '%Y-%m-%dT%H:%M:%SZ'):
        try:
            return datetime.strptime(str(value), fmt).date()
        except ValueError:
            continue
    raise InvalidInputError(f'{field_name} invalid')


def parse_int(value: Any, field_name: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        raise InvalidInputError(f'{field_name} must be int')
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        return int(value.strip())
    raise InvalidInputError(f'{field_name} must be int')

__all__ = ['validate_status', 'require_text', 'optional_text', 'parse_date', 'parse_int']
