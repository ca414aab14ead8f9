"""Reusable validation helpers for request payloads.

Focuses on coercing raw JSON / query values into the domain enums and types so
services receive typed values and every rejection carries the offending field.
"""
from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Type, TypeVar
from maintdesk.errors import InvalidInput

E = TypeVar('E', bound=Enum)


def parse_enum(value: Any, enum_cls: Type[E], field_name: str) -> E:
    """Return enum_cls(value) or raise InvalidInput listing the accepted values."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper()) if value is not None else enum_cls(value)
    except ValueError:
        allowed = ', '.join(m.value for m in enum_cls)
        raise InvalidInput(f"{field_name} invalid (expected one of: {allowed})")


def require_fields(data: dict, fields: Iterable[str]):
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise InvalidInput(f"{', '.join(missing)} required")


def require_text(value: Any, field_name: str, max_length: Optional[int] = None) -> str:
    """Return value stripped; anything but a non-blank string is rejected."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInput(f"{field_name} required")
    if not isinstance(value, str):
        raise InvalidInput(f"{field_name} must be a string")
    text = value.strip()
    if max_length is not None and len(text) > max_length:
        raise InvalidInput(f"{field_name} must be at most {max_length} characters")
    return text


def optional_text(value: Any, field_name: str, max_length: Optional[int] = None) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return require_text(value, field_name, max_length)


TRUE_TOKENS = ('1', 'true', 'yes', 'on')
FALSE_TOKENS = ('0', 'false', 'no', 'off')


def parse_bool(value: Any, field_name: str, default: Optional[bool] = None) -> Optional[bool]:
    """JSON booleans, or the query-string tokens 1/0, true/false, yes/no, on/off."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (str, int)):
        token = str(value).strip().lower()
        if token in TRUE_TOKENS:
            return True
        if token in FALSE_TOKENS:
            return False
    raise InvalidInput(f"{field_name} must be a boolean")


def parse_datetime(value: Any, field_name: str) -> Optional[datetime]:
    """Parse an ISO-8601 string (trailing Z accepted); naive values are taken as UTC."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            raise InvalidInput(f"{field_name} must be an ISO-8601 date")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_optional_int(value: Any, field_name: str) -> Optional[int]:
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field_name} must be an integer")


def parse_optional_float(value: Any, field_name: str) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field_name} must be a number")
    if number < 0:
        raise InvalidInput(f"{field_name} must not be negative")
    return number


__all__ = ['parse_enum', 'require_fields', 'require_text', 'optional_text', 'parse_bool', 'parse_datetime', 'parse_optional_int', 'parse_optional_float']
