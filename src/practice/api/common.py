"""
Common utilities for practice API routes.

Shared response envelopes and parsing helpers for path/query values.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Type, TypeVar
from uuid import UUID

from fastapi import HTTPException

E = TypeVar("E", bound=Enum)


# =============================================================================
# RESPONSE FORMATTING
# =============================================================================

def format_success_response(data: Dict[str, Any]) -> Dict[str, Any]:
    """Format a standard success response."""
    return {
        "success": True,
        "timestamp": datetime.utcnow().isoformat(),
        **data,
    }


def dicts(items: Iterable[Any]) -> list:
    """``to_dict()`` every item."""
    return [item.to_dict() for item in items]


# =============================================================================
# PARSING
# =============================================================================

def parse_uuid(value: Any, entity: str = "record") -> UUID:
    """UUID from a path or body value, 400 when malformed."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {entity} id: {value}")


def parse_optional_uuid(value: Optional[Any], entity: str = "record") -> Optional[UUID]:
    if value in (None, ""):
        return None
    return parse_uuid(value, entity)


def parse_enum(enum_cls: Type[E], value: Any, field: str) -> E:
    """
    Enum member from a string; values are matched case-insensitively.

    Raises:
        HTTPException: 400 listing the valid values
    """
    if isinstance(value, enum_cls):
        return value
    raw = str(value).strip()
    for member in enum_cls:
        if raw.upper() in (member.value.upper(), member.name):
            return member
    valid = ", ".join(m.value for m in enum_cls)
    raise HTTPException(
        status_code=400,
        detail=f"Invalid {field}: {value}. Must be one of: {valid}",
    )


def parse_optional_enum(enum_cls: Type[E], value: Optional[Any], field: str) -> Optional[E]:
    if value in (None, ""):
        return None
    return parse_enum(enum_cls, value, field)


def require(entity: Optional[Any], name: str) -> Any:
    """Raise a 404 when a service returned nothing."""
    if entity is None or entity is False:
        raise HTTPException(status_code=404, detail=f"{name} not found")
    return entity
