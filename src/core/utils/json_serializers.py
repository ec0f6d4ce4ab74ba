"""``default=`` hook for json.dumps on log records."""

from datetime import date
from enum import Enum
from pathlib import PurePath
from typing import Any


def json_serializer(obj: Any) -> Any:
    """Dates as ISO 8601, enums by value, bytes as lossy UTF-8, anything else via str()."""
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")
    if isinstance(obj, PurePath):
        return str(obj)
    return str(obj)


__all__ = ["json_serializer"]
