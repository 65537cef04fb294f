"""Dot-path lookup into loosely typed contact records.

``resolve_path(record, "cashback_info.current_balance")`` walks nested
mappings one key at a time. Any missing key, or a non-mapping value in the
middle of the path, yields ``MISSING``. ``None`` is a real value and is
returned as such.
"""

from collections.abc import Mapping
from typing import Any


class _Missing:
    """Sentinel for an attribute that is not present on the record."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def resolve_path(record: Mapping[str, Any], path: str) -> Any:
    """Return the value at ``path`` or ``MISSING``."""
    current: Any = record
    for key in path.split("."):
        if not isinstance(current, Mapping):
            return MISSING
        current = current.get(key, MISSING)
    return current


def is_missing(value: Any) -> bool:
    return value is MISSING
