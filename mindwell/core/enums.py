"""Helpers for str-Enum columns, which some drivers hand back as plain strings."""
from typing import Any, Optional


def enum_value(v: Any) -> Optional[str]:
    if v is None:
        return None
    return v.value if hasattr(v, "value") else str(v)
