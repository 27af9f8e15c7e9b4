"""
Utility helpers shared across backend modules.
"""
from __future__ import annotations

import os
from typing import Any

BOOL_TRUE_VALUES = frozenset({"1", "true", "yes", "on", "enabled"})
BOOL_FALSE_VALUES = frozenset({"0", "false", "no", "off", "disabled"})


def parse_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in BOOL_TRUE_VALUES:
            return True
        if normalized in BOOL_FALSE_VALUES:
            return False
    return default


def env_bool(name: str, default: bool) -> bool:
    if not name:
        return default
    raw = os.environ.get(name)
    if raw is None:
        return default
    return parse_bool(raw, default)


def split_csv(value: Any) -> list[str]:
    """Split a comma separated query/env value into trimmed, non-empty parts."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        parts = [str(v) for v in value]
    else:
        parts = str(value).split(",")
    return [p.strip() for p in parts if p and p.strip()]
