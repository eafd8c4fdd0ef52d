"""Environment helper utilities."""

from __future__ import annotations

import os
from typing import Optional


def get_env(name: str, *aliases: str, default: Optional[str] = None) -> Optional[str]:
    """Return the first non-blank value among `name` and its aliases."""
    for key in (name, *aliases):
        raw = os.getenv(key)
        if raw is None:
            continue
        value = raw.strip()
        if value:
            return value
    return default


def get_int_env(name: str, *, default: int) -> int:
    """Read an integer flag; blank or unset falls back to `default`."""
    raw = get_env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
