"""Helpers for safe debug logging.

Backend RPC calls carry the anon API key in their headers and geocoder
responses can be large. Everything traced at DEBUG level goes through
:func:`redact_for_log` first.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SENSITIVE_KEYS: frozenset[str] = frozenset({"apikey", "api_key", "authorization", "cookie"})
_MAX_ITEMS = 20


def redact_for_log(value: Any, *, max_string: int = 256) -> Any:
    """Return a copy of *value* with secrets masked and long values shortened."""
    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"

    if isinstance(value, Mapping):
        return {
            str(key): "<redacted>" if str(key).lower() in _SENSITIVE_KEYS else redact_for_log(item, max_string=max_string)
            for key, item in value.items()
        }

    if isinstance(value, (list, tuple)):
        head = [redact_for_log(item, max_string=max_string) for item in value[:_MAX_ITEMS]]
        if len(value) > _MAX_ITEMS:
            head.append(f"<{len(value) - _MAX_ITEMS} more>")
        return head

    return value
