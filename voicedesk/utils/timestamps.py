"""ISO-8601 helpers for timestamps sent to the provider."""

import re

_MILLIS_UTC = re.compile(r"\.\d{3}Z$")
_FRACTION = re.compile(r"\.(\d+)(?=(?:[+-]\d{2}:\d{2}|$))")


def normalize_scheduled_at(value: str) -> str:
    """Rewrite a browser timestamp into the form the batch scheduler accepts.

    ``2025-01-01T10:00:00.000Z`` becomes ``2025-01-01T10:00:00+00:00``; other
    fractional seconds are dropped (``...10:00:00.5+05:30`` -> ``...10:00:00+05:30``).
    """
    value = value.strip()
    if value.endswith("Z"):
        return _MILLIS_UTC.sub("+00:00", value)
    return _FRACTION.sub("", value, count=1)
