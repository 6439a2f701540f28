"""RFC 3339 timestamp parsing shared by token storage and table output."""

from __future__ import annotations

import re
from datetime import datetime

# fromisoformat() before 3.11 takes neither "Z" nor fractions other than 3 or 6 digits
_FRACTION = re.compile(r"\.(\d+)(?=(?:[zZ]|[+-]\d{2}:?\d{2})?$)")


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC 3339 timestamp with any fractional-second precision.

    The result is naive only when ``value`` carries no offset.

    Raises:
        ValueError: ``value`` is not a timestamp.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)
