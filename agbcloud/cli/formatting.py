"""Display helpers for the image table."""

from __future__ import annotations

from typing import Optional

from agbcloud._timestamps import parse_rfc3339

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"


def truncate(value: str, max_len: int) -> str:
    if len(value) <= max_len:
        return value
    if max_len <= 3:
        return value[:max_len]
    return value[: max_len - 3] + "..."


def format_resources(cpu: Optional[int], memory: Optional[int]) -> str:
    """Render CPU cores and memory GB as ``2/4G``, with ``-`` for unknown parts."""
    if cpu is None and memory is None:
        return "-"
    cpu_text = "-" if cpu is None else str(cpu)
    memory_text = "-" if memory is None else f"{memory}G"
    return f"{cpu_text}/{memory_text}"


def format_timestamp(timestamp: Optional[str]) -> str:
    """Convert an RFC 3339 timestamp to local ``YYYY-MM-DD HH:MM``.

    Values that do not parse are shown truncated rather than dropped.
    """
    if not timestamp:
        return "-"
    try:
        parsed = parse_rfc3339(timestamp)
    except ValueError:
        return truncate(timestamp, 20)
    if parsed.tzinfo is None:
        return truncate(timestamp, 20)
    return parsed.astimezone().strftime(TIMESTAMP_FORMAT)
