"""Display helpers for memory sizes, uptimes and process status."""

from __future__ import annotations

import math
import re

_DURATION_RE = re.compile(r"(\d+)([dhms])")
_DURATION_UNITS = {"d": "day", "h": "hour", "m": "minute", "s": "second"}


def is_running(status: str) -> bool:
    return status not in ("stopped", "crashed")


def format_memory(num_bytes: int | float) -> tuple[float, str]:
    """Scale a byte count to the largest unit below 1024: ``(12.3, "mb")``."""
    units = ["b", "kb", "mb", "gb"]
    size = float(num_bytes)
    index = 0
    while size > 1024 and index < len(units) - 1:
        size /= 1024
        index += 1
    return round(size, 1), units[index]


def bytes_to_size(num_bytes: int | float | None, precision: int = 2) -> str:
    """Compact size label for chart headers, e.g. ``"1.50mb"``."""
    if not num_bytes or (isinstance(num_bytes, float) and math.isnan(num_bytes)):
        return "0b"
    sizes = ["b", "kb", "mb", "gb", "tb"]
    index = min(int(math.floor(math.log(num_bytes) / math.log(1024))), len(sizes) - 1)
    index = max(index, 0)
    return f"{num_bytes / 1024 ** index:.{precision}f}{sizes[index]}"


def start_duration(text: str) -> tuple[int, str] | None:
    """Parse the daemon's ``"3h"`` style uptime into ``(3, "hours")``."""
    match = _DURATION_RE.search(text or "")
    if not match:
        return None
    number = int(match.group(1))
    unit = _DURATION_UNITS[match.group(2)]
    return number, unit + ("s" if number != 1 else "")


def describe_duration(text: str) -> str:
    parsed = start_duration(text)
    if parsed is None:
        return "none"
    number, unit = parsed
    return f"{number} {unit}"
