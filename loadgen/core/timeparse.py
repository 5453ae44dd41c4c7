from __future__ import annotations

import re

_PART_RE = re.compile(r"(?P<value>\d+(?:\.\d+)?)(?P<unit>ms|s|m|h)")

_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration_to_seconds(raw: str) -> float:
    """Parse durations like '500ms', '10s', '5m', '12h' or '1h30m' into seconds."""
    text = raw.strip()
    if not text:
        raise ValueError("duration must not be empty")

    total = 0.0
    pos = 0
    for match in _PART_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group("value")) * _UNIT_SECONDS[match.group("unit")]
        pos = match.end()

    if pos != len(text) or pos == 0:
        raise ValueError("duration must match <number><unit>[<number><unit>...] where unit is ms|s|m|h")

    return total
