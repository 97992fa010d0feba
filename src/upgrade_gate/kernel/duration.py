"""Parse duration flags such as ``30s``, ``5m`` or ``1h30m``."""

import re
from datetime import timedelta

from upgrade_gate.errors import InvalidDurationError

_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")

_UNIT_SECONDS = {
    "h": 3600.0,
    "m": 60.0,
    "s": 1.0,
    "ms": 0.001,
}


def parse_duration(raw: str) -> timedelta:
    """Parse a sequence of ``<number><unit>`` parts (units h, m, s, ms).

    A bare ``0`` is accepted as zero.

    Raises:
        InvalidDurationError: on empty, negative or malformed input.
    """
    text = (raw or "").strip()
    if text == "0":
        return timedelta(0)
    if not text:
        raise InvalidDurationError("empty duration")

    seconds = 0.0
    pos = 0
    for match in _PART_RE.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise InvalidDurationError(f"invalid duration {raw!r} (expected e.g. 30s, 5m, 1h30m)")
    return timedelta(seconds=seconds)
