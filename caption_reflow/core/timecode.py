"""SRT timestamp codec: ``HH:MM:SS,mmm`` <-> integer milliseconds.

WHY: Timing arithmetic (duration splits) must be done on integers, but
SRT files carry human-readable timestamps. This module is the only place
that knows the textual format.

RULES:
- Exactly two-digit hours/minutes/seconds and three-digit milliseconds
- Minutes and seconds must be below 60
- format_timestamp(parse_timestamp(s)) == s for every well-formed s
"""

from __future__ import annotations

import re

from caption_reflow.core.errors import MalformedTimestamp

TIMESTAMP_PATTERN = r"[0-9]{2}:[0-9]{2}:[0-9]{2},[0-9]{3}"

_TIMESTAMP_RE = re.compile(r"([0-9]{2}):([0-9]{2}):([0-9]{2}),([0-9]{3})")

_MS_PER_SECOND = 1000
_MS_PER_MINUTE = 60 * _MS_PER_SECOND
_MS_PER_HOUR = 60 * _MS_PER_MINUTE

MAX_TIMESTAMP_MS = 100 * _MS_PER_HOUR - 1
"""99:59:59,999 — the largest offset the fixed-width format can express."""


def parse_timestamp(value: str) -> int:
    """Convert an ``HH:MM:SS,mmm`` string to milliseconds.

    Raises:
        MalformedTimestamp: If the string has any other shape, or minutes
            or seconds are out of range.
    """
    match = _TIMESTAMP_RE.fullmatch(value) if isinstance(value, str) else None
    if match is None:
        raise MalformedTimestamp("Invalid timestamp {!r}, expected HH:MM:SS,mmm".format(value))

    hours, minutes, seconds, millis = (int(part) for part in match.groups())
    if minutes >= 60 or seconds >= 60:
        raise MalformedTimestamp("Timestamp out of range: {!r}".format(value))

    return hours * _MS_PER_HOUR + minutes * _MS_PER_MINUTE + seconds * _MS_PER_SECOND + millis


def format_timestamp(ms: int) -> str:
    """Render a millisecond offset as ``HH:MM:SS,mmm``.

    Raises:
        ValueError: If ``ms`` is negative or does not fit in two hour digits.
    """
    if ms < 0:
        raise ValueError("Timestamp offset must be non-negative, got {}".format(ms))
    if ms > MAX_TIMESTAMP_MS:
        raise ValueError("Timestamp offset {} exceeds 99:59:59,999".format(ms))

    hours, rest = divmod(ms, _MS_PER_HOUR)
    minutes, rest = divmod(rest, _MS_PER_MINUTE)
    seconds, millis = divmod(rest, _MS_PER_SECOND)
    return "{:02d}:{:02d}:{:02d},{:03d}".format(hours, minutes, seconds, millis)
