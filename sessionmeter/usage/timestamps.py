"""Fast parser for the timestamp format Claude Code writes to its JSONL logs.

Every assistant line carries a timestamp like ``2026-02-19T10:00:05.123Z``.
A polling cycle can touch tens of thousands of lines, so instead of going
through ``datetime.fromisoformat`` / ``strptime`` this reads the fixed-width
fields by position and builds the ``datetime`` directly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

_DIGITS = frozenset("0123456789")


def _int_at(value: str, start: int, width: int) -> int:
    chunk = value[start:start + width]
    if len(chunk) != width or not _DIGITS.issuperset(chunk):
        raise ValueError(f"expected {width} digits at offset {start} in {value!r}")
    return int(chunk)


def parse_timestamp(value: str) -> datetime:
    """Parse ``YYYY-MM-DDTHH:MM:SS[.fraction](Z|+HH:MM|-HH:MM|+HHMM)``.

    Returns an aware ``datetime`` normalised to UTC.  Raises ``ValueError``
    for anything outside that shape, including a missing zone suffix.
    """
    if len(value) < 20:
        raise ValueError(f"timestamp too short: {value!r}")
    if value[4] != "-" or value[7] != "-" or value[10] != "T" or value[13] != ":" or value[16] != ":":
        raise ValueError(f"unexpected separators in {value!r}")

    year = _int_at(value, 0, 4)
    month = _int_at(value, 5, 2)
    day = _int_at(value, 8, 2)
    hour = _int_at(value, 11, 2)
    minute = _int_at(value, 14, 2)
    second = _int_at(value, 17, 2)

    pos = 19
    microsecond = 0
    if value[pos] == ".":
        pos += 1
        frac_start = pos
        while pos < len(value) and value[pos] in _DIGITS:
            pos += 1
        fraction = value[frac_start:pos]
        if not fraction:
            raise ValueError(f"empty fractional seconds in {value!r}")
        # Anything past microseconds is truncated.
        microsecond = int(fraction[:6].ljust(6, "0"))

    if pos >= len(value):
        raise ValueError(f"missing zone suffix in {value!r}")

    suffix = value[pos:]
    if suffix == "Z":
        offset = timedelta(0)
    elif suffix[0] in "+-":
        offset = _parse_offset(suffix, value)
    else:
        raise ValueError(f"invalid zone suffix in {value!r}")

    # datetime() validates month/day/hour ranges and raises ValueError itself.
    parsed = datetime(year, month, day, hour, minute, second, microsecond, tzinfo=timezone.utc)
    return parsed - offset


def _parse_offset(suffix: str, value: str) -> timedelta:
    sign = -1 if suffix[0] == "-" else 1
    body = suffix[1:]
    if len(body) == 5 and body[2] == ":":
        hours, minutes = _int_at(body, 0, 2), _int_at(body, 3, 2)
    elif len(body) == 4:
        hours, minutes = _int_at(body, 0, 2), _int_at(body, 2, 2)
    elif len(body) == 2:
        hours, minutes = _int_at(body, 0, 2), 0
    else:
        raise ValueError(f"invalid UTC offset in {value!r}")
    if hours > 23 or minutes > 59:
        raise ValueError(f"UTC offset out of range in {value!r}")
    return sign * timedelta(hours=hours, minutes=minutes)
