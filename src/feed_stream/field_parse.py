from __future__ import annotations

"""
field_parse.py — разбор отдельных полей записи (длительность, время).

Эти поля — best-effort обогащение: ошибка разбора -> FieldParseError,
которую extractors превращают в "поле отсутствует".
"""

import re
from datetime import datetime, timedelta, timezone

from .errors import FieldParseError


_SHORT_DURATION_RE = re.compile(r"^(\d+):(\d+)$")
_LONG_DURATION_RE = re.compile(r"^(\d+):(\d+):(\d+)$")
_TIMESTAMP_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)


def parse_duration(text: str) -> int:
    """Parse ``mm:ss`` or ``hh:mm:ss`` into seconds.

    >>> parse_duration("4:05")
    245
    >>> parse_duration("1:02:03")
    3723
    """
    s = (text or "").strip()
    m = _SHORT_DURATION_RE.match(s)
    if m:
        minutes, seconds = int(m.group(1)), int(m.group(2))
        return minutes * 60 + seconds
    m = _LONG_DURATION_RE.match(s)
    if m:
        hours, minutes, seconds = int(m.group(1)), int(m.group(2)), int(m.group(3))
        return hours * 3600 + minutes * 60 + seconds
    raise FieldParseError(f"unable to parse duration: {text!r}")


def parse_timestamp(text: str) -> int:
    """RFC 3339 date-time -> UNIX seconds.

    The zone (``Z`` or ``±hh:mm``) is required and the fraction is truncated.
    """
    m = _TIMESTAMP_RE.match((text or "").strip())
    if not m:
        raise FieldParseError(f"unable to parse timestamp: {text!r}")
    year, month, day, hour, minute, second = (int(m.group(i)) for i in range(1, 7))
    zone = m.group(8)
    try:
        dt = datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
        if zone not in ("Z", "z"):
            sign = -1 if zone[0] == "-" else 1
            offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
            if offset >= timedelta(hours=24) or int(zone[4:6]) > 59:
                raise ValueError(f"zone offset out of range: {zone}")
            dt -= sign * offset
    except (ValueError, OverflowError) as e:
        raise FieldParseError(f"unable to parse timestamp: {text!r}") from e
    return int(dt.timestamp())
