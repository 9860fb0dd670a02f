"""Duration parsing and formatting for ``interval`` and ``for`` fields."""

from __future__ import annotations

import re
from datetime import timedelta
from decimal import Decimal

_UNIT_NANOS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
    "d": 86400 * 1_000_000_000,
    "w": 7 * 86400 * 1_000_000_000,
}

_NUMBER = r"(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)"
_PART = re.compile(rf"({_NUMBER})(ns|us|µs|ms|s|m|h|d|w)")
_SECONDS = re.compile(_NUMBER)


def parse_duration(value: str | int | float | timedelta | None) -> timedelta:
    """
    Parse a duration such as ``30s``, ``5m``, ``1h30m`` or ``1.5s``.

    Numbers, and strings without a unit such as ``"30"``, are taken as
    seconds. ``None`` and ``""`` mean zero.

    Raises:
        ValueError: If the value is not a valid non-negative duration
    """
    if value is None or value == "":
        return timedelta(0)
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"negative duration {value!r}")
        return timedelta(seconds=value)
    if not isinstance(value, str):
        raise ValueError(f"invalid duration {value!r}")

    text = value.strip()
    if _SECONDS.fullmatch(text):
        return timedelta(microseconds=int(Decimal(text) * 1_000_000))

    pos = 0
    nanos = Decimal(0)
    for match in _PART.finditer(text):
        if match.start() != pos:
            break
        nanos += Decimal(match.group(1)) * _UNIT_NANOS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration {value!r}")

    return timedelta(microseconds=int(nanos / 1000))


def format_duration(td: timedelta) -> str:
    """
    Render a duration the way Go's ``time.Duration.String`` does.

    >>> format_duration(timedelta(minutes=5))
    '5m0s'
    """
    micros = td // timedelta(microseconds=1)
    if micros == 0:
        return "0s"

    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1_000_000:
        if micros < 1_000:
            return f"{sign}{micros}µs"
        return f"{sign}{_trim(Decimal(micros) / 1000)}ms"

    hours, rem = divmod(micros, 3600 * 1_000_000)
    minutes, rem = divmod(rem, 60 * 1_000_000)
    seconds = _trim(Decimal(rem) / 1_000_000)

    out = f"{seconds}s"
    if hours:
        out = f"{hours}h{minutes}m{out}"
    elif minutes:
        out = f"{minutes}m{out}"
    return sign + out


def _trim(value: Decimal) -> str:
    return format(value.normalize(), "f")
