from __future__ import annotations

import re
import time
from datetime import datetime, timedelta, timezone

# unit -> seconds; longer unit names must come first in the alternation
_DURATION_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
# int64 nanoseconds, roughly 292 years
_MAX_DURATION_S = (2**63 - 1) / 1e9
_DURATION_SEGMENT = re.compile(r"(\d*(?:\.\d*)?)(ns|us|µs|μs|ms|s|m|h)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat().replace("+00:00", "Z")


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


def format_duration_ms(ms: int) -> str:
    """Return a short human-readable duration string."""
    if ms < 1000:
        return f"{ms} ms"
    return f"{ms / 1000:.2f} s"


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration such as ``300ms``, ``-1.5h`` or ``2h45m``.

    A duration is an optionally signed sequence of decimal numbers, each with
    an optional fraction and a unit suffix. Valid units are ``ns``, ``us``
    (or ``µs``), ``ms``, ``s``, ``m`` and ``h``. A bare ``0`` is accepted.

    Raises ValueError for anything else.
    """
    s = text
    orig = s
    sign = 1.0
    if s[:1] in ("+", "-"):
        sign = -1.0 if s[0] == "-" else 1.0
        s = s[1:]

    if s == "0":
        return timedelta(0)
    if not s:
        raise ValueError(f"invalid duration {orig!r}")

    total = 0.0
    pos = 0
    while pos < len(s):
        m = _DURATION_SEGMENT.match(s, pos)
        if m is None:
            raise ValueError(f"invalid duration {orig!r}")
        number, unit = m.group(1), m.group(2)
        if not any(ch.isdigit() for ch in number):
            raise ValueError(f"invalid duration {orig!r}")
        total += float(number) * _DURATION_UNITS[unit]
        pos = m.end()

    if total > _MAX_DURATION_S:
        raise ValueError(f"invalid duration {orig!r}: out of range")
    return timedelta(seconds=sign * total)
