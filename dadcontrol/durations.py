"""Duration parsing and formatting.

Durations in configuration and state files are written either as an integer
count of nanoseconds or as a unit-suffixed string such as "15m", "1h30m" or
"2.5s". Formatting produces the same compact form ("15m0s", "1h30m0s").
"""

import re
from datetime import timedelta

_UNIT_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_COMPONENT_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(value: "str | int | float") -> timedelta:
    """Parse a duration from nanoseconds or a unit-suffixed string.

    Args:
        value: Integer/float nanoseconds, or a string like "15m" or "1h30m"

    Returns:
        The parsed duration

    Raises:
        ValueError: If the value is not a valid duration
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return _from_nanoseconds(value, value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid duration: {value!r}")

    text = value.strip()
    sign = 1
    if text[:1] in ("-", "+"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"Invalid duration: {value!r}")

    total_ns = 0.0
    pos = 0
    while pos < len(text):
        match = _COMPONENT_RE.match(text, pos)
        if not match:
            raise ValueError(f"Invalid duration: {value!r}")
        number, unit = match.groups()
        total_ns += float(number) * _UNIT_NANOSECONDS[unit]
        pos = match.end()

    return _from_nanoseconds(sign * total_ns, value)


def _from_nanoseconds(nanoseconds: "int | float", value: "str | int | float") -> timedelta:
    try:
        return timedelta(microseconds=nanoseconds / 1_000)
    except OverflowError as e:
        raise ValueError(f"Invalid duration: {value!r}") from e


def format_duration(duration: timedelta) -> str:
    """Format a duration as a compact unit-suffixed string.

    Examples: "0s", "500ms", "45s", "15m0s", "1h30m0s".
    """
    total_us = (duration.days * 86_400 + duration.seconds) * 1_000_000 + duration.microseconds
    if total_us == 0:
        return "0s"

    sign = "-" if total_us < 0 else ""
    total_us = abs(total_us)

    if total_us < 1_000:
        return f"{sign}{total_us}µs"
    if total_us < 1_000_000:
        return f"{sign}{_trim(total_us / 1_000)}ms"

    hours, rest = divmod(total_us, 3600 * 1_000_000)
    minutes, rest = divmod(rest, 60 * 1_000_000)
    seconds = _trim(rest / 1_000_000)

    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


def _trim(value: float) -> str:
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text or "0"
