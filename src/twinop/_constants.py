"""Internal constants shared across the library."""

import re
from datetime import timedelta

USER_AGENT = "twin-operator"

#: Finalizer token kept on a device while twin-side state may still exist.
FINALIZER = "twin"

#: CloudEvent type emitted by the registry for device changes.
REGISTRY_EVENT_TYPE = "io.drogue.registry.v1"

#: CloudEvent extension attribute carrying the affected device name.
DEVICE_EXTENSION = "device"

GROUP_ANNOTATION_KEY = "io.drogue/group"
GROUP_ANNOTATION_VALUE = "btmesh/eclipsecon2022"

SENSOR_SUFFIX = "/sensor"

DEFAULT_CA_PATH = "/etc/ssl/certs/ca-bundle.crt"
DEFAULT_INTERVAL_SECONDS = 60.0


def sensor_thing_name(device: str) -> str:
    """Name of the sensor facet Thing owned by the operator for *device*."""
    return f"{device}{SENSOR_SUFFIX}"


# ------------------------------------------------------------------
# Humantime durations  ("30s", "1m", "1h 30m", "1day", "250ms")
# ------------------------------------------------------------------

_DAY = 86_400.0

# Units are case-sensitive: "M" is months, "m" is minutes.
_UNIT_SECONDS: dict[str, float] = {
    **dict.fromkeys(("nanos", "nsec", "ns"), 1e-9),
    **dict.fromkeys(("usec", "us"), 1e-6),
    **dict.fromkeys(("millis", "msec", "ms"), 1e-3),
    **dict.fromkeys(("seconds", "second", "secs", "sec", "s"), 1.0),
    **dict.fromkeys(("minutes", "minute", "mins", "min", "m"), 60.0),
    **dict.fromkeys(("hours", "hour", "hrs", "hr", "h"), 3_600.0),
    **dict.fromkeys(("days", "day", "d"), _DAY),
    **dict.fromkeys(("weeks", "week", "w"), 7 * _DAY),
    **dict.fromkeys(("months", "month", "M"), 30.44 * _DAY),
    **dict.fromkeys(("years", "year", "y"), 365.25 * _DAY),
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)\s*([A-Za-z]+)")

# Largest unit first, used when formatting; days are written the way the
# twin service writes them ("1day", "2days").
_FORMAT_UNITS: tuple[tuple[str, str, int], ...] = (
    ("day", "days", 86_400_000),
    ("h", "h", 3_600_000),
    ("m", "m", 60_000),
    ("s", "s", 1_000),
    ("ms", "ms", 1),
)


def parse_duration(text: str) -> timedelta:
    """Parse a humantime duration string into a :class:`timedelta`.

    Raises :class:`ValueError` for empty input, unknown units, or text
    that is not fully consumed by ``<number><unit>`` parts.
    """
    value = text.strip()
    if not value:
        raise ValueError("duration is empty")

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(value):
        if value[pos : match.start()].strip():
            raise ValueError(f"invalid duration: {text!r}")
        number, unit = match.groups()
        factor = _UNIT_SECONDS.get(unit)
        if factor is None:
            raise ValueError(f"unknown duration unit {unit!r} in {text!r}")
        total += float(number) * factor
        pos = match.end()

    if pos == 0 or value[pos:].strip():
        raise ValueError(f"invalid duration: {text!r}")
    return timedelta(seconds=total)


def format_duration(value: timedelta) -> str:
    """Format a :class:`timedelta` as a humantime string (millisecond precision)."""
    remaining = int(round(value.total_seconds() * 1000))
    if remaining <= 0:
        return "0s"
    parts: list[str] = []
    for singular, plural, size in _FORMAT_UNITS:
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count}{singular if count == 1 else plural}")
    return " ".join(parts)
