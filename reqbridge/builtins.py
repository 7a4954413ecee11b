"""reqbridge builtins - dynamic {{$...}} variables computed at resolution time."""

import datetime
import random
import uuid
from email.utils import format_datetime

BUILTIN_NAMES = frozenset(
    {
        "$timestamp",
        "$datetime",
        "$timestamp_unix",
        "$unix",
        "$date",
        "$time",
        "$localdatetime",
        "$guid",
        "$uuid",
        "$randomint",
    },
)

RANDOM_INT_DEFAULT_MAX = 999999

_OFFSET_UNITS = {
    "y": datetime.timedelta(days=365.25),
    "M": datetime.timedelta(days=30.44),
    "w": datetime.timedelta(weeks=1),
    "d": datetime.timedelta(days=1),
    "h": datetime.timedelta(hours=1),
    "m": datetime.timedelta(minutes=1),
    "s": datetime.timedelta(seconds=1),
    "ms": datetime.timedelta(milliseconds=1),
}


def is_builtin(name: str) -> bool:
    parts = name.strip().split()
    return bool(parts) and parts[0].lower() in BUILTIN_NAMES


def resolve_builtin(name: str, now: datetime.datetime | None = None) -> str | None:
    """Compute a fresh value for a built-in, or None if name is not one.

    Supported (names are case-insensitive):
      $timestamp / $datetime [offset unit]   ISO 8601 UTC, millisecond precision
      $timestamp_unix / $unix [offset unit]  Unix seconds
      $date [offset unit]                    YYYY-MM-DD (UTC)
      $time [offset unit]                    HH:MM:SS (UTC)
      $localdatetime [rfc1123|iso8601] [offset unit]
      $guid / $uuid                          random UUID v4
      $randomint [min max]                   inclusive range, default 0..999999

    Offset units: y M w d h m s ms.
    """
    parts = name.strip().split()
    if not parts:
        return None
    key = parts[0].lower()
    params = parts[1:]

    if key in ("$guid", "$uuid"):
        return str(uuid.uuid4())
    if key == "$randomint":
        return _random_int(params)

    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)

    if key in ("$timestamp", "$datetime"):
        return _iso_utc(_apply_offset(now, params))
    if key in ("$timestamp_unix", "$unix"):
        return str(int(_apply_offset(now, params).timestamp()))
    if key == "$date":
        return _apply_offset(now, params).strftime("%Y-%m-%d")
    if key == "$time":
        return _apply_offset(now, params).strftime("%H:%M:%S")
    if key == "$localdatetime":
        return _local_datetime(now, params)
    return None


def _apply_offset(now: datetime.datetime, params: list[str]) -> datetime.datetime:
    """Shift now by an ``offset unit`` pair; ignored when malformed."""
    if len(params) < 2:
        return now
    try:
        amount = int(params[0])
    except ValueError:
        return now
    unit = _OFFSET_UNITS.get(params[1])
    if unit is None:
        return now
    return now + amount * unit


def _iso_utc(moment: datetime.datetime) -> str:
    moment = moment.astimezone(datetime.timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _local_datetime(now: datetime.datetime, params: list[str]) -> str:
    fmt = "iso8601"
    offset_params = params
    if params and params[0].lower() in ("rfc1123", "iso8601"):
        fmt = params[0].lower()
        offset_params = params[1:]
    moment = _apply_offset(now, offset_params)
    if fmt == "rfc1123":
        return format_datetime(moment.astimezone(datetime.timezone.utc), usegmt=True)
    return moment.astimezone().isoformat(timespec="milliseconds")


def _random_int(params: list[str]) -> str:
    if len(params) >= 2:
        try:
            low, high = int(params[0]), int(params[1])
        except ValueError:
            pass
        else:
            if low > high:
                low, high = high, low
            return str(random.randint(low, high))
    return str(random.randint(0, RANDOM_INT_DEFAULT_MAX))
