"""Time coercion helpers: everything the client sends is epoch milliseconds."""

from datetime import datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from io_connect.errors import InvalidRequestError, InvalidTimeUnitError

TimeInput = Union[int, float, str, datetime, None]

# Anything with this many digits or fewer is a seconds timestamp.
SECONDS_MAX_DIGITS = 10


def resolve_timezone(tz: Optional[str]) -> timezone | ZoneInfo:
    if not tz or tz.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(tz)
    except ZoneInfoNotFoundError as e:
        raise InvalidRequestError(f"Unknown timezone: {tz}") from e


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def to_epoch_ms(value: TimeInput = None, tz: Optional[str] = "UTC") -> int:
    """
    Convert a time value to milliseconds since the epoch.

    Args:
        value: Epoch milliseconds, ISO 8601 string, datetime, or None for "now"
        tz: Timezone applied to naive strings and datetimes

    Returns:
        Epoch milliseconds

    Raises:
        InvalidTimeUnitError: If a numeric value looks like seconds (<= 10 digits)
        InvalidRequestError: If the value cannot be parsed

    Example:
        >>> to_epoch_ms("2023-06-14T12:00:00Z")
        1686744000000
    """
    if value is None:
        return now_ms()

    if isinstance(value, bool):
        raise InvalidRequestError("Time must be a string, number, datetime, or None")

    if isinstance(value, (int, float)):
        if value <= 0 or len(str(int(value))) <= SECONDS_MAX_DIGITS:
            raise InvalidTimeUnitError(
                "Unix timestamp must be a positive integer in milliseconds, not seconds."
            )
        return int(value)

    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as e:
            raise InvalidRequestError(f"Invalid date string: {value}") from e
    elif isinstance(value, datetime):
        dt = value
    else:
        raise InvalidRequestError("Time must be a string, number, datetime, or None")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=resolve_timezone(tz))
    return int(dt.timestamp() * 1000)


def ms_to_iso(ms: int, tz: Optional[str] = "UTC") -> str:
    """
    Render epoch milliseconds as ISO 8601.

    UTC output ends with ``Z``; other zones keep their offset.
    """
    dt = datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)
    zone = resolve_timezone(tz)
    if zone is timezone.utc:
        return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return dt.astimezone(zone).isoformat(timespec="milliseconds")


def timestamp_to_ms(value: Union[int, float, str]) -> int:
    """
    Coerce a server-side timestamp (epoch ms or ISO string) to epoch ms.

    Unlike ``to_epoch_ms`` this trusts the server's unit and never rejects
    short integers.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
        try:
            dt = datetime.fromisoformat(stripped.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError(f"Unparseable timestamp: {value}") from e
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)
    raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")


def utc_now_z() -> str:
    """Current UTC time as ISO 8601 ending with ``Z``."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
