from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as date_parser


def utcnow() -> datetime:
    """Naive UTC now; every datetime column stores naive UTC."""
    return datetime.now(tz=timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def from_timestamp(ts: Optional[float]) -> Optional[datetime]:
    if ts is None:
        return None
    return datetime.fromtimestamp(float(ts), tz=timezone.utc).replace(tzinfo=None)


def parse_datetime(value) -> Optional[datetime]:
    """Parse RFC 3339 strings from Google or ISO dates sent by clients."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    try:
        return to_naive_utc(date_parser.isoparse(str(value)))
    except (ValueError, OverflowError):
        return None


def isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")
