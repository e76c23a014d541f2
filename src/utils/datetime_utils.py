from __future__ import annotations

import time as _time
from datetime import datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

DateInput = Union[str, _time.struct_time, datetime, None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_to_utc(value: DateInput) -> Optional[datetime]:
    """
    Parse feed date forms (RFC 822 strings, ISO strings, struct_time, datetime)
    into an aware UTC datetime. Unparseable or missing values yield ``None``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, _time.struct_time):
        dt = datetime(*value[:6], tzinfo=timezone.utc)
    else:
        try:
            dt = date_parser.parse(str(value))
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolve_timezone(name: str) -> Union[ZoneInfo, timezone]:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def is_same_local_day(
    moment: datetime, reference: datetime, tz_name: str = "UTC"
) -> bool:
    """True when both instants fall on the same calendar day in ``tz_name``."""
    tz = resolve_timezone(tz_name)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date() == reference.astimezone(tz).date()


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None
