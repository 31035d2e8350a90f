import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo


DEFAULT_TIMEZONE = "Asia/Shanghai"

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_zone(name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(name or DEFAULT_TIMEZONE)


def as_utc(ts: datetime) -> datetime:
    # Naive values coming back from the store are UTC wall clock
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def to_storage(ts: datetime) -> datetime:
    return as_utc(ts).replace(tzinfo=None)


def civil_date(ts: datetime, tz: ZoneInfo) -> str:
    return as_utc(ts).astimezone(tz).date().isoformat()


def civil_month(ts: datetime, tz: ZoneInfo) -> str:
    return civil_date(ts, tz)[:7]


def month_start(ts: datetime, tz: ZoneInfo) -> datetime:
    """First instant of the civil month containing ``ts``, in UTC."""
    local = as_utc(ts).astimezone(tz)
    start = datetime(local.year, local.month, 1, tzinfo=tz)
    return start.astimezone(timezone.utc)


def shift_date(day: str, days: int) -> str:
    return (date.fromisoformat(day) + timedelta(days=days)).isoformat()


def parse_month(value: str) -> Tuple[int, int]:
    """Parse ``YYYY-MM``; raises ValueError on anything else."""
    match = _MONTH_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid month format {value!r}. Use YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month {value!r}. Use YYYY-MM")
    return year, month


def month_bounds(value: str, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """UTC [start, end) of a civil month."""
    year, month = parse_month(value)
    start = datetime(year, month, 1, tzinfo=tz)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=tz)
    else:
        end = datetime(year, month + 1, 1, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
