from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from pydantic.alias_generators import to_camel, to_snake
from sqlalchemy.ext.asyncio import AsyncEngine

from linkmonitor.db import repo
from linkmonitor.models import (
    CamelModel, DailyBucket, DayUptime, HistoryEntry, LatestStatus, MonthlyStat, WindowedDailyStat,
)
from linkmonitor.utils.civil_time import (
    as_utc, civil_date, civil_month, month_bounds, month_start, shift_date, to_storage, utc_now,
)
from linkmonitor.utils.normalize import normalize_url


DEFAULT_PAGE_SIZE = 20


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    has_more: bool


class HistoryPage(CamelModel):
    data: List[HistoryEntry]
    monthly_summary: List[MonthlyStat]
    current_month: str
    pagination: Pagination


def derive_rates(row: Dict[str, Any]) -> Dict[str, Any]:
    total = row.get("total_checks") or 0
    if not total:
        return {**row, "avg_response_time": 0.0, "uptime_percentage": 0.0}
    return {
        **row,
        "avg_response_time": (row.get("total_response_time") or 0) / total,
        "uptime_percentage": (row.get("successful_checks") or 0) / total * 100.0,
    }


def _with_utc(row: Dict[str, Any]) -> Dict[str, Any]:
    return {**row, "checked_at": as_utc(row["checked_at"])}


def sort_column(name: Optional[str]) -> str:
    """Map an API sort field (camelCase or snake_case) to a latest-status column."""
    if not name:
        return "checked_at"
    column = to_snake(name)
    if column not in repo.LATEST_SORT_COLUMNS:
        allowed = ", ".join(to_camel(c) for c in repo.LATEST_SORT_COLUMNS)
        raise ValueError(f"Unknown sort field {name!r}. Use one of: {allowed}")
    return column


async def latest_statuses(
    engine: AsyncEngine,
    url: Optional[str] = None,
    available: Optional[bool] = None,
    limit: int = 100,
    sort: Optional[str] = None,
) -> List[LatestStatus]:
    """Latest rows, newest first unless ``sort`` names another field (always descending)."""
    rows = await repo.fetch_latest(
        engine, normalize_url(url) if url else None, available, limit, sort=sort_column(sort)
    )
    return [LatestStatus(**_with_utc(r)) for r in rows]


async def monthly_stats(
    engine: AsyncEngine, url: str, exclude_month: Optional[str] = None
) -> List[MonthlyStat]:
    rows = await repo.fetch_monthly(engine, normalize_url(url), exclude_month)
    return [MonthlyStat(**derive_rates(r)) for r in rows]


async def history_page(
    engine: AsyncEngine,
    url: str,
    tz: ZoneInfo,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    now: Optional[datetime] = None,
) -> HistoryPage:
    """Current-month checks newest first; earlier months collapse to monthly rows on page 1."""
    now = now or utc_now()
    url = normalize_url(url)
    current = civil_month(now, tz)
    skip = (page - 1) * limit
    rows, total = await repo.fetch_history_page(
        engine, url, since=to_storage(month_start(now, tz)), offset=skip, limit=limit
    )
    summary: List[MonthlyStat] = []
    if page == 1:
        summary = await monthly_stats(engine, url, exclude_month=current)
    return HistoryPage(
        data=[HistoryEntry(**_with_utc(r)) for r in rows],
        monthly_summary=summary,
        current_month=current,
        pagination=Pagination(page=page, limit=limit, total=total, has_more=(skip + len(rows)) < total),
    )


def _bucket_by_day(rows: List[Dict[str, Any]], tz: ZoneInfo, month: str) -> Dict[str, List[DayUptime]]:
    buckets: Dict[Tuple[str, str], Dict[str, float]] = defaultdict(lambda: {"ok": 0, "count": 0, "rt": 0})
    for r in rows:
        day = civil_date(r["checked_at"], tz)
        if not day.startswith(month):
            continue
        entry = buckets[(r["url"], day)]
        entry["count"] += 1
        entry["ok"] += 1 if r["available"] else 0
        entry["rt"] += r["response_time"] or 0
    out: Dict[str, List[DayUptime]] = defaultdict(list)
    for (url, day), e in sorted(buckets.items()):
        out[url].append(DayUptime(
            date=day,
            uptime=e["ok"] / e["count"],
            count=e["count"],
            avg_response_time=e["rt"] / e["count"],
        ))
    return dict(out)


async def _month_rows(engine: AsyncEngine, month: str, tz: ZoneInfo) -> List[Dict[str, Any]]:
    start, end = month_bounds(month, tz)
    # One day of slack either side covers zone offsets
    return await repo.fetch_history_between(
        engine, to_storage(start - timedelta(days=1)), to_storage(end + timedelta(days=1))
    )


async def monthly_uptime(
    engine: AsyncEngine, tz: ZoneInfo, month: Optional[str] = None, now: Optional[datetime] = None
) -> Tuple[str, Dict[str, List[DayUptime]]]:
    """Per-URL per-day uptime for a civil month.

    Falls back to the newest month holding any history when the asked-for
    month is empty. Raises ValueError for a malformed month.
    """
    target = month or civil_month(now or utc_now(), tz)
    data = _bucket_by_day(await _month_rows(engine, target, tz), tz, target)
    if not data:
        newest = await repo.fetch_newest_check(engine)
        if newest is not None:
            latest_month = civil_month(newest, tz)
            if latest_month != target:
                target = latest_month
                data = _bucket_by_day(await _month_rows(engine, target, tz), tz, target)
    return target, data


def _buckets(rows: List[Dict[str, Any]]) -> Dict[str, List[DailyBucket]]:
    out: Dict[str, List[DailyBucket]] = defaultdict(list)
    for r in rows:
        out[r["url"]].append(DailyBucket(**derive_rates(r)))
    return dict(out)


async def current_month_stats(
    engine: AsyncEngine, url: str, tz: ZoneInfo, now: Optional[datetime] = None
) -> WindowedDailyStat:
    url = normalize_url(url)
    month = civil_month(now or utc_now(), tz)
    buckets = _buckets(await repo.fetch_daily(engine, url=url, month=month)).get(url, [])
    return WindowedDailyStat(url=url, month=month if buckets else None, stats=buckets)


async def recent_stats(
    engine: AsyncEngine,
    tz: ZoneInfo,
    window_days: int = 30,
    url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[WindowedDailyStat]:
    """Trailing-window daily buckets for one URL, or for every URL when none is given."""
    since = shift_date(civil_date(now or utc_now(), tz), -window_days)
    url = normalize_url(url) if url else None
    grouped = _buckets(await repo.fetch_daily(engine, url=url, since_date=since))
    if url:
        return [WindowedDailyStat(url=url, stats=grouped.get(url, []))]
    return [WindowedDailyStat(url=u, stats=b) for u, b in sorted(grouped.items())]
