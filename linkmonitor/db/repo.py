from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine

from linkmonitor.db.tables import (
    metadata,
    latest_status, check_history, monthly_stats, daily_stats,
    COUNTER_COLUMNS,
)


async def init_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


def _upsert(engine: AsyncEngine, table):
    if engine.dialect.name == "postgresql":
        return postgresql.insert(table)
    return sqlite.insert(table)


def _increment_stmt(engine: AsyncEngine, table, keys: Dict[str, Any], counters: Dict[str, int]):
    stmt = _upsert(engine, table).values({**keys, **counters})
    return stmt.on_conflict_do_update(
        index_elements=[table.c[k] for k in keys],
        set_={c: table.c[c] + stmt.excluded[c] for c in COUNTER_COLUMNS},
    )


async def upsert_latest_status(
    engine: AsyncEngine, record: Dict[str, Any], target: Optional[Dict[str, Any]] = None
) -> None:
    values = dict(record)
    for key, value in (target or {}).items():
        if value is not None:
            values[key] = value
    stmt = _upsert(engine, latest_status).values(values)
    # Key column is only written on first insert
    updates = {k: stmt.excluded[k] for k in values if k != "url"}
    stmt = stmt.on_conflict_do_update(index_elements=[latest_status.c.url], set_=updates)
    async with engine.begin() as conn:
        await conn.execute(stmt)


async def insert_history(engine: AsyncEngine, record: Dict[str, Any]) -> None:
    async with engine.begin() as conn:
        await conn.execute(insert(check_history).values(record))


async def increment_monthly(engine: AsyncEngine, url: str, month: str, counters: Dict[str, int]) -> None:
    stmt = _increment_stmt(engine, monthly_stats, {"url": url, "month": month}, counters)
    async with engine.begin() as conn:
        await conn.execute(stmt)


async def increment_daily(
    engine: AsyncEngine, url: str, day: str, counters: Dict[str, int], cutoff_for
) -> bool:
    """Bump one daily bucket and evict the URL's buckets that fell out of the window.

    ``cutoff_for`` maps the newest bucket date to the oldest date kept. Returns
    False when ``day`` itself landed outside the window and was evicted again.
    """
    async with engine.begin() as conn:
        await conn.execute(_increment_stmt(engine, daily_stats, {"url": url, "date": day}, counters))
        newest = (await conn.execute(
            select(func.max(daily_stats.c.date)).where(daily_stats.c.url == url)
        )).scalar()
        cutoff = cutoff_for(newest or day)
        await conn.execute(
            delete(daily_stats).where(daily_stats.c.url == url, daily_stats.c.date < cutoff)
        )
    return day >= cutoff


LATEST_SORT_COLUMNS = ("url", "title", "status", "response_time", "available", "checked_at")


async def fetch_latest(
    engine: AsyncEngine,
    url: Optional[str] = None,
    available: Optional[bool] = None,
    limit: int = 100,
    sort: str = "checked_at",
) -> List[Dict[str, Any]]:
    if sort not in LATEST_SORT_COLUMNS:
        raise ValueError(f"cannot sort by {sort!r}")
    stmt = select(latest_status)
    if url:
        stmt = stmt.where(latest_status.c.url == url)
    if available is not None:
        stmt = stmt.where(latest_status.c.available == available)
    stmt = stmt.order_by(latest_status.c[sort].desc(), latest_status.c.url).limit(limit)
    async with engine.begin() as conn:
        rows = (await conn.execute(stmt)).mappings().all()
    return [dict(r) for r in rows]


async def fetch_history_page(
    engine: AsyncEngine, url: str, since: datetime, offset: int, limit: int
) -> Tuple[List[Dict[str, Any]], int]:
    where = (check_history.c.url == url, check_history.c.checked_at >= since)
    stmt = (
        select(check_history)
        .where(*where)
        .order_by(check_history.c.checked_at.desc(), check_history.c.id.desc())
        .offset(offset)
        .limit(limit)
    )
    async with engine.begin() as conn:
        rows = (await conn.execute(stmt)).mappings().all()
        total = (await conn.execute(select(func.count()).select_from(check_history).where(*where))).scalar()
    return [dict(r) for r in rows], int(total or 0)


async def fetch_history_between(
    engine: AsyncEngine, start: datetime, end: datetime, url: Optional[str] = None
) -> List[Dict[str, Any]]:
    stmt = select(
        check_history.c.url,
        check_history.c.available,
        check_history.c.response_time,
        check_history.c.checked_at,
    ).where(check_history.c.checked_at >= start, check_history.c.checked_at < end)
    if url:
        stmt = stmt.where(check_history.c.url == url)
    async with engine.begin() as conn:
        rows = (await conn.execute(stmt)).mappings().all()
    return [dict(r) for r in rows]


async def fetch_newest_check(engine: AsyncEngine) -> Optional[datetime]:
    async with engine.begin() as conn:
        return (await conn.execute(select(func.max(check_history.c.checked_at)))).scalar()


async def fetch_monthly(
    engine: AsyncEngine, url: str, exclude_month: Optional[str] = None
) -> List[Dict[str, Any]]:
    stmt = select(monthly_stats).where(monthly_stats.c.url == url)
    if exclude_month:
        stmt = stmt.where(monthly_stats.c.month != exclude_month)
    stmt = stmt.order_by(monthly_stats.c.month.desc())
    async with engine.begin() as conn:
        rows = (await conn.execute(stmt)).mappings().all()
    return [dict(r) for r in rows]


async def fetch_daily(
    engine: AsyncEngine,
    url: Optional[str] = None,
    since_date: Optional[str] = None,
    month: Optional[str] = None,
) -> List[Dict[str, Any]]:
    stmt = select(daily_stats)
    if url:
        stmt = stmt.where(daily_stats.c.url == url)
    if since_date:
        stmt = stmt.where(daily_stats.c.date >= since_date)
    if month:
        stmt = stmt.where(daily_stats.c.date.like(f"{month}-%"))
    stmt = stmt.order_by(daily_stats.c.url, daily_stats.c.date)
    async with engine.begin() as conn:
        rows = (await conn.execute(stmt)).mappings().all()
    return [dict(r) for r in rows]


async def prune_retention(engine: AsyncEngine, older_than: datetime) -> Tuple[int, int]:
    async with engine.begin() as conn:
        history = await conn.execute(delete(check_history).where(check_history.c.checked_at < older_than))
        latest = await conn.execute(delete(latest_status).where(latest_status.c.checked_at < older_than))
    return history.rowcount or 0, latest.rowcount or 0
