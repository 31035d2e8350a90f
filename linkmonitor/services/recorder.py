"""Persist one check outcome across the four derived views."""

from typing import Dict, Optional
from zoneinfo import ZoneInfo

import anyio
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from linkmonitor.db import repo
from linkmonitor.errors import StorageError
from linkmonitor.models import CheckOutcome, Target
from linkmonitor.utils.civil_time import civil_date, civil_month, get_zone, shift_date, to_storage
from linkmonitor.utils.normalize import normalize_url


logger = structlog.get_logger(__name__)


def outcome_counters(outcome: CheckOutcome) -> Dict[str, int]:
    ok = outcome.available is True
    return {
        "total_checks": 1,
        "successful_checks": 1 if ok else 0,
        "failed_checks": 0 if ok else 1,
        "total_response_time": int(outcome.response_time or 0),
    }


class Recorder:
    def __init__(self, engine: AsyncEngine, tz: Optional[ZoneInfo] = None, window_days: int = 30) -> None:
        self.engine = engine
        self.tz = tz or get_zone()
        self.window_days = window_days
        # Checks of the same URL are recorded one at a time
        self._locks: Dict[str, anyio.Lock] = {}

    def _lock_for(self, url: str) -> anyio.Lock:
        lock = self._locks.get(url)
        if lock is None:
            lock = self._locks[url] = anyio.Lock()
        return lock

    def window_cutoff(self, newest_day: str) -> str:
        # Never evict the newest bucket's own month
        return min(shift_date(newest_day, -self.window_days), newest_day[:7] + "-01")

    async def record(self, outcome: CheckOutcome, target: Optional[Target] = None) -> None:
        url = normalize_url(outcome.url)
        outcome = outcome.model_copy(update={"url": url})
        lock = self._lock_for(url)
        try:
            async with lock:
                await self._write(outcome, target)
        finally:
            if not lock.locked() and lock.statistics().tasks_waiting == 0 and self._locks.get(url) is lock:
                del self._locks[url]

    async def _write(self, outcome: CheckOutcome, target: Optional[Target]) -> None:
        url = outcome.url
        try:
            await repo.upsert_latest_status(
                self.engine,
                self._row(outcome),
                target.model_dump(exclude_none=True) if target else None,
            )
        except Exception as exc:
            raise StorageError(f"latest status upsert failed for {url}: {exc}") from exc

        for step in (self._append_history, self._bump_monthly, self._bump_daily):
            try:
                await step(outcome)
            except Exception:
                logger.exception("secondary_write_failed", step=step.__name__.lstrip("_"), url=url)

    def _row(self, outcome: CheckOutcome) -> Dict[str, object]:
        return {
            "url": outcome.url,
            "status": outcome.status,
            "response_time": int(outcome.response_time or 0),
            "available": bool(outcome.available),
            "error": outcome.error,
            "checked_at": to_storage(outcome.checked_at),
        }

    async def _append_history(self, outcome: CheckOutcome) -> None:
        await repo.insert_history(self.engine, self._row(outcome))

    async def _bump_monthly(self, outcome: CheckOutcome) -> None:
        month = civil_month(outcome.checked_at, self.tz)
        await repo.increment_monthly(self.engine, outcome.url, month, outcome_counters(outcome))

    async def _bump_daily(self, outcome: CheckOutcome) -> None:
        day = civil_date(outcome.checked_at, self.tz)
        written = await repo.increment_daily(
            self.engine, outcome.url, day, outcome_counters(outcome), self.window_cutoff
        )
        if not written:
            logger.info("daily_bucket_outside_window", url=outcome.url, date=day)
