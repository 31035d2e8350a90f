import random
import time
from datetime import datetime
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

import anyio
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from linkmonitor.db.repo import prune_retention
from linkmonitor.services.cron import run_check_cycle
from linkmonitor.utils.civil_time import month_start, to_storage, utc_now


logger = structlog.get_logger(__name__)


def _jitter_seconds(base: float, pct: float = 0.15) -> float:
    delta = base * pct
    return base + random.uniform(-delta, +delta)


async def sweep_retention(engine: AsyncEngine, tz: ZoneInfo, now: Optional[datetime] = None) -> Tuple[int, int]:
    """Delete history and latest-status rows checked before the current civil month.

    Destructive: past months survive only as monthly counters afterwards.
    """
    cutoff = month_start(now or utc_now(), tz)
    history, latest = await prune_retention(engine, older_than=to_storage(cutoff))
    logger.info("retention_sweep", cutoff=cutoff.isoformat(), history=history, latest=latest)
    return history, latest


async def run_scheduler(app) -> None:
    """Run the check cycle in-process every ``check_interval_sec`` seconds."""
    runtime = app.state.runtime
    settings = runtime["settings"]
    interval = settings.monitor.check_interval_sec
    if interval <= 0:
        return
    while True:
        started = time.perf_counter()
        try:
            await run_check_cycle(
                runtime["issue_source"],
                runtime["prober"],
                runtime["recorder"],
                batch_size=settings.monitor.batch_size,
                max_checks=settings.monitor.max_check_limit,
            )
        except Exception:
            logger.exception("scheduled_cycle_failed")
        if settings.monitor.retention_sweep:
            try:
                await sweep_retention(runtime["db_engine"], runtime["recorder"].tz)
            except Exception:
                logger.exception("retention_sweep_failed")
        elapsed = time.perf_counter() - started
        await anyio.sleep(max(1.0, _jitter_seconds(interval) - elapsed))
