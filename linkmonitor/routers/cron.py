from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from linkmonitor.errors import IngestionError
from linkmonitor.models import CheckSummary
from linkmonitor.routers.deps import get_runtime
from linkmonitor.services.cron import run_check_cycle
from linkmonitor.services.maintenance import sweep_retention


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["cron"])


class CronResponse(BaseModel):
    success: bool = True
    processed: int
    message: str = "check cycle finished"
    data: List[CheckSummary]


@router.api_route("/cron-check", methods=["GET", "POST"], response_model=CronResponse)
async def cron_check(runtime=Depends(get_runtime)) -> CronResponse:
    settings = runtime["settings"]
    try:
        summary = await run_check_cycle(
            runtime["issue_source"],
            runtime["prober"],
            runtime["recorder"],
            batch_size=settings.monitor.batch_size,
            max_checks=settings.monitor.max_check_limit,
        )
    except IngestionError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    if settings.monitor.retention_sweep:
        try:
            await sweep_retention(runtime["db_engine"], runtime["recorder"].tz)
        except Exception:
            logger.exception("retention_sweep_failed")
    return CronResponse(processed=summary.processed, data=summary.data)
