from typing import Dict, List, Optional, Union
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from linkmonitor.models import DayUptime, WindowedDailyStat
from linkmonitor.routers.deps import get_runtime
from linkmonitor.services import queries
from linkmonitor.utils.civil_time import parse_month


router = APIRouter(prefix="/api", tags=["stats"])


class MonthlyUptimeResponse(BaseModel):
    success: bool = True
    month: str
    data: Dict[str, List[DayUptime]]


class WindowResponse(BaseModel):
    success: bool = True
    data: Union[WindowedDailyStat, List[WindowedDailyStat]]


def _zone(name: Optional[str], default: ZoneInfo) -> ZoneInfo:
    if not name:
        return default
    try:
        return ZoneInfo(name)
    except (KeyError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Unknown timezone {name!r}") from exc


@router.get("/monthly", response_model=MonthlyUptimeResponse)
async def monthly(
    month: Optional[str] = None,
    timezone: Optional[str] = None,
    runtime=Depends(get_runtime),
) -> MonthlyUptimeResponse:
    if month:
        try:
            parse_month(month)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    tz = _zone(timezone, runtime["recorder"].tz)
    target, data = await queries.monthly_uptime(runtime["db_engine"], tz, month=month)
    return MonthlyUptimeResponse(month=target, data=data)


@router.get("/current-month", response_model=WindowResponse)
async def current_month(url: Optional[str] = None, runtime=Depends(get_runtime)) -> WindowResponse:
    if not url:
        raise HTTPException(status_code=400, detail="url is required")
    stats = await queries.current_month_stats(runtime["db_engine"], url, runtime["recorder"].tz)
    return WindowResponse(data=stats)


@router.get("/recent-stats", response_model=WindowResponse)
async def recent_stats(url: Optional[str] = None, runtime=Depends(get_runtime)) -> WindowResponse:
    recorder = runtime["recorder"]
    stats = await queries.recent_stats(
        runtime["db_engine"], recorder.tz, window_days=recorder.window_days, url=url
    )
    return WindowResponse(data=stats[0] if url else stats)
