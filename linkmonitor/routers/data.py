from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from linkmonitor.models import LatestStatus, MonthlyStat
from linkmonitor.routers.deps import get_runtime
from linkmonitor.services import queries


router = APIRouter(prefix="/api", tags=["data"])


class LatestResponse(BaseModel):
    success: bool = True
    count: int
    data: List[LatestStatus]


class MonthlyStatsResponse(BaseModel):
    success: bool = True
    data: List[MonthlyStat]


class DataFilter(BaseModel):
    url: Optional[str] = None
    available: Optional[bool] = None


class DataOptions(BaseModel):
    limit: int = Field(100, ge=1, le=1000)
    sort: Optional[str] = None


class DataQuery(BaseModel):
    query: DataFilter = Field(default_factory=DataFilter)
    options: DataOptions = Field(default_factory=DataOptions)


async def _latest(runtime, filters: DataFilter, options: DataOptions) -> LatestResponse:
    try:
        rows = await queries.latest_statuses(
            runtime["db_engine"],
            url=filters.url,
            available=filters.available,
            limit=options.limit,
            sort=options.sort,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return LatestResponse(count=len(rows), data=rows)


@router.get("/data", response_model=LatestResponse)
async def data(
    url: Optional[str] = None,
    available: Optional[bool] = None,
    limit: int = Query(100, ge=1, le=1000),
    sort: Optional[str] = None,
    runtime=Depends(get_runtime),
) -> LatestResponse:
    return await _latest(runtime, DataFilter(url=url, available=available), DataOptions(limit=limit, sort=sort))


@router.post("/data", response_model=LatestResponse)
async def query_data(payload: DataQuery, runtime=Depends(get_runtime)) -> LatestResponse:
    return await _latest(runtime, payload.query, payload.options)


@router.get("/history")
async def history(
    url: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
    limit: int = Query(queries.DEFAULT_PAGE_SIZE, ge=1, le=100),
    runtime=Depends(get_runtime),
):
    result = await queries.history_page(
        runtime["db_engine"], url, runtime["recorder"].tz, page=page, limit=limit
    )
    return {"success": True, **result.model_dump(by_alias=True, mode="json")}


@router.get("/monthly-stats", response_model=MonthlyStatsResponse)
async def monthly_stats(url: str = Query(..., min_length=1), runtime=Depends(get_runtime)) -> MonthlyStatsResponse:
    rows = await queries.monthly_stats(runtime["db_engine"], url)
    return MonthlyStatsResponse(data=rows)
