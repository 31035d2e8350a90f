from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator

from linkmonitor.models import CheckOutcome
from linkmonitor.routers.deps import get_runtime
from linkmonitor.services.batch import batch_probe_and_record, probe_and_record


router = APIRouter(prefix="/api", tags=["monitor"])


def _check_url(value: str) -> str:
    value = value.strip()
    if not value.lower().startswith(("http://", "https://")):
        raise ValueError("url must be an absolute http(s) URL")
    return value


class MonitorRequest(BaseModel):
    url: str = Field(..., min_length=1)

    @field_validator("url")
    @classmethod
    def _valid_url(cls, value: str) -> str:
        return _check_url(value)


class BatchMonitorRequest(BaseModel):
    urls: List[str] = Field(..., min_length=1)

    @field_validator("urls")
    @classmethod
    def _valid_urls(cls, value: List[str]) -> List[str]:
        return [_check_url(v) for v in value]


class MonitorResponse(BaseModel):
    success: bool = True
    data: CheckOutcome


class BatchMonitorResponse(BaseModel):
    success: bool = True
    count: int
    data: List[CheckOutcome]


@router.post("/monitor", response_model=MonitorResponse)
async def monitor(payload: MonitorRequest, runtime=Depends(get_runtime)) -> MonitorResponse:
    outcome = await probe_and_record(runtime["prober"], runtime["recorder"], payload.url)
    if outcome is None:
        raise HTTPException(status_code=500, detail=f"could not record check for {payload.url}")
    return MonitorResponse(data=outcome)


@router.post("/batch-monitor", response_model=BatchMonitorResponse)
async def batch_monitor(payload: BatchMonitorRequest, runtime=Depends(get_runtime)) -> BatchMonitorResponse:
    outcomes = await batch_probe_and_record(runtime["prober"], runtime["recorder"], payload.urls)
    return BatchMonitorResponse(count=len(outcomes), data=outcomes)
