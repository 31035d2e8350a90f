from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckOutcome(CamelModel):
    url: str
    status: int
    response_time: int = 0
    available: bool
    error: Optional[str] = None
    checked_at: datetime


class Target(CamelModel):
    title: Optional[str] = None
    avatar: Optional[str] = None
    screenshot: Optional[str] = None


class Candidate(Target):
    url: str
    issue_title: Optional[str] = None

    def as_target(self) -> Target:
        return Target(title=self.title or self.issue_title, avatar=self.avatar, screenshot=self.screenshot)


class LatestStatus(CheckOutcome):
    title: Optional[str] = None
    avatar: Optional[str] = None
    screenshot: Optional[str] = None


class HistoryEntry(CheckOutcome):
    id: Optional[int] = None


class Counters(CamelModel):
    total_checks: int = 0
    successful_checks: int = 0
    failed_checks: int = 0
    total_response_time: int = 0
    avg_response_time: float = 0.0
    uptime_percentage: float = 0.0


class MonthlyStat(Counters):
    url: str
    month: str


class DailyBucket(Counters):
    date: str


class WindowedDailyStat(CamelModel):
    url: str
    month: Optional[str] = None
    stats: List[DailyBucket] = Field(default_factory=list)


class DayUptime(CamelModel):
    date: str
    uptime: float
    count: int
    avg_response_time: float = 0.0


class CheckSummary(CamelModel):
    url: str
    status: int
    available: bool
