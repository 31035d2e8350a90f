"""Environment-sourced settings for the link monitor."""

import os
from typing import Optional

import structlog
from pydantic import BaseModel, Field


logger = structlog.get_logger(__name__)


class GithubSettings(BaseModel):
    repo: str = Field(default="luoy-oss/friend_link", description="owner/repo holding link issues")
    label: str = Field(default="active", description="Only issues carrying this label are monitored")
    state: str = Field(default="all", description="open, closed or all")
    sort: str = Field(default="created", description="created, updated or comments")
    direction: str = Field(default="asc", description="asc or desc")
    per_page: int = Field(default=100, ge=1, le=100)
    max_pages: int = Field(default=5, ge=1, description="Guard against unbounded paging")
    token: str = Field(default="", description="Optional token, raises the API rate limit")


class MonitorSettings(BaseModel):
    timeout_ms: int = Field(default=30000, ge=1)
    batch_size: int = Field(default=5, ge=1)
    max_check_limit: int = Field(default=50, ge=0, description="0 disables the per-run cap")
    user_agent: str = Field(default="Blog-Link-Monitoring-Bot")
    retry_count: int = Field(default=1, ge=0)
    timezone: str = Field(default="Asia/Shanghai")
    window_days: int = Field(default=30, ge=1)
    check_interval_sec: float = Field(default=0.0, ge=0.0, description="0 leaves scheduling to an external cron")
    retention_sweep: bool = Field(default=False)


class Settings(BaseModel):
    database_url: Optional[str] = None
    log_level: str = "INFO"
    github: GithubSettings = Field(default_factory=GithubSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("invalid_int_setting", name=name, value=raw, default=default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("invalid_float_setting", name=name, value=raw, default=default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("true", "1", "yes")


def load_settings() -> Settings:
    github = GithubSettings(
        repo=os.environ.get("GITHUB_REPO", "luoy-oss/friend_link"),
        label=os.environ.get("GITHUB_ISSUE_LABEL", "active"),
        state=os.environ.get("GITHUB_ISSUE_STATE", "all"),
        sort=os.environ.get("GITHUB_ISSUE_SORT", "created"),
        direction=os.environ.get("GITHUB_ISSUE_DIRECTION", "asc"),
        per_page=min(100, max(1, _env_int("GITHUB_ISSUE_PER_PAGE", 100))),
        max_pages=max(1, _env_int("GITHUB_ISSUE_MAX_PAGES", 5)),
        token=os.environ.get("GITHUB_TOKEN", ""),
    )
    monitor = MonitorSettings(
        timeout_ms=max(1, _env_int("MONITOR_TIMEOUT", 30000)),
        batch_size=max(1, _env_int("MONITOR_BATCH_SIZE", 5)),
        max_check_limit=max(0, _env_int("MONITOR_MAX_CHECK_LIMIT", 50)),
        user_agent=os.environ.get("MONITOR_USER_AGENT", "Blog-Link-Monitoring-Bot"),
        retry_count=max(0, _env_int("MONITOR_RETRY_COUNT", 1)),
        timezone=os.environ.get("MONITOR_TIMEZONE", "Asia/Shanghai"),
        window_days=max(1, _env_int("MONITOR_WINDOW_DAYS", 30)),
        check_interval_sec=max(0.0, _env_float("MONITOR_CHECK_INTERVAL", 0.0)),
        retention_sweep=_env_bool("MONITOR_RETENTION_SWEEP", False),
    )
    return Settings(
        database_url=os.environ.get("DATABASE_URL") or None,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        github=github,
        monitor=monitor,
    )
