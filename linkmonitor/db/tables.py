from sqlalchemy import (
    MetaData, Table, Column, Integer, String, Boolean, DateTime, Index
)


metadata = MetaData()


# One row per normalized URL, overwritten on every check
latest_status = Table(
    "latest_status",
    metadata,
    Column("url", String, primary_key=True),
    Column("title", String, nullable=True),
    Column("avatar", String, nullable=True),
    Column("screenshot", String, nullable=True),
    Column("status", Integer, nullable=False, default=0),
    Column("response_time", Integer, nullable=False, default=0),
    Column("available", Boolean, nullable=False, default=False),
    Column("error", String, nullable=True),
    Column("checked_at", DateTime, nullable=False),
)


# Append-only check log
check_history = Table(
    "check_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("url", String, nullable=False),
    Column("status", Integer, nullable=False),
    Column("response_time", Integer, nullable=False),
    Column("available", Boolean, nullable=False),
    Column("error", String, nullable=True),
    Column("checked_at", DateTime, nullable=False),
    Index("idx_history_url_checked", "url", "checked_at"),
    Index("idx_history_checked", "checked_at"),
)


# Running sums per civil month ("YYYY-MM")
monthly_stats = Table(
    "monthly_stats",
    metadata,
    Column("url", String, primary_key=True),
    Column("month", String, primary_key=True),
    Column("total_checks", Integer, nullable=False, default=0),
    Column("successful_checks", Integer, nullable=False, default=0),
    Column("failed_checks", Integer, nullable=False, default=0),
    Column("total_response_time", Integer, nullable=False, default=0),
)


# Running sums per civil date ("YYYY-MM-DD"), trimmed to a trailing window
daily_stats = Table(
    "daily_stats",
    metadata,
    Column("url", String, primary_key=True),
    Column("date", String, primary_key=True),
    Column("total_checks", Integer, nullable=False, default=0),
    Column("successful_checks", Integer, nullable=False, default=0),
    Column("failed_checks", Integer, nullable=False, default=0),
    Column("total_response_time", Integer, nullable=False, default=0),
)


COUNTER_COLUMNS = ("total_checks", "successful_checks", "failed_checks", "total_response_time")
