from datetime import datetime, timezone

import pytest

from linkmonitor.services import queries


pytestmark = pytest.mark.anyio

A = "https://a.example"
B = "https://b.example"
NOW = datetime(2023, 11, 15, 4, 0, tzinfo=timezone.utc)


@pytest.fixture
async def seeded(recorder, make_outcome):
    await recorder.record(make_outcome(A, "2023-10-30T10:00:00Z", True, 100))
    await recorder.record(make_outcome(A, "2023-10-31T10:00:00Z", False, 0))
    await recorder.record(make_outcome(A, "2023-11-01T10:00:00Z", True, 200))
    await recorder.record(make_outcome(A, "2023-11-01T14:00:00Z", True, 150))
    await recorder.record(make_outcome(A, "2023-11-02T10:00:00Z", False, 0))
    await recorder.record(make_outcome(B, "2023-11-02T10:00:00Z", True, 30))
    return recorder


def test_derive_rates_handles_empty_counters():
    row = queries.derive_rates({"total_checks": 0, "successful_checks": 0, "total_response_time": 0})
    assert row["avg_response_time"] == 0
    assert row["uptime_percentage"] == 0


async def test_history_pages_cover_current_month_only(engine, seeded, shanghai):
    first = await queries.history_page(engine, A, shanghai, page=1, limit=2, now=NOW)
    assert first.current_month == "2023-11"
    assert [e.checked_at.isoformat() for e in first.data] == [
        "2023-11-02T10:00:00+00:00",
        "2023-11-01T14:00:00+00:00",
    ]
    assert first.pagination.total == 3
    assert first.pagination.has_more is True
    assert [m.month for m in first.monthly_summary] == ["2023-10"]
    assert first.monthly_summary[0].uptime_percentage == 50

    second = await queries.history_page(engine, A + "/", shanghai, page=2, limit=2, now=NOW)
    assert len(second.data) == 1
    assert second.pagination.has_more is False
    assert second.monthly_summary == []


async def test_history_page_serializes_camel_case(engine, seeded, shanghai):
    page = await queries.history_page(engine, A, shanghai, now=NOW)
    body = page.model_dump(by_alias=True, mode="json")
    assert set(body) == {"data", "monthlySummary", "currentMonth", "pagination"}
    assert "responseTime" in body["data"][0]
    assert body["pagination"]["hasMore"] is False


async def test_monthly_uptime_groups_by_url_and_day(engine, seeded, shanghai):
    month, data = await queries.monthly_uptime(engine, shanghai, month="2023-11")
    assert month == "2023-11"
    assert set(data) == {A, B}
    days = [(d.date, d.uptime, d.count) for d in data[A]]
    assert days == [("2023-11-01", 1.0, 2), ("2023-11-02", 0.0, 1)]
    assert data[A][0].avg_response_time == 175


async def test_monthly_uptime_falls_back_to_latest_month_with_data(engine, seeded, shanghai):
    month, data = await queries.monthly_uptime(engine, shanghai, month="2024-05")
    assert month == "2023-11"
    assert A in data


async def test_monthly_uptime_on_empty_store(engine, shanghai):
    month, data = await queries.monthly_uptime(engine, shanghai, month="2024-05")
    assert month == "2024-05"
    assert data == {}


async def test_current_month_and_recent_windows(engine, seeded, shanghai):
    current = await queries.current_month_stats(engine, A, shanghai, now=NOW)
    assert current.month == "2023-11"
    assert [b.date for b in current.stats] == ["2023-11-01", "2023-11-02"]
    assert current.stats[0].avg_response_time == 175

    [recent] = await queries.recent_stats(engine, shanghai, window_days=30, url=A, now=NOW)
    assert [b.date for b in recent.stats] == ["2023-10-30", "2023-10-31", "2023-11-01", "2023-11-02"]

    everything = await queries.recent_stats(engine, shanghai, window_days=30, now=NOW)
    assert [w.url for w in everything] == [A, B]


async def test_windows_for_unknown_url_are_empty(engine, shanghai):
    current = await queries.current_month_stats(engine, "https://nobody.example", shanghai, now=NOW)
    assert current.month is None
    assert current.stats == []
