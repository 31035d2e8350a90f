from datetime import datetime, timezone

import pytest

from linkmonitor.services import queries
from linkmonitor.services.maintenance import _jitter_seconds, sweep_retention


pytestmark = pytest.mark.anyio

URL = "https://old.example"


async def test_retention_sweep_keeps_current_month_and_counters(engine, recorder, make_outcome, shanghai):
    await recorder.record(make_outcome(URL, "2023-10-30T10:00:00Z", True, 100))
    await recorder.record(make_outcome("https://fresh.example", "2023-11-01T10:00:00Z", True, 50))
    await recorder.record(make_outcome(URL + "/more", "2023-10-31T10:00:00Z", False))

    now = datetime(2023, 11, 15, tzinfo=timezone.utc)
    history, latest = await sweep_retention(engine, shanghai, now=now)
    assert (history, latest) == (2, 2)

    remaining = await queries.latest_statuses(engine)
    assert [r.url for r in remaining] == ["https://fresh.example"]
    [october] = await queries.monthly_stats(engine, URL)
    assert october.month == "2023-10"
    assert october.total_checks == 1


def test_jitter_stays_within_band():
    for _ in range(50):
        assert 85.0 <= _jitter_seconds(100.0) <= 115.0
