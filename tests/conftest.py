from datetime import datetime, timezone
from typing import Callable, List, Optional

import httpx
import pytest

from linkmonitor.db.engine import create_engine_and_init
from linkmonitor.models import CheckOutcome
from linkmonitor.services.probe import Prober
from linkmonitor.services.recorder import Recorder
from linkmonitor.utils.civil_time import get_zone


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'linkmonitor.db'}"


@pytest.fixture
async def engine(database_url):
    engine = await create_engine_and_init(database_url)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def shanghai():
    return get_zone("Asia/Shanghai")


@pytest.fixture
def recorder(engine, shanghai):
    return Recorder(engine, tz=shanghai, window_days=30)


@pytest.fixture
def make_outcome():
    def _make(url: str, when: str, available: bool, response_time: int = 0, status: Optional[int] = None) -> CheckOutcome:
        if status is None:
            status = 200 if available else 0
        return CheckOutcome(
            url=url,
            status=status,
            response_time=response_time,
            available=available,
            error=None if available else "Connection timeout",
            checked_at=datetime.fromisoformat(when.replace("Z", "+00:00")).astimezone(timezone.utc),
        )
    return _make


@pytest.fixture
def make_prober():
    def _make(handler: Callable[[httpx.Request], httpx.Response], sleeps: Optional[List[float]] = None, **kwargs) -> Prober:
        async def fake_sleep(seconds: float) -> None:
            if sleeps is not None:
                sleeps.append(seconds)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return Prober(client=client, sleep=fake_sleep, **kwargs)
    return _make
