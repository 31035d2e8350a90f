from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

import anyio
import structlog

from linkmonitor.errors import StorageError
from linkmonitor.models import Candidate, CheckOutcome, Target
from linkmonitor.services.probe import Prober
from linkmonitor.services.recorder import Recorder


logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def _gather(
    func: Callable[[T], Awaitable[Optional[CheckOutcome]]], items: Sequence[T]
) -> List[CheckOutcome]:
    """Run ``func`` over ``items`` concurrently; results keep input order, ``None`` is dropped."""
    results: List[Optional[CheckOutcome]] = [None] * len(items)

    async def _run(index: int, item: T) -> None:
        results[index] = await func(item)

    async with anyio.create_task_group() as tg:
        for index, item in enumerate(items):
            tg.start_soon(_run, index, item)
    return [r for r in results if r is not None]


async def batch_probe(prober: Prober, urls: Sequence[str]) -> List[CheckOutcome]:
    return await _gather(prober.probe, urls)


async def probe_and_record(
    prober: Prober, recorder: Recorder, url: str, target: Optional[Target] = None
) -> Optional[CheckOutcome]:
    """Probe and persist one URL. A failed latest-status write drops the result."""
    outcome = await prober.probe(url)
    return await _record(recorder, outcome, target)


async def _record(
    recorder: Recorder, outcome: CheckOutcome, target: Optional[Target] = None
) -> Optional[CheckOutcome]:
    try:
        await recorder.record(outcome, target)
    except StorageError:
        logger.exception("check_dropped", url=outcome.url)
        return None
    return outcome


async def batch_probe_and_record(
    prober: Prober, recorder: Recorder, urls: Sequence[str]
) -> List[CheckOutcome]:
    outcomes = await batch_probe(prober, urls)
    return await _gather(lambda outcome: _record(recorder, outcome), outcomes)


def apply_check_limit(candidates: Sequence[Candidate], limit: int) -> List[Candidate]:
    if limit > 0 and len(candidates) > limit:
        logger.warning("check_limit_applied", candidates=len(candidates), limit=limit)
        return list(candidates[:limit])
    return list(candidates)


async def chunked_probe_and_record(
    prober: Prober,
    recorder: Recorder,
    candidates: Sequence[Candidate],
    batch_size: int,
) -> List[CheckOutcome]:
    """Check candidates ``batch_size`` at a time, keeping whatever succeeded."""
    batch_size = max(1, batch_size)
    results: List[CheckOutcome] = []
    for offset in range(0, len(candidates), batch_size):
        chunk = candidates[offset:offset + batch_size]
        results.extend(
            await _gather(lambda c: probe_and_record(prober, recorder, c.url, c.as_target()), chunk)
        )
        logger.info("batch_done", offset=offset, size=len(chunk), recorded=len(results))
    return results
