from typing import List

import structlog

from linkmonitor.models import CamelModel, CheckSummary
from linkmonitor.services.batch import apply_check_limit, chunked_probe_and_record
from linkmonitor.services.ingestion import IssueSource
from linkmonitor.services.probe import Prober
from linkmonitor.services.recorder import Recorder


logger = structlog.get_logger(__name__)


class CycleSummary(CamelModel):
    processed: int
    data: List[CheckSummary]


async def run_check_cycle(
    source: IssueSource,
    prober: Prober,
    recorder: Recorder,
    batch_size: int,
    max_checks: int,
) -> CycleSummary:
    """Fetch links from the issue source, check them and record the results."""
    logger.info("check_cycle_started")
    candidates = await source.fetch_candidates()
    targets = apply_check_limit(candidates, max_checks)
    outcomes = await chunked_probe_and_record(prober, recorder, targets, batch_size)
    logger.info("check_cycle_finished", candidates=len(candidates), processed=len(outcomes))
    return CycleSummary(
        processed=len(outcomes),
        data=[CheckSummary(url=o.url, status=o.status, available=o.available) for o in outcomes],
    )
