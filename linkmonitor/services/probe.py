"""HTTP reachability probe with a fallback ladder of client identities."""

import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Iterator, Optional, Sequence, Tuple

import anyio
import httpx
import structlog

from linkmonitor.models import CheckOutcome
from linkmonitor.utils.civil_time import utc_now
from linkmonitor.utils.normalize import normalize_url


logger = structlog.get_logger(__name__)

BLOCKED_STATUSES = frozenset({403, 406, 429})
MAX_REDIRECTS = 10
DEFAULT_TIMEOUT_SEC = 30.0
DEFAULT_BACKOFF_SEC = (0.5, 1.5)

ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8"
ACCEPT_LANGUAGE = "zh-CN,zh;q=0.9,en-US;q=0.8,en;q=0.7"


@dataclass(frozen=True)
class Identity:
    name: str
    user_agent: str
    referer: str

    def headers(self) -> dict:
        return {
            "User-Agent": self.user_agent,
            "Accept": ACCEPT,
            "Accept-Language": ACCEPT_LANGUAGE,
            "Referer": self.referer,
        }


PRIMARY_IDENTITY = Identity(
    name="chrome-windows",
    user_agent=(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),
    referer="https://www.google.com/",
)

# Tried in order once the primary identity looks blocked
FALLBACK_IDENTITIES: Tuple[Identity, ...] = (
    Identity(
        name="googlebot",
        user_agent="Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
        referer="https://www.google.com/",
    ),
    Identity(
        name="bingbot",
        user_agent="Mozilla/5.0 (compatible; bingbot/2.0; +http://www.bing.com/bingbot.htm)",
        referer="https://www.bing.com/",
    ),
    Identity(
        name="baiduspider",
        user_agent="Mozilla/5.0 (compatible; Baiduspider/2.0; +http://www.baidu.com/search/spider.html)",
        referer="https://www.baidu.com/",
    ),
    Identity(
        name="safari-iphone",
        user_agent=(
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_5 like Mac OS X) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/17.5 Mobile/15E148 Safari/604.1"
        ),
        referer="https://www.google.com/",
    ),
    Identity(
        name="firefox-mac",
        user_agent=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:133.0) Gecko/20100101 Firefox/133.0"
        ),
        referer="https://duckduckgo.com/",
    ),
)


class ProbeState(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass
class Attempt:
    identity: Identity
    status: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not None and 200 <= self.status < 400

    @property
    def needs_fallback(self) -> bool:
        return self.status is None or self.status in BLOCKED_STATUSES


def _error_message(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


def create_probe_client(timeout_sec: float = DEFAULT_TIMEOUT_SEC) -> httpx.AsyncClient:
    # Expired and self-signed certificates still count as reachable
    return httpx.AsyncClient(
        timeout=timeout_sec,
        verify=False,
        follow_redirects=True,
        max_redirects=MAX_REDIRECTS,
    )


class Prober:
    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        primary: Identity = PRIMARY_IDENTITY,
        fallbacks: Sequence[Identity] = FALLBACK_IDENTITIES,
        rounds: int = 1,
        backoff_sec: Tuple[float, float] = DEFAULT_BACKOFF_SEC,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self.timeout_sec = timeout_sec
        self.primary = primary
        self.fallbacks = tuple(fallbacks)
        self.rounds = max(1, rounds)
        self.backoff_sec = backoff_sec
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or create_probe_client(timeout_sec)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "Prober":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _ladder(self) -> Iterator[Identity]:
        for _ in range(self.rounds):
            yield from self.fallbacks

    async def _attempt(self, url: str, identity: Identity) -> Attempt:
        try:
            resp = await self._client.get(url, headers=identity.headers(), timeout=self.timeout_sec)
        except Exception as exc:
            return Attempt(identity=identity, error=_error_message(exc))
        return Attempt(identity=identity, status=resp.status_code)

    async def probe(self, url: str) -> CheckOutcome:
        target = normalize_url(url)
        start = time.perf_counter()

        state = ProbeState.PRIMARY
        attempt = await self._attempt(target, self.primary)
        last_http = attempt if attempt.status is not None else None
        last_error = attempt.error

        if attempt.ok:
            state = ProbeState.SUCCESS
        elif attempt.needs_fallback and self.fallbacks:
            state = ProbeState.FALLBACK
            for identity in self._ladder():
                await self._sleep(random.uniform(*self.backoff_sec))
                attempt = await self._attempt(target, identity)
                logger.debug(
                    "probe_fallback",
                    url=target,
                    identity=identity.name,
                    status=attempt.status,
                    error=attempt.error,
                )
                if attempt.ok:
                    state = ProbeState.SUCCESS
                    break
                if attempt.status is not None:
                    last_http = attempt
                else:
                    last_error = attempt.error
            else:
                state = ProbeState.EXHAUSTED
        else:
            state = ProbeState.EXHAUSTED

        response_time = int(round((time.perf_counter() - start) * 1000.0))
        checked_at = utc_now()
        if state is ProbeState.SUCCESS:
            return CheckOutcome(
                url=target, status=attempt.status, response_time=response_time,
                available=True, checked_at=checked_at,
            )
        if last_http is not None:
            return CheckOutcome(
                url=target, status=last_http.status, response_time=response_time,
                available=False, checked_at=checked_at,
            )
        return CheckOutcome(
            url=target, status=0, response_time=response_time, available=False,
            error=last_error or "request failed", checked_at=checked_at,
        )
