"""Pull monitored links out of GitHub issues: a fenced JSON block, else the first bare URL."""

import json
import re
from typing import Any, Dict, List, Optional

import httpx
import structlog

from linkmonitor.config import GithubSettings
from linkmonitor.errors import IngestionError
from linkmonitor.models import Candidate


logger = structlog.get_logger(__name__)

GITHUB_API = "https://api.github.com"

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)
_BARE_URL_RE = re.compile(r"https?://[^\s<>\"'`)\]]+")
_META_FIELDS = ("title", "avatar", "screenshot")


def extract_issue_payload(body: Optional[str]) -> Optional[Dict[str, Any]]:
    if not body:
        return None
    for match in _FENCED_JSON_RE.finditer(body):
        try:
            data = json.loads(match.group(1))
        except ValueError:
            continue
        if isinstance(data, dict) and isinstance(data.get("url"), str) and data["url"].strip():
            payload = {"url": data["url"].strip()}
            for field in _META_FIELDS:
                if isinstance(data.get(field), str):
                    payload[field] = data[field]
            return payload
    bare = _BARE_URL_RE.search(body)
    if bare:
        return {"url": bare.group(0).rstrip(".,;:!?")}
    return None


def _label_names(issue: Dict[str, Any]) -> List[str]:
    names = []
    for label in issue.get("labels") or []:
        if isinstance(label, dict):
            names.append(label.get("name", ""))
        else:
            names.append(str(label))
    return names


class IssueSource:
    def __init__(
        self,
        settings: GithubSettings,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: str = "Blog-Link-Monitoring-Bot",
    ) -> None:
        self.settings = settings
        self.user_agent = user_agent
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=30.0)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/vnd.github.v3+json",
        }
        if self.settings.token:
            headers["Authorization"] = f"token {self.settings.token}"
        return headers

    def _params(self, page: int) -> Dict[str, Any]:
        s = self.settings
        params = {
            "sort": s.sort,
            "direction": s.direction,
            "state": s.state,
            "page": page,
            "per_page": s.per_page,
        }
        if s.label:
            params["labels"] = s.label
        return params

    async def fetch_issues(self) -> List[Dict[str, Any]]:
        issues: List[Dict[str, Any]] = []
        path = f"{GITHUB_API}/repos/{self.settings.repo}/issues"
        for page in range(1, self.settings.max_pages + 1):
            try:
                resp = await self._client.get(path, params=self._params(page), headers=self._headers())
            except httpx.HTTPError as exc:
                raise IngestionError(f"issue page {page} failed: {exc}") from exc
            if resp.status_code == 404:
                logger.info("issue_pages_exhausted", page=page)
                break
            if resp.is_error:
                raise IngestionError(
                    f"issue page {page} returned HTTP {resp.status_code}", status_code=resp.status_code
                )
            batch = resp.json()
            if not batch:
                break
            issues.extend(batch)
            logger.info("issue_page_fetched", page=page, count=len(batch))
            if len(batch) < self.settings.per_page:
                break
        return issues

    async def fetch_candidates(self) -> List[Candidate]:
        issues = await self.fetch_issues()
        candidates: List[Candidate] = []
        for issue in issues:
            if self.settings.label and self.settings.label not in _label_names(issue):
                continue
            payload = extract_issue_payload(issue.get("body"))
            if not payload:
                continue
            candidates.append(Candidate(issue_title=issue.get("title"), **payload))
        logger.info("candidates_parsed", issues=len(issues), candidates=len(candidates))
        return candidates
