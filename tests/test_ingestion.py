import json

import httpx
import pytest

from linkmonitor.config import GithubSettings
from linkmonitor.errors import IngestionError
from linkmonitor.services.ingestion import IssueSource, extract_issue_payload


pytestmark = pytest.mark.anyio

ACTIVE = [{"name": "active"}]


def _issue(number, body, labels=ACTIVE, title=None):
    return {"number": number, "title": title or f"issue {number}", "body": body, "labels": labels}


def _json_body(**payload):
    return "Please add my site\n\n```json\n" + json.dumps(payload) + "\n```\n"


def test_extract_prefers_fenced_json():
    body = _json_body(title="Blog", url="https://blog.example.com/", avatar="https://blog.example.com/a.png")
    assert extract_issue_payload(body) == {
        "url": "https://blog.example.com/",
        "title": "Blog",
        "avatar": "https://blog.example.com/a.png",
    }


def test_extract_falls_back_to_bare_url():
    body = "My site is https://plain.example.org/home, thanks!"
    assert extract_issue_payload(body) == {"url": "https://plain.example.org/home"}


def test_extract_skips_json_without_url():
    body = "```json\n{\"title\": \"no url\"}\n```\nsee http://other.example"
    assert extract_issue_payload(body) == {"url": "http://other.example"}


def test_extract_returns_none_without_url():
    assert extract_issue_payload("nothing to see") is None
    assert extract_issue_payload(None) is None
    assert extract_issue_payload("```json\n{broken\n```") is None


def _source(handler, **overrides):
    options = {"repo": "owner/links", "per_page": 2, "max_pages": 5, **overrides}
    settings = GithubSettings(**options)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return IssueSource(settings, client=client)


async def test_pagination_stops_on_404_and_keeps_pages():
    pages = {
        1: [_issue(1, _json_body(url="https://one.example")), _issue(2, "https://two.example")],
    }
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        page = int(request.url.params["page"])
        requested.append(page)
        if page in pages:
            return httpx.Response(200, json=pages[page])
        return httpx.Response(404, json={"message": "Not Found"})

    candidates = await _source(handler).fetch_candidates()
    assert requested == [1, 2]
    assert [c.url for c in candidates] == ["https://one.example", "https://two.example"]
    assert candidates[0].issue_title == "issue 1"


async def test_short_page_ends_paging():
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(int(request.url.params["page"]))
        return httpx.Response(200, json=[_issue(1, "https://one.example")])

    await _source(handler).fetch_candidates()
    assert requested == [1]


async def test_max_pages_guard():
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(int(request.url.params["page"]))
        return httpx.Response(200, json=[_issue(1, "https://a.example"), _issue(2, "https://b.example")])

    candidates = await _source(handler, max_pages=3).fetch_candidates()
    assert requested == [1, 2, 3]
    assert len(candidates) == 6


async def test_other_http_errors_abort():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "boom"})

    with pytest.raises(IngestionError) as info:
        await _source(handler).fetch_candidates()
    assert info.value.status_code == 500


async def test_network_errors_abort():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(IngestionError):
        await _source(handler).fetch_candidates()


async def test_unlabelled_and_urlless_issues_are_dropped():
    issues = [
        _issue(1, "https://keep.example"),
        _issue(2, "https://skip.example", labels=[{"name": "pending"}]),
        _issue(3, "no link here"),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=issues)

    candidates = await _source(handler, per_page=100).fetch_candidates()
    assert [c.url for c in candidates] == ["https://keep.example"]


async def test_request_carries_filters_and_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json=[])

    await _source(handler, token="secret", label="active").fetch_issues()
    assert seen["path"] == "/repos/owner/links/issues"
    assert seen["params"]["labels"] == "active"
    assert seen["params"]["state"] == "all"
    assert seen["auth"] == "token secret"
