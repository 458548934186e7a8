import requests

from conftest import FakeClock, FakeHTTPResponse, FakeSession

from runner.ingest.anycrawl import (
    ScrapeClient,
    SearchClient,
    build_session,
    parse_search_payload,
)
from runner.ingest.ratelimit import RateLimiter


def _limiter(clock, interval=1.0):
    return RateLimiter(interval, clock=clock, sleep=clock.sleep)


def _search_payload(*items):
    return {"success": True, "data": list(items)}


def test_search_parses_hits_and_drops_noise():
    clock = FakeClock()
    session = FakeSession(
        [
            FakeHTTPResponse(
                200,
                _search_payload(
                    {"title": "Sleep", "url": "https://aap.org/sleep", "description": "d", "publishedDate": "2026-01-01"},
                    {"title": "Suggest", "url": "https://google.com/s", "source": "Google Suggestions"},
                    {"title": "Video", "url": "https://www.youtube.com/watch?v=1"},
                    {"title": "No url"},
                    {"title": "Link", "link": "https://example.com/a", "snippet": "from snippet", "date": "2025-05-05"},
                    "not-a-dict",
                ),
            )
        ]
    )
    client = SearchClient(
        session,
        _limiter(clock),
        base_url="https://api.example.dev/v1/",
        denylist=("youtube.com",),
    )
    hits = client.search("baby sleep", limit=5)

    assert [h.url for h in hits] == ["https://aap.org/sleep", "https://example.com/a"]
    assert hits[0].published_date == "2026-01-01"
    assert hits[1].description == "from snippet"
    assert hits[1].published_date == "2025-05-05"
    url, body, timeout = session.posts[0]
    assert url == "https://api.example.dev/v1/search"
    assert body == {"query": "baby sleep", "engine": "google", "limit": 5, "country": "US", "language": "en"}
    assert timeout == 30.0


def test_search_failures_return_empty_list_with_tagged_error():
    clock = FakeClock()
    session = FakeSession(
        [
            requests.exceptions.ConnectionError("boom"),
            requests.exceptions.ReadTimeout("slow"),
            FakeHTTPResponse(503, {}),
            FakeHTTPResponse(200, bad_json=True),
            FakeHTTPResponse(200, {"success": False, "data": []}),
            FakeHTTPResponse(200, {"success": True, "data": {"oops": 1}}),
        ]
    )
    client = SearchClient(session, _limiter(clock))
    errors = []
    for _ in range(6):
        assert client.search("q") == []
        errors.append(client.last_error)

    assert errors == [
        "request_error:ConnectionError",
        "request_error:timeout",
        "http_error:503",
        "malformed_response:not_json",
        "malformed_response:success_false",
        "malformed_response:data_not_list",
    ]
    assert client.calls == 6
    assert client.errors == 6


def test_every_request_passes_through_rate_limiter():
    clock = FakeClock()
    session = FakeSession([FakeHTTPResponse(200, _search_payload()) for _ in range(3)])
    client = SearchClient(session, _limiter(clock, interval=1.0))
    for _ in range(3):
        client.search("q")
    assert clock.sleeps == [1.0, 1.0]


def test_scrape_returns_page_with_defaults():
    clock = FakeClock()
    session = FakeSession(
        [FakeHTTPResponse(200, {"success": True, "data": {"text": "<p>body</p>"}})]
    )
    client = ScrapeClient(session, _limiter(clock, 2.0), timeout=90.0)
    page = client.scrape("https://example.com/a")

    assert page.url == "https://example.com/a"
    assert page.title == "Untitled"
    assert page.content == "<p>body</p>"
    assert session.posts[0][1] == {"url": "https://example.com/a", "engine": "cheerio"}
    assert session.posts[0][2] == 90.0


def test_scrape_failures_return_none():
    clock = FakeClock()
    session = FakeSession(
        [
            FakeHTTPResponse(404, {}),
            FakeHTTPResponse(200, {"success": True, "data": {"content": "   "}}),
            FakeHTTPResponse(200, {"success": True, "data": []}),
            requests.exceptions.Timeout("slow"),
        ]
    )
    client = ScrapeClient(session, _limiter(clock, 2.0))
    errors = []
    for _ in range(4):
        assert client.scrape("https://example.com/a") is None
        errors.append(client.last_error)
    assert errors == [
        "http_error:404",
        "empty_content",
        "malformed_response:data_not_object",
        "request_error:timeout",
    ]


def test_parse_search_payload_rejects_non_list_data():
    hits, err = parse_search_payload({"success": True, "data": None})
    assert hits == []
    assert err == "malformed_response:data_not_list"


def test_build_session_sets_auth_headers():
    session = build_session("secret")
    assert session.headers["Authorization"] == "Bearer secret"
    assert session.headers["User-Agent"] == "MilestoneBee/1.0"
    assert session.headers["Content-Type"] == "application/json"
