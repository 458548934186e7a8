import sys
from dataclasses import dataclass
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from backend.config import DEFAULT_BASE_URL
from .extract import host_matches
from .ratelimit import RateLimiter

USER_AGENT = "MilestoneBee/1.0"
SUGGESTION_SOURCE = "Google Suggestions"


@dataclass(frozen=True)
class SearchHit:
    title: str
    url: str
    description: str = ""
    published_date: str | None = None


@dataclass(frozen=True)
class ScrapedPage:
    url: str
    title: str
    content: str
    published_date: str | None = None


def build_session(api_key: str) -> requests.Session:
    session = requests.Session()
    # Failures are absorbed by the pipeline; no transport-level retries.
    retries = Retry(total=0, status_forcelist=[], respect_retry_after_header=True)
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update(
        {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
            "User-Agent": USER_AGENT,
        }
    )
    return session


class _AnyCrawlEndpoint:
    def __init__(
        self,
        session: requests.Session,
        limiter: RateLimiter,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
    ):
        self.session = session
        self.limiter = limiter
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.last_error: str | None = None
        self.calls = 0
        self.errors = 0

    def _post(self, path: str, body: dict) -> tuple[Optional[dict], Optional[str]]:
        self.limiter.wait()
        self.calls += 1
        try:
            resp = self.session.post(
                f"{self.base_url}{path}", json=body, timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            return None, "request_error:timeout"
        except requests.exceptions.RequestException as e:
            return None, f"request_error:{type(e).__name__}"
        if not 200 <= resp.status_code < 300:
            return None, f"http_error:{resp.status_code}"
        try:
            payload = resp.json()
        except ValueError:
            return None, "malformed_response:not_json"
        if not isinstance(payload, dict):
            return None, "malformed_response:not_object"
        if payload.get("success") is not True:
            return None, "malformed_response:success_false"
        return payload, None

    def _fail(self, err: str) -> None:
        self.errors += 1
        self.last_error = err


def parse_search_payload(
    payload: dict, denylist=()
) -> tuple[list[SearchHit], Optional[str]]:
    data = payload.get("data")
    if not isinstance(data, list):
        return [], "malformed_response:data_not_list"
    hits = []
    for item in data:
        if not isinstance(item, dict):
            continue
        url = str(item.get("url") or item.get("link") or "").strip()
        if not url:
            continue
        if item.get("source") == SUGGESTION_SOURCE:
            continue
        if denylist and host_matches(url, denylist):
            continue
        published = item.get("publishedDate") or item.get("date")
        hits.append(
            SearchHit(
                title=str(item.get("title") or ""),
                url=url,
                description=str(item.get("description") or item.get("snippet") or ""),
                published_date=str(published) if published else None,
            )
        )
    return hits, None


def parse_scrape_payload(
    payload: dict, url: str
) -> tuple[Optional[ScrapedPage], Optional[str]]:
    data = payload.get("data")
    if not isinstance(data, dict):
        return None, "malformed_response:data_not_object"
    content = data.get("content") or data.get("text") or ""
    if not isinstance(content, str):
        return None, "malformed_response:content_not_text"
    if not content.strip():
        return None, "empty_content"
    published = data.get("publishedDate") or data.get("date")
    return (
        ScrapedPage(
            url=str(data.get("url") or url),
            title=str(data.get("title") or "Untitled"),
            content=content,
            published_date=str(published) if published else None,
        ),
        None,
    )


class SearchClient(_AnyCrawlEndpoint):
    def __init__(self, *args, denylist=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.denylist = tuple(denylist or ())

    def search(
        self,
        query: str,
        engine: str = "google",
        limit: int = 10,
        country: str = "US",
        language: str = "en",
    ) -> list[SearchHit]:
        body = {
            "query": query,
            "engine": engine,
            "limit": limit,
            "country": country,
            "language": language,
        }
        payload, err = self._post("/search", body)
        hits: list[SearchHit] = []
        if payload is not None:
            hits, err = parse_search_payload(payload, self.denylist)
        if err:
            self._fail(err)
            print(f'SEARCH_FAIL query="{query}" err={err}', file=sys.stderr)
            return []
        print(f'SEARCH_DONE query="{query}" hits={len(hits)}')
        return hits


class ScrapeClient(_AnyCrawlEndpoint):
    def scrape(self, url: str, engine: str = "cheerio") -> Optional[ScrapedPage]:
        payload, err = self._post("/scrape", {"url": url, "engine": engine})
        page = None
        if payload is not None:
            page, err = parse_scrape_payload(payload, url)
        if err:
            self._fail(err)
            print(f"SCRAPE_FAIL url={url} err={err}", file=sys.stderr)
            return None
        return page
