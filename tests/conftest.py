import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.config import RefreshConfig  # noqa: E402
from runner.ingest.topics import Taxonomy, Topic  # noqa: E402


class FakeResult:
    def __init__(self, data=None, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Subset of the postgrest builder chain used by the store and reports."""

    def __init__(self, db, table):
        self.db = db
        self.table_name = table
        self._op = "select"
        self._columns = "*"
        self._count = None
        self._payload = None
        self._filters = []
        self._order = None
        self._limit = None

    def select(self, columns="*", count=None):
        self._op = "select"
        self._columns = columns
        self._count = count
        return self

    def insert(self, rows):
        self._op = "insert"
        self._payload = rows
        return self

    def update(self, values):
        self._op = "update"
        self._payload = values
        return self

    def delete(self):
        self._op = "delete"
        return self

    def eq(self, col, val):
        self._filters.append(lambda r: r.get(col) == val)
        return self

    def neq(self, col, val):
        self._filters.append(lambda r: r.get(col) != val)
        return self

    def lt(self, col, val):
        self._filters.append(lambda r: r.get(col) is not None and r.get(col) < val)
        return self

    def gte(self, col, val):
        self._filters.append(lambda r: r.get(col) is not None and r.get(col) >= val)
        return self

    def in_(self, col, values):
        values = list(values)
        self._filters.append(lambda r: r.get(col) in values)
        return self

    def order(self, col, desc=False):
        self._order = (col, desc)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def _matching(self):
        rows = self.db.tables.setdefault(self.table_name, [])
        return [r for r in rows if all(f(r) for f in self._filters)]

    def _project(self, row):
        if self._columns in ("*", None):
            return dict(row)
        cols = [c.strip() for c in self._columns.split(",")]
        return {c: row.get(c) for c in cols}

    def execute(self):
        failures = self.db.failures.get((self.table_name, self._op))
        if failures:
            raise failures.pop(0)
        self.db.calls.append((self.table_name, self._op))
        rows = self.db.tables.setdefault(self.table_name, [])

        if self._op == "insert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = []
            for row in payload:
                row = dict(row)
                self.db.next_id += 1
                row.setdefault("id", f"row-{self.db.next_id}")
                row.setdefault("created_at", self.db.now().isoformat())
                rows.append(row)
                inserted.append(dict(row))
            return FakeResult(inserted)

        matched = self._matching()
        if self._op == "update":
            for row in matched:
                row.update(self._payload)
            return FakeResult([dict(r) for r in matched])
        if self._op == "delete":
            self.db.tables[self.table_name] = [r for r in rows if r not in matched]
            return FakeResult([dict(r) for r in matched])

        if self._order:
            col, desc = self._order
            matched = sorted(
                matched,
                key=lambda r: (r.get(col) is not None, r.get(col) if r.get(col) is not None else 0),
                reverse=desc,
            )
        count = len(matched) if self._count == "exact" else None
        # PostgREST caps responses at max_rows; the exact count is not capped
        cap = self.db.max_rows if self._limit is None else min(self._limit, self.db.max_rows)
        matched = matched[:cap]
        return FakeResult([self._project(r) for r in matched], count)


class FakeRpc:
    def __init__(self, db, name, params):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.rpc_calls.append((self.name, self.params))
        handler = self.db.rpcs.get(self.name)
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return FakeResult(handler(self.db, self.params))
        return FakeResult(handler)


class FakeSupabase:
    def __init__(self, tables=None, rpcs=None, max_rows=1000):
        self.tables = {k: [dict(r) for r in v] for k, v in (tables or {}).items()}
        self.rpcs = dict(rpcs or {})
        self.failures: dict[tuple[str, str], list[Exception]] = {}
        self.calls: list[tuple[str, str]] = []
        self.rpc_calls: list[tuple[str, dict]] = []
        self.next_id = 0
        self.max_rows = max_rows

    def now(self):
        return datetime.now(timezone.utc)

    def fail(self, table, op, *errors):
        self.failures.setdefault((table, op), []).extend(errors)

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params=None):
        return FakeRpc(self, name, params or {})


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeHTTPResponse:
    def __init__(self, status_code=200, payload=None, bad_json=False):
        self.status_code = status_code
        self._payload = payload
        self._bad_json = bad_json

    def json(self):
        if self._bad_json:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.posts: list[tuple[str, dict, float]] = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


@pytest.fixture
def fake_sb():
    return FakeSupabase(rpcs={"get_current_refresh_cycle": 0, "cleanup_old_content": None})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def taxonomy():
    return Taxonomy(
        topics=(
            Topic(
                key="sleep_patterns",
                queries=("best advice on baby sleep", "expert sleep training guidance"),
                age_queries=("baby sleep patterns",),
                trusted_sources=("sleepfoundation.org", "aap.org"),
            ),
            Topic(
                key="feeding_nutrition",
                queries=("best advice on baby feeding",),
                age_queries=("baby feeding guidelines",),
                trusted_sources=("aap.org",),
            ),
        ),
        age_ranges=("0-1_months", "1-2_months"),
    )


def make_config(**overrides) -> RefreshConfig:
    values = {
        "supabase_url": "https://example.supabase.co",
        "supabase_key": "service-key",
        "anycrawl_api_key": "crawl-key",
    }
    values.update(overrides)
    return RefreshConfig(**values)


@pytest.fixture
def env_credentials(monkeypatch):
    for name in (
        "VITE_SUPABASE_URL",
        "VITE_SUPABASE_ANON_KEY",
        "VITE_ANYCRAWL_API_KEY",
        "SUPABASE_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.startswith("REFRESH_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    monkeypatch.setenv("ANYCRAWL_API_KEY", "crawl-key")
