import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from backend.db import CONTENT_TABLE, REFRESH_LOG_TABLE, with_retry

SYSTEM_COMPLETE = "SYSTEM_COMPLETE"
STATUSES = ("success", "partial", "failed")
NIL_UUID = "00000000-0000-0000-0000-000000000000"
ERROR_MESSAGE_MAX = 500


class StoreError(Exception):
    pass


@dataclass
class ContentItem:
    topic: str
    age_range: str
    url: str
    title: str
    content_summary: str
    source_domain: str
    publication_date: str
    quality_score: float
    refresh_cycle: int
    image_url: str | None = None
    reading_time: int = 3
    author: str = "Expert"
    tags: list[str] = field(default_factory=list)
    is_active: bool = True

    def to_row(self) -> dict:
        return asdict(self)


@dataclass
class RefreshLogEntry:
    topic: str
    age_range: str
    status: str
    refresh_cycle: int
    articles_added: int = 0
    articles_removed: int = 0
    error_message: str | None = None
    refresh_date: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def __post_init__(self):
        if self.status not in STATUSES:
            raise ValueError(f"Unknown refresh status: {self.status}")
        if self.error_message:
            self.error_message = self.error_message[:ERROR_MESSAGE_MAX]

    def to_row(self) -> dict:
        return asdict(self)


class ContentStore:
    """topic_content and content_refresh_log on Supabase."""

    def __init__(self, sb, retry_sleep=None):
        self.sb = sb
        self._retry_kwargs = {"sleep": retry_sleep} if retry_sleep else {}

    def _content(self):
        return self.sb.table(CONTENT_TABLE)

    def list_active_urls(self, topic: str, age_range: str) -> set[str]:
        try:
            res = (
                self._content()
                .select("url")
                .eq("topic", topic)
                .eq("age_range", age_range)
                .eq("is_active", True)
                .execute()
            )
        except Exception as e:
            raise StoreError(f"list_active_urls failed: {e}") from e
        return {row["url"] for row in (res.data or []) if row.get("url")}

    def insert_many(self, items: list[ContentItem]) -> str | None:
        if not items:
            return None
        rows = [item.to_row() for item in items]
        try:
            self._content().insert(rows).execute()
        except Exception as e:
            return f"{type(e).__name__}: {str(e)[:300]}"
        return None

    def delete_where(self, topic: str | None = None) -> int:
        query = self._content().delete()
        if topic:
            query = query.eq("topic", topic)
        else:
            # delete() needs a filter; match every row
            query = query.neq("id", NIL_UUID)
        res = query.execute()
        return len(res.data or [])

    def cleanup_old_content(self):
        res = self.sb.rpc("cleanup_old_content", {}).execute()
        return res.data

    def append_refresh_log(self, entry: RefreshLogEntry) -> bool:
        row = entry.to_row()
        try:
            with_retry(
                lambda: self.sb.table(REFRESH_LOG_TABLE).insert(row).execute(),
                **self._retry_kwargs,
            )
            return True
        except Exception as e:
            print(
                f"REFRESH_LOG_WRITE_FAIL topic={entry.topic} age_range={entry.age_range} "
                f"err={type(e).__name__} msg={str(e)[:200]}",
                file=sys.stderr,
            )
            return False

    def current_refresh_cycle(self) -> int:
        try:
            data = self.sb.rpc("get_current_refresh_cycle", {}).execute().data
            if isinstance(data, list):
                data = data[0] if data else None
            if isinstance(data, dict):
                data = next(iter(data.values()), None)
            return int(data or 0)
        except Exception as e:
            print(f"REFRESH_CYCLE_RPC_FAIL err={type(e).__name__} fallback=max_log_cycle")
        try:
            res = (
                self.sb.table(REFRESH_LOG_TABLE)
                .select("refresh_cycle")
                .order("refresh_cycle", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise StoreError(f"current_refresh_cycle failed: {e}") from e
        if res.data:
            return int(res.data[0].get("refresh_cycle") or 0)
        return 0

    def count_active(self, topic: str | None = None) -> int:
        query = self._content().select("id", count="exact").eq("is_active", True)
        if topic:
            query = query.eq("topic", topic)
        try:
            res = query.execute()
        except Exception as e:
            raise StoreError(f"count_active failed: {e}") from e
        if res.count is not None:
            return int(res.count)
        return len(res.data or [])

    def active_counts_by_topic(self, topics: list[str]) -> dict[str, int]:
        return {topic: self.count_active(topic) for topic in topics}
