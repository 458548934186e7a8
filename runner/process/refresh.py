import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from backend.config import RefreshConfig
from runner.ingest.anycrawl import ScrapedPage, SearchHit
from runner.ingest.extract import (
    extract_image,
    extract_main_text,
    reading_time,
    source_domain,
    summarize,
)
from runner.ingest.topics import ALL_AGES, Taxonomy, Topic, age_label
from runner.process.dedup import Deduplicator
from runner.process.scoring import fallback_score, is_acceptable, parse_date, quality_score
from runner.process.store import SYSTEM_COMPLETE, ContentItem, ContentStore, RefreshLogEntry

TITLE_MAX_CHARS = 200
FALLBACK_READING_TIME = 3


class RefreshState(str, Enum):
    IDLE = "idle"
    CLEANING = "cleaning"
    SEARCHING = "searching"
    SCRAPING = "scraping"
    SCORING = "scoring"
    STORING = "storing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ScopeResult:
    topic: str
    age_range: str
    status: str = "success"
    added: int = 0
    hits: int = 0
    duplicates: int = 0
    candidates: int = 0
    candidate_errors: int = 0
    error: str | None = None


@dataclass
class RefreshStats:
    mode: str
    refresh_cycle: int
    removed: int = 0
    added: int = 0
    successful: int = 0
    partial: int = 0
    failed: int = 0
    skipped_topics: list[str] = field(default_factory=list)
    scopes: list[ScopeResult] = field(default_factory=list)
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def duration(self) -> float:
        return max(0.0, self.finished_at - self.started_at)

    def record(self, result: ScopeResult) -> None:
        self.scopes.append(result)
        self.added += result.added
        if result.status == "failed":
            self.failed += 1
        else:
            self.successful += 1
            if result.status == "partial":
                self.partial += 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshOrchestrator:
    """Drives search -> scrape -> score -> dedup -> store over every scope.

    A scope is a (topic, age_range) pair, or (topic, "all") when age ranges
    are not used. Scopes run strictly in sequence. Errors inside a scope are
    recorded on that scope and the run moves on; errors outside the scope
    loop (cycle lookup, cleaning) fail the run and propagate.
    """

    def __init__(
        self,
        cfg: RefreshConfig,
        store: ContentStore,
        search_client,
        scrape_client,
        taxonomy: Taxonomy,
        *,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = _utcnow,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cfg = cfg
        self.store = store
        self.search_client = search_client
        self.scrape_client = scrape_client
        self.taxonomy = taxonomy
        self.sleep = sleep
        self.now = now
        self.clock = clock
        self.state = RefreshState.IDLE
        self.transitions: list[RefreshState] = []

    def _enter(self, state: RefreshState) -> None:
        self.state = state
        if not self.transitions or self.transitions[-1] != state:
            self.transitions.append(state)

    def selected_topics(self) -> list[Topic]:
        topics = [t for t in self.taxonomy.topics if t.enabled]
        if self.cfg.topics:
            wanted = set(self.cfg.topics)
            topics = [t for t in topics if t.key in wanted]
        if self.cfg.scope_limit > 0:
            topics = topics[: self.cfg.scope_limit]
        return topics

    def age_ranges(self) -> list[str]:
        if self.cfg.use_age_ranges:
            return list(self.taxonomy.age_ranges)
        return [ALL_AGES]

    def queries_for(self, topic: Topic, age_range: str) -> list[str]:
        if age_range == ALL_AGES:
            base = topic.queries
        else:
            base = topic.age_queries
        queries = list(base[: max(1, self.cfg.queries_per_scope)])
        if age_range != ALL_AGES:
            queries = [f"{q} {age_label(age_range)}" for q in queries]
        return queries

    def clean(self, topics: list[Topic]) -> int:
        self._enter(RefreshState.CLEANING)
        if self.cfg.cleanup_mode == "wipe":
            if self.cfg.topics or self.cfg.scope_limit > 0:
                removed = sum(self.store.delete_where(topic=t.key) for t in topics)
            else:
                removed = self.store.delete_where()
            print(f"REFRESH_WIPE removed={removed}")
            return removed

        before = self.store.count_active()
        self.store.cleanup_old_content()
        after = self.store.count_active()
        removed = max(0, before - after)
        print(f"REFRESH_CLEANUP removed={removed} active={after}")
        return removed

    def run(self) -> RefreshStats:
        try:
            return self._run()
        except Exception:
            self._enter(RefreshState.FAILED)
            raise

    def _run(self) -> RefreshStats:
        cycle = self.store.current_refresh_cycle() + 1
        stats = RefreshStats(mode=self.cfg.mode, refresh_cycle=cycle, started_at=self.clock())
        topics = self.selected_topics()
        ages = self.age_ranges()
        print(
            f"REFRESH_RUN_START mode={self.cfg.mode} cycle={cycle} topics={len(topics)} "
            f"scopes={len(topics) * len(ages)} cleanup={self.cfg.cleanup_mode} "
            f"test_mode={int(self.cfg.test_mode)}"
        )

        stats.removed = self.clean(topics)

        if self.cfg.top_up_below > 0:
            counts = self.store.active_counts_by_topic([t.key for t in topics])
            kept = []
            for topic in topics:
                have = counts.get(topic.key, 0)
                if have >= self.cfg.top_up_below:
                    print(f"REFRESH_TOPIC_SKIP topic={topic.key} active={have}")
                    stats.skipped_topics.append(topic.key)
                else:
                    kept.append(topic)
            topics = kept

        scopes = [(topic, age) for topic in topics for age in ages]
        for i, (topic, age_range) in enumerate(scopes):
            result = self.refresh_scope(topic, age_range, cycle)
            stats.record(result)
            self.store.append_refresh_log(
                RefreshLogEntry(
                    topic=topic.key,
                    age_range=age_range,
                    status=result.status,
                    refresh_cycle=cycle,
                    articles_added=result.added,
                    error_message=result.error,
                )
            )
            print(
                f"REFRESH_SCOPE_DONE topic={topic.key} age_range={age_range} "
                f"added={result.added} status={result.status}"
            )
            if i < len(scopes) - 1 and self.cfg.scope_delay > 0:
                self.sleep(self.cfg.scope_delay)

        self.store.append_refresh_log(
            RefreshLogEntry(
                topic=SYSTEM_COMPLETE,
                age_range=ALL_AGES,
                status="success" if stats.successful > 0 else "failed",
                refresh_cycle=cycle,
                articles_added=stats.added,
                articles_removed=stats.removed,
                error_message=f"Completed: {stats.successful} successful, {stats.failed} failed",
            )
        )
        stats.finished_at = self.clock()
        self._enter(RefreshState.COMPLETED)
        print_summary(stats)
        return stats

    def refresh_scope(self, topic: Topic, age_range: str, cycle: int) -> ScopeResult:
        result = ScopeResult(topic=topic.key, age_range=age_range)
        try:
            dedup = Deduplicator(self.store.list_active_urls(topic.key, age_range))
            items: list[ContentItem] = []
            queries = self.queries_for(topic, age_range)
            for qi, query in enumerate(queries):
                if self._scope_full(result, items):
                    break
                if qi > 0 and self.cfg.query_delay > 0:
                    self.sleep(self.cfg.query_delay)
                self._enter(RefreshState.SEARCHING)
                hits = self.search_client.search(query, limit=self.cfg.search_limit)
                result.hits += len(hits)
                for hit in hits:
                    if self._scope_full(result, items):
                        break
                    if dedup.is_duplicate(hit.url):
                        continue
                    dedup.mark(hit.url)
                    result.candidates += 1
                    item = self._process_candidate(topic, age_range, hit, cycle, result)
                    if item is not None:
                        items.append(item)
            result.duplicates = dedup.skipped

            if items:
                self._enter(RefreshState.STORING)
                err = self.store.insert_many(items)
                if err:
                    result.status = "failed"
                    result.error = err
                    print(
                        f"REFRESH_INSERT_FAIL topic={topic.key} age_range={age_range} err={err}",
                        file=sys.stderr,
                    )
                    return result
                result.added = len(items)
        except Exception as e:
            result.status = "failed"
            result.added = 0
            result.error = f"{type(e).__name__}: {e}"
            print(
                f"REFRESH_SCOPE_FAIL topic={topic.key} age_range={age_range} "
                f"err={type(e).__name__} msg={str(e)[:200]}",
                file=sys.stderr,
            )
            return result

        if result.candidate_errors and result.added:
            result.status = "partial"
        return result

    def _scope_full(self, result: ScopeResult, items: list) -> bool:
        return (
            result.candidates >= self.cfg.candidate_limit
            or len(items) >= self.cfg.max_articles_per_scope
        )

    def _process_candidate(
        self,
        topic: Topic,
        age_range: str,
        hit: SearchHit,
        cycle: int,
        result: ScopeResult,
    ) -> Optional[ContentItem]:
        try:
            self._enter(RefreshState.SCRAPING)
            page = self.scrape_client.scrape(hit.url)
            if page is not None and len(page.content) > self.cfg.min_content_chars:
                self._enter(RefreshState.SCORING)
                score = quality_score(page, topic.trusted_sources, now=self.now())
                if not is_acceptable(score, self.cfg.min_quality):
                    print(f"REFRESH_LOW_QUALITY url={hit.url} score={score}")
                    return None
                return self._item_from_page(topic, age_range, hit, page, score, cycle)
        except Exception as e:
            result.candidate_errors += 1
            print(
                f"REFRESH_CANDIDATE_FAIL url={hit.url} err={type(e).__name__} msg={str(e)[:200]}",
                file=sys.stderr,
            )

        if len(hit.description or "") > self.cfg.min_snippet_chars:
            self._enter(RefreshState.SCORING)
            score = fallback_score(hit.url, topic.trusted_sources)
            if is_acceptable(score, self.cfg.min_quality):
                return self._item_from_hit(topic, age_range, hit, score, cycle)
        return None

    def _publication_date(self, *values) -> str:
        for value in values:
            dt = parse_date(value)
            if dt is not None:
                return dt.date().isoformat()
        return self.now().date().isoformat()

    def _item_from_page(
        self,
        topic: Topic,
        age_range: str,
        hit: SearchHit,
        page: ScrapedPage,
        score: float,
        cycle: int,
    ) -> ContentItem:
        title = page.title if page.title and page.title != "Untitled" else (hit.title or page.title)
        return ContentItem(
            topic=topic.key,
            age_range=age_range,
            url=hit.url,
            title=title[:TITLE_MAX_CHARS],
            content_summary=summarize(page.content),
            source_domain=source_domain(hit.url),
            publication_date=self._publication_date(page.published_date, hit.published_date),
            quality_score=score,
            refresh_cycle=cycle,
            image_url=extract_image(page.content),
            reading_time=reading_time(extract_main_text(page.content)),
            tags=[topic.tag],
        )

    def _item_from_hit(
        self,
        topic: Topic,
        age_range: str,
        hit: SearchHit,
        score: float,
        cycle: int,
    ) -> ContentItem:
        return ContentItem(
            topic=topic.key,
            age_range=age_range,
            url=hit.url,
            title=(hit.title or "Untitled")[:TITLE_MAX_CHARS],
            content_summary=summarize(hit.description),
            source_domain=source_domain(hit.url),
            publication_date=self._publication_date(hit.published_date),
            quality_score=score,
            refresh_cycle=cycle,
            reading_time=FALLBACK_READING_TIME,
            tags=[topic.tag],
        )


def print_summary(stats: RefreshStats) -> None:
    print("")
    print("=== Content refresh summary ===")
    print(f"Mode: {stats.mode}  Cycle: {stats.refresh_cycle}")
    print(f"Scopes: {len(stats.scopes)} ({stats.successful} successful, {stats.failed} failed, {stats.partial} partial)")
    print(f"Articles added: {stats.added}  Removed during cleaning: {stats.removed}")
    if stats.skipped_topics:
        print(f"Topics already covered: {', '.join(stats.skipped_topics)}")
    print(f"Duration: {stats.duration:.1f}s")
    print(
        f"REFRESH_RUN_DONE cycle={stats.refresh_cycle} added={stats.added} "
        f"successful={stats.successful} failed={stats.failed}"
    )
