from datetime import datetime, timezone
from typing import Any

from backend.db import CONTENT_TABLE, REFRESH_LOG_TABLE, get_client
from runner.ingest.topics import Taxonomy, load_taxonomy

HIGH_QUALITY = 0.4
LOG_SCAN_LIMIT = 500


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso_z(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _exact_count(query) -> int:
    res = query.execute()
    if res.count is not None:
        return int(res.count)
    return len(res.data or [])


def _active_topic_stats(sb, topic: str) -> dict[str, int]:
    def active():
        return sb.table(CONTENT_TABLE).select("id", count="exact").eq("is_active", True).eq("topic", topic)

    return {
        "active": _exact_count(active()),
        "high_quality": _exact_count(active().gte("quality_score", HIGH_QUALITY)),
    }


def _last_refresh_by_topic(sb) -> tuple[dict[str, dict[str, Any]], dict[str, Any] | None]:
    rows = (
        sb.table(REFRESH_LOG_TABLE)
        .select("topic,age_range,status,articles_added,refresh_cycle,refresh_date,error_message")
        .order("refresh_date", desc=True)
        .limit(LOG_SCAN_LIMIT)
        .execute()
        .data
        or []
    )
    latest: dict[str, dict[str, Any]] = {}
    last_run = None
    for row in rows:
        topic = row.get("topic")
        if not topic:
            continue
        if topic == "SYSTEM_COMPLETE":
            if last_run is None:
                last_run = row
            continue
        latest.setdefault(topic, row)
    return latest, last_run


def compute_coverage(sb=None, taxonomy: Taxonomy | None = None) -> dict[str, Any]:
    sb = sb or get_client()
    taxonomy = taxonomy or load_taxonomy()

    last_logs, last_run = _last_refresh_by_topic(sb)

    topics_payload = []
    empty = []
    active_total = 0
    high_quality_total = 0

    for topic in taxonomy.topics:
        key = topic.key
        topic_stats = _active_topic_stats(sb, key)
        active = topic_stats["active"]
        high_quality = topic_stats["high_quality"]
        log = last_logs.get(key) or {}
        active_total += active
        high_quality_total += high_quality

        notes = None
        if active == 0:
            notes = "no_active_content"
            empty.append(key)
        elif high_quality == 0:
            notes = "no_high_quality"

        topics_payload.append(
            {
                "topic": key,
                "enabled": topic.enabled,
                "active": active,
                "high_quality": high_quality,
                "last_refresh_at": log.get("refresh_date"),
                "last_status": log.get("status"),
                "last_cycle": log.get("refresh_cycle"),
                "notes": notes,
            }
        )

    return {
        "generated_at": _iso_z(_utc_now()),
        "totals": {
            "topics": len(taxonomy.topics),
            "topics_with_content": sum(1 for row in topics_payload if row["active"] > 0),
            "active": active_total,
            "high_quality": high_quality_total,
        },
        "empty_topics": empty,
        "last_run": last_run,
        "topics": topics_payload,
    }
