import json
from dataclasses import dataclass
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent / "refresh_topics.json"
ALL_AGES = "all"


@dataclass(frozen=True)
class Topic:
    key: str
    queries: tuple[str, ...]
    age_queries: tuple[str, ...]
    trusted_sources: tuple[str, ...]
    enabled: bool = True

    @property
    def tag(self) -> str:
        return self.key.replace("_", " ", 1)


@dataclass(frozen=True)
class Taxonomy:
    topics: tuple[Topic, ...]
    age_ranges: tuple[str, ...]

    def get(self, key: str) -> Topic | None:
        for topic in self.topics:
            if topic.key == key:
                return topic
        return None

    def keys(self) -> list[str]:
        return [t.key for t in self.topics]


def _strs(values) -> tuple[str, ...]:
    return tuple(str(v).strip() for v in (values or []) if str(v).strip())


def load_taxonomy(path: Path = CONFIG_PATH) -> Taxonomy:
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    topics = []
    for row in raw.get("topics") or []:
        key = (row.get("key") or "").strip()
        if not key:
            continue
        queries = _strs(row.get("queries"))
        topics.append(
            Topic(
                key=key,
                queries=queries,
                age_queries=_strs(row.get("age_queries")) or queries,
                trusted_sources=tuple(s.lower() for s in _strs(row.get("trusted_sources"))),
                enabled=bool(row.get("enabled", True)),
            )
        )
    return Taxonomy(topics=tuple(topics), age_ranges=_strs(raw.get("age_ranges")))


def age_label(age_range: str) -> str:
    # "0-1_months" -> "0-1 months"
    return age_range.replace("_", " ", 1)
