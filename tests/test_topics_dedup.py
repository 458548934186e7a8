import json

from runner.ingest.topics import age_label, load_taxonomy
from runner.process.dedup import Deduplicator

EXPECTED_TOPICS = [
    "feeding_nutrition",
    "sleep_patterns",
    "cognitive_development",
    "physical_development",
    "social_emotional",
    "health_safety",
    "activities_play",
    "behavior_discipline",
    "language_communication",
]


def test_bundled_taxonomy_covers_all_topics_and_age_ranges():
    taxonomy = load_taxonomy()
    assert taxonomy.keys() == EXPECTED_TOPICS
    assert len(taxonomy.age_ranges) == 16
    assert taxonomy.age_ranges[0] == "0-1_months"
    assert taxonomy.age_ranges[-1] == "30-36_months"
    for topic in taxonomy.topics:
        assert len(topic.queries) == 4
        assert topic.age_queries
        assert topic.trusted_sources


def test_taxonomy_loader_normalises_rows(tmp_path):
    path = tmp_path / "topics.json"
    path.write_text(
        json.dumps(
            {
                "age_ranges": ["0-1_months"],
                "topics": [
                    {"key": "health_safety", "queries": ["q1", " "], "trusted_sources": ["CDC.gov"]},
                    {"key": "", "queries": ["ignored"]},
                    {"key": "activities_play", "enabled": False, "queries": ["q2"]},
                ],
            }
        ),
        encoding="utf-8",
    )
    taxonomy = load_taxonomy(path)
    topic = taxonomy.get("health_safety")
    assert topic.queries == ("q1",)
    assert topic.age_queries == ("q1",)
    assert topic.trusted_sources == ("cdc.gov",)
    assert topic.tag == "health safety"
    assert taxonomy.get("activities_play").enabled is False
    assert taxonomy.get("missing") is None


def test_age_label():
    assert age_label("12-18_months") == "12-18 months"


def test_deduplicator_seeds_and_marks():
    dedup = Deduplicator(["https://a.example/1", ""])
    assert dedup.seeded == 1
    assert dedup.is_duplicate("https://a.example/1")
    assert not dedup.is_duplicate("https://a.example/2")
    dedup.mark("https://a.example/2")
    assert dedup.is_duplicate("https://a.example/2")
    assert dedup.is_duplicate("")
    assert dedup.skipped == 3
