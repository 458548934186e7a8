"""Deterministic article quality scoring.

Scores land in [0, 1]. A fully scraped article is scored from source trust,
length, title style, imagery and recency. When only the search snippet is
available a coarser trust-only score is used. Anything under MIN_QUALITY is
never stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from dateutil import parser as date_parser

from runner.ingest.extract import extract_image, extract_main_text, host_matches, word_count

BASE_SCORE = 0.5
TRUSTED_BONUS = 0.3
LONG_WORDS = 500
LONG_BONUS = 0.2
VERY_LONG_WORDS = 1000
VERY_LONG_BONUS = 0.1
PUNCT_PENALTY = 0.1
SENSATIONAL_PENALTY = 0.2
IMAGE_BONUS = 0.1
RECENT_BONUS = 0.1
RECENT_MONTHS = 12
DAYS_PER_MONTH = 30

FALLBACK_TRUSTED = 0.6
FALLBACK_DEFAULT = 0.5
MIN_QUALITY = 0.4

SENSATIONAL_MARKERS = ("AMAZING", "SHOCKING")


def clamp(score: float) -> float:
    return max(0.0, min(1.0, round(score, 4)))


def parse_date(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = date_parser.parse(str(value))
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def is_recent(published, *, now: Optional[datetime] = None) -> bool:
    dt = parse_date(published)
    if dt is None:
        return False
    now = now or datetime.now(timezone.utc)
    months_old = (now - dt).total_seconds() / 86400.0 / DAYS_PER_MONTH
    return months_old < RECENT_MONTHS


def title_penalty(title: str | None) -> float:
    title = title or ""
    penalty = 0.0
    if "!" in title or "?" in title:
        penalty += PUNCT_PENALTY
    if any(m in title for m in SENSATIONAL_MARKERS):
        penalty += SENSATIONAL_PENALTY
    return penalty


@dataclass(frozen=True)
class QualityBreakdown:
    trusted: bool
    words: int
    has_image: bool
    recent: bool
    penalty: float
    score: float


def score_content(
    *,
    url: str,
    title: str | None,
    content: str | None,
    published_date,
    trusted_sources: Iterable[str],
    now: Optional[datetime] = None,
) -> QualityBreakdown:
    trusted = host_matches(url, trusted_sources)
    words = word_count(extract_main_text(content or ""))
    has_image = extract_image(content or "") is not None
    recent = is_recent(published_date, now=now)
    penalty = title_penalty(title)

    score = BASE_SCORE
    if trusted:
        score += TRUSTED_BONUS
    if words > LONG_WORDS:
        score += LONG_BONUS
    if words > VERY_LONG_WORDS:
        score += VERY_LONG_BONUS
    score -= penalty
    if has_image:
        score += IMAGE_BONUS
    if recent:
        score += RECENT_BONUS

    return QualityBreakdown(
        trusted=trusted,
        words=words,
        has_image=has_image,
        recent=recent,
        penalty=penalty,
        score=clamp(score),
    )


def quality_score(page, trusted_sources: Iterable[str], *, now: Optional[datetime] = None) -> float:
    return score_content(
        url=page.url,
        title=page.title,
        content=page.content,
        published_date=page.published_date,
        trusted_sources=trusted_sources,
        now=now,
    ).score


def fallback_score(url: str, trusted_sources: Iterable[str]) -> float:
    return FALLBACK_TRUSTED if host_matches(url, trusted_sources) else FALLBACK_DEFAULT


def is_acceptable(score: float, minimum: float = MIN_QUALITY) -> bool:
    return score >= minimum
