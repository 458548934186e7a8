import math
import re
from typing import Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

SUMMARY_MAX_CHARS = 300
SUMMARY_MIN_PARAGRAPH = 50
WORDS_PER_MINUTE = 200
MIN_IMAGE_SIZE = 200

_SRC_MARKERS = ("icon", "logo", "ad")
_ATTR_MARKERS = ("icon", "logo")
_LEADING_INT_RE = re.compile(r"^\s*(\d+)")


def _soup(markup: str) -> BeautifulSoup:
    soup = BeautifulSoup(markup or "", "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return soup


def extract_main_text(html: str) -> str:
    text = _soup(html).get_text(separator=" ")
    text = re.sub(r"\s+", " ", text).strip()
    return text


def _dimension(raw: str | None) -> int:
    # "300px" -> 300, "auto" -> 0
    m = _LEADING_INT_RE.match(raw or "")
    return int(m.group(1)) if m else 0


def _is_decorative(img) -> bool:
    src = img.get("src") or ""
    alt = img.get("alt") or ""
    cls = img.get("class") or ""
    if isinstance(cls, list):
        cls = " ".join(cls)
    if any(m in src for m in _SRC_MARKERS):
        return True
    return any(m in cls or m in alt for m in _ATTR_MARKERS)


def _is_large_enough(img) -> bool:
    width = _dimension(img.get("width"))
    height = _dimension(img.get("height"))
    if not width and not height:
        return True
    return width >= MIN_IMAGE_SIZE or height >= MIN_IMAGE_SIZE


def extract_image(markup: str) -> Optional[str]:
    """
    First content image URL in the markup, or None.

    Icons, logos and ads are skipped, as are images declared smaller than
    200px on both sides. Protocol-relative URLs get https; root-relative
    paths cannot be resolved without the page URL and yield None.
    """
    if not markup or "<img" not in markup.lower():
        return None
    try:
        soup = BeautifulSoup(markup, "html.parser")
        candidates = [
            img
            for img in soup.find_all("img")
            if not _is_decorative(img) and _is_large_enough(img)
        ]
    except Exception as e:
        print(f"IMAGE_EXTRACT_FAIL err={type(e).__name__} msg={str(e)[:200]}")
        return None
    if not candidates:
        return None

    first = candidates[0]
    src = (first.get("src") or first.get("data-src") or "").strip()
    if not src:
        return None
    if src.startswith("//"):
        return "https:" + src
    if src.startswith("/"):
        return None
    return src


def summarize(markup: str) -> str:
    text = _soup(markup).get_text()
    for paragraph in text.split("\n"):
        paragraph = paragraph.strip()
        if len(paragraph) > SUMMARY_MIN_PARAGRAPH:
            return _truncate(paragraph)
    return _truncate(re.sub(r"\s+", " ", text).strip())


def _truncate(text: str, limit: int = SUMMARY_MAX_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def word_count(text: str | None) -> int:
    return len((text or "").split())


def reading_time(text: str | None) -> int:
    return max(1, math.ceil(word_count(text) / WORDS_PER_MINUTE))


def source_domain(url: str) -> str:
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    return host


def host_matches(url: str, domains) -> bool:
    host = source_domain(url)
    if not host:
        return False
    for domain in domains or []:
        domain = (domain or "").lower().lstrip(".")
        if not domain:
            continue
        if host == domain or host.endswith("." + domain):
            return True
    return False
