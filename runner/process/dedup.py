class Deduplicator:
    """URLs already known for one (topic, age_range) scope."""

    def __init__(self, existing=None):
        self._seen: set[str] = {u for u in (existing or []) if u}
        self.seeded = len(self._seen)
        self.skipped = 0

    def is_duplicate(self, url: str) -> bool:
        if not url or url in self._seen:
            self.skipped += 1
            return True
        return False

    def mark(self, *urls: str) -> None:
        for url in urls:
            if url:
                self._seen.add(url)
