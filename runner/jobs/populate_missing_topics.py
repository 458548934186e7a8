import os

from runner.jobs import refresh_content


def main() -> int:
    os.environ["REFRESH_MODE"] = "comprehensive"
    os.environ["REFRESH_CLEANUP_MODE"] = "cleanup"
    os.environ["REFRESH_TOP_UP_BELOW"] = os.getenv("REFRESH_TOP_UP_BELOW", "5")
    os.environ["REFRESH_QUERIES_PER_SCOPE"] = os.getenv("REFRESH_QUERIES_PER_SCOPE", "1")
    os.environ["REFRESH_SEARCH_LIMIT"] = os.getenv("REFRESH_SEARCH_LIMIT", "10")
    os.environ["REFRESH_MAX_ARTICLES"] = os.getenv("REFRESH_MAX_ARTICLES", "5")
    return refresh_content.main()


if __name__ == "__main__":
    raise SystemExit(main())
