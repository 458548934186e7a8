import os

from runner.jobs import refresh_content


def main() -> int:
    os.environ["REFRESH_MODE"] = "comprehensive"
    os.environ["REFRESH_CLEANUP_MODE"] = "wipe"
    os.environ["REFRESH_QUERIES_PER_SCOPE"] = os.getenv("REFRESH_QUERIES_PER_SCOPE", "4")
    os.environ["REFRESH_SEARCH_LIMIT"] = os.getenv("REFRESH_SEARCH_LIMIT", "15")
    os.environ["REFRESH_MAX_ARTICLES"] = os.getenv("REFRESH_MAX_ARTICLES", "50")
    os.environ["REFRESH_TIMEOUT_SEC"] = os.getenv("REFRESH_TIMEOUT_SEC", "90")
    return refresh_content.main()


if __name__ == "__main__":
    raise SystemExit(main())
