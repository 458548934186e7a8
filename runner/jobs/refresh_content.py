import argparse
import fcntl
import sys
import time

from backend.config import CLEANUP_MODES, MODES, ConfigError, load_config
from backend.db import get_client
from runner.ingest.anycrawl import ScrapeClient, SearchClient, build_session
from runner.ingest.ratelimit import RateLimiter
from runner.ingest.topics import load_taxonomy
from runner.process.refresh import RefreshOrchestrator
from runner.process.store import ContentStore, StoreError


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Refresh topic_content from AnyCrawl search results")
    parser.add_argument("--mode", choices=list(MODES), default=None)
    parser.add_argument("--cleanup-mode", choices=list(CLEANUP_MODES), default=None)
    parser.add_argument("--topics", default=None, help="Comma-separated topic keys")
    parser.add_argument("--test-mode", action="store_true", default=None)
    parser.add_argument("--top-up-below", type=int, default=None)
    parser.add_argument("--skip-health-check", action="store_true")
    return parser.parse_args(argv)


def _split_topics(raw: str | None) -> tuple[str, ...] | None:
    if not raw:
        return None
    return tuple(t.strip().lower() for t in raw.split(",") if t.strip()) or None


def run_health_check(store: ContentStore) -> int | None:
    try:
        active = store.count_active()
    except StoreError as e:
        print(f"HEALTH_CHECK_FAIL err={str(e)[:200]}", file=sys.stderr)
        return None
    if active == 0:
        print("HEALTH_CHECK_WARN active=0 reason=no_active_content", file=sys.stderr)
    else:
        print(f"HEALTH_CHECK_OK active={active}")
    return active


def build_orchestrator(cfg, sb, session=None, sleep=time.sleep) -> RefreshOrchestrator:
    session = session or build_session(cfg.anycrawl_api_key)
    search = SearchClient(
        session,
        RateLimiter(cfg.search_delay, sleep=sleep),
        base_url=cfg.anycrawl_base_url,
        timeout=cfg.request_timeout,
        denylist=cfg.domain_denylist,
    )
    scraper = ScrapeClient(
        session,
        RateLimiter(cfg.scrape_delay, sleep=sleep),
        base_url=cfg.anycrawl_base_url,
        timeout=cfg.request_timeout,
    )
    return RefreshOrchestrator(
        cfg,
        ContentStore(sb),
        search,
        scraper,
        load_taxonomy(),
        sleep=sleep,
    )


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        cfg = load_config(
            args.mode,
            cleanup_mode=args.cleanup_mode,
            topics=_split_topics(args.topics),
            test_mode=args.test_mode,
            top_up_below=args.top_up_below,
        )
    except (ConfigError, ValueError) as e:
        print(f"CONFIG_ERROR {e}", file=sys.stderr)
        return 2

    try:
        lock_fd = open(cfg.lock_path, "w")
        fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except Exception:
        print("JOB_LOCKED exit=1", file=sys.stderr)
        return 1

    try:
        orchestrator = build_orchestrator(cfg, get_client(cfg))
        known = set(orchestrator.taxonomy.keys())
        unknown = [t for t in cfg.topics if t not in known]
        if unknown:
            print(f"REFRESH_UNKNOWN_TOPICS topics={','.join(unknown)}", file=sys.stderr)

        stats = orchestrator.run()
        print(
            f"REFRESH_CLIENTS search_calls={orchestrator.search_client.calls} "
            f"search_errors={orchestrator.search_client.errors} "
            f"scrape_calls={orchestrator.scrape_client.calls} "
            f"scrape_errors={orchestrator.scrape_client.errors}"
        )
        if not args.skip_health_check:
            run_health_check(orchestrator.store)
        if stats.failed:
            print(f"REFRESH_DONE_WITH_FAILURES failed={stats.failed}")
        return 0
    except Exception as e:
        print(f"REFRESH_FATAL err={type(e).__name__} msg={str(e)[:300]}", file=sys.stderr)
        return 1
    finally:
        lock_fd.close()


if __name__ == "__main__":
    raise SystemExit(main())
