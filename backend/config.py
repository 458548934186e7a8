import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

_ENV_PATH = os.path.join(os.path.dirname(__file__), ".env")
load_dotenv(_ENV_PATH)
load_dotenv()

MODES = ("exhaustive", "comprehensive")
CLEANUP_MODES = ("cleanup", "wipe")
DEFAULT_BASE_URL = "https://api.anycrawl.dev/v1"
DEFAULT_DENYLIST = ("youtube.com", "facebook.com", "pinterest.com")


class ConfigError(RuntimeError):
    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing {', '.join(missing)}")


def get_int(name: str, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_float(name: str, default: float | None = None) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def get_list(name: str, default: tuple[str, ...] = ()) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return tuple(default)
    return tuple(s.strip().lower() for s in raw.split(",") if s.strip())


def _first_env(*names: str) -> str | None:
    for name in names:
        val = (os.getenv(name) or "").strip()
        if val:
            return val
    return None


@dataclass(frozen=True)
class RefreshConfig:
    supabase_url: str
    supabase_key: str
    anycrawl_api_key: str
    anycrawl_base_url: str = DEFAULT_BASE_URL
    mode: str = "exhaustive"
    cleanup_mode: str = "cleanup"
    use_age_ranges: bool = True
    topics: tuple[str, ...] = ()
    scope_limit: int = 0
    queries_per_scope: int = 1
    search_limit: int = 5
    candidate_limit: int = 3
    max_articles_per_scope: int = 3
    top_up_below: int = 0
    search_delay: float = 1.0
    scrape_delay: float = 2.0
    query_delay: float = 3.0
    scope_delay: float = 10.0
    request_timeout: float = 30.0
    min_content_chars: int = 100
    min_snippet_chars: int = 50
    min_quality: float = 0.4
    domain_denylist: tuple[str, ...] = field(default=DEFAULT_DENYLIST)
    test_mode: bool = False
    lock_path: str = "/tmp/milestonebee_content_refresh.lock"


# Per-mode defaults. exhaustive walks topic x age range with small batches,
# comprehensive walks topics only and wipes before reinserting.
_MODE_DEFAULTS = {
    "exhaustive": {
        "cleanup_mode": "cleanup",
        "use_age_ranges": True,
        "queries_per_scope": 1,
        "search_limit": 5,
        "candidate_limit": 3,
        "max_articles_per_scope": 3,
        "query_delay": 3.0,
        "scope_delay": 10.0,
        "request_timeout": 30.0,
    },
    "comprehensive": {
        "cleanup_mode": "wipe",
        "use_age_ranges": False,
        "queries_per_scope": 4,
        "search_limit": 15,
        "candidate_limit": 60,
        "max_articles_per_scope": 50,
        "query_delay": 3.0,
        "scope_delay": 10.0,
        "request_timeout": 90.0,
    },
}

_TEST_MODE = {
    "use_age_ranges": False,
    "scope_limit": 1,
    "queries_per_scope": 1,
    "search_limit": 10,
    "candidate_limit": 5,
    "max_articles_per_scope": 5,
}


def _supabase_env() -> tuple[str | None, str | None]:
    url = _first_env("SUPABASE_URL", "VITE_SUPABASE_URL")
    key = _first_env(
        "SUPABASE_SERVICE_ROLE_KEY",
        "SUPABASE_KEY",
        "VITE_SUPABASE_ANON_KEY",
    )
    return url, key


def supabase_settings() -> tuple[str, str]:
    url, key = _supabase_env()
    missing = []
    if not url:
        missing.append("SUPABASE_URL")
    if not key:
        missing.append("SUPABASE_SERVICE_ROLE_KEY or SUPABASE_KEY")
    if missing:
        raise ConfigError(missing)
    return url, key


def load_config(mode: str | None = None, **overrides) -> RefreshConfig:
    supabase_url, supabase_key = _supabase_env()
    api_key = _first_env("ANYCRAWL_API_KEY", "VITE_ANYCRAWL_API_KEY")
    missing = []
    if not supabase_url:
        missing.append("SUPABASE_URL")
    if not supabase_key:
        missing.append("SUPABASE_SERVICE_ROLE_KEY or SUPABASE_KEY")
    if not api_key:
        missing.append("ANYCRAWL_API_KEY")
    if missing:
        raise ConfigError(missing)

    mode = (mode or os.getenv("REFRESH_MODE") or "exhaustive").strip().lower()
    if mode not in MODES:
        raise ValueError(f"Unknown refresh mode: {mode}")
    base = dict(_MODE_DEFAULTS[mode])

    env_values = {
        "cleanup_mode": (os.getenv("REFRESH_CLEANUP_MODE") or "").strip().lower() or None,
        "topics": get_list("REFRESH_TOPICS") or None,
        "scope_limit": get_int("REFRESH_SCOPE_LIMIT"),
        "queries_per_scope": get_int("REFRESH_QUERIES_PER_SCOPE"),
        "search_limit": get_int("REFRESH_SEARCH_LIMIT"),
        "candidate_limit": get_int("REFRESH_CANDIDATE_LIMIT"),
        "max_articles_per_scope": get_int("REFRESH_MAX_ARTICLES"),
        "top_up_below": get_int("REFRESH_TOP_UP_BELOW"),
        "search_delay": get_float("REFRESH_SEARCH_DELAY_SEC"),
        "scrape_delay": get_float("REFRESH_SCRAPE_DELAY_SEC"),
        "query_delay": get_float("REFRESH_QUERY_DELAY_SEC"),
        "scope_delay": get_float("REFRESH_SCOPE_DELAY_SEC"),
        "request_timeout": get_float("REFRESH_TIMEOUT_SEC"),
        "domain_denylist": get_list("REFRESH_DOMAIN_DENYLIST") or None,
        "lock_path": (os.getenv("REFRESH_LOCK_PATH") or "").strip() or None,
    }
    base.update({k: v for k, v in env_values.items() if v is not None})

    test_mode = overrides.pop("test_mode", None)
    if test_mode is None:
        test_mode = get_bool("REFRESH_TEST_MODE", False)
    if test_mode:
        base.update(_TEST_MODE)

    base.update({k: v for k, v in overrides.items() if v is not None})
    if base["cleanup_mode"] not in CLEANUP_MODES:
        raise ValueError(f"Unknown cleanup mode: {base['cleanup_mode']}")

    return RefreshConfig(
        supabase_url=supabase_url,
        supabase_key=supabase_key,
        anycrawl_api_key=api_key,
        anycrawl_base_url=(os.getenv("ANYCRAWL_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
        mode=mode,
        test_mode=bool(test_mode),
        **base,
    )
