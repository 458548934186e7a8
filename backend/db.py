import random
import time

import httpx
from supabase import create_client as _create_client

from backend.config import RefreshConfig, supabase_settings

CONTENT_TABLE = "topic_content"
REFRESH_LOG_TABLE = "content_refresh_log"

_sb = None


def create_client(cfg: RefreshConfig | None = None):
    if cfg is None:
        url, key = supabase_settings()
    else:
        url, key = cfg.supabase_url, cfg.supabase_key
    return _create_client(url, key)


def get_client(cfg: RefreshConfig | None = None):
    global _sb
    if _sb:
        return _sb

    _sb = create_client(cfg)
    return _sb


def get_columns(sb, table: str) -> set[str]:
    cols = sb.rpc("get_columns", {"p_table": table}).execute().data or []
    return {c.get("column_name") for c in cols if c.get("column_name")}


def is_transient_error(err: Exception) -> bool:
    if isinstance(err, (httpx.ConnectError, httpx.ReadError, httpx.RemoteProtocolError)):
        return True
    if isinstance(err, httpx.TimeoutException):
        return True
    msg = str(err)
    transient_markers = [
        "UNEXPECTED_EOF_WHILE_READING",
        "SSL",
        "Connection reset",
        "Broken pipe",
        "timeout",
    ]
    return any(m in msg for m in transient_markers)


RETRY_DELAYS = [1, 2, 4, 8, 16]


def with_retry(fn, *args, sleep=time.sleep, delays=None, **kwargs):
    delays = RETRY_DELAYS if delays is None else delays
    for i, delay in enumerate(delays, start=1):
        try:
            return fn(*args, **kwargs)
        except Exception as e:
            if not is_transient_error(e) or i == len(delays):
                raise
            jitter = random.uniform(0, 0.2)
            print(f"DB_RETRY attempt={i} error={str(e)[:200]}")
            sleep(delay + jitter)
