import os

def _clamp(value, min_value, max_value):
    if min_value is not None and value < min_value:
        return min_value
    if max_value is not None and value > max_value:
        return max_value
    return value

def int_env(name: str, default: int, *, min_value: int | None = None, max_value: int | None = None) -> int:
    """
    Read an env var as int, clamped to the optional range.
    Falls back to `default` if the var is unset or does not parse.
    """
    try:
        value = int(os.getenv(name, default))
    except (ValueError, TypeError):
        value = int(default)
    return _clamp(value, min_value, max_value)

def float_env(name: str, default: float, *, min_value: float | None = None) -> float:
    try:
        value = float(os.getenv(name, default))
    except (ValueError, TypeError):
        value = float(default)
    return _clamp(value, min_value, None)

def bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")

# Snapshot cache
CACHE_FILE = os.getenv("CACHE_FILE", ".bigquery_cache.json")

# Remote warehouse
WAREHOUSE_URL     = os.getenv("WAREHOUSE_URL", "https://bigquery.googleapis.com/bigquery/v2")
WAREHOUSE_PROJECT = os.getenv("WAREHOUSE_PROJECT", "lighthouse-viewer")
WAREHOUSE_TOKEN   = os.getenv("WAREHOUSE_TOKEN") or None
PROBE_SEGMENT     = os.getenv("PROBE_SEGMENT", "desktop")
INCLUDE_AVERAGES  = bool_env("INCLUDE_AVERAGES", False)

# 0 disables the timeout; a hung query then blocks /data indefinitely.
QUERY_TIMEOUT_S = float_env("QUERY_TIMEOUT_S", 0.0, min_value=0.0)
QUERY_RETRIES   = int_env("QUERY_RETRIES", 0, min_value=0, max_value=10)

# Server bind, HTTP caching & logging
CACHE_MAX_AGE_S = int_env("CACHE_MAX_AGE_S", 60 * 60 * 2, min_value=0)
STATIC_DIR      = os.getenv("STATIC_DIR", "public")
BIND_HOST       = os.getenv("BIND_HOST", "0.0.0.0")
PORT            = int_env("PORT", 8080, min_value=1, max_value=65535)
LOG_LEVEL       = os.getenv("LOG_LEVEL", "INFO").upper()
