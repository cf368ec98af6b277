import os

def int_env(name: str, default: int, *, min_value: int | None = None, max_value: int | None = None) -> int:
    """Int env var clamped to [min_value, max_value]; `default` when unset or unparsable."""
    try:
        value = int(os.getenv(name, default))
    except (ValueError, TypeError):
        value = int(default)
    if min_value is not None:
        value = max(min_value, value)
    if max_value is not None:
        value = min(max_value, value)
    return value

# Dataset the simulator pretends is the newest crawl
SIM_LATEST_LABEL = os.getenv("SIM_LATEST_LABEL", "Jan 1 2018")
SIM_SEED         = int_env("SIM_SEED", 0)

# Fault injection
FAULT_500_PCT = int_env("FAULT_500_PCT", 0, min_value=0, max_value=100)
FAULT_SLOW_MS = int_env("FAULT_SLOW_MS", 0, min_value=0)

# Server bind & logging
BIND_HOST = os.getenv("BIND_HOST", "0.0.0.0")
PORT      = int_env("PORT", 9050, min_value=1, max_value=65535)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
