import asyncio
import json
import logging
import sys

from .config import (
    CACHE_FILE, WAREHOUSE_URL, WAREHOUSE_PROJECT, WAREHOUSE_TOKEN, PROBE_SEGMENT,
    INCLUDE_AVERAGES, QUERY_TIMEOUT_S, QUERY_RETRIES, LOG_LEVEL,
)
from .errors import RemoteQueryError
from .gate import FreshnessGate
from .logging import setup_logging
from .store import SnapshotFile
from .warehouse import BigQueryWarehouse

async def run_once(gate: FreshnessGate) -> dict:
    gate.cache.load()
    try:
        return await gate.get_all_data()
    finally:
        await gate.warehouse.aclose()

def main() -> int:
    """Refresh the snapshot if needed and print it, e.g. from cron."""
    setup_logging("scorecards-refresh", LOG_LEVEL)
    warehouse = BigQueryWarehouse(
        WAREHOUSE_URL, WAREHOUSE_PROJECT,
        token=WAREHOUSE_TOKEN, timeout_s=QUERY_TIMEOUT_S, retries=QUERY_RETRIES,
    )
    gate = FreshnessGate(
        SnapshotFile(CACHE_FILE), warehouse,
        probe_segment=PROBE_SEGMENT, include_averages=INCLUDE_AVERAGES,
    )
    try:
        results = asyncio.run(run_once(gate))
    except RemoteQueryError as e:
        logging.getLogger(__name__).error(
            "refresh failed", extra={"event": "refresh.error", "extra_fields": {"error": str(e)}}
        )
        return 1
    json.dump(results, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0

if __name__ == "__main__":
    sys.exit(main())
