import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .config import (
    CACHE_FILE, WAREHOUSE_URL, WAREHOUSE_PROJECT, WAREHOUSE_TOKEN, PROBE_SEGMENT,
    INCLUDE_AVERAGES, QUERY_TIMEOUT_S, QUERY_RETRIES, CACHE_MAX_AGE_S, STATIC_DIR,
    BIND_HOST, PORT, LOG_LEVEL,
)
from .errors import RemoteQueryError
from .gate import FreshnessGate
from .logging import setup_logging
from .stats import LatencyTracker
from .store import SnapshotFile
from .warehouse import BigQueryWarehouse

def create_app(gate: FreshnessGate | None = None, static_dir: str | None = STATIC_DIR) -> FastAPI:
    setup_logging("scorecards-api", LOG_LEVEL)
    log = logging.getLogger(__name__)

    if gate is None:
        tracker = LatencyTracker(capacity=1000)
        warehouse = BigQueryWarehouse(
            WAREHOUSE_URL, WAREHOUSE_PROJECT,
            token=WAREHOUSE_TOKEN,
            timeout_s=QUERY_TIMEOUT_S,
            retries=QUERY_RETRIES,
            tracker=tracker,
        )
        gate = FreshnessGate(
            SnapshotFile(CACHE_FILE), warehouse,
            probe_segment=PROBE_SEGMENT, include_averages=INCLUDE_AVERAGES,
        )
    else:
        tracker = getattr(gate.warehouse, "tracker", None) or LatencyTracker(capacity=1000)
    started_at = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        snap = gate.cache.load()
        log.info(
            "loaded snapshot",
            extra={"event": "startup", "extra_fields": {
                "cache_file": gate.cache.path,
                "epoch": snap.epoch if snap else None,
            }},
        )
        yield
        log.info("closing warehouse client", extra={"event": "shutdown"})
        await gate.warehouse.aclose()

    app = FastAPI(title="HTTP Archive scorecards", lifespan=lifespan)

    # Access log + latency
    @app.middleware("http")
    async def access_logger(request: Request, call_next):
        t0 = time.time()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            latency_ms = int((time.time() - t0) * 1000)
            path = request.url.path
            tracker.record(f"http.{path}", latency_ms, ok=status < 500)
            log.info(
                "access",
                extra={"event": "http.access", "extra_fields": {
                    "path": path,
                    "method": request.method,
                    "status": status,
                    "latency_ms": latency_ms,
                }},
            )

    @app.get("/data")
    async def data():
        headers = {"Access-Control-Allow-Origin": "*"}
        try:
            results = await gate.get_all_data()
        except RemoteQueryError as e:
            return JSONResponse({"error": str(e)}, status_code=500, headers=headers)
        headers["Cache-Control"] = f"public, max-age={CACHE_MAX_AGE_S}"
        return JSONResponse(results, headers=headers, media_type="application/json;charset=utf-8")

    @app.get("/stats")
    async def stats_endpoint():
        snap = gate.cache.current()
        return {
            "uptime_s": int(time.time() - started_at),
            "snapshot_epoch": snap.epoch if snap else None,
            "last_refresh_ms": gate.last_refresh_ms,
            "warehouse": {k.removeprefix("warehouse."): tracker.summary(k) for k in tracker.keys("warehouse.")},
            "endpoints": {k.removeprefix("http."): tracker.summary(k) for k in tracker.keys("http.")},
        }

    @app.get("/health")
    async def health():
        return {"ok": True}

    # Registered last so the API routes take precedence.
    if static_dir and os.path.isdir(static_dir):
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="dashboard")

    return app

if __name__ == "__main__":
    # Dev run: python -m scorecard_server.app
    import uvicorn
    uvicorn.run(create_app(), host=BIND_HOST, port=PORT)
