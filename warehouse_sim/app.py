import logging
import random
import threading
import time
import uuid

from flask import Flask, jsonify, request

from scorecard_server.logging import setup_logging

from .config import (
    SIM_LATEST_LABEL, SIM_SEED, FAULT_500_PCT, FAULT_SLOW_MS, BIND_HOST, PORT, LOG_LEVEL
)
from .simulator import answer, classify, to_query_response

def _error(status: int, message: str):
    # Same envelope the real API uses for failed requests
    return jsonify({"error": {"code": status, "message": message}}), status

def create_app(
    latest_label: str = SIM_LATEST_LABEL,
    fault_500_pct: int = FAULT_500_PCT,
    fault_slow_ms: int = FAULT_SLOW_MS,
    seed: int = SIM_SEED,
) -> Flask:
    setup_logging("warehouse-sim", LOG_LEVEL)
    app = Flask(__name__)
    log = logging.getLogger(__name__)

    # rng is shared across request threads
    lock = threading.Lock()
    rng = random.Random(seed)
    app.config["LATEST_LABEL"] = latest_label

    @app.post("/bigquery/v2/projects/<project>/queries")
    def query(project: str):
        t0 = time.time()
        body = request.get_json(silent=True)
        sql = body.get("query") if isinstance(body, dict) else None
        if not isinstance(sql, str) or not sql.strip():
            return _error(400, "Required parameter is missing: query")

        with lock:
            inject_500 = fault_500_pct > 0 and rng.randint(1, 100) <= fault_500_pct
            delay = fault_slow_ms > 0 and rng.random() < 0.2
        if inject_500:
            if fault_slow_ms > 0:
                time.sleep(fault_slow_ms / 1000.0)
            log.warning(
                "injecting 500",
                extra={"event": "sim.inject_fault", "extra_fields": {"fault": "500"}},
            )
            return _error(500, "injected failure")

        if delay:
            # Delay ~20% of queries to simulate a slow warehouse
            time.sleep(fault_slow_ms / 1000.0)

        try:
            kind = classify(sql)
        except ValueError as e:
            return _error(400, f"Invalid query: {e}")

        with lock:
            fields, rows = answer(sql, app.config["LATEST_LABEL"], rng)
        job_id = f"job_{uuid.uuid4().hex[:16]}"

        log.info(
            "served query",
            extra={"event": "sim.query", "extra_fields": {
                "project": project,
                "kind": kind,
                "job_id": job_id,
                "latency_ms": int((time.time() - t0) * 1000),
            }},
        )
        return jsonify(to_query_response(project, job_id, fields, rows))

    @app.get("/health")
    def health():
        return {"ok": True, "latest_label": app.config["LATEST_LABEL"]}

    return app

if __name__ == "__main__":
    # Dev run: python -m warehouse_sim.app
    # then point the scorecard server at it:
    #   WAREHOUSE_URL=http://127.0.0.1:9050/bigquery/v2
    create_app().run(host=BIND_HOST, port=PORT)
