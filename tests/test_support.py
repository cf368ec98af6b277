"""Tests for config parsing, structured logging and latency tracking."""

import json
import logging

from scorecard_server.config import bool_env, float_env, int_env
from scorecard_server.logging import JsonFormatter
from scorecard_server.stats import LatencyTracker


class TestConfig:

    def test_int_env_clamps(self, monkeypatch):
        monkeypatch.setenv("X_RETRIES", "99")
        assert int_env("X_RETRIES", 0, min_value=0, max_value=10) == 10

    def test_int_env_falls_back(self, monkeypatch):
        monkeypatch.setenv("X_PORT", "eighty")
        assert int_env("X_PORT", 8080) == 8080

    def test_float_env(self, monkeypatch):
        monkeypatch.setenv("X_TIMEOUT", "-3")
        assert float_env("X_TIMEOUT", 0.0, min_value=0.0) == 0.0
        monkeypatch.setenv("X_TIMEOUT", "2.5")
        assert float_env("X_TIMEOUT", 0.0) == 2.5

    def test_bool_env(self, monkeypatch):
        monkeypatch.delenv("X_FLAG", raising=False)
        assert bool_env("X_FLAG", False) is False
        monkeypatch.setenv("X_FLAG", "yes")
        assert bool_env("X_FLAG", False) is True


class TestJsonFormatter:

    def test_event_and_extra_fields(self):
        record = logging.LogRecord("scorecard_server.gate", logging.INFO, __file__, 1, "refreshed", None, None)
        record.event = "cache.refresh"
        record.extra_fields = {"epoch": "2021-02-01"}
        payload = json.loads(JsonFormatter("scorecards-api").format(record))
        assert payload["svc"] == "scorecards-api"
        assert payload["event"] == "cache.refresh"
        assert payload["epoch"] == "2021-02-01"
        assert payload["ts"].endswith("Z")


class TestLatencyTracker:

    def test_summary(self):
        t = LatencyTracker()
        for ms in (10, 20, 30, 40):
            t.record("warehouse.medians.mobile", ms)
        t.record("warehouse.medians.mobile", 100, ok=False)
        s = t.summary("warehouse.medians.mobile")
        assert s["p50"] == 30.0
        assert s["max"] == 100.0
        assert s["count"] == 5
        assert s["failures"] == 1

    def test_empty_and_keys(self):
        t = LatencyTracker()
        assert t.summary("nope")["count"] == 0
        t.record("http./data", 1)
        t.record("warehouse.latest_epoch", 1)
        assert t.keys("http.") == ["http./data"]
