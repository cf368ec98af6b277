"""Tests for the Flask warehouse simulator."""

import pytest

from scorecard_server import queries
from scorecard_server.warehouse import decode_rows, normalize_label
from warehouse_sim.app import create_app
from warehouse_sim.simulator import classify

URL = "/bigquery/v2/projects/lighthouse-viewer/queries"


@pytest.fixture
def client():
    app = create_app(latest_label="Feb 1 2021", fault_500_pct=0, fault_slow_ms=0, seed=7)
    return app.test_client()


class TestClassify:

    def test_recognises_every_query_shape(self):
        assert classify(queries.latest_epoch_query("desktop")) == "latest_epoch"
        assert classify(queries.medians_query("mobile")) == "medians"
        assert classify(queries.averages_query("mobile")) == "averages"
        assert classify(queries.report_scores_query("mobile", "2021-02-01")) == "lighthouse"

    def test_rejects_other_sql(self):
        with pytest.raises(ValueError):
            classify("SELECT 1")


class TestQueryEndpoint:

    def test_latest_label(self, client):
        r = client.post(URL, json={"query": queries.latest_epoch_query("desktop"), "useLegacySql": True})
        assert r.status_code == 200
        rows = decode_rows(r.get_json())
        assert normalize_label(rows[0]["label"]) == "2021-02-01"

    def test_medians_cover_every_column(self, client):
        r = client.post(URL, json={"query": queries.medians_query("mobile")})
        row = decode_rows(r.get_json())[0]
        assert set(row) == {alias for _, alias in queries.MEDIAN_COLUMNS}
        assert all(isinstance(v, float) and v >= 0 for v in row.values())

    def test_report_scores_in_range(self, client):
        r = client.post(URL, json={"query": queries.report_scores_query("mobile", "2021-02-01")})
        row = decode_rows(r.get_json())[0]
        assert set(row) == {"pwaScore", "perfScore", "a11yScore", "bestPracticesScore"}
        assert all(0.0 <= v <= 1.0 for v in row.values())

    def test_missing_query(self, client):
        r = client.post(URL, json={})
        assert r.status_code == 400
        assert r.get_json()["error"]["code"] == 400

    def test_injected_failure(self):
        client = create_app(fault_500_pct=100, fault_slow_ms=0).test_client()
        r = client.post(URL, json={"query": queries.medians_query("desktop")})
        assert r.status_code == 500
        assert r.get_json()["error"]["message"] == "injected failure"

    def test_health(self, client):
        assert client.get("/health").get_json() == {"ok": True, "latest_label": "Feb 1 2021"}


class TestFaultInjection:

    def statuses(self, seed: int) -> list[int]:
        client = create_app(fault_500_pct=50, fault_slow_ms=0, seed=seed).test_client()
        return [
            client.post(URL, json={"query": queries.medians_query("desktop")}).status_code
            for _ in range(20)
        ]

    def test_same_seed_same_faults(self):
        first = self.statuses(11)
        assert first == self.statuses(11)
        assert set(first) == {200, 500}
