import asyncio
import logging
import time
from datetime import datetime
from typing import Protocol

import httpx

from . import queries
from .errors import RemoteQueryError
from .stats import LatencyTracker

Row = dict[str, float | str | None]

LABEL_FORMATS = ("%Y-%m-%d", "%b %d %Y", "%B %d %Y", "%Y_%m_%d")
NUMERIC_TYPES = {"FLOAT", "FLOAT64", "INTEGER", "INT64", "NUMERIC", "BIGNUMERIC"}

class Warehouse(Protocol):
    async def query_latest_epoch(self, segment: str) -> str: ...
    async def query_aggregate_metrics(self, segment: str, epoch: str) -> Row: ...
    async def query_average_metrics(self, segment: str, epoch: str) -> Row: ...
    async def query_report_scores(self, segment: str, epoch: str) -> Row: ...
    async def aclose(self) -> None: ...

def normalize_label(label: str) -> str:
    """Turn a runs-table label such as 'Jul 1 2017' into a YYYY-MM-DD epoch."""
    text = " ".join(label.replace(",", " ").split())
    for fmt in LABEL_FORMATS:
        try:
            return datetime.strptime(text, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    raise ValueError(f"unrecognised dataset label {label!r}")

def decode_rows(payload: dict) -> list[Row]:
    """Decode the schema/rows shape of a BigQuery REST query response."""
    fields = payload.get("schema", {}).get("fields", [])
    out: list[Row] = []
    for raw in payload.get("rows", []):
        row: Row = {}
        for spec, cell in zip(fields, raw.get("f", [])):
            value = cell.get("v")
            if value is not None and spec.get("type", "STRING").upper() in NUMERIC_TYPES:
                value = float(value)
            row[spec["name"]] = value
        out.append(row)
    return out

class BigQueryWarehouse:
    """
    Runs legacy-SQL queries through the BigQuery REST API (jobs.query).

    Every failure surfaces as RemoteQueryError. Retries are off unless
    `retries` is set, and then only cover transport errors and 5xx replies.
    """
    def __init__(
        self,
        base_url: str,
        project_id: str,
        *,
        token: str | None = None,
        timeout_s: float | None = None,
        retries: int = 0,
        poll_interval_s: float = 1.0,
        client: httpx.AsyncClient | None = None,
        tracker: LatencyTracker | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.project_id = project_id
        self.retries = retries
        self.poll_interval_s = poll_interval_s
        self.tracker = tracker or LatencyTracker()
        self._log = logging.getLogger(__name__)
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.AsyncClient(timeout=timeout_s or None, headers=headers)

    async def aclose(self):
        await self._client.aclose()

    async def query_latest_epoch(self, segment: str) -> str:
        self._log.info(
            "fetching latest table names",
            extra={"event": "warehouse.probe", "extra_fields": {"segment": segment}},
        )
        rows = await self._run("latest_epoch", queries.latest_epoch_query(segment))
        label = rows[0].get("label")
        try:
            return normalize_label(str(label))
        except ValueError as e:
            raise RemoteQueryError(str(e), family="latest_epoch") from e

    async def query_aggregate_metrics(self, segment: str, epoch: str) -> Row:
        """
        Medians over the rolling latest_pages* alias. `epoch` is not used to
        pick the table, so the row reflects whatever crawl the alias points at,
        which can be newer than `epoch` if a dump lands mid-refresh.
        """
        rows = await self._run(f"medians.{segment}", queries.medians_query(segment))
        return rows[0]

    async def query_average_metrics(self, segment: str, epoch: str) -> Row:
        # same rolling alias as the medians
        rows = await self._run(f"averages.{segment}", queries.averages_query(segment))
        return rows[0]

    async def query_report_scores(self, segment: str, epoch: str) -> Row:
        rows = await self._run(f"lighthouse.{segment}", queries.report_scores_query(segment, epoch))
        return rows[0]

    async def _run(self, family: str, sql: str) -> list[Row]:
        t0 = time.time()
        ok = False
        try:
            payload = await self._with_retries(family, sql)
            try:
                rows = decode_rows(payload)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise RemoteQueryError(f"{family}: malformed response: {e}", family=family) from e
            if not rows:
                raise RemoteQueryError(f"{family}: query returned no rows", family=family)
            ok = True
            return rows
        finally:
            elapsed_ms = int((time.time() - t0) * 1000)
            self.tracker.record(f"warehouse.{family}", elapsed_ms, ok=ok)
            self._log.info(
                "query",
                extra={"event": "warehouse.query", "extra_fields": {
                    "family": family,
                    "ok": ok,
                    "elapsed_ms": elapsed_ms,
                }},
            )

    async def _with_retries(self, family: str, sql: str) -> dict:
        attempt = 0
        while True:
            try:
                return await self._query(family, sql)
            except RemoteQueryError as e:
                retryable = e.status is None or e.status >= 500
                if not retryable or attempt >= self.retries:
                    raise
                delay = 0.5 * (2 ** attempt)
                attempt += 1
                self._log.warning(
                    "retrying query",
                    extra={"event": "warehouse.retry", "extra_fields": {
                        "family": family,
                        "attempt": attempt,
                        "delay_s": delay,
                        "error": str(e),
                    }},
                )
                await asyncio.sleep(delay)

    async def _query(self, family: str, sql: str) -> dict:
        url = f"{self.base_url}/projects/{self.project_id}/queries"
        payload = await self._request(family, "POST", url, json={"query": sql, "useLegacySql": True})
        while not payload.get("jobComplete", True):
            job = payload.get("jobReference", {})
            params = {"location": job["location"]} if job.get("location") else None
            await asyncio.sleep(self.poll_interval_s)
            payload = await self._request(family, "GET", f"{url}/{job.get('jobId')}", params=params)
        return payload

    async def _request(self, family: str, method: str, url: str, **kwargs) -> dict:
        try:
            r = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteQueryError(f"{family}: {e!r}", family=family) from e
        try:
            body = r.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {"error": "response is not a JSON object"} if r.status_code == 200 else {}
        if r.status_code != 200 or "error" in body:
            err = body.get("error")
            message = (err.get("message") if isinstance(err, dict) else err) or r.reason_phrase
            raise RemoteQueryError(
                f"{family}: HTTP {r.status_code}: {message}", family=family, status=r.status_code
            )
        return body
