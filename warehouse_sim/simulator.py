import random
import re

from scorecard_server.queries import MEDIAN_COLUMNS, REPORT_CATEGORIES

# (median, spread) per source column, loosely shaped after a 2017-era crawl
BASELINE: dict[str, tuple[float, float]] = {
    "renderStart": (3900.0, 600.0),
    "SpeedIndex": (5200.0, 900.0),
    "bytesTotal": (1_450_000.0, 250_000.0),
    "bytesHtmlDoc": (31_000.0, 6_000.0),
    "bytesHtml": (45_000.0, 9_000.0),
    "bytesImg": (870_000.0, 180_000.0),
    "bytesJS": (380_000.0, 60_000.0),
    "bytesCSS": (60_000.0, 12_000.0),
    "bytesFont": (75_000.0, 20_000.0),
    "reqImg": (33.0, 6.0),
    "reqJs": (20.0, 4.0),
    "reqHtml": (8.0, 2.0),
    "reqCSS": (6.0, 1.5),
    "numDomElements": (850.0, 150.0),
    "numHttps": (55.0, 10.0),
}

SCORE_BASELINE = {"pwaScore": 0.32, "perfScore": 0.41, "a11yScore": 0.68, "bestPracticesScore": 0.71}

Field = dict[str, str]
Result = tuple[list[Field], list[list[object]]]

def classify(sql: str) -> str:
    """Tell the four query shapes apart by their text."""
    if "TABLE_QUERY" in sql:
        return "latest_epoch"
    if "reportCategories" in sql:
        return "lighthouse"
    if "QUANTILES" in sql:
        return "medians"
    if "AVG(" in sql:
        return "averages"
    raise ValueError("unsupported query")

def _segment_factor(sql: str) -> float:
    # mobile pages are a little lighter than desktop ones
    return 0.9 if re.search(r"mobile|android", sql) else 1.0

def _float_fields(names: list[str]) -> list[Field]:
    return [{"name": n, "type": "FLOAT"} for n in names]

def answer(sql: str, latest_label: str, rng: random.Random) -> Result:
    kind = classify(sql)
    if kind == "latest_epoch":
        return [{"name": "label", "type": "STRING"}], [[latest_label]]

    factor = _segment_factor(sql)
    if kind == "lighthouse":
        names = [alias for _, alias in REPORT_CATEGORIES]
        values = [round(min(1.0, max(0.0, rng.gauss(SCORE_BASELINE[n], 0.03))), 2) for n in names]
        return _float_fields(names), [values]

    prefix = "avg_" if kind == "averages" else ""
    # averages sit above the medians for these right-skewed distributions
    skew = 1.15 if kind == "averages" else 1.0
    names, values = [], []
    for src, alias in MEDIAN_COLUMNS:
        median, spread = BASELINE[src]
        names.append(prefix + alias)
        values.append(max(0.0, rng.gauss(median, spread * 0.1)) * factor * skew)
    return _float_fields(names), [values]

def to_query_response(project: str, job_id: str, fields: list[Field], rows: list[list[object]]) -> dict:
    """Render a result in the jobs.query REST shape (all values as strings)."""
    return {
        "kind": "bigquery#queryResponse",
        "schema": {"fields": fields},
        "jobReference": {"projectId": project, "jobId": job_id, "location": "US"},
        "totalRows": str(len(rows)),
        "rows": [{"f": [{"v": None if v is None else str(v)} for v in row]} for row in rows],
        "jobComplete": True,
        "cacheHit": False,
    }
