"""
Legacy-SQL statements sent to the HTTP Archive dataset in BigQuery.

Medians use NTH(501, QUANTILES(x, 1001)), i.e. a median with 0.1% error.
See https://cloud.google.com/bigquery/docs/reference/legacy-sql#quantiles
"""
from dataclasses import dataclass

@dataclass(frozen=True)
class SegmentTables:
    runs_view: str      # suffix of the dated runs tables, e.g. 2017_07_01_pages_mobile
    latest_table: str   # rolling alias of the newest runs table
    har_client: str     # client name in the dated har tables

SEGMENT_TABLES: dict[str, SegmentTables] = {
    "mobile": SegmentTables("pages_mobile", "latest_pages_mobile", "android"),
    "desktop": SegmentTables("pages", "latest_pages", "chrome"),
}

# (source column, alias) in output order
MEDIAN_COLUMNS = [
    ("renderStart", "render_start"),
    ("SpeedIndex", "speed_index"),
    ("bytesTotal", "total_bytes"),
    ("bytesHtmlDoc", "html_doc_bytes"),
    ("bytesHtml", "html_bytes"),
    ("bytesImg", "img_bytes"),
    ("bytesJS", "js_bytes"),
    ("bytesCSS", "css_bytes"),
    ("bytesFont", "font_bytes"),
    ("reqImg", "img_requests"),
    ("reqJs", "js_requests"),
    ("reqHtml", "html_requests"),
    ("reqCSS", "css_requests"),
    ("numDomElements", "num_dom_elements"),
    ("numHttps", "percentage_https_requests"),
]

# Lighthouse reportCategories are positional; if the report changes its
# category order these indices must change with it.
REPORT_CATEGORIES = [
    (0, "pwaScore"),
    (1, "perfScore"),
    (2, "a11yScore"),
    (3, "bestPracticesScore"),
]

def tables_for(segment: str) -> SegmentTables:
    try:
        return SEGMENT_TABLES[segment]
    except KeyError:
        raise ValueError(f"Unknown segment '{segment}'. Available: {sorted(SEGMENT_TABLES)}") from None

def latest_epoch_query(segment: str) -> str:
    view = tables_for(segment).runs_view
    return f"""
      SELECT
        label
      FROM
        TABLE_QUERY([httparchive:runs], "table_id IN (
              SELECT table_id FROM [httparchive:runs.__TABLES__]
              WHERE REGEXP_MATCH(table_id, '2.*{view}$')
              ORDER BY table_id DESC LIMIT 1)")
      GROUP BY
        label"""

def medians_query(segment: str) -> str:
    table = tables_for(segment).latest_table
    cols = ",\n".join(
        f"        NTH(501, QUANTILES({src}, 1001)) AS {alias}" for src, alias in MEDIAN_COLUMNS
    )
    return f"""
      SELECT
{cols}
      FROM
        [httparchive:runs.{table}]"""

def averages_query(segment: str) -> str:
    table = tables_for(segment).latest_table
    cols = ",\n".join(f"        AVG({src}) AS avg_{alias}" for src, alias in MEDIAN_COLUMNS)
    return f"""
      SELECT
{cols}
      FROM
        [httparchive:runs.{table}]"""

def report_scores_query(segment: str, epoch: str) -> str:
    client = tables_for(segment).har_client
    table = f"{epoch.replace('-', '_')}_{client}_pages"
    cols = ",\n".join(
        "        NTH(501, QUANTILES(CAST(JSON_EXTRACT_SCALAR(lighthouse, "
        f"'$.reportCategories[{idx}].score') AS FLOAT), 1001)) AS {alias}"
        for idx, alias in REPORT_CATEGORIES
    )
    return f"""
      SELECT
{cols}
      FROM
        [httparchive:har.{table}]
      WHERE
        lighthouse != 'null'"""
