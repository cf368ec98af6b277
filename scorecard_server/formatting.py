import math
from collections.abc import Callable, Mapping

from .store import Snapshot

Rounder = Callable[[float], int]

# Sizes and timings are reported as an upper bound (ceil); counts as a
# lower bound (floor). Every metric is listed explicitly.
ROUNDING_POLICY: dict[str, Rounder] = {
    "render_start": math.ceil,
    "speed_index": math.ceil,
    "total_bytes": math.ceil,
    "html_doc_bytes": math.ceil,
    "html_bytes": math.ceil,
    "img_bytes": math.ceil,
    "js_bytes": math.ceil,
    "css_bytes": math.ceil,
    "font_bytes": math.ceil,
    "img_requests": math.floor,
    "js_requests": math.floor,
    "html_requests": math.floor,
    "css_requests": math.floor,
    "num_dom_elements": math.floor,
    "percentage_https_requests": math.floor,
}

REPORT_SCORES = ("pwaScore", "perfScore", "a11yScore", "bestPracticesScore")

def order_keys(obj: Mapping[str, object]) -> dict:
    """Return a copy of `obj` with its keys in lexicographic order."""
    return {k: obj[k] for k in sorted(obj)}

def _finite(value: float | str | None) -> float | None:
    # NaN/inf aggregates (e.g. over an empty table) are reported as missing
    if value is None:
        return None
    value = float(value)
    return value if math.isfinite(value) else None

def round_metric(name: str, value: float | str | None) -> int | None:
    value = _finite(value)
    if value is None:
        return None
    return ROUNDING_POLICY[name](value)

def format_medians(row: Mapping[str, object]) -> dict[str, int | None]:
    return {name: round_metric(name, row.get(name)) for name in ROUNDING_POLICY}

def format_averages(row: Mapping[str, object]) -> dict[str, int | None]:
    # The averages family reports under "<metric>_avg" so it can sit next to
    # the medians in one segment mapping.
    out: dict[str, int | None] = {}
    for name in ROUNDING_POLICY:
        key = "percentage_requests_https_avg" if name == "percentage_https_requests" else f"{name}_avg"
        out[key] = round_metric(name, row.get(f"avg_{name}"))
    return out

def format_report_scores(row: Mapping[str, object]) -> dict[str, float | None]:
    scores: dict[str, float | None] = {}
    for name in REPORT_SCORES:
        scores[name] = _finite(row.get(name))
    return order_keys(scores)

def merge_families(*families: Mapping[str, object]) -> dict:
    merged: dict = {}
    for fam in families:
        merged.update(fam)
    return order_keys(merged)

def assemble_snapshot(
    epoch: str,
    medians: Mapping[str, Mapping[str, object]],
    averages: Mapping[str, Mapping[str, object]] | None = None,
    report_scores: Mapping[str, object] | None = None,
) -> Snapshot:
    """Build a Snapshot from raw per-segment query rows."""
    segments: dict[str, dict] = {}
    for segment, row in medians.items():
        families = [format_medians(row)]
        if averages and segment in averages:
            families.append(format_averages(averages[segment]))
        segments[segment] = merge_families(*families)
    scores = format_report_scores(report_scores) if report_scores is not None else None
    return Snapshot(epoch=epoch, segments=segments, report_scores=scores)
