import math
from collections import deque

class LatencyTracker:
    """Last N durations (ms) per key: HTTP paths and warehouse query families."""
    def __init__(self, capacity: int = 500):
        self.capacity = capacity
        self.samples: dict[str, deque[int]] = {}
        self.failures: dict[str, int] = {}

    def record(self, key: str, duration_ms: int, *, ok: bool = True):
        self.samples.setdefault(key, deque(maxlen=self.capacity)).append(duration_ms)
        if not ok:
            self.failures[key] = self.failures.get(key, 0) + 1

    def summary(self, key: str) -> dict[str, float]:
        arr = sorted(self.samples.get(key, ()))
        n = len(arr)
        if n == 0:
            return {"p50": 0.0, "p95": 0.0, "max": 0.0, "count": 0, "failures": 0}

        def nearest_rank(p: float) -> float:
            return float(arr[max(0, min(n - 1, math.ceil(p * n) - 1))])

        return {
            "p50": nearest_rank(0.50),
            "p95": nearest_rank(0.95),
            "max": float(arr[-1]),
            "count": n,
            "failures": self.failures.get(key, 0),
        }

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self.samples if k.startswith(prefix))
