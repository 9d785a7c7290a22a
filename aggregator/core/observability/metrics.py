"""
Request metrics — in-process counters and latency histograms.

The web app records one observation per request, labelled by route.
``GET /api/metrics`` reports them as JSON or in the Prometheus text
exposition format. Values live in memory and reset on restart.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any

METRIC_PREFIX = "aggregator"
SAMPLE_WINDOW = 1000


def _label_key(name: str, labels: dict[str, str]) -> str:
    if not labels:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in sorted(labels.items())) + "}"


@dataclass
class Counter:
    name: str
    value: int = 0
    labels: dict[str, str] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self.value += n

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": "counter", "value": self.value, "labels": self.labels}


@dataclass
class Gauge:
    name: str
    value: float = 0.0
    labels: dict[str, str] = field(default_factory=dict)

    def set(self, v: float) -> None:
        self.value = v

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": "gauge", "value": self.value, "labels": self.labels}


@dataclass
class Histogram:
    """Latency observations in milliseconds.

    count, total, min and max cover every observation. p95 is computed
    over the most recent SAMPLE_WINDOW samples only.
    """

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    count: int = 0
    total: float = 0.0
    min: float = 0.0
    max: float = 0.0
    _samples: deque[float] = field(default_factory=lambda: deque(maxlen=SAMPLE_WINDOW), repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def observe(self, value: float) -> None:
        with self._lock:
            if not self.count or value < self.min:
                self.min = value
            if not self.count or value > self.max:
                self.max = value
            self.count += 1
            self.total += value
            self._samples.append(value)

    @property
    def retained(self) -> int:
        return len(self._samples)

    @property
    def mean(self) -> float:
        return self.total / self.count if self.count else 0.0

    @property
    def p95(self) -> float:
        with self._lock:
            ordered = sorted(self._samples)
        if not ordered:
            return 0.0
        return ordered[min(int(len(ordered) * 0.95), len(ordered) - 1)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": "histogram",
            "count": self.count,
            "total": round(self.total, 2),
            "mean": round(self.mean, 2),
            "min": round(self.min, 2),
            "max": round(self.max, 2),
            "p95": round(self.p95, 2),
            "labels": self.labels,
        }


class MetricsRegistry:
    """Holds every counter, gauge and histogram for the process."""

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._gauges: dict[str, Gauge] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = threading.Lock()
        self.started_at = time.time()

    def counter(self, name: str, **labels: str) -> Counter:
        key = _label_key(name, labels)
        with self._lock:
            if key not in self._counters:
                self._counters[key] = Counter(name=name, labels=labels)
            return self._counters[key]

    def gauge(self, name: str, **labels: str) -> Gauge:
        key = _label_key(name, labels)
        with self._lock:
            if key not in self._gauges:
                self._gauges[key] = Gauge(name=name, labels=labels)
            return self._gauges[key]

    def histogram(self, name: str, **labels: str) -> Histogram:
        key = _label_key(name, labels)
        with self._lock:
            if key not in self._histograms:
                self._histograms[key] = Histogram(name=name, labels=labels)
            return self._histograms[key]

    def record_request(self, route: str, status: int, duration_ms: float) -> None:
        """One served request: count it, time it, and count it as an error if 5xx."""
        self.counter("requests_total", route=route).inc()
        if status >= 500:
            self.counter("errors_total", route=route).inc()
        self.histogram("request_duration_ms", route=route).observe(duration_ms)

    # ── Summaries ───────────────────────────────────────────────────

    def total(self, name: str) -> int:
        return sum(c.value for c in self._counters.values() if c.name == name)

    def average_latency(self) -> float:
        hists = [h for h in self._histograms.values() if h.name == "request_duration_ms"]
        count = sum(h.count for h in hists)
        if not count:
            return 0.0
        return round(sum(h.total for h in hists) / count, 2)

    @property
    def uptime(self) -> float:
        return round(time.time() - self.started_at, 3)

    def summary(self) -> dict[str, Any]:
        return {
            "requests": self.total("requests_total"),
            "errors": self.total("errors_total"),
            "averageResponseTime": self.average_latency(),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "counters": [c.to_dict() for c in self._counters.values()],
            "gauges": [g.to_dict() for g in self._gauges.values()],
            "histograms": [h.to_dict() for h in self._histograms.values()],
            "summary": self.summary(),
        }

    def to_prometheus(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        def fmt_labels(labels: dict[str, str]) -> str:
            if not labels:
                return ""
            inner = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
            return "{" + inner + "}"

        for kind, metrics in (("counter", self._counters), ("gauge", self._gauges)):
            seen: set[str] = set()
            for metric in metrics.values():
                name = f"{METRIC_PREFIX}_{metric.name}"
                if name not in seen:
                    lines.append(f"# TYPE {name} {kind}")
                    seen.add(name)
                lines.append(f"{name}{fmt_labels(metric.labels)} {metric.value}")

        seen = set()
        for hist in self._histograms.values():
            name = f"{METRIC_PREFIX}_{hist.name}"
            if name not in seen:
                lines.append(f"# TYPE {name} summary")
                seen.add(name)
            labels = fmt_labels(hist.labels)
            lines.append(f"{name}_count{labels} {hist.count}")
            lines.append(f"{name}_sum{labels} {round(hist.total, 3)}")

        lines.append(f"# TYPE {METRIC_PREFIX}_uptime_seconds gauge")
        lines.append(f"{METRIC_PREFIX}_uptime_seconds {self.uptime}")
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()
