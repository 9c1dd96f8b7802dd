"""
Prometheus metrics collection for the survey analytics API.

Provides metrics for monitoring:
- HTTP request counts and latency
- Background job outcomes and durations by operation, plus jobs in flight
- AI requests by feature and outcome (fallbacks included)
- Cache hits and misses

Usage:
    from survey_analytics.core.metrics import track_job, track_ai_request

    track_ai_request("insights", success=False)
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

DURATION_BUCKETS = (0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 180.0, float("inf"))

Labels = Tuple[str, ...]


@dataclass
class HistogramValue:
    bucket_counts: List[int] = field(default_factory=lambda: [0] * len(DURATION_BUCKETS))
    sum_value: float = 0.0
    count: int = 0

    def observe(self, value: float):
        self.sum_value += value
        self.count += 1
        for i, bound in enumerate(DURATION_BUCKETS):
            if value <= bound:
                self.bucket_counts[i] += 1


@dataclass
class MetricFamily:
    """One metric name with its label names and a value per label combination.

    ``kind`` is ``counter``, ``gauge`` or ``histogram``. Counters and gauges
    store floats; histograms store ``HistogramValue``.
    """

    name: str
    help_text: str
    kind: str
    label_names: Labels = ()
    values: Dict[Labels, object] = field(default_factory=dict)

    def _label_text(self, labels: Labels, extra: str = "") -> str:
        pairs = [f'{name}="{value}"' for name, value in zip(self.label_names, labels)]
        if extra:
            pairs.append(extra)
        return "{" + ",".join(pairs) + "}" if pairs else ""

    def inc(self, labels: Labels = (), amount: float = 1.0):
        self.values[labels] = self.values.get(labels, 0.0) + amount

    def observe(self, labels: Labels, value: float):
        self.values.setdefault(labels, HistogramValue()).observe(value)

    def render(self) -> List[str]:
        lines = [f"# HELP {self.name} {self.help_text}", f"# TYPE {self.name} {self.kind}"]
        if self.kind != "histogram":
            if not self.label_names and not self.values:
                lines.append(f"{self.name} 0.0")
            for labels, value in self.values.items():
                lines.append(f"{self.name}{self._label_text(labels)} {value}")
            return lines

        for labels, histogram in self.values.items():
            for bound, count in zip(DURATION_BUCKETS, histogram.bucket_counts):
                le = "+Inf" if bound == float("inf") else str(bound)
                bucket_labels = self._label_text(labels, f'le="{le}"')
                lines.append(f"{self.name}_bucket{bucket_labels} {count}")
            lines.append(f"{self.name}_sum{self._label_text(labels)} {histogram.sum_value}")
            lines.append(f"{self.name}_count{self._label_text(labels)} {histogram.count}")
        return lines


class MetricsRegistry:
    """
    Central registry for all metrics.

    Thread-safe singleton: analyzer steps run in worker threads and report here too.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._metrics_lock = threading.Lock()
                    cls._instance._declare()
        return cls._instance

    def _declare(self):
        self.http_requests_total = MetricFamily(
            "http_requests_total", "Total number of HTTP requests", "counter", ("method", "status", "path")
        )
        self.http_request_duration = MetricFamily(
            "http_request_duration_seconds", "HTTP request duration in seconds", "histogram", ("method", "path")
        )
        self.jobs_total = MetricFamily(
            "survey_jobs_total", "Background jobs by operation and outcome", "counter", ("operation", "outcome")
        )
        self.job_duration = MetricFamily(
            "survey_job_duration_seconds", "Background job duration", "histogram", ("operation",)
        )
        self.jobs_in_flight = MetricFamily(
            "survey_jobs_in_flight", "Background jobs currently queued or running", "gauge"
        )
        self.ai_requests_total = MetricFamily(
            "survey_ai_requests_total", "AI requests by feature and outcome", "counter", ("feature", "status")
        )
        self.cache_hits = MetricFamily("survey_cache_hits_total", "Total cache hits", "counter")
        self.cache_misses = MetricFamily("survey_cache_misses_total", "Total cache misses", "counter")

    @property
    def families(self) -> List[MetricFamily]:
        return [
            self.http_requests_total,
            self.http_request_duration,
            self.jobs_total,
            self.job_duration,
            self.jobs_in_flight,
            self.ai_requests_total,
            self.cache_hits,
            self.cache_misses,
        ]

    def reset(self):
        """Drop every recorded value."""
        with self._metrics_lock:
            for family in self.families:
                family.values.clear()

    def format_prometheus(self) -> str:
        """Format all metrics in Prometheus text format."""
        with self._metrics_lock:
            blocks = ["\n".join(family.render()) for family in self.families]
        return "\n\n".join(blocks) + "\n"


_registry = MetricsRegistry()


def get_registry() -> MetricsRegistry:
    """Get the global metrics registry."""
    return _registry


def track_request_start():
    return time.time()


def track_request_end(start_time: float, method: str, path: str, status_code: int):
    duration = time.time() - start_time
    normalized_path = _normalize_path(path)

    with _registry._metrics_lock:
        _registry.http_requests_total.inc((method, str(status_code), normalized_path))
        _registry.http_request_duration.observe((method, normalized_path), duration)


def track_job_queued():
    with _registry._metrics_lock:
        _registry.jobs_in_flight.inc()


def track_job(operation: str, outcome: str, duration: float):
    """Track a finished background job. ``outcome`` is completed, failed or timeout."""
    with _registry._metrics_lock:
        _registry.jobs_in_flight.inc(amount=-1.0)
        _registry.jobs_total.inc((operation, outcome))
        _registry.job_duration.observe((operation,), duration)


def track_ai_request(feature: str, success: bool = True):
    """Track an AI request. A failed request means the feature fell back to rules."""
    status = "success" if success else "fallback"
    with _registry._metrics_lock:
        _registry.ai_requests_total.inc((feature, status))


def track_cache_hit():
    with _registry._metrics_lock:
        _registry.cache_hits.inc()


def track_cache_miss():
    with _registry._metrics_lock:
        _registry.cache_misses.inc()


def _normalize_path(path: str) -> str:
    """
    Normalize path to prevent high cardinality.

    Examples:
        /api/v2/surveys/123/dashboard -> /api/v2/surveys/:id/dashboard
    """
    return "/".join(":id" if part.isdigit() else part for part in path.split("/"))
