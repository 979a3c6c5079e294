"""Observability helpers for serendip."""

from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from typing import Iterable

import structlog
from prometheus_client import Counter, Gauge, Histogram

_logger_configured = False
_correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


def configure_logging(level: int = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()
    _correlation_id_var.set("-")


def get_correlation_id() -> str:
    return _correlation_id_var.get()


def get_logger(name: str = "serendip") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


class DiscoveryMetrics:
    """Prometheus metrics for the discovery engines."""

    discovery_latency = Histogram(
        "serendip_discovery_duration_seconds",
        "Time spent discovering connections for one source note.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
    )
    connection_count = Histogram(
        "serendip_connection_count",
        "Connections returned per discovery call.",
        ["mode"],
        buckets=(0, 1, 2, 5, 10, 20, 50, 100),
    )
    serendipity_score = Histogram(
        "serendip_serendipity_score",
        "Distribution of serendipity scores of returned connections.",
        buckets=(0.0, 0.2, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0),
    )
    candidate_skips = Counter(
        "serendip_candidate_skips_total",
        "Candidates discarded during discovery, by reason.",
        ["reason"],
    )
    evaluator_latency = Histogram(
        "serendip_evaluator_duration_seconds",
        "Time spent waiting on the external evaluator for one pair.",
        buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
    )
    evaluator_failures = Counter(
        "serendip_evaluator_failures_total",
        "Evaluator calls that raised or returned an unsuccessful response.",
    )
    deep_pairs_evaluated = Counter(
        "serendip_deep_pairs_evaluated_total",
        "Cross-domain pairs sent to the evaluator by the deep engine.",
    )
    embedded_notes = Gauge(
        "serendip_embedded_notes",
        "Number of notes with an embedding in the configured store.",
    )

    @classmethod
    def observe_discovery(cls, duration_seconds: float, scores: Iterable[float]) -> None:
        cls.discovery_latency.observe(duration_seconds)
        count = 0
        for score in scores:
            cls.serendipity_score.observe(score)
            count += 1
        cls.connection_count.labels(mode="standard").observe(count)

    @classmethod
    def observe_deep(cls, connection_count: int) -> None:
        cls.connection_count.labels(mode="deep").observe(connection_count)

    @classmethod
    def record_skips(cls, skips: dict[str, int]) -> None:
        for reason, count in skips.items():
            if count:
                cls.candidate_skips.labels(reason=reason).inc(count)

    @classmethod
    def observe_evaluation(cls, duration_seconds: float) -> None:
        cls.evaluator_latency.observe(duration_seconds)


class TimedSection:
    """Context manager capturing elapsed time for metrics."""

    def __init__(self, callback) -> None:
        self._callback = callback
        self._start = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        duration = time.perf_counter() - self._start
        self._callback(duration)


__all__ = [
    "DiscoveryMetrics",
    "TimedSection",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
]
