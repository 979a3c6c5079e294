"""Logging and Prometheus metrics."""

from .observability import DiscoveryMetrics, TimedSection, configure_logging, get_logger

__all__ = ["DiscoveryMetrics", "TimedSection", "configure_logging", "get_logger"]
