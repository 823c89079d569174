"""
Metrics collection for authcookie.
"""

from .collector import MetricConfig, MetricsCollector

__all__ = ["MetricConfig", "MetricsCollector"]
