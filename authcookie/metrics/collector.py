"""
Prometheus metrics for authcookie.

Counts authentication decisions by kind and denial reason, issued
tokens, and the size of the token store.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from prometheus_client import (
    Counter, Histogram, Gauge, CollectorRegistry,
    generate_latest, CONTENT_TYPE_LATEST,
)


logger = logging.getLogger(__name__)


@dataclass
class MetricConfig:
    """Configuration for metrics collection."""

    enabled: bool = True
    namespace: str = "authcookie"


class MetricsCollector:
    """Metrics collector for cookie authentication."""

    def __init__(self, config: MetricConfig = None,
                 registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics collector.

        Args:
            config: Metrics configuration
            registry: Registry to register into (a private one by default)
        """
        self.config = config or MetricConfig()
        self.registry = registry or CollectorRegistry()

        ns = self.config.namespace

        self.decisions = Counter(
            f'{ns}_decisions_total',
            'Total number of authentication decisions',
            ['kind', 'reason'],
            registry=self.registry
        )

        self.tokens_issued = Counter(
            f'{ns}_tokens_issued_total',
            'Total number of tokens issued from verified credentials',
            registry=self.registry
        )

        self.store_size = Gauge(
            f'{ns}_token_store_size',
            'Number of records held by the token store',
            registry=self.registry
        )

        self.dispatch_latency = Histogram(
            f'{ns}_dispatch_duration_seconds',
            'Cookie dispatch duration in seconds',
            ['kind'],
            buckets=[0.0001, 0.0005, 0.001, 0.002, 0.005, 0.01, 0.05, 0.1],
            registry=self.registry
        )

        logger.info("Metrics collector initialized")

    def record_decision(self, kind: str, reason: Optional[str] = None,
                        duration: Optional[float] = None) -> None:
        """Record one dispatcher decision."""
        if not self.config.enabled:
            return

        self.decisions.labels(kind=kind, reason=reason or "none").inc()
        if duration is not None:
            self.dispatch_latency.labels(kind=kind).observe(duration)

    def record_token_issued(self) -> None:
        if self.config.enabled:
            self.tokens_issued.inc()

    def set_store_size(self, size: int) -> None:
        if self.config.enabled:
            self.store_size.set(size)

    def export(self) -> bytes:
        """Render the registry in Prometheus text exposition format."""
        return generate_latest(self.registry)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST
