"""
Shared metrics configuration for the token service.
"""

from prometheus_client import Counter, Histogram, CollectorRegistry, REGISTRY
from typing import Dict, Any, Optional
import time
import threading
from contextlib import contextmanager


class TokenMetrics:
    """Prometheus metrics for token minting and verification."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up token lifecycle metrics."""
        self._metrics["tokens_minted_total"] = Counter(
            "tokens_minted_total",
            "Total tokens minted",
            ["algorithm"],
            registry=self.registry
        )

        self._metrics["token_verifications_total"] = Counter(
            "token_verifications_total",
            "Total token verifications",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["token_verification_duration_seconds"] = Histogram(
            "token_verification_duration_seconds",
            "Token verification duration in seconds",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_mint(self, algorithm: str):
        """Record a minted token."""
        self._metrics["tokens_minted_total"].labels(algorithm=algorithm).inc()

    def record_verification(self, outcome: str):
        """Record a verification outcome ("valid" or a failure kind)."""
        self._metrics["token_verifications_total"].labels(outcome=outcome).inc()

    @contextmanager
    def time_verification(self):
        """Context manager to time a verification."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self._metrics["token_verification_duration_seconds"].observe(time.perf_counter() - start_time)


_token_metrics: Optional[TokenMetrics] = None
_lock = threading.Lock()


def get_token_metrics() -> TokenMetrics:
    """Get the process-wide metrics collector bound to the default registry."""
    global _token_metrics
    with _lock:
        if _token_metrics is None:
            _token_metrics = TokenMetrics()
        return _token_metrics
