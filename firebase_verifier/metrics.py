"""
Prometheus metrics for token verification and key retrieval.
"""

import threading
import time
from contextlib import contextmanager
from typing import Dict, Any, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, REGISTRY


class VerifierMetrics:
    """Collector for verification outcomes and key fetch timings."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        self._metrics["token_verifications_total"] = Counter(
            "token_verifications_total",
            "Total token verifications",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["key_fetch_duration_seconds"] = Histogram(
            "key_fetch_duration_seconds",
            "Public key fetch duration in seconds",
            registry=self.registry
        )

        self._metrics["key_fetch_failures_total"] = Counter(
            "key_fetch_failures_total",
            "Total public key fetch failures",
            registry=self.registry
        )

    def record_verification(self, outcome: str):
        """Record a verification outcome (``ok`` or an error kind value)."""
        self._metrics["token_verifications_total"].labels(outcome=outcome).inc()

    def record_fetch_failure(self):
        self._metrics["key_fetch_failures_total"].inc()

    @contextmanager
    def time_key_fetch(self):
        """Context manager to time a key fetch."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self._metrics["key_fetch_duration_seconds"].observe(time.perf_counter() - start_time)


_default_metrics: Optional[VerifierMetrics] = None
_default_lock = threading.Lock()


def get_verifier_metrics() -> VerifierMetrics:
    """Get the process-wide collector bound to the default registry."""
    global _default_metrics
    with _default_lock:
        if _default_metrics is None:
            _default_metrics = VerifierMetrics()
        return _default_metrics
