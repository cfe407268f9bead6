"""
Prometheus metrics for the Logto Access Gateway.

Each collector owns its registry, so several services (or tests) in one
process never collide on metric names.
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info, generate_latest
from typing import Any, Dict, Optional

JWKS_REFRESH_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._setup_auth_metrics()

    def _setup_auth_metrics(self):
        """Set up token verification and key set metrics."""
        self._metrics["token_validations_total"] = Counter(
            "token_validations_total",
            "Bearer token validations by outcome",
            ["status"],
            registry=self.registry
        )

        self._metrics["authorization_decisions_total"] = Counter(
            "authorization_decisions_total",
            "Scope authorization decisions",
            ["decision"],
            registry=self.registry
        )

        self._metrics["jwks_refresh_total"] = Counter(
            "jwks_refresh_total",
            "JWKS fetches by result",
            ["status"],
            registry=self.registry
        )

        self._metrics["jwks_refresh_duration_seconds"] = Histogram(
            "jwks_refresh_duration_seconds",
            "JWKS fetch duration in seconds",
            buckets=JWKS_REFRESH_BUCKETS,
            registry=self.registry
        )

        self._metrics["jwks_keys_loaded"] = Gauge(
            "jwks_keys_loaded",
            "Signing keys in the current key set",
            registry=self.registry
        )

    def render(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_token_validation(self, status: str):
        """Record a verification outcome: ``valid`` or a lower-cased error code."""
        self._metrics["token_validations_total"].labels(status=status).inc()

    def record_authorization(self, allowed: bool):
        self._metrics["authorization_decisions_total"].labels(decision="allow" if allowed else "deny").inc()

    def record_jwks_refresh(self, status: str, duration: float, keys_loaded: Optional[int] = None):
        """Record one JWKS fetch; ``keys_loaded`` is set only on success."""
        self._metrics["jwks_refresh_total"].labels(status=status).inc()
        self._metrics["jwks_refresh_duration_seconds"].observe(duration)
        if keys_loaded is not None:
            self._metrics["jwks_keys_loaded"].set(keys_loaded)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
