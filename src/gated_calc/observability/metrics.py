"""Prometheus metrics for Gated Calc.

Cardinality rule: user ids are NOT Prometheus labels (unbounded).
Operation kind, status, rejection reason and store name are labels (bounded).
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Lazy-load prometheus_client so metrics cost nothing until first use
_prom = None


def _get_prom():
    """Lazily import prometheus_client."""
    global _prom
    if _prom is None:
        try:
            import prometheus_client
            _prom = prometheus_client
        except ImportError:
            logger.warning("prometheus_client not installed; metrics disabled")
            _prom = False
    return _prom if _prom else None


# --- Metric singletons (created on first access) ---

_metrics = {}


def _metric(name, metric_type, description, labelnames=()):
    """Get or create a Prometheus metric."""
    if name in _metrics:
        return _metrics[name]
    prom = _get_prom()
    if prom is None:
        _metrics[name] = None
        return None
    cls = getattr(prom, metric_type)
    m = cls(name, description, labelnames=labelnames)
    _metrics[name] = m
    return m


def operations_total():
    return _metric(
        "gatedcalc_operations_total",
        "Counter",
        "Total evaluated operations",
        labelnames=["kind", "status"],
    )


def operation_duration():
    return _metric(
        "gatedcalc_operation_duration_seconds",
        "Histogram",
        "Expression evaluation duration in seconds",
        labelnames=["kind", "status"],
    )


def policy_rejections_total():
    return _metric(
        "gatedcalc_policy_rejections_total",
        "Counter",
        "Operations refused by permission or quota policy",
        labelnames=["kind", "reason"],
    )


def store_errors_total():
    return _metric(
        "gatedcalc_store_errors_total",
        "Counter",
        "Infrastructure failures talking to a backing store",
        labelnames=["store"],
    )


def history_write_failures_total():
    return _metric(
        "gatedcalc_history_write_failures_total",
        "Counter",
        "Operation history records that could not be persisted",
    )


# --- Helper functions for recording metrics ---

def record_operation(kind: str, status: str, duration: float):
    oc = operations_total()
    if oc:
        oc.labels(kind=kind, status=status).inc()
    od = operation_duration()
    if od:
        od.labels(kind=kind, status=status).observe(duration)


def record_policy_rejection(kind: str, reason: str):
    m = policy_rejections_total()
    if m:
        m.labels(kind=kind, reason=reason).inc()


def record_store_error(store: str):
    m = store_errors_total()
    if m:
        m.labels(store=store).inc()


def record_history_write_failure():
    m = history_write_failures_total()
    if m:
        m.inc()


def start_metrics_server(port: int) -> bool:
    """Expose metrics over HTTP on *port*. Returns False when unavailable."""
    prom = _get_prom()
    if prom is None:
        return False
    prom.start_http_server(port)
    logger.info("Metrics server listening on port %d", port)
    return True


def generate_metrics_text() -> Optional[str]:
    """Generate Prometheus metrics text output."""
    prom = _get_prom()
    if prom is None:
        return None
    return prom.generate_latest().decode("utf-8")
