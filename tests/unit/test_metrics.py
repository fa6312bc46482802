"""Unit tests for Prometheus metric helpers."""

from unittest.mock import patch

from prometheus_client import REGISTRY

from gated_calc.observability import metrics


def _sample(name, **labels) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_record_operation_counts_and_times():
    before = _sample("gatedcalc_operations_total", kind="math", status="success")
    count_before = _sample(
        "gatedcalc_operation_duration_seconds_count", kind="math", status="success"
    )

    metrics.record_operation("math", "success", 0.002)

    assert _sample("gatedcalc_operations_total", kind="math", status="success") == before + 1
    assert (
        _sample("gatedcalc_operation_duration_seconds_count", kind="math", status="success")
        == count_before + 1
    )


def test_record_policy_rejection():
    before = _sample("gatedcalc_policy_rejections_total", kind="boolean", reason="quota_exceeded")
    metrics.record_policy_rejection("boolean", "quota_exceeded")
    assert (
        _sample("gatedcalc_policy_rejections_total", kind="boolean", reason="quota_exceeded")
        == before + 1
    )


def test_record_store_error():
    before = _sample("gatedcalc_store_errors_total", store="quota")
    metrics.record_store_error("quota")
    assert _sample("gatedcalc_store_errors_total", store="quota") == before + 1


def test_generate_metrics_text_lists_metrics():
    metrics.record_history_write_failure()
    text = metrics.generate_metrics_text()
    assert "gatedcalc_history_write_failures_total" in text
    assert "gatedcalc_operations_total" in text


def test_start_metrics_server_uses_prometheus_http_server():
    with patch("prometheus_client.start_http_server") as start:
        assert metrics.start_metrics_server(9999) is True
    start.assert_called_once_with(9999)
