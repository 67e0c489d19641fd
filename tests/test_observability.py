"""
Tests for logging setup and the metrics collector.
"""

import logging

import structlog
from synergy.observability import MetricsCollector, add_service_context, setup_logging


class TestMetricsCollector:
    """Test metric aggregation."""

    def test_latency_summary(self):
        metrics = MetricsCollector()
        metrics.record_latency("slice", 2.0)
        metrics.record_latency("slice", 4.0)

        summary = metrics.get_metrics_summary()["latency.slice"]
        assert summary == {"count": 2, "avg": 3.0, "min": 2.0, "max": 4.0}

    def test_counters_and_gauges(self):
        metrics = MetricsCollector()
        metrics.increment_counter("ticks")
        metrics.increment_counter("ticks", 2)
        metrics.set_gauge("isolates", 3)

        summary = metrics.get_metrics_summary()
        assert summary["ticks"] == 3
        assert summary["isolates"] == 3

    def test_disabled_is_noop(self):
        metrics = MetricsCollector(enabled=False)
        metrics.record_latency("slice", 1.0)
        metrics.increment_counter("ticks")
        metrics.set_gauge("isolates", 1)

        assert metrics.get_metrics_summary() == {}

    def test_reset(self):
        metrics = MetricsCollector()
        metrics.increment_counter("faults")
        metrics.reset()

        assert metrics.get_metrics_summary() == {}


class TestLogging:
    def test_service_context_adds_isolate(self):
        with structlog.contextvars.bound_contextvars(isolate_id="main"):
            event = add_service_context(None, "info", {"event": "slice"})

        assert event["isolate_id"] == "main"
        assert "timestamp" in event

    def test_explicit_isolate_wins(self):
        with structlog.contextvars.bound_contextvars(isolate_id="main"):
            event = add_service_context(None, "info", {"event": "x", "isolate_id": "other"})

        assert event["isolate_id"] == "other"

    def test_setup_json_logging(self, caplog):
        caplog.set_level(logging.DEBUG)
        setup_logging(log_level="DEBUG", log_format="json", service_name="synergy-test")
        structlog.get_logger("synergy.test").info("engine_ready", isolates=2)

        messages = [record.getMessage() for record in caplog.records]
        assert any("engine_ready" in m and "synergy-test" in m for m in messages)
        structlog.contextvars.clear_contextvars()
        structlog.reset_defaults()
