"""Structured logging setup and in-process metrics for the engine."""

import logging
import math
import os
import sys
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List

import structlog


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    service_name: str = "cognitive-synergy"
) -> None:
    """Setup structured logging configuration"""

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
    )


def add_service_context(logger: logging.Logger, method_name: str,
                        event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add timestamp and the isolate currently holding the loop"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    isolate_id = structlog.contextvars.get_contextvars().get("isolate_id")
    if isolate_id and "isolate_id" not in event_dict:
        event_dict["isolate_id"] = isolate_id

    return event_dict


class MetricsCollector:
    """
    In-process slice latency, counters and gauges.

    When disabled every recording call is a no-op, so the engine can call it
    unconditionally on the hot path.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        # operation -> [count, total_ms, min_ms, max_ms]
        self._latency: Dict[str, List[float]] = {}
        self._counters: Counter = Counter()
        self._gauges: Dict[str, float] = {}

    def record_latency(self, operation: str, duration_ms: float):
        if not self.enabled:
            return
        entry = self._latency.setdefault(operation, [0, 0.0, math.inf, 0.0])
        entry[0] += 1
        entry[1] += duration_ms
        entry[2] = min(entry[2], duration_ms)
        entry[3] = max(entry[3], duration_ms)

    def increment_counter(self, name: str, value: int = 1):
        if self.enabled:
            self._counters[name] += value

    def set_gauge(self, name: str, value: float):
        if self.enabled:
            self._gauges[name] = value

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Counters and gauges by name, latencies as ``latency.<operation>``."""
        summary: Dict[str, Any] = dict(self._counters)
        summary.update(self._gauges)
        for operation, (count, total, low, high) in self._latency.items():
            summary[f"latency.{operation}"] = {
                "count": count,
                "avg": total / count,
                "min": low,
                "max": high,
            }
        return summary

    def reset(self):
        self._latency.clear()
        self._counters.clear()
        self._gauges.clear()
