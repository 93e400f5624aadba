"""CloudWatch custom metrics emitter with background batching.

Two families of metrics are published:

* ``ExternalAPI/*`` — count, latency and errors for every call the
  assistant makes to an outside service (Anthropic, the email API).
* ``Dialogue/*`` — how each turn ended (``ask_goal``, ``ask_missing``,
  ``execute_tool``, ``internal_error``) and whether each tool succeeded.

Metrics are buffered in memory and flushed by a daemon thread every
``FLUSH_INTERVAL_SECONDS``.  Unless ``METRICS_ENABLED=true`` nothing is sent
to CloudWatch; data points are only logged at DEBUG.

>>> from parts_assistant.services.metrics import metrics
>>> metrics.record_success("anthropic", "speak", latency_ms=412.0)
>>> metrics.record_turn("execute_tool", latency_ms=880.5)
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "PartsAssistant"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # CloudWatch API limit per PutMetricData call


def _dims(**pairs: str) -> list[dict[str, str]]:
    return [{"Name": name, "Value": value} for name, value in pairs.items()]


class MetricsClient:
    """Batched CloudWatch metrics publisher."""

    def __init__(self) -> None:
        self._enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None

        if self._enabled:
            self._start_flush_thread()

    def _get_cw_client(self):
        """Create the boto3 CloudWatch client on first use."""
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── External calls ───────────────────────────────────────────────

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        """Record a successful call to an external service."""
        self._put("ExternalAPI/RequestCount", 1, "Count",
                  _dims(Service=service, Status="success"))
        self._put("ExternalAPI/Latency", latency_ms, "Milliseconds",
                  _dims(Service=service, Operation=operation))
        logger.debug("Metric: %s %s success latency=%.1fms", service, operation, latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        """Record a failed call to an external service."""
        self._put("ExternalAPI/RequestCount", 1, "Count",
                  _dims(Service=service, Status="failure"))
        self._put("ExternalAPI/ErrorCount", 1, "Count",
                  _dims(Service=service, ErrorType=error_type))
        if latency_ms > 0:
            self._put("ExternalAPI/Latency", latency_ms, "Milliseconds",
                      _dims(Service=service, Operation=operation))
        logger.debug(
            "Metric: %s %s failure error=%s latency=%.1fms",
            service, operation, error_type, latency_ms,
        )

    # ── Dialogue outcomes ────────────────────────────────────────────

    def record_turn(self, action: str, latency_ms: float) -> None:
        """Record how a turn ended and how long it took."""
        self._put("Dialogue/TurnCount", 1, "Count", _dims(Action=action))
        self._put("Dialogue/TurnLatency", latency_ms, "Milliseconds", _dims(Action=action))
        logger.debug("Metric: turn action=%s latency=%.1fms", action, latency_ms)

    def record_tool(self, tool_name: str, ok: bool) -> None:
        """Record a tool execution outcome."""
        status = "success" if ok else "failure"
        self._put("Dialogue/ToolCount", 1, "Count", _dims(Tool=tool_name, Status=status))
        logger.debug("Metric: tool %s %s", tool_name, status)

    # ── Flushing ─────────────────────────────────────────────────────

    def flush(self) -> int:
        """Send buffered metrics to CloudWatch.  Returns count sent."""
        with self._lock:
            if not self._buffer:
                return 0
            batch = self._buffer[:]
            self._buffer.clear()

        if not self._enabled:
            logger.debug("Metrics flush skipped (not enabled): %d items", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for i in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[i : i + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    def _put(self, name: str, value: float, unit: str, dimensions: list[dict[str, str]]) -> None:
        datum = {
            "MetricName": name,
            "Dimensions": dimensions,
            "Timestamp": datetime.now(UTC),
            "Value": value,
            "Unit": unit,
        }
        with self._lock:
            self._buffer.append(datum)

    def _start_flush_thread(self) -> None:
        """Start a daemon thread that flushes metrics periodically."""

        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        t = threading.Thread(target=_loop, daemon=True, name="metrics-flush")
        t.start()
        atexit.register(self.flush)
        logger.info("Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS)


metrics = MetricsClient()
