"""CloudWatch custom metrics for every outbound call the assistant makes.

Three upstream services are tracked: ``scraper`` (the public web pages),
``calendly`` and ``anthropic``.  Each call yields a request count with its
status, a latency sample and, on failure, an error count dimensioned by
exception type.

* Data points are buffered in memory behind a lock.
* With ``METRICS_ENABLED=true`` a daemon thread flushes the buffer to
  CloudWatch every ``FLUSH_INTERVAL_SECONDS``; the server lifespan flushes
  once more on shutdown.
* Otherwise metrics are only logged at DEBUG and dropped on flush.

>>> from src.services.metrics import metrics
>>> with metrics.track("calendly", "GET /users/me"):
...     ...
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "GutshofAssistant"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # CloudWatch limit per PutMetricData call


def _datum(name: str, dims: dict[str, str], value: float, unit: str) -> dict[str, Any]:
    return {
        "MetricName": name,
        "Dimensions": [{"Name": k, "Value": v} for k, v in dims.items()],
        "Timestamp": datetime.now(UTC),
        "Value": value,
        "Unit": unit,
    }


class MetricsClient:
    """Buffers upstream-call metrics and publishes them in batches."""

    def __init__(self, *, enabled: bool | None = None) -> None:
        if enabled is None:
            enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._enabled = enabled
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None
        self._flusher: threading.Thread | None = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Recording ────────────────────────────────────────────────────

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        self._extend(
            _datum("Upstream/Calls", {"Service": service, "Status": "success"}, 1, "Count"),
            _datum(
                "Upstream/Latency",
                {"Service": service, "Operation": operation},
                latency_ms,
                "Milliseconds",
            ),
        )
        logger.debug("Metric: %s %s ok in %.1fms", service, operation, latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float | None = None,
    ) -> None:
        data = [
            _datum("Upstream/Calls", {"Service": service, "Status": "failure"}, 1, "Count"),
            _datum("Upstream/Errors", {"Service": service, "ErrorType": error_type}, 1, "Count"),
        ]
        if latency_ms is not None:
            data.append(
                _datum(
                    "Upstream/Latency",
                    {"Service": service, "Operation": operation},
                    latency_ms,
                    "Milliseconds",
                )
            )
        self._extend(*data)
        logger.debug("Metric: %s %s failed (%s)", service, operation, error_type)

    @contextmanager
    def track(self, service: str, operation: str) -> Iterator[None]:
        """Time the enclosed block and record it as one upstream call.

        Exceptions are recorded and re-raised unchanged.
        """
        t0 = time.perf_counter()
        try:
            yield
        except Exception as exc:
            self.record_failure(
                service, operation,
                error_type=type(exc).__name__,
                latency_ms=(time.perf_counter() - t0) * 1000,
            )
            raise
        self.record_success(service, operation, (time.perf_counter() - t0) * 1000)

    # ── Publishing ───────────────────────────────────────────────────

    def flush(self) -> int:
        """Send buffered metrics to CloudWatch.  Returns the count sent."""
        with self._lock:
            batch, self._buffer = self._buffer, []
        if not batch:
            return 0
        if not self._enabled:
            logger.debug("Metrics flush skipped (disabled): %d items", len(batch))
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

    def start(self) -> None:
        """Start the periodic flush thread (no-op when disabled or running)."""
        if not self._enabled or self._flusher is not None:
            return

        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        self._flusher = threading.Thread(target=_loop, daemon=True, name="metrics-flush")
        self._flusher.start()
        logger.info("Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS)

    def _extend(self, *data: dict[str, Any]) -> None:
        with self._lock:
            self._buffer.extend(data)


# ── Module-level singleton ──────────────────────────────────────────
metrics = MetricsClient()
