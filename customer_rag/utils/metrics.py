"""Observability metrics for the Customer Retrieval Assistant."""

from __future__ import annotations

import csv
import json
import threading
from pathlib import Path
from typing import Any


class MetricsCollector:
    """Collects and aggregates observability metrics. Singleton pattern."""

    _instance: MetricsCollector | None = None
    _lock = threading.Lock()

    def __new__(cls) -> MetricsCollector:
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Initialize metrics storage. Skip if already initialized (singleton)."""
        if getattr(self, "_initialized", False):
            return
        self._lock = threading.Lock()
        self._reset_counters()
        self._initialized = True

    def _reset_counters(self) -> None:
        self._queries_processed: int = 0
        self._retrievals_by_path: dict[str, int] = {}
        self._records_returned: int = 0
        self._embedding_failures: int = 0
        self._embeddings_stored: int = 0
        self._generator_calls: int = 0
        self._generator_failures: int = 0
        self._rate_limited: int = 0
        self._api_requests: int = 0
        self._errors: int = 0
        self._errors_by_type: dict[str, int] = {}
        self._retrieval_durations: list[float] = []
        self._generator_durations: list[float] = []
        self._population_durations: list[float] = []
        self._api_durations: list[float] = []

    def record_retrieval(self, path: str, duration: float, records_returned: int) -> None:
        """Record one retrieval call and which path resolved it."""
        with self._lock:
            self._queries_processed += 1
            self._retrievals_by_path[path] = self._retrievals_by_path.get(path, 0) + 1
            self._records_returned += records_returned
            self._retrieval_durations.append(duration)

    def record_population(self, duration: float, stored: int, failed: int) -> None:
        """Record an embedding store population run."""
        with self._lock:
            self._population_durations.append(duration)
            self._embeddings_stored += stored
            self._embedding_failures += failed

    def record_embedding_failure(self) -> None:
        with self._lock:
            self._embedding_failures += 1

    def record_generator_call(self, duration: float, success: bool) -> None:
        with self._lock:
            self._generator_calls += 1
            self._generator_durations.append(duration)
            if not success:
                self._generator_failures += 1

    def record_rate_limited(self) -> None:
        with self._lock:
            self._rate_limited += 1

    def record_api_request(
        self,
        endpoint: str,
        status_code: int,
        duration: float,
    ) -> None:
        """Record API request metrics."""
        with self._lock:
            self._api_requests += 1
            self._api_durations.append(duration)
            if status_code >= 500:
                self._errors += 1

    def record_error(self, error_type: str, context: dict[str, Any] | None = None) -> None:
        """Record an error with optional context."""
        with self._lock:
            self._errors += 1
            self._errors_by_type[error_type] = self._errors_by_type.get(error_type, 0) + 1

    def get_metrics_summary(self) -> dict[str, Any]:
        """Return aggregated metrics summary."""
        with self._lock:
            total_requests = self._api_requests + self._queries_processed
            error_rate = self._errors / total_requests if total_requests > 0 else 0.0
            return {
                "total_queries_processed": self._queries_processed,
                "retrievals_by_path": dict(self._retrievals_by_path),
                "total_records_returned": self._records_returned,
                "average_retrieval_time_seconds": round(_mean(self._retrieval_durations), 4),
                "total_embeddings_stored": self._embeddings_stored,
                "total_embedding_failures": self._embedding_failures,
                "total_population_runs": len(self._population_durations),
                "total_generator_calls": self._generator_calls,
                "total_generator_failures": self._generator_failures,
                "average_generator_time_seconds": round(_mean(self._generator_durations), 4),
                "total_rate_limited": self._rate_limited,
                "total_api_requests": self._api_requests,
                "error_rate": round(error_rate, 4),
                "total_errors": self._errors,
                "errors_by_type": dict(self._errors_by_type),
            }

    def export_to_file(self, filepath: str) -> None:
        """Save metrics summary to JSON or CSV file."""
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)
        summary = self.get_metrics_summary()

        if path.suffix.lower() == ".csv":
            with open(path, "w", newline="") as f:
                writer = csv.writer(f)
                for k, v in summary.items():
                    if isinstance(v, dict):
                        writer.writerow([k, json.dumps(v)])
                    else:
                        writer.writerow([k, v])
        else:
            with open(path, "w") as f:
                json.dump(summary, f, indent=2)

    def reset(self) -> None:
        """Zero all counters (tests)."""
        with self._lock:
            self._reset_counters()


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def get_metrics() -> MetricsCollector:
    """Return the global singleton MetricsCollector."""
    return MetricsCollector()
