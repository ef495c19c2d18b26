import json
import logging
import os
import threading
from typing import List, Optional

logger = logging.getLogger(__name__)

_lock = threading.Lock()

# Keep latency history bounded
MAX_LATENCY_SAMPLES = 5000


class MetricsTracker:
    """
    Request and LLM spend counters, persisted as JSON.

    Pass path=None to keep everything in memory (tests).
    """

    def __init__(self, path: Optional[str] = "storage/metrics.json"):

        self._path = path
        self._metrics = self._empty()

        self._load()

    @staticmethod
    def _empty():
        return {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,

            "total_latency": 0.0,
            "avg_latency": 0.0,
            "latencies": [],

            "llm_input_tokens": 0,
            "llm_output_tokens": 0,
            "llm_cost_usd": 0.0,
            "escalations": 0,
        }

    def _load(self):

        if not self._path or not os.path.exists(self._path):
            return

        try:

            with open(self._path, "r") as f:
                data = json.load(f)

            # Older files lack the usage counters
            merged = self._empty()
            merged.update(data)
            self._metrics = merged

        except (OSError, ValueError) as e:

            logger.warning("Metrics load failed", extra={"error": str(e)})

    def _save(self):

        if not self._path:
            return

        try:

            directory = os.path.dirname(self._path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            with open(self._path, "w") as f:
                json.dump(self._metrics, f, indent=2)

        except OSError as e:

            logger.warning("Metrics save failed", extra={"error": str(e)})

    def record_success(self, latency: float):

        with _lock:

            self._metrics["total_requests"] += 1
            self._metrics["successful_requests"] += 1
            self._metrics["total_latency"] += latency

            self._metrics["avg_latency"] = (
                self._metrics["total_latency"]
                / self._metrics["successful_requests"]
            )

            self._metrics["latencies"].append(latency)
            del self._metrics["latencies"][:-MAX_LATENCY_SAMPLES]

            self._save()

    def record_failure(self):

        with _lock:

            self._metrics["total_requests"] += 1
            self._metrics["failed_requests"] += 1

            self._save()

    def record_usage(
        self,
        input_tokens: int,
        output_tokens: int,
        cost_usd: Optional[float],
        escalated: bool = False,
    ):

        with _lock:

            self._metrics["llm_input_tokens"] += input_tokens
            self._metrics["llm_output_tokens"] += output_tokens

            if cost_usd is not None:
                self._metrics["llm_cost_usd"] = round(
                    self._metrics["llm_cost_usd"] + cost_usd, 6
                )

            if escalated:
                self._metrics["escalations"] += 1

            self._save()

    def get_metrics(self):

        return {
            **self._metrics,
            "p95_latency": self.get_latency_percentile(95),
        }

    def get_latency_percentile(self, percentile: float) -> float:

        latencies: List[float] = self._metrics.get("latencies", [])

        if not latencies:
            return 0.0

        sorted_latencies = sorted(latencies)

        index = int(len(sorted_latencies) * percentile / 100)
        index = min(index, len(sorted_latencies) - 1)

        return sorted_latencies[index]

    def reset(self):

        with _lock:
            self._metrics = self._empty()


metrics_tracker = MetricsTracker(
    path=os.getenv("METRICS_PATH", "storage/metrics.json") or None
)
