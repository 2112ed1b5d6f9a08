"""Performance metrics for pipeline runs - latency focused."""

import time
from contextlib import contextmanager

from .models import RunMetrics


class MetricsCollector:
    """Collects and tracks per-stage latency for one pipeline run."""

    def __init__(self):
        self._start_times: dict[str, float] = {}
        self._totals: dict[str, float] = {}

    def start_timer(self, name: str) -> None:
        """Start a named timer."""
        self._start_times[name] = time.perf_counter()

    def stop_timer(self, name: str) -> float:
        """Stop a named timer, add it to the stage total and return elapsed time."""
        if name not in self._start_times:
            return 0.0
        elapsed = time.perf_counter() - self._start_times.pop(name)
        self._totals[name] = self._totals.get(name, 0.0) + elapsed
        return elapsed

    @contextmanager
    def timed(self, name: str):
        """Time the enclosed block under `name`, even if it raises."""
        self.start_timer(name)
        try:
            yield
        finally:
            self.stop_timer(name)

    def total(self, name: str) -> float:
        return self._totals.get(name, 0.0)

    def create_run_metrics(self, duration: float) -> RunMetrics:
        """Create metrics for a finished run."""
        return RunMetrics(
            duration_sec=duration,
            listing_time_sec=self.total("listing"),
            extraction_time_sec=self.total("extraction"),
            upload_time_sec=self.total("upload"),
            db_time_sec=self.total("database"),
        )
