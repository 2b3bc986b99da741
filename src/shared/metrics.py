"""Transfer metrics."""

import threading
import time
from typing import Dict, Any, List
from collections import defaultdict


class TransferMetrics:
    """
    Timings and counters for a migration run.

    Timers are keyed by phase name (``download``, ``upload``,
    ``existence_check``); each stop records one duration sample.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._start_time = time.monotonic()
        self._timers: Dict[str, float] = {}
        self._durations: Dict[str, List[float]] = defaultdict(list)
        self._counters: Dict[str, int] = defaultdict(int)

    def start_timer(self, name: str) -> None:
        """Start a named timer."""
        with self._lock:
            self._timers[name] = time.monotonic()

    def stop_timer(self, name: str) -> float:
        """
        Stop a named timer and return elapsed time.

        Raises:
            KeyError: If timer was not started
        """
        with self._lock:
            if name not in self._timers:
                raise KeyError(f"Timer '{name}' was not started")
            elapsed = time.monotonic() - self._timers.pop(name)
            self._durations[name].append(elapsed)
            return elapsed

    def increment(self, name: str, amount: int = 1) -> None:
        """Increment a counter."""
        with self._lock:
            self._counters[name] += amount

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def elapsed_time(self) -> float:
        """Seconds since the metrics object was created or reset."""
        return time.monotonic() - self._start_time

    def reset(self) -> None:
        with self._lock:
            self._start_time = time.monotonic()
            self._timers.clear()
            self._durations.clear()
            self._counters.clear()

    def get_summary(self) -> Dict[str, Any]:
        """Counters plus count/avg/max per timed phase."""
        with self._lock:
            phases = {
                name: {
                    "count": len(values),
                    "total": sum(values),
                    "avg": sum(values) / len(values),
                    "max": max(values),
                }
                for name, values in self._durations.items()
                if values
            }
            return {
                "elapsed": self.elapsed_time(),
                "counters": dict(self._counters),
                "phases": phases,
            }

    def format_summary(self) -> str:
        """Human readable summary for the CLI."""
        summary = self.get_summary()
        lines = ["=" * 60, "TRANSFER METRICS", "=" * 60,
                 f"Elapsed: {summary['elapsed']:.1f}s"]

        for name, value in sorted(summary["counters"].items()):
            lines.append(f"  {name}: {value}")

        for name, data in sorted(summary["phases"].items()):
            lines.append(
                f"  {name}: n={data['count']} avg={data['avg']:.3f}s max={data['max']:.3f}s"
            )

        lines.append("=" * 60)
        return "\n".join(lines)
