"""In-memory, thread-safe metrics registry.

Counters and histograms keyed by name + tags, with a serializable snapshot
for tests and the /health endpoint. No exporter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, List, Tuple, TypedDict
import time

MetricKey = Tuple[str, Tuple[Tuple[str, str], ...]]


def _key(name: str, tags: Dict[str, str]) -> MetricKey:
    return name, tuple(sorted(tags.items()))


@dataclass
class Counter:
    name: str
    tags: Dict[str, str]
    _value: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False)

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass
class Histogram:
    name: str
    tags: Dict[str, str]
    max_samples: int = 1000
    _values: List[float] = field(default_factory=list)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def observe(self, value: float) -> None:
        with self._lock:
            self._values.append(value)
            if len(self._values) > self.max_samples:
                del self._values[0]

    def summary(self) -> Dict[str, float]:
        with self._lock:
            values = sorted(self._values)
        if not values:
            return {"count": 0, "avg": 0.0, "p95": 0.0, "max": 0.0}
        return {
            "count": len(values),
            "avg": sum(values) / len(values),
            "p95": values[int(0.95 * (len(values) - 1))],
            "max": values[-1],
        }


class CounterSnap(TypedDict):
    name: str
    tags: Dict[str, str]
    value: int


class HistogramSnap(TypedDict):
    name: str
    tags: Dict[str, str]
    summary: Dict[str, float]


class RegistrySnapshot(TypedDict):
    counters: List[CounterSnap]
    histograms: List[HistogramSnap]
    generated_at: float


class MetricsRegistry:
    def __init__(self) -> None:
        self._counters: Dict[MetricKey, Counter] = {}
        self._histograms: Dict[MetricKey, Histogram] = {}
        self._lock = Lock()

    def counter(self, name: str, **tags: str) -> Counter:
        key = _key(name, tags)
        with self._lock:
            if key not in self._counters:
                self._counters[key] = Counter(name=name, tags=tags)
            return self._counters[key]

    def histogram(self, name: str, **tags: str) -> Histogram:
        key = _key(name, tags)
        with self._lock:
            if key not in self._histograms:
                self._histograms[key] = Histogram(name=name, tags=tags)
            return self._histograms[key]

    def counter_value(self, name: str, **tags: str) -> int:
        """Sum of every counter named ``name`` whose tags include ``tags``."""
        with self._lock:
            counters = list(self._counters.values())
        return sum(
            c.value()
            for c in counters
            if c.name == name and all(c.tags.get(k) == v for k, v in tags.items())
        )

    def snapshot(self) -> RegistrySnapshot:
        with self._lock:
            counters = list(self._counters.values())
            histograms = list(self._histograms.values())
        return {
            "counters": [{"name": c.name, "tags": c.tags, "value": c.value()} for c in counters],
            "histograms": [
                {"name": h.name, "tags": h.tags, "summary": h.summary()} for h in histograms
            ],
            "generated_at": time.time(),
        }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


registry = MetricsRegistry()
