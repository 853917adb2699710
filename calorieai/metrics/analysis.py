"""Instrumentation helpers for food photo analysis.

Metrics (all tagged with `provider`):
* Counter analysis_attempts_total{provider,outcome}   outcome = ok | <error kind>
* Counter analysis_requests_total{provider,status}    status = completed | failed
* Counter analysis_failures_total{provider,kind}
* Counter analysis_retries_total{provider,kind}
* Histogram analysis_latency_ms{provider}
"""

from __future__ import annotations

from calorieai.metrics.core import RegistrySnapshot, registry


def record_attempt(provider: str, outcome: str) -> None:
    registry.counter("analysis_attempts_total", provider=provider, outcome=outcome).inc()


def record_retry(provider: str, kind: str) -> None:
    registry.counter("analysis_retries_total", provider=provider, kind=kind).inc()


def record_completed(provider: str, latency_ms: float) -> None:
    registry.counter("analysis_requests_total", provider=provider, status="completed").inc()
    registry.histogram("analysis_latency_ms", provider=provider).observe(latency_ms)


def record_failed(provider: str, kind: str, latency_ms: float) -> None:
    registry.counter("analysis_requests_total", provider=provider, status="failed").inc()
    registry.counter("analysis_failures_total", provider=provider, kind=kind).inc()
    registry.histogram("analysis_latency_ms", provider=provider).observe(latency_ms)


def snapshot() -> RegistrySnapshot:
    return registry.snapshot()


def reset_all() -> None:
    """Clear every metric (tests only)."""
    registry.reset()
