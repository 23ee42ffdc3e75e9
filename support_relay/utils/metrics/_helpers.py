"""
Idempotent Prometheus metric registration.

Module reloads (uvicorn --reload, test collection) import the metric
definitions more than once; the second registration of a name returns the
collector that is already in the default registry.
"""

from prometheus_client import REGISTRY, Counter, Gauge, Histogram


def _registered(name: str):
    # Counters are registered without their "_total" suffix
    collectors = REGISTRY._names_to_collectors
    return collectors.get(name) or collectors[name.removesuffix("_total")]


def _get_or_create_counter(
    name: str, doc: str, labels: list[str] | None = None
) -> Counter:
    try:
        return Counter(name, doc, labels or [])
    except ValueError:
        return _registered(name)


def _get_or_create_gauge(
    name: str, doc: str, labels: list[str] | None = None
) -> Gauge:
    try:
        return Gauge(name, doc, labels or [])
    except ValueError:
        return _registered(name)


def _get_or_create_histogram(
    name: str,
    doc: str,
    labels: list[str] | None = None,
    buckets: tuple[float, ...] | None = None,
) -> Histogram:
    try:
        if buckets:
            return Histogram(name, doc, labels or [], buckets=buckets)
        return Histogram(name, doc, labels or [])
    except ValueError:
        return _registered(name)
