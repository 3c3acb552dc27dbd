"""
core_metrics: record Prometheus counters and histograms by name without
declaring collectors up front.

Collectors are created lazily on first use in the default registry and are
exposed by ``core_metrics.fastapi.attach_prometheus_endpoint``.  Label names
are fixed by the first call for a given metric; later calls fill missing
labels with ``""`` and drop unknown ones.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Tuple

from prometheus_client import (
    REGISTRY as _PROM_REGISTRY,
    Counter as _pCounter,
    Histogram as _pHistogram,
)

_COLLECTORS: Dict[str, Tuple[Any, Tuple[str, ...]]] = {}
_LOCK = threading.Lock()


def _collector(kind: type, name: str, attrs: Dict[str, Any]):
    with _LOCK:
        hit = _COLLECTORS.get(name)
        if hit is None:
            existing = _PROM_REGISTRY._names_to_collectors.get(name)  # type: ignore[attr-defined]
            if existing is not None:
                metric = existing
                labelnames = tuple(getattr(existing, "_labelnames", ()))
            else:
                labelnames = tuple(sorted(attrs))
                metric = kind(name, f"{kind.__name__} for {name}", labelnames=labelnames)
            hit = (metric, labelnames)
            _COLLECTORS[name] = hit
    metric, labelnames = hit
    if not labelnames:
        return metric
    return metric.labels(**{k: str(attrs.get(k, "")) for k in labelnames})


# --------------------------------------------------------------------------- #
# Public helpers                                                              #
# --------------------------------------------------------------------------- #
def counter(name: str, inc: int | float = 1, **attrs: Any) -> None:
    """Increment *name* by *inc* (default 1)."""
    _collector(_pCounter, name, attrs).inc(inc)


def histogram(name: str, value: float, **attrs: Any) -> None:
    """Record *value* in histogram *name*."""
    _collector(_pHistogram, name, attrs).observe(value)


def histogram_ms(name: str, elapsed_ms: float, **attrs: Any) -> None:
    """Shortcut: record *elapsed_ms* (milliseconds) in histogram *name*."""
    histogram(name, elapsed_ms, **attrs)


__all__ = ["counter", "histogram", "histogram_ms"]
