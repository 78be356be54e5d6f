from __future__ import annotations

import logging
import threading
import time
from collections import deque
from statistics import mean
from typing import Any, Deque, Dict, Optional, Tuple

# sorted tuple of (label, value)
LabelKey = Tuple[Tuple[str, str], ...]


def _labels_key(labels: Dict[str, Any] | None) -> LabelKey:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _pct(vals: list, q: float) -> float:
    if not vals:
        return 0.0
    idx = max(0, min(len(vals) - 1, int(round((len(vals) - 1) * q))))
    return vals[idx]


class _Value:
    def __init__(self, name: str, labels: LabelKey):
        self.name = name
        self.labels = labels
        self._value = 0.0
        self._lock = threading.Lock()

    def value(self) -> float:
        with self._lock:
            return self._value


class Counter(_Value):
    def inc(self, n: float = 1.0) -> None:
        with self._lock:
            self._value += n


class Gauge(_Value):
    def set(self, v: float) -> None:
        with self._lock:
            self._value = float(v)


class Histogram:
    def __init__(self, name: str, labels: LabelKey, maxlen: int = 2048):
        self.name = name
        self.labels = labels
        self._values: Deque[float] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def observe(self, v: float) -> None:
        with self._lock:
            self._values.append(float(v))

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            vals = sorted(self._values)
        if not vals:
            return {"count": 0, "min": 0.0, "max": 0.0, "mean": 0.0, "p50": 0.0, "p99": 0.0}
        return {
            "count": float(len(vals)),
            "min": vals[0],
            "max": vals[-1],
            "mean": mean(vals),
            "p50": _pct(vals, 0.50),
            "p99": _pct(vals, 0.99),
        }


class _Registry:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._metrics: Dict[str, Dict[Tuple[str, LabelKey], Any]] = {
            "counters": {},
            "gauges": {},
            "hists": {},
        }
        self._kinds = {"counters": Counter, "gauges": Gauge, "hists": Histogram}

    def get(self, kind: str, name: str, labels: Dict[str, Any] | None):
        key = (name, _labels_key(labels))
        with self._lock:
            table = self._metrics[kind]
            m = table.get(key)
            if m is None:
                m = self._kinds[kind](name, key[1])
                table[key] = m
            return m

    def find(self, kind: str, name: str, labels: Dict[str, Any] | None):
        with self._lock:
            return self._metrics[kind].get((name, _labels_key(labels)))

    def items(self, kind: str):
        with self._lock:
            return list(self._metrics[kind].values())

    def clear(self) -> None:
        with self._lock:
            for table in self._metrics.values():
                table.clear()


_REG = _Registry()


def inc_counter(name: str, n: float = 1.0, **labels: Any) -> None:
    _REG.get("counters", name, labels).inc(n)


def set_gauge(name: str, v: float, **labels: Any) -> None:
    _REG.get("gauges", name, labels).set(v)


def observe_hist(name: str, v: float, **labels: Any) -> None:
    _REG.get("hists", name, labels).observe(v)


def counter_value(name: str, **labels: Any) -> float:
    m = _REG.find("counters", name, labels)
    return m.value() if m is not None else 0.0


def gauge_value(name: str, **labels: Any) -> float:
    m = _REG.find("gauges", name, labels)
    return m.value() if m is not None else 0.0


def reset() -> None:
    """Drop every metric (tests)."""
    _REG.clear()


class Timer:
    """Context manager reporting elapsed milliseconds into a histogram."""
    def __init__(self, hist_name: str, **labels: Any) -> None:
        self.hist_name = hist_name
        self.labels = labels
        self._t0 = 0.0

    def __enter__(self):
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        dt_ms = (time.perf_counter() - self._t0) * 1000.0
        observe_hist(self.hist_name, dt_ms, **self.labels)
        return False


def snapshot_all() -> dict:
    """Current values of every metric, grouped by kind."""
    out = {"counters": [], "gauges": [], "hists": []}
    for m in _REG.items("counters"):
        out["counters"].append({"name": m.name, "labels": dict(m.labels), "value": m.value()})
    for m in _REG.items("gauges"):
        out["gauges"].append({"name": m.name, "labels": dict(m.labels), "value": m.value()})
    for m in _REG.items("hists"):
        out["hists"].append({"name": m.name, "labels": dict(m.labels), **m.snapshot()})
    return out


def force_emit(logger: Optional[logging.Logger] = None) -> None:
    """Log the current snapshot, one line per metric."""
    lg = logger or logging.getLogger("dispatchtree.metrics")
    snap = snapshot_all()
    for c in snap["counters"]:
        lg.info(f"[ctr] {c['name']} {c['labels']} value={c['value']:.0f}")
    for g in snap["gauges"]:
        lg.info(f"[gauge] {g['name']} {g['labels']} value={g['value']:.3f}")
    for h in snap["hists"]:
        lg.info(
            f"[hist] {h['name']} {h['labels']} "
            f"n={int(h['count'])} min={h['min']:.3f} p50={h['p50']:.3f} "
            f"p99={h['p99']:.3f} max={h['max']:.3f}"
        )
