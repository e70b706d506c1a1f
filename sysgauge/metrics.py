"""Host metrics via psutil: CPU load, memory occupancy, per-interface counters.

Every reader is independent. When one fails its value for the tick is
replaced by zero, an interface with unreadable counters is left out of the
tick, and the outage is logged once. The provider itself never raises.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any, TypeVar

import psutil

from sysgauge.errors import MetricsUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ── Data types ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class InterfaceCounters:
    """Cumulative byte counters of one network interface."""

    received_total: int
    transmitted_total: int


@dataclass
class RawSample:
    """Point-in-time readings straight from the OS."""

    cpu_percent: float = 0.0
    memory_used: int = 0
    memory_total: int = 0
    interfaces: dict[str, InterfaceCounters] = field(
        default_factory=lambda: dict[str, InterfaceCounters]()
    )


# ── Readers ────────────────────────────────────────────────────────────────


def _counter(value: object, metric: str, name: str) -> int:
    if value is None:
        raise MetricsUnavailable(metric, f"{name} missing")
    try:
        n = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError) as e:
        raise MetricsUnavailable(metric, f"{name} not a number ({value!r})") from e
    if n < 0:
        raise MetricsUnavailable(metric, f"{name} negative ({n})")
    return n


def read_cpu() -> float:
    """System-wide CPU utilisation since the previous call (0-100)."""
    try:
        pct = psutil.cpu_percent(interval=None)
    except (OSError, psutil.Error) as e:
        raise MetricsUnavailable("cpu", str(e)) from e
    if pct is None:
        raise MetricsUnavailable("cpu", "no reading")
    try:
        return float(pct)
    except (TypeError, ValueError) as e:
        raise MetricsUnavailable("cpu", f"not a number ({pct!r})") from e


def read_memory() -> tuple[int, int]:
    """Return ``(used, total)`` physical memory in bytes."""
    try:
        vm = psutil.virtual_memory()
    except (OSError, psutil.Error) as e:
        raise MetricsUnavailable("memory", str(e)) from e
    used = _counter(getattr(vm, "used", None), "memory", "used")
    total = _counter(getattr(vm, "total", None), "memory", "total")
    return used, total


def read_pernic() -> dict[str, Any]:
    """Raw psutil counters for every interface, keyed by name."""
    try:
        pernic = psutil.net_io_counters(pernic=True)
    except (OSError, psutil.Error) as e:
        raise MetricsUnavailable("network", str(e)) from e
    # net_io_counters can return None when /proc/net/dev is unreadable
    if pernic is None:
        raise MetricsUnavailable("network", "no interface counters")
    return dict(pernic)


def interface_counters(name: str, io: Any) -> InterfaceCounters:
    """Validated cumulative counters of one interface."""
    metric = f"interface {name}"
    return InterfaceCounters(
        received_total=_counter(getattr(io, "bytes_recv", None), metric, "bytes_recv"),
        transmitted_total=_counter(getattr(io, "bytes_sent", None), metric, "bytes_sent"),
    )


# ── Provider ───────────────────────────────────────────────────────────────


class MetricsProvider:
    """Synchronous sampler handing out one :class:`RawSample` per call."""

    def __init__(self) -> None:
        self._unavailable: set[str] = set()
        # First cpu_percent(interval=None) call only sets psutil's baseline
        self._read("cpu", read_cpu, 0.0)

    @property
    def unavailable(self) -> frozenset[str]:
        """Metrics whose last read failed."""
        return frozenset(self._unavailable)

    def sample(self) -> RawSample:
        """Read every metric once. Failed metrics come back as zero."""
        data = RawSample()
        data.cpu_percent = self._read("cpu", read_cpu, 0.0)
        data.memory_used, data.memory_total = self._read("memory", read_memory, (0, 0))
        data.interfaces = self._read_interfaces()
        return data

    def _read_interfaces(self) -> dict[str, InterfaceCounters]:
        # A bad interface is left out of this tick; the others keep their
        # per-tick deltas and its baseline waits until it reads cleanly again.
        pernic = self._read("network", read_pernic, {})
        interfaces: dict[str, InterfaceCounters] = {}
        for name, io in pernic.items():
            counters = self._read(
                f"interface {name}", partial(interface_counters, name, io), None
            )
            if counters is not None:
                interfaces[name] = counters
        return interfaces

    def _read(self, metric: str, reader: Callable[[], T], default: T) -> T:
        try:
            value = reader()
        except MetricsUnavailable as e:
            if metric not in self._unavailable:
                logger.warning("%s; reporting zero until it recovers", e)
                self._unavailable.add(metric)
            return default
        if metric in self._unavailable:
            self._unavailable.discard(metric)
            logger.info("%s readings recovered", metric)
        return value
