"""Turn one tick's readings into four whole-number gauge percentages.

Rounding is half up: a value is clamped to [0, 100] first and then
``floor(x + 0.5)`` is taken, so 73.4 shows as 73 and 73.5 as 74.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from sysgauge.config import BYTES_PER_KB, NET_CEILING_KB


@dataclass(frozen=True)
class Snapshot:
    """Readings for a single tick, network values already reduced to deltas."""

    cpu_percent: float = 0.0
    memory_used: int = 0
    memory_total: int = 0
    download_bytes: int = 0
    upload_bytes: int = 0


@dataclass(frozen=True)
class DisplayGauges:
    """Gauge fill levels, each an int in [0, 100]."""

    cpu: int = 0
    memory: int = 0
    download: int = 0
    upload: int = 0


def to_percent(value: float) -> int:
    """Clamp *value* to [0, 100] and round half up. NaN and infinities map to 0."""
    if not math.isfinite(value):
        return 0
    return math.floor(min(max(value, 0.0), 100.0) + 0.5)


def memory_percent(used: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return used / total * 100.0


def throughput_percent(byte_count: int) -> float:
    """Bytes per tick on a linear scale where NET_CEILING_KB is 100%."""
    kb = min(byte_count / BYTES_PER_KB, NET_CEILING_KB)
    return kb / (NET_CEILING_KB / 100.0)


def normalize(snapshot: Snapshot) -> DisplayGauges:
    return DisplayGauges(
        cpu=to_percent(snapshot.cpu_percent),
        memory=to_percent(memory_percent(snapshot.memory_used, snapshot.memory_total)),
        download=to_percent(throughput_percent(snapshot.download_bytes)),
        upload=to_percent(throughput_percent(snapshot.upload_bytes)),
    )
