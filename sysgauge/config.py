"""Fixed settings for sysgauge.

The refresh cadence, the network scaling ceiling and the gauge layout are
constants of the program; there is no config file and no environment
variable to override them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "tick_timeout_ms": 1000,
    "net_ceiling_kb": 1000.0,
    "bytes_per_kb": 1024.0,
    "quit_key": "q",
    "margin": 2,
    "min_size": {"rows": 16, "cols": 40},
    "gauges": {
        "cpu": {"title": "CPU Usage", "color": "yellow"},
        "memory": {"title": "Memory Usage", "color": "green"},
        "download": {"title": "Download (KB/s)", "color": "cyan"},
        "upload": {"title": "Upload (KB/s)", "color": "magenta"},
    },
}

TICK_TIMEOUT: float = DEFAULT_CONFIG["tick_timeout_ms"] / 1000.0
NET_CEILING_KB: float = DEFAULT_CONFIG["net_ceiling_kb"]
BYTES_PER_KB: float = DEFAULT_CONFIG["bytes_per_kb"]
QUIT_KEY: str = DEFAULT_CONFIG["quit_key"]


@dataclass(frozen=True)
class GaugeSpec:
    """Title and colour name of one dashboard gauge."""

    key: str
    title: str
    color: str


def gauge_specs() -> list[GaugeSpec]:
    """Return the gauge definitions in display order (top to bottom)."""
    return [
        GaugeSpec(key=key, title=str(cfg["title"]), color=str(cfg["color"]))
        for key, cfg in DEFAULT_CONFIG["gauges"].items()
    ]
