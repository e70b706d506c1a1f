"""Per-interface byte counters turned into per-tick deltas."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from sysgauge.metrics import InterfaceCounters


@dataclass
class InterfaceCounterState:
    """Last observed cumulative counters of one interface."""

    received_total: int
    transmitted_total: int


def saturating_sub(current: int, previous: int) -> int:
    """``current - previous`` floored at zero (counter reset reads as no traffic)."""
    return max(0, current - previous)


@dataclass
class RateTracker:
    """Remembers each interface's counters between ticks.

    Entries are created on first sight and never removed. An interface that
    vanishes and later comes back is compared against the counters it had
    when last seen, so its first tick back may show a large delta.
    """

    counters: dict[str, InterfaceCounterState] = field(
        default_factory=lambda: dict[str, InterfaceCounterState]()
    )

    def __len__(self) -> int:
        return len(self.counters)

    def __contains__(self, name: object) -> bool:
        return name in self.counters

    def baseline(self, name: str) -> tuple[int, int] | None:
        """Stored ``(received, transmitted)`` totals for *name*, if seen."""
        state = self.counters.get(name)
        if state is None:
            return None
        return state.received_total, state.transmitted_total

    def update(
        self, name: str, received_total: int, transmitted_total: int
    ) -> tuple[int, int]:
        """Record new totals for *name* and return ``(received, transmitted)`` deltas."""
        state = self.counters.get(name)
        if state is None:
            self.counters[name] = InterfaceCounterState(received_total, transmitted_total)
            return 0, 0

        received = saturating_sub(received_total, state.received_total)
        transmitted = saturating_sub(transmitted_total, state.transmitted_total)
        state.received_total = received_total
        state.transmitted_total = transmitted_total
        return received, transmitted

    def aggregate(self, interfaces: Mapping[str, InterfaceCounters]) -> tuple[int, int]:
        """Update every reported interface and return total ``(download, upload)`` bytes."""
        download = 0
        upload = 0
        for name, io in interfaces.items():
            rx, tx = self.update(name, io.received_total, io.transmitted_total)
            download += rx
            upload += tx
        return download, upload
