"""The tick scheduler: sample, compute, render, then wait for a key.

The bounded key wait at the end of each tick is the only place the loop
blocks. It paces the ticks and is where a quit request is noticed, so the
worst-case quit latency is one timeout.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from sysgauge.config import QUIT_KEY, TICK_TIMEOUT
from sysgauge.metrics import RawSample
from sysgauge.normalize import DisplayGauges, Snapshot, normalize
from sysgauge.rates import RateTracker

logger = logging.getLogger(__name__)


@runtime_checkable
class SampleSource(Protocol):
    """Anything that can hand out one raw reading per tick."""

    def sample(self) -> RawSample: ...


@runtime_checkable
class Terminal(Protocol):
    """Draws frames and reports key presses."""

    def render(self, gauges: DisplayGauges, snapshot: Snapshot) -> None: ...

    def poll_key(self, timeout: float) -> int | None:
        """Wait up to *timeout* seconds; the key code, or None on timeout."""
        ...


class LoopState(Enum):
    RUNNING = "running"
    TERMINATING = "terminating"


@dataclass(frozen=True)
class Frame:
    """What one tick produced."""

    snapshot: Snapshot
    gauges: DisplayGauges


def build_snapshot(sample: RawSample, tracker: RateTracker) -> Snapshot:
    """Feed the sample's interface counters through *tracker* and combine."""
    download, upload = tracker.aggregate(sample.interfaces)
    return Snapshot(
        cpu_percent=sample.cpu_percent or 0.0,
        memory_used=sample.memory_used or 0,
        memory_total=sample.memory_total or 0,
        download_bytes=download,
        upload_bytes=upload,
    )


class MainLoop:
    """Runs ticks until a quit key arrives or the terminal fails.

    The only blocking call is :meth:`Terminal.poll_key` at the end of a tick.
    """

    def __init__(
        self,
        provider: SampleSource,
        tracker: RateTracker,
        terminal: Terminal,
        timeout: float = TICK_TIMEOUT,
        quit_keys: Iterable[int] = (ord(QUIT_KEY),),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._tracker = tracker
        self._terminal = terminal
        self._timeout = timeout
        self._quit_keys = frozenset(quit_keys)
        self._clock = clock
        self._state = LoopState.RUNNING
        self.ticks = 0

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def timeout(self) -> float:
        return self._timeout

    def tick(self) -> Frame:
        """Run one sample → compute → render → wait cycle."""
        sample = self._provider.sample()
        snapshot = build_snapshot(sample, self._tracker)
        gauges = normalize(snapshot)
        self._terminal.render(gauges, snapshot)
        self.ticks += 1
        if self.wait_for_quit():
            logger.debug("quit key received after tick %d", self.ticks)
            self._state = LoopState.TERMINATING
        return Frame(snapshot=snapshot, gauges=gauges)

    def wait_for_quit(self) -> bool:
        """Block for up to one timeout. True if a quit key was pressed.

        Other keys are dropped and the wait resumes for whatever time is
        left, so stray input never shortens a tick.
        """
        deadline = self._clock() + self._timeout
        remaining = self._timeout
        while True:
            key = self._terminal.poll_key(max(0.0, remaining))
            if key is None:
                return False
            if key in self._quit_keys:
                return True
            logger.debug("ignoring key %r", key)
            remaining = deadline - self._clock()
            if remaining <= 0:
                return False

    def run(self, max_ticks: int | None = None) -> int:
        """Tick until terminated; returns the number of ticks run.

        Ctrl-C counts as a quit. Any other error ends the loop in the
        TERMINATING state and is re-raised for the caller to report.
        """
        try:
            while self._state is LoopState.RUNNING:
                if max_ticks is not None and self.ticks >= max_ticks:
                    break
                self.tick()
        except KeyboardInterrupt:
            logger.debug("interrupted after %d ticks", self.ticks)
            self._state = LoopState.TERMINATING
        except Exception:
            self._state = LoopState.TERMINATING
            raise
        return self.ticks
