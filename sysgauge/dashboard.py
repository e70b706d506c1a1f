"""Interactive terminal dashboard: four live gauges for CPU, memory and network.

Draws with curses and refreshes once per tick until ``q`` is pressed.
Network gauges fill up at 1000 KB per tick.

Usage:
    uv run sysgauge
"""

from __future__ import annotations

import argparse
import curses
import logging
import logging.handlers
import sys
import time
from collections import deque
from typing import Any

from sysgauge.config import DEFAULT_CONFIG, TICK_TIMEOUT, GaugeSpec, gauge_specs
from sysgauge.errors import InputPollError, RenderError, SysgaugeError, TerminalInitError
from sysgauge.loop import MainLoop
from sysgauge.metrics import MetricsProvider
from sysgauge.normalize import DisplayGauges, Snapshot
from sysgauge.rates import RateTracker

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────────

BAR_FILL = "█"
BAR_EMPTY = "░"
MARGIN: int = DEFAULT_CONFIG["margin"]
MIN_ROWS: int = DEFAULT_CONFIG["min_size"]["rows"]
MIN_COLS: int = DEFAULT_CONFIG["min_size"]["cols"]
LOG_BUFFER_CAPACITY = 1000

# Curses colour-pair IDs
C_TITLE = 1
C_DIM = 2
C_YELLOW = 3
C_GREEN = 4
C_CYAN = 5
C_MAGENTA = 6

GAUGE_COLORS: dict[str, int] = {
    "yellow": C_YELLOW,
    "green": C_GREEN,
    "cyan": C_CYAN,
    "magenta": C_MAGENTA,
}


# ── Colour helpers ─────────────────────────────────────────────────────────


def _init_colors() -> None:
    if not curses.has_colors():
        return
    curses.start_color()
    curses.use_default_colors()
    curses.init_pair(C_TITLE, curses.COLOR_CYAN, -1)
    curses.init_pair(C_DIM, curses.COLOR_WHITE, -1)
    curses.init_pair(C_YELLOW, curses.COLOR_YELLOW, -1)
    curses.init_pair(C_GREEN, curses.COLOR_GREEN, -1)
    curses.init_pair(C_CYAN, curses.COLOR_CYAN, -1)
    curses.init_pair(C_MAGENTA, curses.COLOR_MAGENTA, -1)


# ── Formatting helpers ─────────────────────────────────────────────────────


def fmt_bytes(n: int | float) -> str:
    """Human-readable byte count (binary prefixes)."""
    v = float(n)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if abs(v) < 1024:
            return f"{v:.1f} {unit}"
        v /= 1024
    return f"{v:.1f} TiB"


def fmt_rate(bps: float) -> str:
    """Human-readable transfer rate."""
    if bps < 1024:
        return f"{bps:.0f} B/s"
    if bps < 1024 * 1024:
        return f"{bps / 1024:.1f} KB/s"
    if bps < 1024**3:
        return f"{bps / 1024 ** 2:.1f} MB/s"
    return f"{bps / 1024 ** 3:.1f} GB/s"


def gauge_detail(key: str, snapshot: Snapshot, tick_seconds: float) -> str:
    """Caption under a gauge bar with the unscaled reading."""
    if key == "cpu":
        return f"{snapshot.cpu_percent:.1f}% busy"
    if key == "memory":
        return f"{fmt_bytes(snapshot.memory_used)} / {fmt_bytes(snapshot.memory_total)}"
    per_second = 1.0 / tick_seconds if tick_seconds > 0 else 1.0
    if key == "download":
        return fmt_rate(snapshot.download_bytes * per_second)
    if key == "upload":
        return fmt_rate(snapshot.upload_bytes * per_second)
    return ""


def gauge_layout(
    max_y: int, max_x: int, count: int = 4, margin: int = MARGIN
) -> list[tuple[int, int, int, int]]:
    """Split the screen into *count* stacked ``(y, x, h, w)`` boxes.

    The area inside *margin* is shared equally; the last box takes the
    leftover rows. Row 0 is the header and always falls inside the margin.
    """
    top = max(margin, 1)
    height = max_y - top - margin
    width = max_x - 2 * margin
    if height < count or width < 1:
        return []
    chunk = height // count
    boxes: list[tuple[int, int, int, int]] = []
    for i in range(count):
        h = chunk if i < count - 1 else height - chunk * (count - 1)
        boxes.append((top + i * chunk, margin, h, width))
    return boxes


# ── Curses drawing primitives ──────────────────────────────────────────────


def _safe(win: curses.window, *args: Any) -> None:
    """addstr wrapper that swallows out-of-bounds errors."""
    try:
        win.addstr(*args)
    except curses.error:
        pass


def _draw_box(
    win: curses.window,
    y: int,
    x: int,
    h: int,
    w: int,
    title: str = "",
) -> curses.window | None:
    """Draw a bordered box and return the inner sub-window."""
    max_y, max_x = win.getmaxyx()
    h = min(h, max_y - y)
    w = min(w, max_x - x)
    if h < 3 or w < 4:
        return None
    try:
        sub = win.subwin(h, w, y, x)
        sub.box()
        if title and len(title) + 4 < w:
            sub.addstr(
                0, 2, f" {title} ", curses.color_pair(C_TITLE) | curses.A_BOLD
            )
        return sub
    except curses.error:
        return None


def _draw_bar(
    win: curses.window,
    y: int,
    x: int,
    width: int,
    pct: int,
    color: int,
) -> None:
    """Render ``████░░░░  NN%`` on one line."""
    max_y, max_x = win.getmaxyx()
    if y >= max_y - 1 or x >= max_x - 1:
        return

    suffix = f" {pct:3d}%"
    bar_w = min(width - len(suffix), max_x - x - len(suffix) - 1)
    if bar_w < 3:
        return

    filled = bar_w * pct // 100
    empty = bar_w - filled

    _safe(win, y, x, BAR_FILL * filled, curses.color_pair(color) | curses.A_BOLD)
    _safe(win, BAR_EMPTY * empty, curses.color_pair(C_DIM))
    _safe(win, suffix, curses.color_pair(color) | curses.A_BOLD)


def _draw_header(win: curses.window, w: int) -> None:
    ts = time.strftime("%H:%M:%S")
    attr = curses.color_pair(C_TITLE) | curses.A_REVERSE
    _safe(win, 0, 0, " " * (w - 1), attr)
    _safe(win, 0, 1, "sysgauge", attr | curses.A_BOLD)
    hint = f"{DEFAULT_CONFIG['quit_key']}: quit"
    _safe(win, 0, max(0, w - len(hint) - 2), hint, attr)
    _safe(win, 0, (w - len(ts)) // 2, ts, attr)


# ── Terminal ───────────────────────────────────────────────────────────────


class CursesTerminal:
    """Renderer and key source on top of a curses screen.

    Entering and leaving the alternate screen and raw mode is left to
    ``curses.wrapper``; this class only configures and draws.
    """

    def __init__(
        self,
        stdscr: curses.window,
        specs: list[GaugeSpec] | None = None,
        tick_seconds: float = TICK_TIMEOUT,
    ) -> None:
        self._win = stdscr
        self._specs = specs if specs is not None else gauge_specs()
        self._tick_seconds = tick_seconds
        self._needs_clear = False

    def setup(self) -> None:
        try:
            _init_colors()
            self._win.keypad(True)
        except curses.error as e:
            raise TerminalInitError(f"cannot configure terminal: {e}") from e
        try:
            curses.curs_set(0)
        except curses.error:
            logger.debug("terminal cannot hide the cursor")

    def render(self, gauges: DisplayGauges, snapshot: Snapshot) -> None:
        try:
            self._draw(gauges, snapshot)
        except curses.error as e:
            raise RenderError(f"drawing frame failed: {e}") from e

    def _draw(self, gauges: DisplayGauges, snapshot: Snapshot) -> None:
        if self._needs_clear:
            self._win.clear()
            self._needs_clear = False
        self._win.erase()
        max_y, max_x = self._win.getmaxyx()

        if max_y < MIN_ROWS or max_x < MIN_COLS:
            _safe(self._win, 0, 0, f"Terminal too small (need {MIN_COLS}x{MIN_ROWS}+)")
            self._win.refresh()
            return

        _draw_header(self._win, max_x)
        boxes = gauge_layout(max_y, max_x, len(self._specs))
        for spec, (y, x, h, w) in zip(self._specs, boxes):
            box = _draw_box(self._win, y, x, h, w, spec.title)
            if not box:
                continue
            pct: int = getattr(gauges, spec.key)
            _draw_bar(box, 1, 2, w - 4, pct, GAUGE_COLORS.get(spec.color, C_DIM))
            if h > 3:
                detail = gauge_detail(spec.key, snapshot, self._tick_seconds)
                _safe(box, 2, 2, detail[: w - 4], curses.color_pair(C_DIM))

        self._win.refresh()

    def poll_key(self, timeout: float) -> int | None:
        """Wait up to *timeout* seconds for a key; None if none arrived."""
        try:
            self._win.timeout(max(0, int(timeout * 1000)))
            key = self._win.getch()
        except curses.error as e:
            raise InputPollError(f"reading input failed: {e}") from e
        if key == -1:
            return None
        if key == curses.KEY_RESIZE:
            self._needs_clear = True
        return key


# ── Logging ────────────────────────────────────────────────────────────────


class SessionLogBuffer(logging.handlers.MemoryHandler):
    """Keeps the newest *capacity* records while no target is set.

    Once full, each new record pushes out the oldest one; ``dropped``
    counts how many were lost.
    """

    def __init__(self, capacity: int = LOG_BUFFER_CAPACITY) -> None:
        super().__init__(capacity, flushLevel=logging.CRITICAL + 1, target=None)
        self.buffer: deque[logging.LogRecord] = deque(maxlen=capacity)  # type: ignore[assignment]
        self.dropped = 0

    def shouldFlush(self, record: logging.LogRecord) -> bool:
        return self.target is not None and super().shouldFlush(record)

    def emit(self, record: logging.LogRecord) -> None:
        if len(self.buffer) == self.capacity:
            self.dropped += 1
        super().emit(record)


def _start_log_buffer() -> SessionLogBuffer:
    """Hold log records in memory while curses owns the screen."""
    handler = SessionLogBuffer()
    pkg_logger = logging.getLogger("sysgauge")
    pkg_logger.setLevel(logging.WARNING)
    pkg_logger.addHandler(handler)
    pkg_logger.propagate = False
    return handler


def _flush_log_buffer(handler: SessionLogBuffer) -> None:
    """Write buffered records to stderr once the terminal is restored."""
    if handler.dropped:
        print(f"sysgauge: {handler.dropped} earlier log messages dropped", file=sys.stderr)
    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(logging.Formatter("sysgauge: %(levelname)s: %(message)s"))
    handler.setTarget(stream)
    handler.flush()
    pkg_logger = logging.getLogger("sysgauge")
    pkg_logger.removeHandler(handler)
    pkg_logger.propagate = True
    handler.close()


# ── Main loop ──────────────────────────────────────────────────────────────


def _dashboard_loop(stdscr: curses.window) -> int:
    terminal = CursesTerminal(stdscr)
    terminal.setup()
    loop = MainLoop(MetricsProvider(), RateTracker(), terminal)
    return loop.run()


def run_session() -> int:
    """Take over the terminal, run the loop, and always restore the terminal."""
    if not (sys.stdin.isatty() and sys.stdout.isatty()):
        raise TerminalInitError("not an interactive terminal")
    try:
        return curses.wrapper(_dashboard_loop)
    except curses.error as e:
        # Errors from inside the loop arrive already typed; a bare curses
        # error can only come from initscr() in the wrapper.
        raise TerminalInitError(f"cannot initialise terminal: {e}") from e


# ── CLI entry point ────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="sysgauge",
        description="Live CPU, memory and network gauges. Press q to quit.",
    )
    parser.parse_args(argv)

    buffer = _start_log_buffer()
    failure: SysgaugeError | None = None
    try:
        ticks = run_session()
        logger.debug("session ended after %d ticks", ticks)
    except SysgaugeError as e:
        failure = e
    except KeyboardInterrupt:
        pass
    finally:
        _flush_log_buffer(buffer)

    if failure is not None:
        print(f"sysgauge: {failure}", file=sys.stderr)
        raise SystemExit(1) from failure


if __name__ == "__main__":
    main()
