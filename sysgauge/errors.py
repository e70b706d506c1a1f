"""Exception types for sysgauge.

Terminal failures are fatal and end the session; a metric that cannot be
read is recovered by the metrics provider and never leaves it.
"""


class SysgaugeError(Exception):
    """Base class for sysgauge errors."""


class TerminalInitError(SysgaugeError):
    """The terminal could not be taken over (not a tty, unknown TERM, ...)."""


class RenderError(SysgaugeError):
    """Drawing a frame failed."""


class InputPollError(SysgaugeError):
    """Waiting for or reading a key failed."""


class MetricsUnavailable(SysgaugeError):
    """A single metric could not be read for this tick."""

    def __init__(self, metric: str, reason: str = "") -> None:
        self.metric = metric
        self.reason = reason
        message = f"{metric} unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
