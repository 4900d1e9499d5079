"""timetally - a single-timer personal time tracker."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("timetally")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from timetally.timer import TimerEngine, TimerService, TimerState, TimerStore

__all__ = ["TimerEngine", "TimerService", "TimerState", "TimerStore"]
