# waitscope/utils/timing.py
from __future__ import annotations

import functools
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar, ParamSpec

from waitscope.utils.logger import get_logger

P = ParamSpec("P")
T = TypeVar("T")


# ---------------- Monotonic time helpers ----------------

def now_ms() -> int:
    """Monotonic time in milliseconds."""
    return time.monotonic_ns() // 1_000_000


def sleep_ms(ms: int) -> None:
    """Sleep for `ms` milliseconds (blocking)."""
    if ms <= 0:
        return
    time.sleep(ms / 1000.0)


# ---------------- Waiter ----------------

class Waiter:
    """
    The one suspension primitive used between retry attempts.

    Waits on an Event rather than time.sleep so that a cooperative
    scheduler (or another thread) can cut the pause short with `wake()`.
    Waking only shortens a pause in progress; it never aborts an attempt
    and is not remembered for the next pause.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def wait(self, ms: int) -> None:
        if ms <= 0:
            return
        # a wake() that arrived between pauses does not shorten this one
        self._event.clear()
        self._event.wait(ms / 1000.0)

    def wake(self) -> None:
        self._event.set()


# ---------------- Stopwatch ----------------

@dataclass
class Stopwatch:
    """Simple stopwatch usable as a context manager."""
    start_ms: Optional[int] = None
    clock: Callable[[], int] = now_ms

    def start(self) -> "Stopwatch":
        self.start_ms = self.clock()
        return self

    def elapsed_ms(self) -> int:
        if self.start_ms is None:
            return 0
        return max(0, self.clock() - self.start_ms)

    def __enter__(self) -> "Stopwatch":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


# ---------------- measure decorator ----------------

def measure(label: str = "", level: str = "DEBUG") -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator to log the execution time of a function.
    Example:
        @measure("click")
        def act(self): ...
    """
    level = level.upper()

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        name = label or func.__name__

        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            log = get_logger(func.__module__)
            log_fn = getattr(log, level.lower(), log.debug)
            with Stopwatch() as sw:
                try:
                    return func(*args, **kwargs)
                finally:
                    ms = sw.elapsed_ms()
                    human = f"{ms} ms" if ms < 1000 else f"{ms/1000:.3f} s"
                    log_fn(f"{name} took {human}")
        return wrapper
    return decorator
