# waitscope/core/retry.py
from __future__ import annotations

"""Retry engine
---------------
Polls a unit of work against the live document until it succeeds, a
query converges, or the timeout is spent.

  - the first attempt runs before any sleep, so timeout_ms=0 is one try
  - elapsed time is monotonic and compared with >= after each attempt
  - only retryable failure kinds are swallowed; the rest raise at once
  - on timeout the last failure itself is raised, not a generic timeout

Each attempt runs under a fresh attempt token (a contextvar) so scopes can
memoize a resolution within one attempt and never across two.
"""

from contextvars import ContextVar
from typing import Any, Callable, Optional, TypeVar, Union

from waitscope.core.errors import ConditionNotMetError
from waitscope.core.options import Options
from waitscope.core.query import Query
from waitscope.core.result import Result
from waitscope.utils.logger import get_logger
from waitscope.utils.timing import Stopwatch, Waiter, now_ms

T = TypeVar("T")

Until = Union[Callable[[], bool], "Query[bool]"]

_attempt: ContextVar[Optional[object]] = ContextVar("waitscope_attempt", default=None)

log = get_logger(__name__)


def current_attempt() -> Optional[object]:
    """Token of the attempt running on this thread/task, None outside the engine."""
    return _attempt.get()


class RetryEngine:
    """
    Stateless between calls: start time and attempt counts are locals, so one
    engine may serve many scopes (and threads, if the driver allows it).
    """

    def __init__(self, waiter: Optional[Waiter] = None, clock: Callable[[], int] = now_ms) -> None:
        self.waiter = waiter or Waiter()
        self.clock = clock

    # ---------- Single attempt ----------

    def attempt(self, work: Callable[[], Any]) -> Result[Any]:
        token = _attempt.set(object())
        try:
            outcome = work()
        except Exception as exc:
            return Result.failure(exc)
        finally:
            _attempt.reset(token)
        if isinstance(outcome, Result):
            return outcome
        return Result.success(outcome)

    def _timer(self) -> Stopwatch:
        return Stopwatch(clock=self.clock).start()

    # ---------- Loops ----------

    def retry_until_timeout(self, work: Callable[[], T], options: Options) -> T:
        timeout = options.timeout_ms or 0
        interval = options.retry_interval_ms or 0
        sw = self._timer()
        attempts = 0

        while True:
            attempts += 1
            result = self.attempt(work)
            if result.ok:
                return result.value
            if not result.is_retryable(options):
                raise result.error
            elapsed = sw.elapsed_ms()
            if elapsed >= timeout:
                log.debug(f"Giving up after {attempts} attempt(s) in {elapsed} ms: {result.error!r}")
                raise result.error
            log.debug(f"Attempt {attempts} failed ({result.kind.value}): {result.error} (sleep {interval} ms)")
            self.waiter.wait(interval)

    def query(self, query: Query[T]) -> T:
        """
        Run `query` until it converges. On timeout the last observed result is
        returned; a failure is raised only if it is not retryable, or if no
        result was observed at all.
        """
        options = query.options
        timeout = options.timeout_ms or 0
        interval = options.retry_interval_ms or 0
        sw = self._timer()
        observed: Optional[Result[T]] = None
        attempts = 0

        while True:
            attempts += 1
            result = self.attempt(query.run)
            if result.ok:
                if query.converged(result.value):
                    return result.value
                observed = result
            elif not result.is_retryable(options):
                raise result.error
            if sw.elapsed_ms() >= timeout:
                log.debug(f"{query.describe()} did not converge after {attempts} attempt(s)")
                if observed is None:
                    raise result.error
                return observed.value
            self.waiter.wait(interval)

    def poll(self, predicate: Callable[[], bool], budget_ms: int, options: Options) -> bool:
        """True as soon as `predicate` holds, False once `budget_ms` is spent."""
        interval = options.retry_interval_ms or 0
        sw = self._timer()
        while True:
            result = self.attempt(predicate)
            if result.ok and result.value:
                return True
            if not result.ok and not result.is_retryable(options):
                raise result.error
            if sw.elapsed_ms() >= budget_ms:
                return False
            self.waiter.wait(interval)

    def try_until(
        self,
        try_this: Callable[[], Any],
        until: Until,
        wait_before_retry_ms: Optional[int],
        options: Options,
    ) -> None:
        """
        Run `try_this`, then give `until` up to `wait_before_retry_ms` to hold
        before running `try_this` again. A PredicateQuery brings its own wait
        (its options' timeout) unless one is passed explicitly.
        """
        if isinstance(until, Query):
            predicate = until.run
            description = until.describe()
            if wait_before_retry_ms is None:
                wait_before_retry_ms = until.options.timeout_ms or 0
        else:
            predicate = until
            description = getattr(until, "__name__", "condition")
        wait_before_retry_ms = wait_before_retry_ms or 0

        timeout = options.timeout_ms or 0
        sw = self._timer()
        attempts = 0

        while True:
            attempts += 1
            result = self.attempt(try_this)
            if not result.ok and not result.is_retryable(options):
                raise result.error
            if self.poll(predicate, wait_before_retry_ms, options):
                return
            if sw.elapsed_ms() >= timeout:
                raise ConditionNotMetError(
                    f"Condition {description} was not met after {attempts} attempt(s) within {timeout} ms",
                    candidates=(until,),
                ) from result.error
            log.debug(f"{description} not met after attempt {attempts}, trying again")
            if wait_before_retry_ms <= 0:
                self.waiter.wait(options.retry_interval_ms or 0)
