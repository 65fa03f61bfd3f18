import time

import pytest

from waitscope.core.errors import AmbiguousError, ConditionNotMetError, DriverError, MissingHtmlError
from waitscope.core.options import Options
from waitscope.core.query import LambdaPredicateQuery, LambdaQuery
from waitscope.core.result import FailureKind, Result, classify
from waitscope.core.retry import RetryEngine, current_attempt


class Flaky:
    """Fails with `error` for the first `failures` calls, then returns `value`."""

    def __init__(self, failures, error=None, value="done"):
        self.failures = failures
        self.error = error or MissingHtmlError("Unable to find css: #late")
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.value


def test_zero_timeout_makes_exactly_one_attempt(engine, waiter, base_options):
    work = Flaky(failures=10)
    with pytest.raises(MissingHtmlError):
        engine.retry_until_timeout(work, base_options.with_timeout(0))
    assert work.calls == 1
    assert waiter.sleeps == []


def test_eventual_success_sleeps_between_attempts(engine, waiter, base_options):
    work = Flaky(failures=2)
    assert engine.retry_until_timeout(work, base_options) == "done"
    assert work.calls == 3
    assert waiter.sleeps == [50, 50]


def test_timeout_raises_the_last_not_found_not_a_generic_timeout(engine, base_options):
    work = Flaky(failures=100)
    with pytest.raises(MissingHtmlError, match="Unable to find css: #late"):
        engine.retry_until_timeout(work, base_options.with_timeout(200))
    # attempts at t=0, 50, 100, 150, 200
    assert work.calls == 5


def test_ambiguity_is_never_retried(engine, waiter, base_options):
    work = Flaky(failures=5, error=AmbiguousError("Ambiguous match, found 2 elements", count=2))
    with pytest.raises(AmbiguousError) as exc:
        engine.retry_until_timeout(work, base_options)
    assert exc.value.count == 2
    assert work.calls == 1
    assert waiter.sleeps == []


def test_programming_errors_propagate_immediately(engine, base_options):
    work = Flaky(failures=5, error=KeyError("oops"))
    with pytest.raises(KeyError):
        engine.retry_until_timeout(work, base_options)
    assert work.calls == 1


def test_driver_faults_retried_unless_disabled(engine, base_options):
    work = Flaky(failures=1, error=DriverError("socket hiccup"))
    assert engine.retry_until_timeout(work, base_options) == "done"

    strict = base_options.model_copy(update={"retry_driver_faults": False})
    work = Flaky(failures=1, error=DriverError("socket hiccup"))
    with pytest.raises(DriverError):
        engine.retry_until_timeout(work, strict)
    assert work.calls == 1


def test_timeout_fidelity_with_real_clock(base_options):
    engine = RetryEngine()
    opts = base_options.model_copy(update={"timeout_ms": 120, "retry_interval_ms": 10})
    started = time.monotonic()
    with pytest.raises(MissingHtmlError):
        engine.retry_until_timeout(Flaky(failures=10_000), opts)
    elapsed_ms = (time.monotonic() - started) * 1000
    assert elapsed_ms >= 120
    assert elapsed_ms < 120 + 10 + 500


def test_attempt_token_is_fresh_per_attempt(engine):
    assert current_attempt() is None
    seen = []
    engine.attempt(lambda: seen.append(current_attempt()))
    engine.attempt(lambda: seen.append(current_attempt()))
    assert seen[0] is not None and seen[1] is not None
    assert seen[0] is not seen[1]
    assert current_attempt() is None


def test_attempt_passes_results_through(engine):
    failed = Result.failure(MissingHtmlError("gone"))
    assert engine.attempt(lambda: failed) is failed
    assert engine.attempt(lambda: 3).value == 3


def test_classification_of_failures():
    assert classify(MissingHtmlError("x")) is FailureKind.not_found
    assert classify(AmbiguousError("x")) is FailureKind.ambiguous
    assert classify(DriverError("x")) is FailureKind.driver_fault
    assert classify(ValueError("x")) is FailureKind.defect


# ---------- query ----------


def test_query_returns_last_observed_result_on_timeout(engine, base_options):
    counter = iter(range(1, 1000))
    query = LambdaQuery(lambda: next(counter), expecting=-1, options=base_options.with_timeout(100))
    # attempts at t=0, 50, 100
    assert engine.query(query) == 3


def test_query_raises_when_nothing_was_observed(engine, base_options):
    query = LambdaQuery(Flaky(failures=1000), expecting="done", options=base_options.with_timeout(100))
    with pytest.raises(MissingHtmlError):
        engine.query(query)


def test_query_returns_as_soon_as_converged(engine, waiter, base_options):
    flips = iter([False, False, True, True])
    query = LambdaPredicateQuery(lambda: next(flips), base_options)
    assert engine.query(query) is True
    assert waiter.sleeps == [50, 50]


def test_query_without_expectation_returns_first_value(engine, waiter, base_options):
    assert engine.query(LambdaQuery(lambda: "x", expecting=None, options=base_options)) == "x"
    assert waiter.sleeps == []


# ---------- try_until ----------


def test_try_until_repeats_action_until_condition_holds(engine, base_options):
    clicks = []
    assert engine.try_until(lambda: clicks.append(1), lambda: len(clicks) >= 3, None, base_options) is None
    assert len(clicks) == 3


def test_try_until_gives_each_try_a_wait_budget(engine, waiter, base_options):
    tries = []
    ready_at = {"t": None}

    def try_this():
        tries.append(engine.clock())
        if ready_at["t"] is None:
            ready_at["t"] = engine.clock() + 120

    engine.try_until(try_this, lambda: engine.clock() >= ready_at["t"], 200, base_options)
    assert len(tries) == 1


def test_try_until_raises_condition_not_met(engine, base_options):
    never = LambdaPredicateQuery(lambda: False, base_options.with_timeout(0), description="dialog closed")
    with pytest.raises(ConditionNotMetError, match="dialog closed") as exc:
        engine.try_until(lambda: None, never, None, base_options.with_timeout(200))
    assert exc.value.candidates == (never,)


def test_try_until_stops_on_non_retryable_action_failure(engine, base_options):
    def boom():
        raise AmbiguousError("two buttons", count=2)

    with pytest.raises(AmbiguousError):
        engine.try_until(boom, lambda: False, None, base_options)


def test_poll_respects_budget(engine, waiter, base_options):
    assert engine.poll(lambda: False, 100, base_options) is False
    assert waiter.sleeps == [50, 50]


def test_options_are_not_mutated_by_the_engine(engine, base_options):
    opts = base_options.with_timeout(0)
    with pytest.raises(MissingHtmlError):
        engine.retry_until_timeout(Flaky(failures=1), opts)
    assert opts.timeout_ms == 0
    assert base_options.timeout_ms == 1000
    assert isinstance(opts, Options)
