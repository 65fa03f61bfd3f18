# waitscope/core/state.py
from __future__ import annotations

"""States
---------
A State is a named condition describing one of several mutually exclusive
page outcomes ("logged in", "error banner", ...). find_state() races them
under one budget and returns whichever is true first.
"""

from typing import Callable, Optional, Sequence, Union

from waitscope.core.errors import NoStateReachedError
from waitscope.core.options import Options
from waitscope.core.query import PredicateQuery, Query
from waitscope.core.retry import RetryEngine

Condition = Union[PredicateQuery, Callable[[], bool]]


class State:
    def __init__(self, condition: Condition, name: Optional[str] = None) -> None:
        self.condition = condition
        if name is None:
            name = condition.describe() if isinstance(condition, Query) else getattr(condition, "__name__", "state")
        self.name = name

    def check_condition(self) -> bool:
        """One evaluation, no waiting."""
        if isinstance(self.condition, Query):
            return bool(self.condition.run())
        return bool(self.condition())

    def __repr__(self) -> str:
        return f"State({self.name!r})"


class _StateQuery(Query[Optional[State]]):
    """One pass over every state, in input order."""

    def __init__(self, states: Sequence[State], engine: RetryEngine, options: Options) -> None:
        super().__init__(options)
        self.states = tuple(states)
        self.engine = engine

    def run(self) -> Optional[State]:
        for state in self.states:
            # a failed lookup inside one condition only means "not this one, not yet"
            result = self.engine.attempt(state.check_condition)
            if result.ok and result.value:
                return state
            if not result.ok and not result.is_retryable(self.options):
                raise result.error
        return None

    def converged(self, result: Optional[State]) -> bool:
        return result is not None

    def describe(self) -> str:
        return "FindState(" + ", ".join(s.name for s in self.states) + ")"


def find_state(states: Sequence[State], engine: RetryEngine, options: Options) -> State:
    if not states:
        raise ValueError("find_state needs at least one state")
    found = engine.query(_StateQuery(states, engine, options))
    if found is None:
        names = ", ".join(s.name for s in states)
        raise NoStateReachedError(
            f"None of the expected states was reached within {options.timeout_ms} ms: {names}",
            candidates=states,
        )
    return found
