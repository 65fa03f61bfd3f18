# waitscope/core/query.py
from __future__ import annotations

"""Queries
----------
A Query is one unit of work plus a notion of "done": the retry engine keeps
running it until `converged(result)` holds or the budget is spent, and then
hands back the last result instead of raising. Only real failures raise.

Negative queries (HasNoContent, Missing, ...) are their own predicates, so
they wait for the thing to go away instead of negating one early look.
"""

import re
from typing import TYPE_CHECKING, Callable, Generic, List, Optional, Pattern, TypeVar

from waitscope.core.options import Options

if TYPE_CHECKING:
    from waitscope.core.scope import DriverScope, ElementScope, SnapshotElementScope
    from waitscope.finders.locator import Locator

T = TypeVar("T")


class Query(Generic[T]):
    expected_result: Optional[T] = None

    def __init__(self, options: Options) -> None:
        self.options = options

    def run(self) -> T:
        raise NotImplementedError

    def converged(self, result: T) -> bool:
        return self.expected_result is None or result == self.expected_result

    def describe(self) -> str:
        return self.__class__.__name__

    def __repr__(self) -> str:
        return f"<{self.describe()}>"


class LambdaQuery(Query[T]):
    def __init__(self, fn: Callable[[], T], expecting: Optional[T], options: Options) -> None:
        super().__init__(options)
        self.fn = fn
        self.expected_result = expecting

    def run(self) -> T:
        return self.fn()


class PredicateQuery(Query[bool]):
    expected_result = True

    def run(self) -> bool:
        return bool(self.predicate())

    def predicate(self) -> bool:
        raise NotImplementedError


class LambdaPredicateQuery(PredicateQuery):
    def __init__(self, fn: Callable[[], bool], options: Options, description: Optional[str] = None) -> None:
        super().__init__(options)
        self.fn = fn
        self.description = description

    def predicate(self) -> bool:
        return self.fn()

    def describe(self) -> str:
        return self.description or getattr(self.fn, "__name__", "predicate")


# ---------- Content ----------

class _ContentQuery(PredicateQuery):
    def __init__(self, scope: "DriverScope", text: str, options: Options) -> None:
        super().__init__(options)
        self.scope = scope
        self.text = text

    def _contains(self) -> bool:
        return self.text in self.scope.read_content()

    def describe(self) -> str:
        return f"{self.__class__.__name__}({self.text!r})"


class HasContentQuery(_ContentQuery):
    def predicate(self) -> bool:
        return self._contains()


class HasNoContentQuery(_ContentQuery):
    def predicate(self) -> bool:
        return not self._contains()


class _ContentMatchQuery(PredicateQuery):
    def __init__(self, scope: "DriverScope", pattern: Pattern[str] | str, options: Options) -> None:
        super().__init__(options)
        self.scope = scope
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern

    def _matches(self) -> bool:
        return self.pattern.search(self.scope.read_content()) is not None

    def describe(self) -> str:
        return f"{self.__class__.__name__}(/{self.pattern.pattern}/)"


class HasContentMatchQuery(_ContentMatchQuery):
    def predicate(self) -> bool:
        return self._matches()


class HasNoContentMatchQuery(_ContentMatchQuery):
    def predicate(self) -> bool:
        return not self._matches()


# ---------- Values ----------

class _ValueQuery(PredicateQuery):
    def __init__(self, scope: "ElementScope", text: str, options: Options) -> None:
        super().__init__(options)
        self.scope = scope
        self.text = text

    def _has_value(self) -> bool:
        return self.scope.apply(lambda match: match.value, self.options) == self.text


class HasValueQuery(_ValueQuery):
    def predicate(self) -> bool:
        return self._has_value()


class HasNoValueQuery(_ValueQuery):
    def predicate(self) -> bool:
        return not self._has_value()


# ---------- Existence ----------

class ExistsQuery(PredicateQuery):
    def __init__(self, scope: "ElementScope", options: Options) -> None:
        super().__init__(options)
        self.scope = scope

    def predicate(self) -> bool:
        return self.scope.exists_now(self.options)


class MissingQuery(ExistsQuery):
    def predicate(self) -> bool:
        return not self.scope.exists_now(self.options)


# ---------- Collections ----------

class FindAllQuery(Query[List["SnapshotElementScope"]]):
    def __init__(
        self,
        scope: "DriverScope",
        locator: "Locator",
        predicate: Optional[Callable[[List["SnapshotElementScope"]], bool]],
        options: Options,
    ) -> None:
        super().__init__(options)
        self.scope = scope
        self.locator = locator
        self.predicate = predicate

    def run(self) -> List["SnapshotElementScope"]:
        return self.scope.snapshot_all(self.locator, self.options)

    def converged(self, result: List["SnapshotElementScope"]) -> bool:
        return self.predicate is None or bool(self.predicate(result))

    def describe(self) -> str:
        return f"FindAll({self.locator.describe()})"
