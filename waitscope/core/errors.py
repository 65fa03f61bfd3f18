# waitscope/core/errors.py
"""Failure taxonomy raised by finders, the retry engine and scopes."""
from __future__ import annotations

from typing import Any, Sequence


class WaitScopeError(RuntimeError):
    pass


class MissingHtmlError(WaitScopeError):
    """A locator matched nothing on this attempt."""


class MissingWindowError(MissingHtmlError):
    pass


class AmbiguousError(WaitScopeError):
    """A locator matched several elements and the match policy could not pick one."""

    def __init__(self, message: str, count: int = 0) -> None:
        super().__init__(message)
        self.count = count


class StaleElementError(WaitScopeError):
    """A handle resolved earlier is no longer attached to the document."""


class ConditionNotMetError(WaitScopeError):
    def __init__(self, message: str, candidates: Sequence[Any] = ()) -> None:
        super().__init__(message)
        self.candidates = tuple(candidates)


class NoStateReachedError(ConditionNotMetError):
    pass


class ScopeStackError(WaitScopeError):
    """Frame/window contexts were entered and left out of order."""


class DriverError(WaitScopeError):
    """Any failure reported by a driver that is not one of the kinds above."""


__all__ = [
    "WaitScopeError",
    "MissingHtmlError",
    "MissingWindowError",
    "AmbiguousError",
    "StaleElementError",
    "ConditionNotMetError",
    "NoStateReachedError",
    "ScopeStackError",
    "DriverError",
]
