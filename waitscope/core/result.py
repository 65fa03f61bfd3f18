# waitscope/core/result.py
from __future__ import annotations

"""Attempt outcomes
-------------------
One retry attempt yields a `Result`: either a value or a failure tagged
with its `FailureKind`. The retry engine decides whether to go round again
by looking at the tag, never at the exception class directly.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from waitscope.core.errors import (
    AmbiguousError,
    ConditionNotMetError,
    DriverError,
    MissingHtmlError,
    ScopeStackError,
    StaleElementError,
)
from waitscope.core.options import Options

T = TypeVar("T")


class FailureKind(str, Enum):
    not_found = "not_found"
    ambiguous = "ambiguous"
    stale = "stale"
    condition_not_met = "condition_not_met"
    contract_violation = "contract_violation"
    driver_fault = "driver_fault"
    defect = "defect"

    def is_retryable(self, options: Options) -> bool:
        if self in (FailureKind.not_found, FailureKind.stale):
            return True
        if self is FailureKind.driver_fault:
            return options.retry_driver_faults is not False
        return False


def classify(exc: BaseException) -> FailureKind:
    # order matters: subclasses before bases
    if isinstance(exc, MissingHtmlError):
        return FailureKind.not_found
    if isinstance(exc, AmbiguousError):
        return FailureKind.ambiguous
    if isinstance(exc, StaleElementError):
        return FailureKind.stale
    if isinstance(exc, ConditionNotMetError):
        return FailureKind.condition_not_met
    if isinstance(exc, ScopeStackError):
        return FailureKind.contract_violation
    if isinstance(exc, DriverError):
        return FailureKind.driver_fault
    return FailureKind.defect


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    kind: Optional[FailureKind] = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException, kind: Optional[FailureKind] = None) -> "Result[Any]":
        return cls(kind=kind or classify(error), error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def is_retryable(self, options: Options) -> bool:
        return self.kind is not None and self.kind.is_retryable(options)
