# waitscope/core/scope_stack.py
from __future__ import annotations

"""Frame/window context stack
-----------------------------
Entering a frame or window pushes a record; leaving must pop that same
record, last in first out. `entered()` leaves on every exit path,
exceptions included, so an operation that fails inside a frame never
leaves the session switched into it. Leaving out of order is a
programming error (ScopeStackError) and is never retried.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, List

from waitscope.core.errors import ScopeStackError
from waitscope.finders.locator import LocatorKind
from waitscope.utils.logger import get_logger

if TYPE_CHECKING:
    from waitscope.drivers.base import Driver, RawMatch

log = get_logger(__name__)


@dataclass
class ScopeRecord:
    kind: LocatorKind
    description: str
    released: bool = False


class ScopeStack:
    def __init__(self, driver: "Driver") -> None:
        self.driver = driver
        self._records: List[ScopeRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> tuple[ScopeRecord, ...]:
        return tuple(self._records)

    def enter(self, kind: LocatorKind, match: "RawMatch", description: str) -> ScopeRecord:
        if kind is LocatorKind.frame:
            self.driver.enter_frame(match)
        elif kind is LocatorKind.window:
            self.driver.enter_window(match)
        else:
            raise ScopeStackError(f"Cannot enter a {kind.value} scope: only frames and windows are entered")
        record = ScopeRecord(kind=kind, description=description)
        self._records.append(record)
        log.debug(f"Entered {description} (depth {len(self._records)})")
        return record

    def leave(self, record: ScopeRecord) -> None:
        if record.released:
            raise ScopeStackError(f"{record.description} was already left")
        if not self._records or self._records[-1] is not record:
            top = self._records[-1].description if self._records else "nothing"
            raise ScopeStackError(f"Cannot leave {record.description}: innermost entered scope is {top}")
        self._records.pop()
        record.released = True
        if record.kind is LocatorKind.frame:
            self.driver.leave_frame()
        else:
            self.driver.leave_window()
        log.debug(f"Left {record.description} (depth {len(self._records)})")

    @contextmanager
    def entered(self, kind: LocatorKind, match: "RawMatch", description: str) -> Iterator[ScopeRecord]:
        record = self.enter(kind, match, description)
        try:
            yield record
        finally:
            self.leave(record)

    def assert_depth(self, expected: int, operation: str) -> None:
        if len(self._records) != expected:
            raise ScopeStackError(
                f"{operation} returned with {len(self._records)} entered scope(s), expected {expected}"
            )
