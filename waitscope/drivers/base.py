# waitscope/drivers/base.py
from __future__ import annotations

"""Driver boundary
------------------
The only surface the engine talks to. A driver answers one query per call
and never waits or retries on its own; the engine owns all of that.

Accessors on a RawMatch go to the live session every time and raise
StaleElementError once the node has left the document. Anything else a
driver fails with should be raised as DriverError.
"""

from typing import Any, Dict, Optional, Protocol, Sequence, runtime_checkable

from waitscope.core.options import Options
from waitscope.finders.locator import Locator


@runtime_checkable
class RawMatch(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def text(self) -> str: ...

    @property
    def value(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def title(self) -> str: ...

    @property
    def outer_html(self) -> str: ...

    @property
    def inner_html(self) -> str: ...

    @property
    def selected_option(self) -> str: ...

    @property
    def selected(self) -> bool: ...

    @property
    def disabled(self) -> bool: ...

    @property
    def displayed(self) -> bool: ...

    @property
    def attributes(self) -> Dict[str, str]: ...

    @property
    def native(self) -> Any: ...

    def __getitem__(self, attribute: str) -> Optional[str]: ...

    def same_node(self, other: "RawMatch") -> bool: ...


class Driver(Protocol):
    def find_all(self, locator: Locator, scope: Optional[RawMatch], options: Options) -> Sequence[RawMatch]: ...

    def find_windows(self, locator: Locator, scope: Optional[RawMatch], options: Options) -> Sequence[RawMatch]: ...

    def current_window(self) -> RawMatch: ...

    def enter_frame(self, match: RawMatch) -> None: ...

    def leave_frame(self) -> None: ...

    def enter_window(self, match: RawMatch) -> None: ...

    def leave_window(self) -> None: ...

    def click(self, match: RawMatch) -> None: ...

    def set_value(self, match: RawMatch, value: str) -> None: ...

    def hover(self, match: RawMatch) -> None: ...

    def send_keys(self, match: RawMatch, keys: str) -> None: ...

    def set_checked(self, match: RawMatch, checked: bool) -> None: ...

    def select_option(self, match: RawMatch, option: str) -> None: ...

    def visit(self, url: str) -> None: ...

    @property
    def location(self) -> str: ...
