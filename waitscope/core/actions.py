# waitscope/core/actions.py
from __future__ import annotations

"""Driver actions
-----------------
Each action resolves its element afresh and acts on that handle in one
attempt. The retry engine re-runs `act()` as a whole, so an element that
goes stale between lookup and click is looked up again before the retry.
"""

from typing import TYPE_CHECKING

from waitscope.core.options import Options
from waitscope.utils.timing import measure

if TYPE_CHECKING:
    from waitscope.core.scope import ElementScope
    from waitscope.drivers.base import RawMatch

__all__ = [
    "DriverAction",
    "Click",
    "WaitThenClick",
    "FillIn",
    "SelectOption",
    "Hover",
    "SendKeys",
    "Check",
    "Uncheck",
    "Choose",
]


class DriverAction:
    def __init__(self, scope: "ElementScope", options: Options) -> None:
        self.scope = scope
        self.driver = scope.driver
        self.options = options

    def act(self) -> None:
        self.scope.apply(self.perform, self.options)

    def perform(self, match: "RawMatch") -> None:
        raise NotImplementedError

    def __call__(self) -> None:
        self.act()


class Click(DriverAction):
    @measure("click")
    def perform(self, match: "RawMatch") -> None:
        self.driver.click(match)


class WaitThenClick(Click):
    """Pause `wait_before_click_ms` first, for pages that animate buttons into place."""

    def act(self) -> None:
        self.scope.session.engine.waiter.wait(self.options.wait_before_click_ms or 0)
        super().act()


class FillIn(DriverAction):
    def __init__(self, scope: "ElementScope", value: str, options: Options) -> None:
        super().__init__(scope, options)
        self.value = value

    @measure("fill_in")
    def perform(self, match: "RawMatch") -> None:
        self.driver.set_value(match, self.value)


class SelectOption(DriverAction):
    def __init__(self, scope: "ElementScope", option: str, options: Options) -> None:
        super().__init__(scope, options)
        self.option = option

    @measure("select_option")
    def perform(self, match: "RawMatch") -> None:
        self.driver.select_option(match, self.option)


class Hover(DriverAction):
    @measure("hover")
    def perform(self, match: "RawMatch") -> None:
        self.driver.hover(match)


class SendKeys(DriverAction):
    def __init__(self, scope: "ElementScope", keys: str, options: Options) -> None:
        super().__init__(scope, options)
        self.keys = keys

    @measure("send_keys")
    def perform(self, match: "RawMatch") -> None:
        self.driver.send_keys(match, self.keys)


class Check(DriverAction):
    checked = True

    @measure("check")
    def perform(self, match: "RawMatch") -> None:
        self.driver.set_checked(match, self.checked)


class Uncheck(Check):
    checked = False


class Choose(Click):
    """Pick a radio button; radios can only be clicked on, never off."""
