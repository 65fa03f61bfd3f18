"""
waitscope
---------
Scoped, retrying element lookups for browser UI checks.

    from waitscope import BrowserSession, Options
    from waitscope.drivers.playwright_driver import PlaywrightDriver

    session = BrowserSession(PlaywrightDriver(page))
    session.fill_in("Email", "ada@example.test")
    session.click_button("Sign in")
    assert session.has_content("Welcome")
"""

from waitscope.core.errors import (
    AmbiguousError,
    ConditionNotMetError,
    DriverError,
    MissingHtmlError,
    MissingWindowError,
    NoStateReachedError,
    ScopeStackError,
    StaleElementError,
    WaitScopeError,
)
from waitscope.core.options import Match, Options, TextPrecision
from waitscope.core.scope import BrowserSession, DriverScope, ElementScope, SnapshotElementScope
from waitscope.core.state import State
from waitscope.finders.locator import Locator, LocatorKind

__all__ = [
    "BrowserSession",
    "DriverScope",
    "ElementScope",
    "SnapshotElementScope",
    "State",
    "Options",
    "Match",
    "TextPrecision",
    "Locator",
    "LocatorKind",
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
