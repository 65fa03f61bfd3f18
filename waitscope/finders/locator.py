# waitscope/finders/locator.py
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Pattern, Union

TextMatcher = Union[str, Pattern[str]]

_WS = re.compile(r"\s+")


class LocatorKind(str, Enum):
    css = "css"
    xpath = "xpath"
    id = "id"
    id_ending_with = "id_ending_with"
    field = "field"
    button = "button"
    link = "link"
    section = "section"
    fieldset = "fieldset"
    frame = "frame"
    window = "window"


CONTEXT_KINDS = frozenset({LocatorKind.frame, LocatorKind.window})

# kinds whose pattern the driver compares against visible text (labels, captions, headings)
TEXT_PATTERN_KINDS = frozenset(
    {LocatorKind.field, LocatorKind.button, LocatorKind.link, LocatorKind.section, LocatorKind.fieldset}
)


def normalize_text(value: Optional[str]) -> str:
    return _WS.sub(" ", value or "").strip()


@dataclass(frozen=True)
class Locator:
    """
    What to look for: a kind, a pattern interpreted by the driver for that
    kind, and an optional text the match must carry.

    Never mutated; the same Locator is re-evaluated on every attempt.
    """
    kind: LocatorKind
    pattern: str
    text: Optional[TextMatcher] = None

    def __post_init__(self) -> None:
        if not isinstance(self.pattern, str) or not self.pattern.strip():
            raise ValueError(f"{self.kind.value} locator needs a non-empty pattern")

    # ---- constructors ----

    @classmethod
    def css(cls, selector: str, text: Optional[TextMatcher] = None) -> "Locator":
        return cls(LocatorKind.css, selector, text)

    @classmethod
    def xpath(cls, xpath: str, text: Optional[TextMatcher] = None) -> "Locator":
        return cls(LocatorKind.xpath, xpath, text)

    @classmethod
    def id(cls, element_id: str) -> "Locator":
        return cls(LocatorKind.id, element_id)

    @classmethod
    def id_ending_with(cls, suffix: str) -> "Locator":
        return cls(LocatorKind.id_ending_with, suffix)

    @classmethod
    def field(cls, locator: str) -> "Locator":
        return cls(LocatorKind.field, locator)

    @classmethod
    def button(cls, locator: str) -> "Locator":
        return cls(LocatorKind.button, locator)

    @classmethod
    def link(cls, locator: str) -> "Locator":
        return cls(LocatorKind.link, locator)

    @classmethod
    def section(cls, locator: str) -> "Locator":
        return cls(LocatorKind.section, locator)

    @classmethod
    def fieldset(cls, locator: str) -> "Locator":
        return cls(LocatorKind.fieldset, locator)

    @classmethod
    def frame(cls, locator: str) -> "Locator":
        return cls(LocatorKind.frame, locator)

    @classmethod
    def window(cls, locator: str) -> "Locator":
        return cls(LocatorKind.window, locator)

    # ---- helpers ----

    @property
    def is_context(self) -> bool:
        """Frames and windows are entered rather than searched within."""
        return self.kind in CONTEXT_KINDS

    def describe(self) -> str:
        desc = f"{self.kind.value.replace('_', ' ')}: {self.pattern}"
        if self.text is None:
            return desc
        if isinstance(self.text, str):
            return f"{desc} with text {self.text!r}"
        return f"{desc} with text matching /{self.text.pattern}/"

    def matches_text(self, actual: Optional[str], exact: bool) -> bool:
        if self.text is None:
            return True
        if not isinstance(self.text, str):
            return self.text.search(actual or "") is not None
        expected = normalize_text(self.text)
        got = normalize_text(actual)
        return got == expected if exact else expected in got

    def __str__(self) -> str:
        return self.describe()
