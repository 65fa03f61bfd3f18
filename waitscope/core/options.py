# waitscope/core/options.py
from __future__ import annotations

"""Per-call configuration
-------------------------
`Options` is an immutable bundle. Every field may be left unset (None); a
call merges its overrides over the scope's options, which were themselves
merged over the session defaults built from Settings.
"""

from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from waitscope.utils.config import Match, Settings, TextPrecision

Preference = Callable[[Any], bool]


class Options(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    timeout_ms: Optional[int] = Field(default=None, ge=0)
    retry_interval_ms: Optional[int] = Field(default=None, ge=0)
    consider_invisible_elements: Optional[bool] = None
    text_precision: Optional[TextPrecision] = None
    match: Optional[Match] = None
    prefer: Optional[tuple[Preference, ...]] = Field(
        default=None, description="Tie-break predicates over raw matches, tried in order (match=prefer)"
    )
    wait_before_click_ms: Optional[int] = Field(default=None, ge=0)
    retry_driver_faults: Optional[bool] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Options":
        """Fully specified options from the engine defaults in Settings."""
        return cls(
            timeout_ms=settings.TIMEOUT_MS,
            retry_interval_ms=settings.RETRY_INTERVAL_MS,
            consider_invisible_elements=settings.CONSIDER_INVISIBLE_ELEMENTS,
            text_precision=settings.TEXT_PRECISION,
            match=settings.MATCH,
            prefer=(),
            wait_before_click_ms=settings.WAIT_BEFORE_CLICK_MS,
            retry_driver_faults=settings.RETRY_DRIVER_FAULTS,
        )

    def overrides(self) -> dict:
        return {name: value for name, value in self if value is not None}

    def merged_with(self, base: "Options") -> "Options":
        return merge(self, base)

    def is_complete(self) -> bool:
        return all(value is not None for _, value in self)

    def with_timeout(self, timeout_ms: int) -> "Options":
        return self.model_copy(update={"timeout_ms": timeout_ms})


def merge(override: Optional[Options], base: Options) -> Options:
    """Field by field: the override wins wherever it is set."""
    if override is None:
        return base
    return base.model_copy(update=override.overrides())


__all__ = ["Options", "Preference", "merge", "Match", "TextPrecision"]
