# waitscope/finders/finder.py
from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence

from waitscope.core.errors import AmbiguousError, MissingHtmlError, MissingWindowError
from waitscope.core.options import Options
from waitscope.core.result import FailureKind, Result
from waitscope.finders.locator import TEXT_PATTERN_KINDS, Locator, LocatorKind
from waitscope.utils.config import Match, TextPrecision
from waitscope.utils.logger import get_logger

if TYPE_CHECKING:
    from waitscope.core.scope import DriverScope
    from waitscope.drivers.base import Driver, RawMatch

log = get_logger(__name__)


class ElementFinder:
    """
    One resolution attempt for one locator:
      - one driver round trip, or two when exact pattern text is tried first
        (no waiting, no retrying here)
      - drop duplicate handles for the same node
      - drop invisible matches unless asked to consider them
      - apply the locator's text, then the match policy
    Retrying is the caller's business (see RetryEngine).
    """

    def __init__(self, driver: "Driver", locator: Locator, scope: Optional["DriverScope"] = None) -> None:
        self.driver = driver
        self.locator = locator
        self.scope = scope

    @property
    def description(self) -> str:
        return self.locator.describe()

    def find_raw(self, options: Options) -> List["RawMatch"]:
        root = self.scope.search_root() if self.scope is not None else None
        if self.locator.kind is LocatorKind.window:
            return list(self.driver.find_windows(self.locator, root, options))
        return list(self.driver.find_all(self.locator, root, options))

    def missing_error(self) -> MissingHtmlError:
        if self.locator.kind is LocatorKind.window:
            return MissingWindowError(f"Unable to find {self.description}")
        return MissingHtmlError(f"Unable to find {self.description}")

    # ---------- Resolution ----------

    def resolve(self, options: Options) -> Result["RawMatch"]:
        try:
            if self._exact_pattern_first(options):
                exact = options.model_copy(update={"text_precision": TextPrecision.exact})
                result = self.choose(self.find_raw(exact), options)
                if result.kind is not FailureKind.not_found:
                    return result
            return self.choose(self.find_raw(options), options)
        except Exception as exc:
            return Result.failure(exc)

    def exists(self, options: Options) -> Result[bool]:
        """Like resolve(), but answers whether anything matches: ambiguity counts as present."""
        result = self.resolve(options)
        if result.ok or result.kind is FailureKind.ambiguous:
            return Result.success(True)
        if result.kind is FailureKind.not_found:
            return Result.success(False)
        return result

    def choose(self, matches: Sequence["RawMatch"], options: Options) -> Result["RawMatch"]:
        candidates = _distinct(matches)
        if not options.consider_invisible_elements:
            candidates = [m for m in candidates if m.displayed]

        stages = self._text_stages(candidates, options)
        policy = options.match or Match.smart

        if policy is Match.first:
            for stage in stages:
                if stage:
                    return Result.success(stage[0])
            return Result.failure(self.missing_error())

        if policy is Match.smart:
            for stage in self._smart_stages(stages, options):
                if len(stage) == 1:
                    return Result.success(stage[0])
                if stage:
                    return Result.failure(self._ambiguous(len(stage), options))
            return Result.failure(self.missing_error())

        pool = stages[-1]
        if policy is Match.prefer and len(pool) > 1:
            pool = self._narrow(pool, stages, options)
        return self._single(pool, options)

    # ---------- Helpers ----------

    def _exact_pattern_first(self, options: Options) -> bool:
        """The driver matches these kinds' pattern as text, so exactness is its query to make."""
        precision = options.text_precision or TextPrecision.prefer_exact
        return precision is TextPrecision.prefer_exact and self.locator.kind in TEXT_PATTERN_KINDS

    def _text_stages(self, candidates: List["RawMatch"], options: Options) -> List[List["RawMatch"]]:
        """Candidate lists in order of preference by text."""
        text = self.locator.text
        if text is None:
            return [candidates]
        if not isinstance(text, str):
            return [[m for m in candidates if self.locator.matches_text(m.text, exact=False)]]

        precision = options.text_precision or TextPrecision.prefer_exact
        exact = [m for m in candidates if self.locator.matches_text(m.text, exact=True)]
        if precision is TextPrecision.exact:
            return [exact]
        substring = [m for m in candidates if self.locator.matches_text(m.text, exact=False)]
        if precision is TextPrecision.substring:
            return [substring]
        return [exact, substring]

    @staticmethod
    def _smart_stages(stages: List[List["RawMatch"]], options: Options) -> List[List["RawMatch"]]:
        if not options.consider_invisible_elements:
            return stages
        expanded: List[List["RawMatch"]] = []
        for stage in stages:
            expanded.append([m for m in stage if m.displayed])
            expanded.append(stage)
        return expanded

    def _narrow(self, pool: List["RawMatch"], stages: List[List["RawMatch"]], options: Options) -> List["RawMatch"]:
        if len(stages) > 1 and stages[0]:
            pool = stages[0]
        for preference in options.prefer or ():
            if len(pool) <= 1:
                break
            narrowed = [m for m in pool if preference(m)]
            if narrowed:
                pool = narrowed
        return pool

    def _single(self, pool: List["RawMatch"], options: Options) -> Result["RawMatch"]:
        if not pool:
            return Result.failure(self.missing_error())
        if len(pool) > 1:
            return Result.failure(self._ambiguous(len(pool), options))
        return Result.success(pool[0])

    def _ambiguous(self, count: int, options: Options) -> AmbiguousError:
        policy = (options.match or Match.smart).value
        log.debug(f"{count} matches for {self.description} under match={policy}")
        return AmbiguousError(
            f"Ambiguous match, found {count} elements matching {self.description} (match={policy})",
            count=count,
        )


def _distinct(matches: Sequence["RawMatch"]) -> List["RawMatch"]:
    """Several handles to one node are one match."""
    out: List["RawMatch"] = []
    for m in matches:
        if not any(m.same_node(seen) for seen in out):
            out.append(m)
    return out
