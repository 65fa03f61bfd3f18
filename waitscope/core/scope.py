# waitscope/core/scope.py
from __future__ import annotations

"""Scopes
---------
The public surface. A scope is a window, frame or element that further
lookups, actions and queries are relative to.

ElementScopes are lazy: they hold a locator, never a handle. Every property
read and every action resolves the element again inside the retry loop and
acts on that fresh handle. SnapshotElementScopes are the exception: they
are what find_all_* returns and their values are captured once.

Frames and windows found on the way are entered for the duration of one
attempt and always left again, in reverse order, before control returns.
"""

from contextlib import ExitStack, contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Pattern, TypeVar, Union

from waitscope.core.actions import (
    Check,
    Choose,
    FillIn,
    Hover,
    SelectOption,
    SendKeys,
    Uncheck,
    WaitThenClick,
)
from waitscope.core.errors import MissingHtmlError, StaleElementError
from waitscope.core.options import Options, merge
from waitscope.core.query import (
    ExistsQuery,
    FindAllQuery,
    HasContentMatchQuery,
    HasContentQuery,
    HasNoContentMatchQuery,
    HasNoContentQuery,
    HasNoValueQuery,
    HasValueQuery,
    LambdaQuery,
    MissingQuery,
    Query,
)
from waitscope.core.result import Result
from waitscope.core.retry import RetryEngine, Until, current_attempt
from waitscope.core.scope_stack import ScopeStack
from waitscope.core.state import State, find_state
from waitscope.drivers.base import Driver, RawMatch
from waitscope.finders.finder import ElementFinder
from waitscope.finders.locator import Locator, TextMatcher
from waitscope.utils.config import Settings, TextPrecision, get_settings
from waitscope.utils.logger import get_logger, log_with_context

T = TypeVar("T")

SnapshotPredicate = Callable[[List["SnapshotElementScope"]], bool]

log = get_logger(__name__)


class DriverScope:
    def __init__(
        self,
        session: "BrowserSession",
        finder: Optional[ElementFinder],
        outer: Optional["DriverScope"],
        options: Options,
    ) -> None:
        self.session = session
        self.driver: Driver = session.driver
        self._finder = finder
        self._outer = outer
        self._options = options
        self._cached: Optional[RawMatch] = None
        self._cached_token: Optional[object] = None
        self._cached_options: Optional[Options] = None

    # ---------- Identity ----------

    @property
    def outer_scope(self) -> Optional["DriverScope"]:
        return self._outer

    @property
    def options(self) -> Options:
        return self._options

    @property
    def is_context(self) -> bool:
        return self._finder is not None and self._finder.locator.is_context

    @property
    def description(self) -> str:
        return self._finder.description if self._finder is not None else "document"

    @property
    def location(self) -> str:
        return self.driver.location

    def merge(self, options: Optional[Options]) -> Options:
        return merge(options, self._options)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.description}>"

    # ---------- Resolution ----------

    def resolve(self, options: Optional[Options] = None) -> Result[RawMatch]:
        """One resolution attempt; never raises. Holding the handle across calls risks staleness."""
        return self._finder.resolve(self.merge(options))

    def now(self, options: Optional[Options] = None) -> RawMatch:
        """The live handle, resolved at most once per retry attempt and set of options."""
        opts = self.merge(options)
        token = current_attempt()
        if token is not None and token is self._cached_token and opts == self._cached_options:
            return self._cached
        match = self.resolve(opts).unwrap()
        if token is not None:
            self._cached, self._cached_token, self._cached_options = match, token, opts
        return match

    def search_root(self) -> Optional[RawMatch]:
        """What children search under: nothing (the entered document) for frames/windows."""
        if self.is_context:
            return None
        return self.now()

    def _chain(self) -> List["DriverScope"]:
        chain: List[DriverScope] = []
        scope = self._outer
        while scope is not None:
            chain.append(scope)
            scope = scope._outer
        chain.reverse()
        return chain

    @contextmanager
    def within(self, include_self: bool = False) -> Iterator[None]:
        """Enter every frame/window between the session and this scope, outermost first."""
        chain = self._chain()
        if include_self:
            chain.append(self)
        with ExitStack() as stack:
            for scope in chain:
                if scope.is_context:
                    stack.enter_context(
                        self.session.scope_stack.entered(scope._finder.locator.kind, scope.now(), scope.description)
                    )
            yield

    def apply(self, fn: Callable[[RawMatch], T], options: Optional[Options] = None) -> T:
        """Resolve with `options` over this scope's own and hand the fresh handle to `fn` in one attempt."""
        with self.within():
            return fn(self.now(options))

    def read_content(self) -> str:
        with self.within(include_self=self.is_context):
            target = self.driver.current_window() if self.is_context else self.now()
            return target.text or ""

    def _guarded(self, operation: str, fn: Callable[[], T]) -> T:
        depth = len(self.session.scope_stack)
        result = fn()
        self.session.scope_stack.assert_depth(depth, operation)
        return result

    def _retry(self, work: Callable[[], T], options: Options, operation: str) -> T:
        return self._guarded(operation, lambda: self.session.engine.retry_until_timeout(work, options))

    def _query(self, query: Query[T], operation: str) -> T:
        return self._guarded(operation, lambda: self.session.engine.query(query))

    # ---------- Lookups (lazy) ----------

    def _element(self, locator: Locator, options: Optional[Options]) -> "ElementScope":
        log_with_context(log, locator=locator.describe()).debug(f"Scoped {locator.describe()} under {self.description}")
        return ElementScope(self.session, ElementFinder(self.driver, locator, self), self, self.merge(options))

    def find_css(self, selector: str, text: Optional[TextMatcher] = None, options: Optional[Options] = None) -> "ElementScope":
        return self._element(Locator.css(selector, text), options)

    def find_xpath(self, xpath: str, text: Optional[TextMatcher] = None, options: Optional[Options] = None) -> "ElementScope":
        return self._element(Locator.xpath(xpath, text), options)

    def find_id(self, element_id: str, options: Optional[Options] = None) -> "ElementScope":
        return self._element(Locator.id(element_id), options)

    def find_id_ending_with(self, suffix: str, options: Optional[Options] = None) -> "ElementScope":
        return self._element(Locator.id_ending_with(suffix), options)

    def find_field(self, locator: str, options: Optional[Options] = None) -> "ElementScope":
        return self._element(Locator.field(locator), options)

    def find_button(self, locator: str, options: Optional[Options] = None) -> "ElementScope":
        return self._element(Locator.button(locator), options)

    def find_link(self, locator: str, options: Optional[Options] = None) -> "ElementScope":
        return self._element(Locator.link(locator), options)

    def find_section(self, locator: str, options: Optional[Options] = None) -> "ElementScope":
        return self._element(Locator.section(locator), options)

    def find_fieldset(self, locator: str, options: Optional[Options] = None) -> "ElementScope":
        return self._element(Locator.fieldset(locator), options)

    def find_frame(self, locator: str, options: Optional[Options] = None) -> "ElementScope":
        return self._element(Locator.frame(locator), options)

    def find(self, locator: Locator, options: Optional[Options] = None) -> "ElementScope":
        return self._element(locator, options)

    # ---------- Lookups (snapshots) ----------

    def find_all_css(
        self,
        selector: str,
        predicate: Optional[SnapshotPredicate] = None,
        options: Optional[Options] = None,
    ) -> List["SnapshotElementScope"]:
        """All current matches. With a predicate, waits until the whole list satisfies it."""
        return self.find_all(Locator.css(selector), predicate, options)

    def find_all_xpath(
        self,
        xpath: str,
        predicate: Optional[SnapshotPredicate] = None,
        options: Optional[Options] = None,
    ) -> List["SnapshotElementScope"]:
        return self.find_all(Locator.xpath(xpath), predicate, options)

    def find_all(
        self,
        locator: Locator,
        predicate: Optional[SnapshotPredicate] = None,
        options: Optional[Options] = None,
    ) -> List["SnapshotElementScope"]:
        return self._query(FindAllQuery(self, locator, predicate, self.merge(options)), "find_all")

    def snapshot_all(self, locator: Locator, options: Options) -> List["SnapshotElementScope"]:
        """One driver round trip, captured as snapshots while any frames are still entered."""
        with self.within(include_self=self.is_context):
            matches = self.driver.find_all(locator, self.search_root(), options)
            exact = options.text_precision is TextPrecision.exact
            return [
                SnapshotElementScope(self.session, m, self, options)
                for m in matches
                if (options.consider_invisible_elements or m.displayed) and locator.matches_text(m.text, exact)
            ]

    # ---------- Actions by locator ----------

    def click_button(self, locator: str, until: Optional[Until] = None, options: Optional[Options] = None) -> "DriverScope":
        self.find_button(locator, options).click(until=until)
        return self

    def click_link(self, locator: str, until: Optional[Until] = None, options: Optional[Options] = None) -> "DriverScope":
        self.find_link(locator, options).click(until=until)
        return self

    def fill_in(self, locator: str, value: str, options: Optional[Options] = None) -> "ElementScope":
        return self.find_field(locator, options).fill_in_with(value)

    def select(self, option: str, from_: str, options: Optional[Options] = None) -> "ElementScope":
        return self.find_field(from_, options).select_option(option)

    def check(self, locator: str, options: Optional[Options] = None) -> "ElementScope":
        return self.find_field(locator, options).check()

    def uncheck(self, locator: str, options: Optional[Options] = None) -> "ElementScope":
        return self.find_field(locator, options).uncheck()

    def choose(self, locator: str, options: Optional[Options] = None) -> "ElementScope":
        return self.find_field(locator, options).choose()

    # ---------- Content queries ----------

    def has_content(self, text: str, options: Optional[Options] = None) -> bool:
        return self._query(HasContentQuery(self, text, self.merge(options)), "has_content")

    def has_no_content(self, text: str, options: Optional[Options] = None) -> bool:
        """Waits for the text to go away; returns as soon as it is absent."""
        return self._query(HasNoContentQuery(self, text, self.merge(options)), "has_no_content")

    def has_content_match(self, pattern: Union[str, Pattern[str]], options: Optional[Options] = None) -> bool:
        return self._query(HasContentMatchQuery(self, pattern, self.merge(options)), "has_content_match")

    def has_no_content_match(self, pattern: Union[str, Pattern[str]], options: Optional[Options] = None) -> bool:
        return self._query(HasNoContentMatchQuery(self, pattern, self.merge(options)), "has_no_content_match")

    # ---------- Engine access ----------

    def retry_until_timeout(self, fn: Callable[[], T], options: Optional[Options] = None) -> T:
        return self._retry(fn, self.merge(options), "retry_until_timeout")

    def query(self, query: Union[Query[T], Callable[[], T]], expecting: Any = None, options: Optional[Options] = None) -> T:
        if not isinstance(query, Query):
            query = LambdaQuery(query, expecting, self.merge(options))
        return self._query(query, "query")

    def try_until(
        self,
        try_this: Callable[[], Any],
        until: Until,
        wait_before_retry_ms: Optional[int] = None,
        options: Optional[Options] = None,
    ) -> None:
        opts = self.merge(options)
        self._guarded("try_until", lambda: self.session.engine.try_until(try_this, until, wait_before_retry_ms, opts))

    def find_state(self, *states: State, options: Optional[Options] = None) -> State:
        opts = self.merge(options)
        return self._guarded("find_state", lambda: find_state(states, self.session.engine, opts))


class ElementScope(DriverScope):
    """A lazily re-resolved element. Nothing here caches a handle across calls."""

    def _read(self, getter: Callable[[RawMatch], T], operation: str) -> T:
        return self._retry(lambda: self.apply(getter), self._options, operation)

    # ---------- Properties ----------

    @property
    def id(self) -> str:
        return self._read(lambda m: m.id, "id")

    @property
    def text(self) -> str:
        return self._read(lambda m: m.text, "text")

    @property
    def value(self) -> str:
        return self._read(lambda m: m.value, "value")

    @property
    def name(self) -> str:
        return self._read(lambda m: m.name, "name")

    @property
    def title(self) -> str:
        return self._read(lambda m: m.title, "title")

    @property
    def outer_html(self) -> str:
        return self._read(lambda m: m.outer_html, "outer_html")

    @property
    def inner_html(self) -> str:
        return self._read(lambda m: m.inner_html, "inner_html")

    @property
    def selected_option(self) -> str:
        return self._read(lambda m: m.selected_option, "selected_option")

    @property
    def selected(self) -> bool:
        return self._read(lambda m: m.selected, "selected")

    @property
    def disabled(self) -> bool:
        return self._read(lambda m: m.disabled, "disabled")

    @property
    def native(self) -> Any:
        return self._read(lambda m: m.native, "native")

    def __getitem__(self, attribute: str) -> Optional[str]:
        return self._read(lambda m: m[attribute], f"[{attribute}]")

    # ---------- Actions ----------

    def click(self, until: Optional[Until] = None, options: Optional[Options] = None) -> "ElementScope":
        opts = self.merge(options)
        action = WaitThenClick(self, opts)
        if until is None:
            self._retry(action, opts, "click")
        else:
            self._guarded("click", lambda: self.session.engine.try_until(action, until, None, opts))
        return self

    def fill_in_with(self, value: str, options: Optional[Options] = None) -> "ElementScope":
        opts = self.merge(options)
        self._retry(FillIn(self, value, opts), opts, "fill_in_with")
        return self

    def select_option(self, option: str, options: Optional[Options] = None) -> "ElementScope":
        opts = self.merge(options)
        self._retry(SelectOption(self, option, opts), opts, "select_option")
        return self

    def hover(self, options: Optional[Options] = None) -> "ElementScope":
        opts = self.merge(options)
        self._retry(Hover(self, opts), opts, "hover")
        return self

    def send_keys(self, keys: str, options: Optional[Options] = None) -> "ElementScope":
        opts = self.merge(options)
        self._retry(SendKeys(self, keys, opts), opts, "send_keys")
        return self

    def check(self, options: Optional[Options] = None) -> "ElementScope":
        opts = self.merge(options)
        self._retry(Check(self, opts), opts, "check")
        return self

    def uncheck(self, options: Optional[Options] = None) -> "ElementScope":
        opts = self.merge(options)
        self._retry(Uncheck(self, opts), opts, "uncheck")
        return self

    def choose(self, options: Optional[Options] = None) -> "ElementScope":
        opts = self.merge(options)
        self._retry(Choose(self, opts), opts, "choose")
        return self

    # ---------- Queries ----------

    def exists_now(self, options: Options) -> bool:
        """One check. An enclosing frame or window that cannot be found means no element."""
        try:
            with self.within():
                return self._finder.exists(options).unwrap()
        except MissingHtmlError:
            return False

    def exists(self, options: Optional[Options] = None) -> bool:
        return self._query(ExistsQuery(self, self.merge(options)), "exists")

    def missing(self, options: Optional[Options] = None) -> bool:
        """Waits for the element to disappear; ambiguity counts as present."""
        return self._query(MissingQuery(self, self.merge(options)), "missing")

    def has_value(self, text: str, options: Optional[Options] = None) -> bool:
        return self._query(HasValueQuery(self, text, self.merge(options)), "has_value")

    def has_no_value(self, text: str, options: Optional[Options] = None) -> bool:
        return self._query(HasNoValueQuery(self, text, self.merge(options)), "has_no_value")


class SnapshotElementScope(ElementScope):
    """
    One element of a find_all_* result. Values are captured at construction
    and never re-queried; actions and child lookups use the captured handle,
    which may have gone stale by then.
    """

    def __init__(self, session: "BrowserSession", match: RawMatch, outer: DriverScope, options: Options) -> None:
        super().__init__(session, None, outer, options)
        self._match = match
        self._snapshot: Dict[str, Any] = {
            "id": match.id,
            "text": match.text,
            "value": match.value,
            "name": match.name,
            "title": match.title,
            "outer_html": match.outer_html,
            "inner_html": match.inner_html,
            "selected_option": match.selected_option,
            "selected": match.selected,
            "disabled": match.disabled,
        }
        self._attributes: Dict[str, str] = dict(match.attributes or {})

    @property
    def description(self) -> str:
        return f"snapshot of {str(self._snapshot['outer_html'] or '')[:60]!r}"

    def resolve(self, options: Optional[Options] = None) -> Result[RawMatch]:
        return Result.success(self._match)

    def now(self, options: Optional[Options] = None) -> RawMatch:
        return self._match

    @property
    def id(self) -> str:
        return self._snapshot["id"]

    @property
    def text(self) -> str:
        return self._snapshot["text"]

    @property
    def value(self) -> str:
        return self._snapshot["value"]

    @property
    def name(self) -> str:
        return self._snapshot["name"]

    @property
    def title(self) -> str:
        return self._snapshot["title"]

    @property
    def outer_html(self) -> str:
        return self._snapshot["outer_html"]

    @property
    def inner_html(self) -> str:
        return self._snapshot["inner_html"]

    @property
    def selected_option(self) -> str:
        return self._snapshot["selected_option"]

    @property
    def selected(self) -> bool:
        return self._snapshot["selected"]

    @property
    def disabled(self) -> bool:
        return self._snapshot["disabled"]

    @property
    def native(self) -> Any:
        return self._match.native

    def __getitem__(self, attribute: str) -> Optional[str]:
        return self._attributes.get(attribute)

    def exists_now(self, options: Options) -> bool:
        try:
            _ = self._match.id
        except StaleElementError:
            return False
        return True


class BrowserSession(DriverScope):
    """
    Root scope bound to one driver. Engine defaults are read from Settings
    once, here, and merged under whatever `options` the caller supplies.
    """

    def __init__(
        self,
        driver: Driver,
        settings: Optional[Settings] = None,
        options: Optional[Options] = None,
        engine: Optional[RetryEngine] = None,
    ) -> None:
        self.driver = driver
        self.engine = engine or RetryEngine()
        self.scope_stack = ScopeStack(driver)
        base = Options.from_settings(settings or get_settings())
        super().__init__(self, None, None, merge(options, base))

    @property
    def description(self) -> str:
        return "document"

    def resolve(self, options: Optional[Options] = None) -> Result[RawMatch]:
        try:
            return Result.success(self.driver.current_window())
        except Exception as exc:
            return Result.failure(exc)

    def search_root(self) -> Optional[RawMatch]:
        return None

    def visit(self, url: str) -> "BrowserSession":
        log.info(f"Visiting {url}")
        self.driver.visit(url)
        return self

    @property
    def title(self) -> str:
        return self._retry(lambda: self.driver.current_window().title, self._options, "title")

    def find_window(self, locator: str, options: Optional[Options] = None) -> ElementScope:
        return self._element(Locator.window(locator), options)


__all__ = [
    "DriverScope",
    "ElementScope",
    "SnapshotElementScope",
    "BrowserSession",
]
