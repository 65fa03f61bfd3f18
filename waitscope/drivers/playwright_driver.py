# waitscope/drivers/playwright_driver.py
from __future__ import annotations

"""Playwright adapter
---------------------
Implements the driver boundary over a `playwright.sync_api.Page`.

Locators become Playwright selector strings (`css=` / `xpath=`) queried
with `query_selector_all`, which returns immediately: no auto-waiting here,
the engine does the waiting. Frames and pages are entered by pushing them
on a small context stack. Playwright errors are translated into
StaleElementError (node detached) or DriverError (anything else).
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from playwright.sync_api import ElementHandle, Error as PWError, Frame, Page, TimeoutError as PWTimeoutError

from waitscope.core.errors import DriverError, StaleElementError
from waitscope.core.options import Options
from waitscope.finders.locator import Locator, LocatorKind, normalize_text
from waitscope.utils.config import TextPrecision
from waitscope.utils.logger import get_logger

log = get_logger(__name__)

Document = Union[Page, Frame]

_STALE_MARKERS = (
    "not attached",
    "detached",
    "execution context was destroyed",
    "target closed",
    "has been closed",
)

_SELECTED_OPTION_JS = "el => el.selectedIndex >= 0 && el.options ? el.options[el.selectedIndex].text : ''"
_ATTRIBUTES_JS = "el => Object.fromEntries(Array.from(el.attributes).map(a => [a.name, a.value]))"


@contextmanager
def translate_errors(what: str) -> Iterator[None]:
    try:
        yield
    except PWTimeoutError as e:
        raise DriverError(f"{what}: {e}") from e
    except PWError as e:
        msg = str(e)
        if any(marker in msg.lower() for marker in _STALE_MARKERS):
            raise StaleElementError(f"{what}: {msg.splitlines()[0]}") from e
        raise DriverError(f"{what}: {msg}") from e


def xpath_literal(value: str) -> str:
    """Quote `value` for XPath, using concat() when it holds both quote kinds."""
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    parts = value.split("'")
    return "concat(" + ", \"'\", ".join(f"'{p}'" for p in parts) + ")"


def _text_test(expr: str, value: str, precision: Optional[TextPrecision]) -> str:
    lit = xpath_literal(normalize_text(value))
    if precision is TextPrecision.exact:
        return f"normalize-space({expr})={lit}"
    return f"contains(normalize-space({expr}), {lit})"


_FIELD_TAGS = "self::input[not(@type='hidden')] or self::textarea or self::select"


def selector_for(locator: Locator, options: Options) -> str:
    """The Playwright selector for one locator kind (windows are matched separately)."""
    kind = locator.kind
    v = xpath_literal(locator.pattern)
    precision = options.text_precision

    if kind is LocatorKind.css:
        return f"css={locator.pattern}"
    if kind is LocatorKind.xpath:
        return f"xpath={locator.pattern}"
    if kind is LocatorKind.id:
        return f"xpath=.//*[@id={v}]"
    if kind is LocatorKind.id_ending_with:
        return f"xpath=.//*[substring(@id, string-length(@id) - string-length({v}) + 1)={v}]"
    if kind is LocatorKind.field:
        by_label = f"@id=//label[{_text_test('.', locator.pattern, precision)}]/@for"
        return (
            f"xpath=.//*[{_FIELD_TAGS}][@id={v} or @name={v} or @placeholder={v} or {by_label}"
            f" or ((@type='radio' or @type='checkbox') and @value={v})]"
            f" | .//label[{_text_test('.', locator.pattern, precision)}]//*[{_FIELD_TAGS}]"
        )
    if kind is LocatorKind.button:
        buttons = "self::button or self::input[@type='submit' or @type='button' or @type='image' or @type='reset'] or @role='button'"
        return (
            f"xpath=.//*[{buttons}][@id={v} or @name={v} or {_text_test('@value', locator.pattern, precision)}"
            f" or {_text_test('.', locator.pattern, precision)} or @title={v}]"
        )
    if kind is LocatorKind.link:
        return f"xpath=.//a[@href][{_text_test('.', locator.pattern, precision)} or @id={v} or @title={v}]"
    if kind is LocatorKind.section:
        headings = "self::h1 or self::h2 or self::h3 or self::h4 or self::h5 or self::h6"
        return (
            f"xpath=.//*[self::section or self::div]"
            f"[./*[{headings}][{_text_test('.', locator.pattern, precision)}] or @id={v}]"
        )
    if kind is LocatorKind.fieldset:
        return f"xpath=.//fieldset[./legend[{_text_test('.', locator.pattern, precision)}] or @id={v}]"
    if kind is LocatorKind.frame:
        return f"xpath=.//*[self::iframe or self::frame][@id={v} or @name={v} or @title={v}]"
    raise DriverError(f"No selector for {locator.describe()}")


# ---------- Raw matches ----------

class PlaywrightElement:
    """A live element handle; every accessor goes back to the page."""

    def __init__(self, handle: ElementHandle) -> None:
        self._handle = handle

    def _get(self, what: str, fn) -> Any:
        with translate_errors(what):
            return fn()

    @property
    def id(self) -> str:
        return self._get("id", lambda: self._handle.get_attribute("id") or "")

    @property
    def text(self) -> str:
        return self._get("text", lambda: self._handle.inner_text() or "")

    @property
    def value(self) -> str:
        return self._get("value", lambda: self._handle.evaluate("el => el.value === undefined ? '' : String(el.value)"))

    @property
    def name(self) -> str:
        return self._get("name", lambda: self._handle.get_attribute("name") or "")

    @property
    def title(self) -> str:
        return self._get("title", lambda: self._handle.get_attribute("title") or "")

    @property
    def outer_html(self) -> str:
        return self._get("outer_html", lambda: self._handle.evaluate("el => el.outerHTML"))

    @property
    def inner_html(self) -> str:
        return self._get("inner_html", self._handle.inner_html)

    @property
    def selected_option(self) -> str:
        return self._get("selected_option", lambda: self._handle.evaluate(_SELECTED_OPTION_JS) or "")

    @property
    def selected(self) -> bool:
        return self._get("selected", lambda: bool(self._handle.evaluate("el => !!(el.checked || el.selected)")))

    @property
    def disabled(self) -> bool:
        return self._get("disabled", self._handle.is_disabled)

    @property
    def displayed(self) -> bool:
        return self._get("displayed", self._handle.is_visible)

    @property
    def attributes(self) -> Dict[str, str]:
        return self._get("attributes", lambda: self._handle.evaluate(_ATTRIBUTES_JS))

    @property
    def native(self) -> ElementHandle:
        return self._handle

    def __getitem__(self, attribute: str) -> Optional[str]:
        return self._get(f"[{attribute}]", lambda: self._handle.get_attribute(attribute))

    def same_node(self, other: Any) -> bool:
        if not isinstance(other, PlaywrightElement):
            return False
        return self._get("same_node", lambda: bool(self._handle.evaluate("(a, b) => a === b", other.native)))


class PlaywrightDocument:
    """The document of a page or frame, standing in as the root scope's element."""

    def __init__(self, doc: Document) -> None:
        self._doc = doc

    def _get(self, what: str, fn) -> Any:
        with translate_errors(what):
            return fn()

    @property
    def id(self) -> str:
        return ""

    @property
    def text(self) -> str:
        return self._get("text", lambda: self._doc.inner_text("body", timeout=0) if self._doc.query_selector("body") else "")

    @property
    def value(self) -> str:
        return ""

    @property
    def name(self) -> str:
        return self._doc.name if isinstance(self._doc, Frame) else ""

    @property
    def title(self) -> str:
        return self._get("title", self._doc.title)

    @property
    def outer_html(self) -> str:
        return self._get("outer_html", self._doc.content)

    @property
    def inner_html(self) -> str:
        return self.outer_html

    @property
    def selected_option(self) -> str:
        return ""

    @property
    def selected(self) -> bool:
        return False

    @property
    def disabled(self) -> bool:
        return False

    @property
    def displayed(self) -> bool:
        return True

    @property
    def attributes(self) -> Dict[str, str]:
        return {}

    @property
    def native(self) -> Document:
        return self._doc

    @property
    def url(self) -> str:
        return self._doc.url

    def __getitem__(self, attribute: str) -> Optional[str]:
        return None

    def same_node(self, other: Any) -> bool:
        return isinstance(other, PlaywrightDocument) and other.native is self._doc


# ---------- Driver ----------

class PlaywrightDriver:
    def __init__(self, page: Page, page_load_timeout_ms: int = 30000) -> None:
        self.page = page
        self.page_load_timeout_ms = page_load_timeout_ms
        self._contexts: List[Document] = []
        self._windows: List[Page] = []

    @property
    def _document(self) -> Document:
        if self._contexts:
            return self._contexts[-1]
        return self._windows[-1] if self._windows else self.page

    @property
    def _page(self) -> Page:
        return self._windows[-1] if self._windows else self.page

    # ---- queries ----

    def find_all(self, locator: Locator, scope: Optional[Any], options: Options) -> Sequence[PlaywrightElement]:
        selector = selector_for(locator, options)
        root = scope.native if isinstance(scope, PlaywrightElement) else self._document
        with translate_errors(f"find {locator.describe()}"):
            handles = root.query_selector_all(selector)
        return [PlaywrightElement(h) for h in handles]

    def find_windows(self, locator: Locator, scope: Optional[Any], options: Options) -> Sequence[PlaywrightDocument]:
        wanted = normalize_text(locator.pattern)
        exact = options.text_precision is TextPrecision.exact
        found: List[PlaywrightDocument] = []
        with translate_errors(f"find {locator.describe()}"):
            for page in self.page.context.pages:
                title = normalize_text(page.title())
                title_ok = title == wanted if exact else wanted in title
                if title_ok or page.url == locator.pattern:
                    found.append(PlaywrightDocument(page))
        return found

    def current_window(self) -> PlaywrightDocument:
        return PlaywrightDocument(self._document)

    # ---- contexts ----

    def enter_frame(self, match: Any) -> None:
        with translate_errors("enter frame"):
            frame = match.native.content_frame()
        if frame is None:
            raise DriverError("Element is not a frame or its content has not loaded")
        self._contexts.append(frame)

    def leave_frame(self) -> None:
        if not self._contexts:
            raise DriverError("leave_frame without an entered frame")
        self._contexts.pop()

    def enter_window(self, match: Any) -> None:
        page = match.native
        if not isinstance(page, Page):
            raise DriverError("Only pages can be entered as windows")
        # frames entered in the previous window stay with that window
        self._windows.append(page)
        self._contexts.append(page)

    def leave_window(self) -> None:
        if not self._windows:
            raise DriverError("leave_window without an entered window")
        self._windows.pop()
        self._contexts.pop()

    # ---- actions ----

    def click(self, match: Any) -> None:
        with translate_errors("click"):
            match.native.click(timeout=0) if isinstance(match, PlaywrightElement) else self._page.click("body")

    def set_value(self, match: Any, value: str) -> None:
        with translate_errors("fill"):
            match.native.fill(value)

    def hover(self, match: Any) -> None:
        with translate_errors("hover"):
            match.native.hover()

    def send_keys(self, match: Any, keys: str) -> None:
        with translate_errors("send_keys"):
            match.native.type(keys)

    def set_checked(self, match: Any, checked: bool) -> None:
        with translate_errors("check" if checked else "uncheck"):
            match.native.set_checked(checked)

    def select_option(self, match: Any, option: str) -> None:
        with translate_errors("select_option"):
            selected = match.native.select_option(label=option)
            if not selected:
                match.native.select_option(value=option)

    # ---- navigation ----

    def visit(self, url: str) -> None:
        with translate_errors(f"visit {url}"):
            self._page.goto(url, wait_until="domcontentloaded", timeout=self.page_load_timeout_ms)

    @property
    def location(self) -> str:
        return self._page.url
