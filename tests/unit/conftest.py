from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest

from waitscope.core.errors import DriverError, StaleElementError
from waitscope.core.options import Options
from waitscope.core.retry import RetryEngine
from waitscope.core.scope import BrowserSession
from waitscope.finders.locator import Locator, LocatorKind
from waitscope.utils.config import Settings, TextPrecision


class FakeElement:
    """Scriptable stand-in for a live node. `stale=True` makes every access raise."""

    def __init__(
        self,
        text: Union[str, Callable[[], str]] = "",
        id: str = "",
        value: str = "",
        name: str = "",
        title: str = "",
        displayed: bool = True,
        attributes: Optional[Dict[str, str]] = None,
        node: Optional[object] = None,
        fail_clicks: int = 0,
    ):
        self._text = text
        self._id = id
        self._value = value
        self._name = name
        self._title = title
        self._displayed = displayed
        self._attributes = attributes or {}
        self.node = node if node is not None else object()
        self.fail_clicks = fail_clicks
        self.stale = False
        self.checked = False
        self.selected_label = ""
        self.reads = 0

    def _live(self):
        if self.stale:
            raise StaleElementError("element is not attached to the DOM")

    @property
    def id(self):
        self._live()
        return self._id

    @property
    def text(self):
        self._live()
        self.reads += 1
        return self._text() if callable(self._text) else self._text

    @text.setter
    def text(self, v):
        self._text = v

    @property
    def value(self):
        self._live()
        return self._value

    @value.setter
    def value(self, v):
        self._value = v

    @property
    def name(self):
        self._live()
        return self._name

    @property
    def title(self):
        self._live()
        return self._title

    @property
    def outer_html(self):
        self._live()
        return f"<el id='{self._id}'>{self.text}</el>"

    @property
    def inner_html(self):
        self._live()
        return str(self.text)

    @property
    def selected_option(self):
        self._live()
        return self.selected_label

    @property
    def selected(self):
        self._live()
        return self.checked

    @property
    def disabled(self):
        self._live()
        return False

    @property
    def displayed(self):
        self._live()
        return self._displayed

    @property
    def attributes(self):
        self._live()
        return dict(self._attributes)

    @property
    def native(self):
        return self

    def __getitem__(self, attribute):
        self._live()
        return self._attributes.get(attribute)

    def same_node(self, other):
        return getattr(other, "node", None) is self.node

    def __repr__(self):
        return f"FakeElement(id={self._id!r})"


Entry = Union[Sequence[FakeElement], Callable[[], Sequence[FakeElement]]]


class FakeDriver:
    def __init__(self):
        self.document = FakeElement(text="")
        self.entries: Dict[Tuple[LocatorKind, str], Entry] = {}
        self.exact_entries: Dict[Tuple[LocatorKind, str], Entry] = {}
        self.windows: Dict[str, Entry] = {}
        self.frames: List[FakeElement] = []
        self.entered_windows: List[FakeElement] = []
        self.finds: List[Tuple[Locator, Optional[FakeElement], Tuple[FakeElement, ...]]] = []
        self.actions: List[Tuple[str, FakeElement, object]] = []
        self.url = "about:blank"
        self.on_click: Optional[Callable[[FakeElement], None]] = None
        self.fail_finds = 0

    def add(self, kind: LocatorKind, pattern: str, entry: Entry, exact: Optional[Entry] = None) -> None:
        """`exact` is what an exact-text lookup returns; without it, exact lookups see `entry`."""
        self.entries[(kind, pattern)] = entry
        if exact is not None:
            self.exact_entries[(kind, pattern)] = exact

    def find_all(self, locator, scope, options):
        self.finds.append((locator, scope, tuple(self.frames)))
        if self.fail_finds:
            self.fail_finds -= 1
            raise DriverError("browser is busy")
        key = (locator.kind, locator.pattern)
        entry = self.entries.get(key, [])
        if getattr(options, "text_precision", None) is TextPrecision.exact and key in self.exact_entries:
            entry = self.exact_entries[key]
        return list(entry() if callable(entry) else entry)

    def find_windows(self, locator, scope, options):
        entry = self.windows.get(locator.pattern, [])
        return list(entry() if callable(entry) else entry)

    def current_window(self):
        return self.document

    def enter_frame(self, match):
        self.frames.append(match)

    def leave_frame(self):
        self.frames.pop()

    def enter_window(self, match):
        self.entered_windows.append(match)

    def leave_window(self):
        self.entered_windows.pop()

    def click(self, match):
        match._live()
        if match.fail_clicks:
            match.fail_clicks -= 1
            raise StaleElementError("element is not attached to the DOM")
        self.actions.append(("click", match, None))
        if self.on_click:
            self.on_click(match)

    def set_value(self, match, value):
        match._live()
        match.value = value
        self.actions.append(("set_value", match, value))

    def hover(self, match):
        self.actions.append(("hover", match, None))

    def send_keys(self, match, keys):
        self.actions.append(("send_keys", match, keys))

    def set_checked(self, match, checked):
        match.checked = checked
        self.actions.append(("set_checked", match, checked))

    def select_option(self, match, option):
        match.selected_label = option
        self.actions.append(("select_option", match, option))

    def visit(self, url):
        self.url = url

    @property
    def location(self):
        return self.url


class FakeClock:
    def __init__(self):
        self.now = 0

    def __call__(self) -> int:
        return self.now


class FakeWaiter:
    """Records pauses and advances the fake clock instead of sleeping."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.sleeps: List[int] = []

    def wait(self, ms: int) -> None:
        if ms <= 0:
            return
        self.sleeps.append(ms)
        self.clock.now += ms

    def wake(self) -> None:
        return None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def waiter(clock):
    return FakeWaiter(clock)


@pytest.fixture
def engine(clock, waiter):
    return RetryEngine(waiter=waiter, clock=clock)


@pytest.fixture
def settings():
    return Settings(_env_file=None, TIMEOUT_MS=1000, RETRY_INTERVAL_MS=50)


@pytest.fixture
def base_options(settings):
    return Options.from_settings(settings)


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def session(driver, settings, engine):
    return BrowserSession(driver, settings=settings, engine=engine)
