import re

import pytest

from waitscope.core.errors import AmbiguousError, MissingHtmlError, MissingWindowError
from waitscope.core.result import FailureKind
from waitscope.finders.finder import ElementFinder
from waitscope.finders.locator import Locator, LocatorKind
from waitscope.utils.config import Match, TextPrecision

from conftest import FakeElement


def _opts(base, **kw):
    return base.model_copy(update=kw)


def _finder(driver, locator, *elements):
    driver.add(locator.kind, locator.pattern, list(elements))
    return ElementFinder(driver, locator)


def test_first_policy_takes_document_order(driver, base_options):
    a, b = FakeElement(id="a"), FakeElement(id="b")
    finder = _finder(driver, Locator.css(".item"), a, b)
    assert finder.resolve(_opts(base_options, match=Match.first)).value is a


def test_single_policy_reports_ambiguity_with_count(driver, base_options):
    finder = _finder(driver, Locator.css(".item"), FakeElement(id="a"), FakeElement(id="b"))
    result = finder.resolve(_opts(base_options, match=Match.single))
    assert result.kind is FailureKind.ambiguous
    assert isinstance(result.error, AmbiguousError)
    assert result.error.count == 2
    assert "Ambiguous match, found 2 elements matching css: .item" in str(result.error)


def test_smart_prefers_exact_text_over_substring(driver, base_options):
    save = FakeElement(text="Save", id="save")
    draft = FakeElement(text="Save draft", id="draft")
    finder = _finder(driver, Locator.css("button", text="Save"), draft, save)
    assert finder.resolve(base_options).value is save


def test_smart_is_ambiguous_when_only_several_substring_matches(driver, base_options):
    finder = _finder(
        driver,
        Locator.css("button", text="Save"),
        FakeElement(text="Save draft"),
        FakeElement(text="Save all"),
    )
    result = finder.resolve(base_options)
    assert result.kind is FailureKind.ambiguous


def test_exact_precision_ignores_substring_matches(driver, base_options):
    finder = _finder(driver, Locator.css("button", text="Save"), FakeElement(text="Save draft"))
    result = finder.resolve(_opts(base_options, text_precision=TextPrecision.exact))
    assert result.kind is FailureKind.not_found
    assert isinstance(result.error, MissingHtmlError)


def test_substring_precision_accepts_partial_text(driver, base_options):
    draft = FakeElement(text="  Save\n draft ")
    finder = _finder(driver, Locator.css("button", text="Save draft"), draft)
    opts = _opts(base_options, text_precision=TextPrecision.substring)
    assert finder.resolve(opts).value is draft


def test_regex_text_matches_anywhere(driver, base_options):
    total = FakeElement(text="Total: 42 items")
    finder = _finder(driver, Locator.css("p", text=re.compile(r"\d+ items")), FakeElement(text="none"), total)
    assert finder.resolve(base_options).value is total


def test_invisible_elements_are_ignored_by_default(driver, base_options):
    hidden = FakeElement(id="hidden", displayed=False)
    shown = FakeElement(id="shown")
    finder = _finder(driver, Locator.css(".x"), hidden, shown)
    assert finder.resolve(base_options).value is shown

    only_hidden = _finder(driver, Locator.css(".y"), hidden)
    assert only_hidden.resolve(base_options).kind is FailureKind.not_found
    opts = _opts(base_options, consider_invisible_elements=True)
    assert only_hidden.resolve(opts).value is hidden


def test_smart_with_invisible_considered_prefers_visible(driver, base_options):
    hidden = FakeElement(id="hidden", displayed=False)
    shown = FakeElement(id="shown")
    finder = _finder(driver, Locator.css(".x"), hidden, shown)
    opts = _opts(base_options, consider_invisible_elements=True)
    assert finder.resolve(opts).value is shown


def test_prefer_policy_uses_tie_breakers_in_order(driver, base_options):
    a = FakeElement(id="a", attributes={"role": "tab"})
    b = FakeElement(id="b", attributes={"role": "tab", "aria-selected": "true"})
    finder = _finder(driver, Locator.css("[role=tab]"), a, b)
    opts = _opts(
        base_options,
        match=Match.prefer,
        prefer=(lambda m: m["role"] == "tab", lambda m: m["aria-selected"] == "true"),
    )
    assert finder.resolve(opts).value is b


def test_prefer_policy_stays_ambiguous_without_tie_breaker(driver, base_options):
    finder = _finder(driver, Locator.css("li"), FakeElement(), FakeElement())
    assert finder.resolve(_opts(base_options, match=Match.prefer)).kind is FailureKind.ambiguous


def test_handles_to_the_same_node_count_once(driver, base_options):
    node = object()
    finder = _finder(driver, Locator.id("main"), FakeElement(node=node), FakeElement(node=node))
    assert finder.resolve(_opts(base_options, match=Match.single)).ok


def test_exists_treats_ambiguity_as_present(driver, base_options):
    finder = _finder(driver, Locator.css("li"), FakeElement(), FakeElement())
    assert finder.exists(_opts(base_options, match=Match.single)).value is True
    empty = _finder(driver, Locator.css("table"))
    assert empty.exists(base_options).value is False


def test_window_locator_uses_find_windows(driver, base_options):
    popup = FakeElement(title="Payment")
    driver.windows["Payment"] = [popup]
    assert ElementFinder(driver, Locator.window("Payment")).resolve(base_options).value is popup

    missing = ElementFinder(driver, Locator.window("Receipt")).resolve(base_options)
    assert isinstance(missing.error, MissingWindowError)
    assert missing.kind is FailureKind.not_found


def test_stale_candidate_is_a_retryable_failure(driver, base_options):
    gone = FakeElement()
    gone.stale = True
    finder = _finder(driver, Locator.css(".x"), gone)
    result = finder.resolve(base_options)
    assert result.kind is FailureKind.stale
    assert result.is_retryable(base_options)


def test_locator_rejects_empty_pattern():
    with pytest.raises(ValueError):
        Locator.css("   ")


def test_locator_describe():
    assert Locator.id_ending_with("_save").describe() == "id ending with: _save"
    assert Locator.css("a", text="Home").describe() == "css: a with text 'Home'"
    assert Locator.frame("editor").is_context
    assert not Locator(LocatorKind.button, "Go").is_context


def test_prefer_exact_takes_exact_caption_for_button_locators(driver, base_options):
    save = FakeElement(text="Save", id="save")
    draft = FakeElement(text="Save draft", id="draft")
    driver.add(LocatorKind.button, "Save", [save, draft], exact=[save])
    finder = ElementFinder(driver, Locator.button("Save"))
    assert finder.resolve(base_options).value is save
    assert len(driver.finds) == 1


def test_prefer_exact_falls_back_to_substring_lookup(driver, base_options):
    draft = FakeElement(text="Save draft")
    driver.add(LocatorKind.button, "Save", [draft], exact=[])
    finder = ElementFinder(driver, Locator.button("Save"))
    assert finder.resolve(base_options).value is draft
    assert len(driver.finds) == 2


def test_several_exact_captions_are_still_ambiguous(driver, base_options):
    a, b = FakeElement(text="Save"), FakeElement(text="Save")
    driver.add(LocatorKind.link, "Save", [a, b, FakeElement(text="Save draft")], exact=[a, b])
    result = ElementFinder(driver, Locator.link("Save")).resolve(base_options)
    assert result.kind is FailureKind.ambiguous
    assert result.error.count == 2


def test_substring_precision_skips_the_exact_lookup(driver, base_options):
    save, draft = FakeElement(text="Save"), FakeElement(text="Save draft")
    driver.add(LocatorKind.button, "Save", [save, draft], exact=[save])
    result = ElementFinder(driver, Locator.button("Save")).resolve(
        _opts(base_options, text_precision=TextPrecision.substring)
    )
    assert result.kind is FailureKind.ambiguous
    assert len(driver.finds) == 1


def test_css_locators_never_take_the_exact_lookup(driver, base_options):
    finder = _finder(driver, Locator.css("button"), FakeElement(text="Save"))
    assert finder.resolve(base_options).ok
    assert len(driver.finds) == 1
