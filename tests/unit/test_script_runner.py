import pytest

from waitscope.finders.locator import LocatorKind
from waitscope.script.loader import Script
from waitscope.script.runner import ScriptRunner, StepFailed, execute_step

from conftest import FakeElement


def _script(*steps, **kw):
    return Script.model_validate({"name": kw.pop("name", "check"), "steps": list(steps), **kw})


@pytest.fixture
def runner(settings):
    return ScriptRunner(settings=settings, continue_on_error=False)


def test_runs_steps_in_order_and_reports_each(runner, session, driver):
    email = FakeElement(id="email")
    driver.add(LocatorKind.field, "Email", [email])
    driver.add(LocatorKind.button, "Sign in", [FakeElement()])
    driver.on_click = lambda _: setattr(driver.document, "text", "Welcome, ada")

    script = _script(
        {"action": "visit", "url": "https://example.test/login"},
        {"action": "fill_in", "locator": "Email", "value": "ada@example.test"},
        {"action": "click_button", "locator": "Sign in", "name": "submit"},
        {"action": "has_content", "text": "Welcome"},
    )
    result = runner.run_steps(session, script)

    assert result["ok"] is True
    assert result["script"] == "check"
    assert [s["action"] for s in result["steps"]] == ["visit", "fill_in", "click_button", "has_content"]
    assert all(s["ok"] for s in result["steps"])
    assert result["steps"][0]["value"] == "https://example.test/login"
    assert email.value == "ada@example.test"


def test_failed_assertion_stops_the_script(runner, session, driver):
    driver.document.text = "Error"
    script = _script(
        {"action": "has_content", "text": "Welcome", "options": {"timeout_ms": 0}},
        {"action": "visit", "url": "https://example.test/next"},
    )
    result = runner.run_steps(session, script)
    assert result["ok"] is False
    assert result["error_type"] == "StepFailed"
    assert result["failed_step"] == {"index": 1, "action": "has_content", "name": None}
    assert len(result["steps"]) == 1
    assert driver.url == "about:blank"


def test_optional_step_failure_is_recorded_but_ignored(runner, session, driver):
    script = _script(
        {"action": "click", "css": "#cookie-banner button", "optional": True, "options": {"timeout_ms": 0}},
        {"action": "visit", "url": "https://example.test/"},
    )
    result = runner.run_steps(session, script)
    assert result["ok"] is True
    assert result["steps"][0]["ok"] is False
    assert result["steps"][0]["error_type"] == "MissingHtmlError"
    assert result["steps"][1]["ok"] is True


def test_continue_on_error_runs_remaining_steps(settings, session, driver):
    runner = ScriptRunner(settings=settings, continue_on_error=True)
    script = _script(
        {"action": "exists", "css": ".nope", "options": {"timeout_ms": 0}},
        {"action": "visit", "url": "https://example.test/"},
    )
    result = runner.run_steps(session, script)
    assert result["ok"] is False
    assert result["failed_step"]["index"] == 1
    assert len(result["steps"]) == 2
    assert driver.url == "https://example.test/"


def test_script_options_apply_to_every_step(runner, session, driver, waiter):
    script = _script(
        {"action": "has_content", "text": "never"},
        options={"timeout_ms": 100, "retry_interval_ms": 25},
    )
    result = runner.run_steps(session, script)
    assert result["ok"] is False
    assert waiter.sleeps == [25, 25, 25, 25]


def test_frame_steps_run_inside_the_frame(runner, session, driver):
    frame = FakeElement(id="editor")
    driver.add(LocatorKind.frame, "editor", [frame])
    driver.add(LocatorKind.link, "Preview", [FakeElement()])
    script = _script({"action": "click_link", "locator": "Preview", "frame": "editor"})
    assert runner.run_steps(session, script)["ok"] is True
    link_find = [f for f in driver.finds if f[0].kind is LocatorKind.link][0]
    assert link_find[2] == (frame,)
    assert driver.frames == []


def test_find_state_step_returns_state_name(runner, session, driver):
    driver.add(LocatorKind.css, ".error", [FakeElement(text="Bad password")])
    script = _script(
        {
            "action": "find_state",
            "states": [{"name": "home", "content": "Dashboard"}, {"name": "error", "css": ".error"}],
        }
    )
    result = runner.run_steps(session, script)
    assert result["steps"][0]["value"] == "error"


def test_find_state_step_with_unexpected_state_fails(session, driver):
    driver.document.text = "Dashboard"
    script = _script(
        {
            "action": "find_state",
            "expect": "error",
            "states": [{"name": "home", "content": "Dashboard"}, {"name": "error", "css": ".error"}],
        }
    )
    with pytest.raises(StepFailed, match="Reached state 'home', expected 'error'"):
        execute_step(session, script.steps[0])


def test_select_check_and_missing_steps(runner, session, driver):
    country, terms = FakeElement(), FakeElement()
    driver.add(LocatorKind.field, "Country", [country])
    driver.add(LocatorKind.field, "Terms", [terms])
    script = _script(
        {"action": "select", "option": "Norway", "from": "Country"},
        {"action": "check", "locator": "Terms"},
        {"action": "missing", "css": ".spinner"},
    )
    assert runner.run_steps(session, script)["ok"] is True
    assert country.selected_label == "Norway"
    assert terms.checked is True
