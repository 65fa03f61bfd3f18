# waitscope/script/runner.py
from __future__ import annotations

"""Script runner
----------------
Launches a Playwright browser from Settings, binds a BrowserSession to it
and executes the steps of a check script in order. Every step goes through
the scope API, so each lookup and assertion waits the way the engine waits.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.sync_api import sync_playwright

from waitscope.core.errors import ConditionNotMetError, WaitScopeError
from waitscope.core.options import Options, merge
from waitscope.core.query import HasContentQuery
from waitscope.core.scope import BrowserSession, DriverScope
from waitscope.core.state import State
from waitscope.drivers.playwright_driver import PlaywrightDriver
from waitscope.script.loader import ActionName, Script, StateSpec, load_script
from waitscope.utils.config import Settings, get_settings
from waitscope.utils.logger import attach_file_logger, detach_file_logger, get_logger, log_with_context
from waitscope.utils.timing import Stopwatch


class StepFailed(ConditionNotMetError):
    """An assertion step observed the opposite of what it expects."""


def _state_for(scope: DriverScope, wanted: StateSpec, options: Options) -> State:
    if wanted.content:
        return State(HasContentQuery(scope, wanted.content, options), name=wanted.name)
    element = scope.find_css(wanted.css, options=options)
    return State(lambda: element.exists_now(options), name=wanted.name)


def _expect(ok: bool, message: str) -> bool:
    if not ok:
        raise StepFailed(message)
    return ok


def execute_step(session: BrowserSession, step: Any, script_options: Optional[Options] = None) -> Any:
    """Run one validated step against `session`; returns the step's observed value."""
    opts = merge(step.options, merge(script_options, session.options))
    scope: DriverScope = session.find_frame(step.frame, opts) if step.frame else session
    action = step.action

    if action is ActionName.visit:
        session.visit(step.url)
        return session.location
    if action in (ActionName.click_button, ActionName.click_link):
        until = HasContentQuery(scope, step.until_content, opts) if step.until_content else None
        click = scope.click_button if action is ActionName.click_button else scope.click_link
        click(step.locator, until=until, options=opts)
        return None
    if action is ActionName.click:
        scope.find_css(step.css, text=step.text, options=opts).click()
        return None
    if action is ActionName.hover:
        scope.find_css(step.css, text=step.text, options=opts).hover()
        return None
    if action is ActionName.fill_in:
        scope.fill_in(step.locator, step.value, options=opts)
        return None
    if action is ActionName.check:
        scope.check(step.locator, options=opts)
        return None
    if action is ActionName.uncheck:
        scope.uncheck(step.locator, options=opts)
        return None
    if action is ActionName.choose:
        scope.choose(step.locator, options=opts)
        return None
    if action is ActionName.select:
        scope.select(step.option, from_=step.from_, options=opts)
        return None
    if action is ActionName.has_content:
        return _expect(scope.has_content(step.text, options=opts), f"Expected content {step.text!r} was not found")
    if action is ActionName.has_no_content:
        return _expect(scope.has_no_content(step.text, options=opts), f"Content {step.text!r} is still present")
    if action is ActionName.exists:
        element = scope.find_css(step.css, text=step.text, options=opts)
        return _expect(element.exists(), f"{element.description} does not exist")
    if action is ActionName.missing:
        element = scope.find_css(step.css, text=step.text, options=opts)
        return _expect(element.missing(), f"{element.description} is still present")
    if action is ActionName.find_state:
        states = [_state_for(scope, wanted, opts) for wanted in step.states]
        found = scope.find_state(*states, options=opts)
        if step.expect is not None and found.name != step.expect:
            raise StepFailed(f"Reached state {found.name!r}, expected {step.expect!r}", candidates=states)
        return found.name
    raise WaitScopeError(f"Unsupported action: {action}")


class ScriptRunner:
    """Runs check scripts against a live browser and reports per-step outcomes."""

    def __init__(self, settings: Optional[Settings] = None, continue_on_error: Optional[bool] = None):
        self.settings = settings or get_settings()
        self.continue_on_error = (
            self.settings.CONTINUE_ON_ERROR if continue_on_error is None else continue_on_error
        )
        self.log = get_logger(__name__)

    def run_steps(self, session: BrowserSession, script: Script) -> Dict[str, Any]:
        """Execute every step of `script` on an existing session; no browser handling here."""
        log = log_with_context(self.log, script=script.name)
        steps: List[Dict[str, Any]] = []
        result: Dict[str, Any] = {"ok": True, "script": script.name, "steps": steps}

        for idx, step in enumerate(script.steps, start=1):
            record: Dict[str, Any] = {"index": idx, "action": step.action.value, "name": step.name}
            steps.append(record)
            sw = Stopwatch().start()
            try:
                log.info(f"[{idx}/{len(script.steps)}] {step.label()}")
                record["value"] = execute_step(session, step, script.options)
                record["ok"] = True
            except WaitScopeError as e:
                record.update(ok=False, error=str(e), error_type=e.__class__.__name__)
                if step.optional:
                    log.warning(f"Optional step {idx} failed: {e}")
                    continue
                log.error(f"Step {idx} ({step.label()}) failed: {e}")
                if result["ok"]:
                    result.update(
                        ok=False,
                        error=str(e),
                        error_type=e.__class__.__name__,
                        failed_step={"index": idx, "action": step.action.value, "name": step.name},
                    )
                if not self.continue_on_error:
                    break
            finally:
                record["elapsed_ms"] = sw.elapsed_ms()
        return result

    def run(self, script: Script, log_file: Optional[Path] = None) -> Dict[str, Any]:
        """Launch a browser from Settings, run the script, always close the browser."""
        s = self.settings
        handler = attach_file_logger(log_file) if log_file else None
        try:
            with sync_playwright() as p:
                browser_type = getattr(p, s.BROWSER_TYPE.value)
                browser = browser_type.launch(**s.playwright_launch_kwargs())
                try:
                    context = browser.new_context(**s.playwright_context_kwargs())
                    page = context.new_page()
                    driver = PlaywrightDriver(page, page_load_timeout_ms=s.PAGE_LOAD_TIMEOUT)
                    session = BrowserSession(driver, settings=s)
                    return self.run_steps(session, script)
                except Exception as e:
                    self.log.exception("Script failed outside of a step:")
                    return {
                        "ok": False,
                        "script": script.name,
                        "steps": [],
                        "error": str(e),
                        "error_type": e.__class__.__name__,
                    }
                finally:
                    browser.close()
        finally:
            if handler is not None:
                detach_file_logger(handler)


def run_script(script: Path | str | Script, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Convenience wrapper: load if given a path, then run with a fresh runner."""
    if isinstance(script, (str, Path)):
        script = load_script(script)
    return ScriptRunner(settings=settings).run(script)


__all__ = ["ScriptRunner", "StepFailed", "execute_step", "run_script"]
