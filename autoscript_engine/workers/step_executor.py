"""Dispatches one automation step to a concrete Playwright action."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from autoscript_engine.browser.selectors import build_selector
from autoscript_engine.browser.session import BrowserSession
from autoscript_engine.browser.stability import StabilityProber
from autoscript_engine.core.errors import StepValidationError
from autoscript_engine.core.models import ActionType, AutomationStep, ExecutionResult, ScreenshotRef, StepResult
from autoscript_engine.storage.screenshots import ScreenshotRecorder, generate_screenshot_name
from autoscript_engine.utils.logging_utils import ExecutionLog

logger = logging.getLogger(__name__)

SCROLL_JS = "() => window.scrollBy(0, window.innerHeight)"


@dataclass
class RunContext:
    """Per-execution state shared by the orchestrator and the executor."""

    execution_id: int
    result: ExecutionResult
    log: ExecutionLog


@dataclass
class ActionResult:
    extracted_data: Optional[Any] = None
    has_extracted_data: bool = False
    screenshot: Optional[ScreenshotRef] = None


Handler = Callable[[AutomationStep, BrowserSession, RunContext, int], Awaitable[ActionResult]]


def describe_error(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or exc.__class__.__name__


class StepExecutor:
    """Runs a single step; any error inside the action becomes a failed StepResult."""

    def __init__(
        self,
        *,
        recorder: ScreenshotRecorder,
        prober: StabilityProber | None = None,
        settings: Dict[str, Any] | None = None,
    ) -> None:
        config = settings or {}
        timeout_cfg = config.get("timeouts", {})
        execution_cfg = config.get("execution", {})
        self.navigation_timeout_ms = int(timeout_cfg.get("navigation_ms", 30000))
        self.selector_timeout_ms = int(timeout_cfg.get("selector_ms", 10000))
        self.default_wait_ms = int(timeout_cfg.get("wait_default_ms", 1000))
        self.scroll_settle_ms = int(execution_cfg.get("scroll_settle_ms", 500))
        self.recorder = recorder
        self.prober = prober or recorder.prober
        self._handlers: Dict[ActionType, Handler] = {
            ActionType.NAVIGATE: self._handle_navigate,
            ActionType.CLICK: self._handle_click,
            ActionType.TYPE: self._handle_type,
            ActionType.WAIT: self._handle_wait,
            ActionType.SCREENSHOT: self._handle_screenshot,
            ActionType.EXTRACT_TEXT: self._handle_extract_text,
            ActionType.EXTRACT_ATTRIBUTE: self._handle_extract_attribute,
            ActionType.SCROLL: self._handle_scroll,
            ActionType.SELECT_DROPDOWN: self._handle_select_dropdown,
        }
        missing = set(ActionType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for actions: {sorted(action.value for action in missing)}")

    async def execute(
        self,
        step: AutomationStep,
        session: BrowserSession,
        context: RunContext,
        *,
        step_number: int,
    ) -> StepResult:
        context.log.info(f"Executing step {step_number}: {step.action} - {step.description or 'No description'}")
        kind = step.action_type
        try:
            if kind is None:
                outcome = await self._handle_unsupported(step, session, context, step_number)
            else:
                outcome = await self._handlers[kind](step, session, context, step_number)
        except Exception as exc:  # noqa: BLE001 - a failed step never aborts the run
            message = describe_error(exc)
            context.log.error(f"Step {step_number} ({step.action}) failed: {message}")
            failed = StepResult(
                step_id=step.id,
                action=step.action,
                description=step.description,
                success=False,
                error=message,
            )
            # other actions get their error capture from the orchestrator
            if kind is ActionType.SCREENSHOT:
                await self._capture_error_screenshot(session, context, failed, step_number)
            return failed

        step_result = StepResult(
            step_id=step.id,
            action=step.action,
            description=step.description,
            success=True,
        )
        if outcome.has_extracted_data:
            step_result.extracted_data = outcome.extracted_data
            context.result.extracted_data[step.id] = outcome.extracted_data
        if outcome.screenshot is not None:
            step_result.screenshot = outcome.screenshot.reference
            step_result.screenshot_id = outcome.screenshot.screenshot_id
            context.result.screenshots.append(outcome.screenshot.reference)
        return step_result

    async def _handle_navigate(
        self, step: AutomationStep, session: BrowserSession, context: RunContext, step_number: int
    ) -> ActionResult:
        url = self._require_value(step, "URL")
        context.log.info(f"Navigating to: {url}")
        page = session.page
        await page.goto(url, wait_until="load", timeout=self.navigation_timeout_ms)
        try:
            await page.wait_for_load_state("networkidle", timeout=self.navigation_timeout_ms)
        except Exception:  # noqa: BLE001 - continue on chatty pages
            logger.debug("networkidle timeout for %s", url)
        return ActionResult()

    async def _handle_click(
        self, step: AutomationStep, session: BrowserSession, context: RunContext, step_number: int
    ) -> ActionResult:
        selector = self._resolve_selector(step)
        context.log.info(f"Clicking element: {selector}")
        page = session.page
        await page.wait_for_selector(selector, timeout=self.selector_timeout_ms)
        await page.click(selector, timeout=self.selector_timeout_ms)
        return ActionResult()

    async def _handle_type(
        self, step: AutomationStep, session: BrowserSession, context: RunContext, step_number: int
    ) -> ActionResult:
        selector = self._resolve_selector(step)
        text = self._require_value(step, "text to type")
        context.log.info(f'Typing "{text}" into element: {selector}')
        page = session.page
        await page.wait_for_selector(selector, timeout=self.selector_timeout_ms)
        await page.focus(selector, timeout=self.selector_timeout_ms)
        await page.fill(selector, "", timeout=self.selector_timeout_ms)
        await page.type(selector, text, timeout=self.selector_timeout_ms)
        return ActionResult()

    async def _handle_wait(
        self, step: AutomationStep, session: BrowserSession, context: RunContext, step_number: int
    ) -> ActionResult:
        wait_ms = step.wait_time or self.default_wait_ms
        context.log.info(f"Waiting for {wait_ms}ms")
        await asyncio.sleep(wait_ms / 1000.0)
        await self.prober.settle_after_wait(session)
        return ActionResult()

    async def _handle_screenshot(
        self, step: AutomationStep, session: BrowserSession, context: RunContext, step_number: int
    ) -> ActionResult:
        context.log.info("Taking screenshot")
        ref = await self.recorder.capture(
            session,
            execution_id=context.execution_id,
            step_number=step_number,
            filename=generate_screenshot_name("screenshot", step_number),
        )
        context.log.info(f"Screenshot saved: {ref.filename} ({ref.sink})")
        return ActionResult(screenshot=ref)

    async def _handle_extract_text(
        self, step: AutomationStep, session: BrowserSession, context: RunContext, step_number: int
    ) -> ActionResult:
        selector = self._resolve_selector(step)
        context.log.info(f"Extracting text from: {selector}")
        page = session.page
        await page.wait_for_selector(selector, timeout=self.selector_timeout_ms)
        content = await page.text_content(selector, timeout=self.selector_timeout_ms)
        text = (content or "").strip()
        context.log.info(f"Extracted text: {text[:200]}")
        return ActionResult(extracted_data=text, has_extracted_data=True)

    async def _handle_extract_attribute(
        self, step: AutomationStep, session: BrowserSession, context: RunContext, step_number: int
    ) -> ActionResult:
        selector = self._resolve_selector(step)
        attribute = self._require_value(step, "attribute name")
        context.log.info(f'Extracting attribute "{attribute}" from: {selector}')
        page = session.page
        await page.wait_for_selector(selector, timeout=self.selector_timeout_ms)
        value = await page.get_attribute(selector, attribute, timeout=self.selector_timeout_ms)
        context.log.info(f"Extracted attribute value: {value}")
        return ActionResult(extracted_data=value, has_extracted_data=True)

    async def _handle_scroll(
        self, step: AutomationStep, session: BrowserSession, context: RunContext, step_number: int
    ) -> ActionResult:
        context.log.info("Scrolling page")
        await session.page.evaluate(SCROLL_JS)
        await asyncio.sleep(self.scroll_settle_ms / 1000.0)
        return ActionResult()

    async def _handle_select_dropdown(
        self, step: AutomationStep, session: BrowserSession, context: RunContext, step_number: int
    ) -> ActionResult:
        selector = self._resolve_selector(step)
        option = self._require_value(step, "option value")
        context.log.info(f'Selecting "{option}" from dropdown: {selector}')
        page = session.page
        await page.wait_for_selector(selector, timeout=self.selector_timeout_ms)
        await page.select_option(selector, option, timeout=self.selector_timeout_ms)
        return ActionResult()

    async def _handle_unsupported(
        self, step: AutomationStep, session: BrowserSession, context: RunContext, step_number: int
    ) -> ActionResult:
        context.log.warning(f"Unsupported action '{step.action}'; skipping")
        return ActionResult()

    async def _capture_error_screenshot(
        self, session: BrowserSession, context: RunContext, failed: StepResult, step_number: int
    ) -> None:
        try:
            ref = await self.recorder.capture(
                session,
                execution_id=context.execution_id,
                step_number=step_number,
                filename=generate_screenshot_name("step", step_number, "error"),
            )
        except Exception as exc:  # noqa: BLE001
            context.log.warning(f"Could not capture error screenshot for step {step_number}: {describe_error(exc)}")
            return
        failed.screenshot = ref.reference
        failed.screenshot_id = ref.screenshot_id
        context.result.screenshots.append(ref.reference)

    @staticmethod
    def _resolve_selector(step: AutomationStep) -> str:
        if not step.selector or not step.selector.strip():
            raise StepValidationError(f"{step.action} action requires a selector")
        try:
            return build_selector(step.selector, step.selector_type)
        except ValueError as exc:
            raise StepValidationError(str(exc)) from exc

    @staticmethod
    def _require_value(step: AutomationStep, label: str) -> str:
        if step.value is None or step.value == "":
            raise StepValidationError(f"{step.action} action requires a value ({label})")
        return step.value
