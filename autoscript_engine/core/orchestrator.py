"""Runs a script's steps against one browser session and records the terminal outcome."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Sequence

from autoscript_engine.browser.session import BrowserSession, BrowserSessionManager
from autoscript_engine.browser.stability import StabilityProber
from autoscript_engine.core.errors import AutoscriptError
from autoscript_engine.core.models import (
    ActionType,
    AutomationStep,
    Execution,
    ExecutionResult,
    ExecutionStarted,
    ScreenshotRecord,
    StepResult,
)
from autoscript_engine.storage.data_store import DataStore, InMemoryDataStore
from autoscript_engine.storage.screenshots import (
    ScreenshotPersistenceChain,
    ScreenshotRecorder,
    generate_screenshot_name,
)
from autoscript_engine.utils.logging_utils import ExecutionLog
from autoscript_engine.workers.step_executor import RunContext, StepExecutor, describe_error

logger = logging.getLogger(__name__)


class ExecutionOrchestrator:
    """Launches executions as background tasks; sole writer of each execution's terminal state."""

    def __init__(
        self,
        store: DataStore,
        *,
        settings: Dict[str, Any] | None = None,
        session_manager: BrowserSessionManager | None = None,
        executor: StepExecutor | None = None,
        recorder: ScreenshotRecorder | None = None,
    ) -> None:
        config = settings or {}
        execution_cfg = config.get("execution", {})
        self.store = store
        self.inter_step_delay_ms = int(execution_cfg.get("inter_step_delay_ms", 750))
        self.sessions = session_manager or BrowserSessionManager(settings=config)
        if recorder is None:
            recorder = ScreenshotRecorder(
                StabilityProber(settings=config),
                ScreenshotPersistenceChain.from_settings(store, config),
            )
        self.recorder = recorder
        self.executor = executor or StepExecutor(recorder=recorder, settings=config)
        self._tasks: Dict[int, asyncio.Task[None]] = {}

    async def start_execution(self, script_id: int) -> ExecutionStarted:
        """Create a running execution and schedule it without waiting for the outcome."""

        script = await self.store.get_script(script_id)
        steps = tuple(script.steps)
        execution = await self.store.create_execution(script.id)
        task = asyncio.create_task(
            self._run_execution(execution.id, steps),
            name=f"execution-{execution.id}",
        )
        self._tasks[execution.id] = task
        task.add_done_callback(lambda _task, execution_id=execution.id: self._tasks.pop(execution_id, None))
        logger.info("Execution %s started for script %s (%d steps)", execution.id, script.id, len(steps))
        return ExecutionStarted(execution_id=execution.id)

    async def get_execution(self, execution_id: int) -> Execution:
        return await self.store.get_execution(execution_id)

    async def list_screenshots(self, execution_id: int) -> List[ScreenshotRecord]:
        await self.store.get_execution(execution_id)
        return await self.store.list_screenshots(execution_id)

    def is_running(self, execution_id: int) -> bool:
        return execution_id in self._tasks

    async def wait_for(self, execution_id: int) -> Execution:
        """Block until a tracked execution reaches its terminal state."""

        task = self._tasks.get(execution_id)
        if task is not None:
            await asyncio.shield(task)
        return await self.store.get_execution(execution_id)

    async def drain(self) -> None:
        """Wait for every execution still in flight."""

        pending = list(self._tasks.values())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def run_steps(
        self,
        execution_id: int,
        steps: Sequence[AutomationStep],
        *,
        result: ExecutionResult | None = None,
    ) -> ExecutionResult:
        """Drive every step through one browser session. Session-level errors propagate."""

        result = result if result is not None else ExecutionResult()
        context = RunContext(
            execution_id=execution_id,
            result=result,
            log=ExecutionLog(result.logs, execution_id=execution_id),
        )
        async with self.sessions.session() as session:
            context.log.info(f"Browser session started; running {len(steps)} steps")
            for step_number, step in enumerate(steps, start=1):
                step_result = await self.executor.execute(step, session, context, step_number=step_number)
                if step.action_type is not ActionType.SCREENSHOT:
                    await self._capture_step_screenshot(session, context, step_result, step_number)
                if not step_result.success:
                    result.success = False
                result.step_results.append(step_result)
                if step_number < len(steps) and self.inter_step_delay_ms > 0:
                    await asyncio.sleep(self.inter_step_delay_ms / 1000.0)
        failed = sum(1 for step_result in result.step_results if not step_result.success)
        context.log.info(f"Run finished: {len(result.step_results)} steps, {failed} failed")
        return result

    async def _capture_step_screenshot(
        self,
        session: BrowserSession,
        context: RunContext,
        step_result: StepResult,
        step_number: int,
    ) -> None:
        suffix = None if step_result.success else "error"
        filename = generate_screenshot_name("step", step_number, suffix)
        try:
            ref = await self.recorder.capture(
                session,
                execution_id=context.execution_id,
                step_number=step_number,
                filename=filename,
            )
        except Exception as exc:  # noqa: BLE001 - capture failure never fails the step
            context.log.warning(f"Could not capture screenshot for step {step_number}: {describe_error(exc)}")
            return
        context.result.screenshots.append(ref.reference)
        step_result.screenshot = ref.reference
        step_result.screenshot_id = ref.screenshot_id

    async def _run_execution(self, execution_id: int, steps: Sequence[AutomationStep]) -> None:
        result = ExecutionResult()
        try:
            await self.run_steps(execution_id, steps, result=result)
        except asyncio.CancelledError:
            await self._persist_failure(execution_id, "Execution cancelled", result)
            raise
        except Exception as exc:  # noqa: BLE001 - session-level failure
            message = describe_error(exc)
            logger.exception("Execution %s failed", execution_id)
            await self._persist_failure(execution_id, message, result)
            return
        try:
            await self.store.complete_execution(execution_id, result)
        except AutoscriptError as exc:
            logger.warning("Could not record completion of execution %s: %s", execution_id, exc)
            return
        logger.info("Execution %s completed (success=%s)", execution_id, result.success)

    async def _persist_failure(self, execution_id: int, message: str, result: ExecutionResult) -> None:
        result.success = False
        result.error = message
        result.logs.append(f"Execution failed: {message}")
        try:
            await self.store.fail_execution(execution_id, message, result)
        except AutoscriptError as exc:
            logger.warning("Could not record failure of execution %s: %s", execution_id, exc)


def build_orchestrator(
    settings: Dict[str, Any] | None = None,
    *,
    store: DataStore | None = None,
    session_manager: BrowserSessionManager | None = None,
) -> ExecutionOrchestrator:
    """Factory that wires the default components from a settings mapping."""

    return ExecutionOrchestrator(
        store if store is not None else InMemoryDataStore(),
        settings=settings,
        session_manager=session_manager,
    )
