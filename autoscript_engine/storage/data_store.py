"""Persistence for scripts, executions and screenshot rows."""

from __future__ import annotations

import itertools
import logging
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from autoscript_engine.core.errors import (
    ExecutionNotFoundError,
    ExecutionStateError,
    ScreenshotNotFoundError,
    ScriptNotFoundError,
)
from autoscript_engine.core.models import (
    AutomationStep,
    Execution,
    ExecutionResult,
    ScreenshotRecord,
    Script,
    ScriptScreenshot,
    utc_now,
)

logger = logging.getLogger(__name__)


class DataStore(Protocol):
    """Storage operations the engine and the API rely on."""

    async def create_script(
        self, name: str, steps: Sequence[AutomationStep], description: str | None = None
    ) -> Script: ...

    async def get_script(self, script_id: int) -> Script: ...

    async def list_scripts(self) -> List[Script]: ...

    async def update_script(
        self,
        script_id: int,
        *,
        name: str | None = None,
        description: str | None = None,
        steps: Sequence[AutomationStep] | None = None,
    ) -> Script: ...

    async def delete_script(self, script_id: int) -> None: ...

    async def create_execution(self, script_id: int) -> Execution: ...

    async def get_execution(self, execution_id: int) -> Execution: ...

    async def list_executions(self, script_id: int | None = None, limit: int = 50) -> List[Execution]: ...

    async def complete_execution(self, execution_id: int, result: ExecutionResult) -> Execution: ...

    async def fail_execution(
        self, execution_id: int, message: str, result: ExecutionResult | None = None
    ) -> Execution: ...

    async def clear_executions(self, script_id: int | None = None) -> int: ...

    async def create_screenshot(
        self,
        execution_id: int,
        step_number: int,
        filename: str,
        data: bytes,
        content_type: str = "image/png",
    ) -> ScreenshotRecord: ...

    async def get_screenshot(self, screenshot_id: int) -> ScreenshotRecord: ...

    async def list_screenshots(self, execution_id: int) -> List[ScreenshotRecord]: ...

    async def list_all_screenshots(
        self, limit: int = 50, offset: int = 0
    ) -> Tuple[List[ScriptScreenshot], int]: ...


class InMemoryDataStore:
    """Process-local store. Returned models are copies; callers never alias stored rows."""

    def __init__(self) -> None:
        self._scripts: Dict[int, Script] = {}
        self._executions: Dict[int, Execution] = {}
        self._screenshots: Dict[int, ScreenshotRecord] = {}
        self._script_ids = itertools.count(1)
        self._execution_ids = itertools.count(1)
        self._screenshot_ids = itertools.count(1)

    async def create_script(
        self, name: str, steps: Sequence[AutomationStep], description: str | None = None
    ) -> Script:
        now = utc_now()
        script = Script(
            id=next(self._script_ids),
            name=name,
            description=description,
            steps=list(steps),
            created_at=now,
            updated_at=now,
        )
        self._scripts[script.id] = script
        return script.model_copy(deep=True)

    async def get_script(self, script_id: int) -> Script:
        return self._require_script(script_id).model_copy(deep=True)

    async def list_scripts(self) -> List[Script]:
        ordered = sorted(self._scripts.values(), key=lambda script: (script.created_at, script.id), reverse=True)
        return [script.model_copy(deep=True) for script in ordered]

    async def update_script(
        self,
        script_id: int,
        *,
        name: str | None = None,
        description: str | None = None,
        steps: Sequence[AutomationStep] | None = None,
    ) -> Script:
        script = self._require_script(script_id)
        updates: Dict[str, object] = {"updated_at": utc_now()}
        if name is not None:
            updates["name"] = name
        if description is not None:
            updates["description"] = description
        if steps is not None:
            updates["steps"] = list(steps)
        updated = script.model_copy(update=updates)
        self._scripts[script_id] = updated
        return updated.model_copy(deep=True)

    async def delete_script(self, script_id: int) -> None:
        self._require_script(script_id)
        del self._scripts[script_id]

    async def create_execution(self, script_id: int) -> Execution:
        self._require_script(script_id)
        execution = Execution(id=next(self._execution_ids), script_id=script_id, status="running")
        self._executions[execution.id] = execution
        return execution.model_copy(deep=True)

    async def get_execution(self, execution_id: int) -> Execution:
        return self._require_execution(execution_id).model_copy(deep=True)

    async def list_executions(self, script_id: int | None = None, limit: int = 50) -> List[Execution]:
        rows = [
            execution
            for execution in self._executions.values()
            if script_id is None or execution.script_id == script_id
        ]
        rows.sort(key=lambda execution: (execution.started_at, execution.id), reverse=True)
        return [execution.model_copy(deep=True) for execution in rows[: max(limit, 0)]]

    async def complete_execution(self, execution_id: int, result: ExecutionResult) -> Execution:
        return self._finish(execution_id, status="completed", result=result, message=None)

    async def fail_execution(
        self, execution_id: int, message: str, result: ExecutionResult | None = None
    ) -> Execution:
        return self._finish(execution_id, status="failed", result=result, message=message)

    async def clear_executions(self, script_id: int | None = None) -> int:
        doomed = [
            execution_id
            for execution_id, execution in self._executions.items()
            if script_id is None or execution.script_id == script_id
        ]
        for execution_id in doomed:
            del self._executions[execution_id]
        # screenshots belong to their execution
        orphaned = [
            screenshot_id
            for screenshot_id, record in self._screenshots.items()
            if record.execution_id in doomed
        ]
        for screenshot_id in orphaned:
            del self._screenshots[screenshot_id]
        logger.info("Cleared %d executions and %d screenshots", len(doomed), len(orphaned))
        return len(doomed)

    async def create_screenshot(
        self,
        execution_id: int,
        step_number: int,
        filename: str,
        data: bytes,
        content_type: str = "image/png",
    ) -> ScreenshotRecord:
        self._require_execution(execution_id)
        record = ScreenshotRecord(
            id=next(self._screenshot_ids),
            execution_id=execution_id,
            step_number=step_number,
            filename=filename,
            content_type=content_type,
            data=bytes(data),
        )
        self._screenshots[record.id] = record
        return record.model_copy()

    async def get_screenshot(self, screenshot_id: int) -> ScreenshotRecord:
        record = self._screenshots.get(screenshot_id)
        if record is None:
            raise ScreenshotNotFoundError(f"Screenshot {screenshot_id} not found")
        return record.model_copy()

    async def list_screenshots(self, execution_id: int) -> List[ScreenshotRecord]:
        rows = [record for record in self._screenshots.values() if record.execution_id == execution_id]
        rows.sort(key=lambda record: (record.step_number, record.created_at, record.id))
        return [record.model_copy() for record in rows]

    async def list_all_screenshots(
        self, limit: int = 50, offset: int = 0
    ) -> Tuple[List[ScriptScreenshot], int]:
        """Newest first, each row joined with its script. Rows without a script are skipped."""

        joined: List[ScriptScreenshot] = []
        for record in self._screenshots.values():
            execution = self._executions.get(record.execution_id)
            script = self._scripts.get(execution.script_id) if execution is not None else None
            if script is None:
                continue
            joined.append(
                ScriptScreenshot(
                    **record.model_dump(exclude={"data"}),
                    script_id=script.id,
                    script_name=script.name,
                )
            )
        joined.sort(key=lambda row: (row.created_at, row.id), reverse=True)
        start = max(offset, 0)
        return joined[start : start + max(limit, 0)], len(joined)

    def _finish(
        self,
        execution_id: int,
        *,
        status: str,
        result: Optional[ExecutionResult],
        message: Optional[str],
    ) -> Execution:
        execution = self._require_execution(execution_id)
        if execution.is_terminal:
            raise ExecutionStateError(
                f"Execution {execution_id} already {execution.status}; cannot mark {status}"
            )
        finished = execution.model_copy(
            update={
                "status": status,
                "result": result.model_copy(deep=True) if result is not None else None,
                "error_message": message,
                "completed_at": utc_now(),
            }
        )
        self._executions[execution_id] = finished
        return finished.model_copy(deep=True)

    def _require_script(self, script_id: int) -> Script:
        script = self._scripts.get(script_id)
        if script is None:
            raise ScriptNotFoundError(f"Script {script_id} not found")
        return script

    def _require_execution(self, execution_id: int) -> Execution:
        execution = self._executions.get(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(f"Execution {execution_id} not found")
        return execution
