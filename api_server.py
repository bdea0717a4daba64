from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response
from pydantic import field_validator

from autoscript_engine.config_loader import load_settings
from autoscript_engine.core.errors import (
    ExecutionNotFoundError,
    ScreenshotNotFoundError,
    ScriptNotFoundError,
)
from autoscript_engine.core.models import (
    ActionType,
    ApiModel,
    AutomationStep,
    Execution,
    ExecutionStarted,
    ScreenshotRecord,
    Script,
)
from autoscript_engine.core.orchestrator import ExecutionOrchestrator, build_orchestrator
from autoscript_engine.storage.data_store import DataStore, InMemoryDataStore
from autoscript_engine.utils.logging_utils import configure_logging

app = FastAPI(title="Autoscript API", version="1.0.0")
_settings_cache = load_settings()
configure_logging(_settings_cache.get("logging"))
_store: DataStore = InMemoryDataStore()
_orchestrator: ExecutionOrchestrator = build_orchestrator(_settings_cache, store=_store)


def _validate_actions(steps: List[AutomationStep]) -> List[AutomationStep]:
    seen: set[str] = set()
    for step in steps:
        if step.action_type is None:
            allowed = ", ".join(action.value for action in ActionType)
            raise ValueError(f"step {step.id}: unknown action '{step.action}' (expected one of {allowed})")
        if step.id in seen:
            raise ValueError(f"duplicate step id '{step.id}'")
        seen.add(step.id)
    return steps


class ScriptRequest(ApiModel):
    name: str
    description: Optional[str] = None
    steps: List[AutomationStep] = []

    @field_validator("steps")
    @classmethod
    def _check_steps(cls, value: List[AutomationStep]) -> List[AutomationStep]:
        return _validate_actions(value)


class ScriptUpdateRequest(ApiModel):
    name: Optional[str] = None
    description: Optional[str] = None
    steps: Optional[List[AutomationStep]] = None

    @field_validator("steps")
    @classmethod
    def _check_steps(cls, value: Optional[List[AutomationStep]]) -> Optional[List[AutomationStep]]:
        return _validate_actions(value) if value is not None else value


class ExecutionSummary(ApiModel):
    id: int
    script_id: int
    status: str
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None


class ScreenshotInfo(ApiModel):
    id: int
    execution_id: int
    step_number: int
    filename: str
    url: str
    created_at: datetime


class GalleryScreenshotInfo(ScreenshotInfo):
    script_id: int
    script_name: str


def _screenshot_info(record: ScreenshotRecord) -> ScreenshotInfo:
    return ScreenshotInfo(
        id=record.id,
        execution_id=record.execution_id,
        step_number=record.step_number,
        filename=record.filename,
        url=record.url,
        created_at=record.created_at,
    )


@app.post("/scripts", response_model=Script)
async def create_script(payload: ScriptRequest) -> Script:
    return await _store.create_script(payload.name, payload.steps, description=payload.description)


@app.get("/scripts")
async def list_scripts() -> Dict[str, Any]:
    scripts = await _store.list_scripts()
    return {"scripts": [script.model_dump(mode="json", by_alias=True) for script in scripts]}


@app.get("/scripts/{script_id}", response_model=Script)
async def get_script(script_id: int) -> Script:
    try:
        return await _store.get_script(script_id)
    except ScriptNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@app.put("/scripts/{script_id}", response_model=Script)
async def update_script(script_id: int, payload: ScriptUpdateRequest) -> Script:
    try:
        return await _store.update_script(
            script_id,
            name=payload.name,
            description=payload.description,
            steps=payload.steps,
        )
    except ScriptNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@app.delete("/scripts/{script_id}")
async def delete_script(script_id: int) -> Dict[str, Any]:
    try:
        await _store.delete_script(script_id)
    except ScriptNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {"deleted": True}


@app.post("/scripts/{script_id}/execute", response_model=ExecutionStarted)
async def execute_script(script_id: int) -> ExecutionStarted:
    try:
        return await _orchestrator.start_execution(script_id)
    except ScriptNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@app.get("/executions")
async def list_executions(
    script_id: Optional[int] = Query(default=None, alias="scriptId"),
    limit: int = Query(default=50, ge=1, le=500),
) -> Dict[str, Any]:
    executions = await _store.list_executions(script_id=script_id, limit=limit)
    summaries = [
        ExecutionSummary(
            id=execution.id,
            script_id=execution.script_id,
            status=execution.status,
            error_message=execution.error_message,
            started_at=execution.started_at,
            completed_at=execution.completed_at,
        ).model_dump(mode="json", by_alias=True)
        for execution in executions
    ]
    return {"executions": summaries}


@app.delete("/executions/clear")
async def clear_executions(script_id: Optional[int] = Query(default=None, alias="scriptId")) -> Dict[str, int]:
    deleted = await _store.clear_executions(script_id)
    return {"deletedCount": deleted}


@app.get("/executions/{execution_id}", response_model=Execution)
async def get_execution(execution_id: int) -> Execution:
    try:
        return await _orchestrator.get_execution(execution_id)
    except ExecutionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@app.get("/executions/{execution_id}/screenshots")
async def list_execution_screenshots(execution_id: int) -> Dict[str, Any]:
    try:
        records = await _orchestrator.list_screenshots(execution_id)
    except ExecutionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {"screenshots": [_screenshot_info(record).model_dump(mode="json", by_alias=True) for record in records]}


@app.get("/screenshots")
async def list_all_screenshots(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> Dict[str, Any]:
    records, total = await _store.list_all_screenshots(limit=limit, offset=offset)
    gallery = [
        GalleryScreenshotInfo(
            **_screenshot_info(record).model_dump(),
            script_id=record.script_id,
            script_name=record.script_name,
        ).model_dump(mode="json", by_alias=True)
        for record in records
    ]
    return {"screenshots": gallery, "total": total}


@app.get("/screenshots/{screenshot_id}")
async def get_screenshot(screenshot_id: int) -> Response:
    try:
        record = await _store.get_screenshot(screenshot_id)
    except ScreenshotNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return Response(
        content=record.data,
        media_type=record.content_type,
        headers={"Content-Disposition": f'inline; filename="{record.filename}"'},
    )


__all__ = ["app"]
