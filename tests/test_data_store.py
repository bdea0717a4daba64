from __future__ import annotations

import pytest

from autoscript_engine.core.errors import (
    ExecutionNotFoundError,
    ExecutionStateError,
    ScreenshotNotFoundError,
    ScriptNotFoundError,
)
from autoscript_engine.core.models import AutomationStep, ExecutionResult
from autoscript_engine.storage.data_store import InMemoryDataStore
from tests.browser_fakes import PNG_BYTES


@pytest.mark.asyncio
async def test_script_crud_round() -> None:
    store = InMemoryDataStore()
    script = await store.create_script(
        "login", [AutomationStep(id="open", action="navigate", value="https://example.com")], description="demo"
    )

    updated = await store.update_script(script.id, name="login v2")
    assert updated.name == "login v2"
    assert updated.description == "demo"
    assert [step.id for step in updated.steps] == ["open"]
    assert updated.updated_at >= script.updated_at

    await store.delete_script(script.id)
    with pytest.raises(ScriptNotFoundError):
        await store.get_script(script.id)


@pytest.mark.asyncio
async def test_execution_for_unknown_script_is_rejected() -> None:
    store = InMemoryDataStore()

    with pytest.raises(ScriptNotFoundError):
        await store.create_execution(42)


@pytest.mark.asyncio
async def test_terminal_state_is_written_once() -> None:
    store = InMemoryDataStore()
    script = await store.create_script("once", [])
    execution = await store.create_execution(script.id)

    completed = await store.complete_execution(execution.id, ExecutionResult())
    assert completed.status == "completed"
    assert completed.completed_at is not None

    with pytest.raises(ExecutionStateError):
        await store.fail_execution(execution.id, "late failure")
    with pytest.raises(ExecutionStateError):
        await store.complete_execution(execution.id, ExecutionResult())
    assert (await store.get_execution(execution.id)).status == "completed"


@pytest.mark.asyncio
async def test_returned_models_are_copies() -> None:
    store = InMemoryDataStore()
    script = await store.create_script("copies", [])
    execution = await store.create_execution(script.id)
    await store.complete_execution(execution.id, ExecutionResult(logs=["done"]))

    first = await store.get_execution(execution.id)
    assert first.result is not None
    first.result.logs.append("tampered")

    second = await store.get_execution(execution.id)
    assert second.result is not None
    assert second.result.logs == ["done"]


@pytest.mark.asyncio
async def test_clear_executions_removes_their_screenshots() -> None:
    store = InMemoryDataStore()
    first = await store.create_script("first", [])
    second = await store.create_script("second", [])
    doomed = await store.create_execution(first.id)
    kept = await store.create_execution(second.id)
    await store.create_screenshot(doomed.id, 1, "step_001.png", PNG_BYTES)
    survivor = await store.create_screenshot(kept.id, 1, "step_001.png", PNG_BYTES)

    deleted = await store.clear_executions(first.id)

    assert deleted == 1
    with pytest.raises(ExecutionNotFoundError):
        await store.get_execution(doomed.id)
    records, total = await store.list_all_screenshots()
    assert total == 1
    assert records[0].id == survivor.id
    assert await store.clear_executions() == 1


@pytest.mark.asyncio
async def test_screenshots_are_ordered_by_step() -> None:
    store = InMemoryDataStore()
    script = await store.create_script("order", [])
    execution = await store.create_execution(script.id)
    await store.create_screenshot(execution.id, 3, "step_003.png", PNG_BYTES)
    await store.create_screenshot(execution.id, 1, "step_001.png", PNG_BYTES)

    records = await store.list_screenshots(execution.id)

    assert [record.step_number for record in records] == [1, 3]
    assert "data" not in records[0].model_dump()


@pytest.mark.asyncio
async def test_list_executions_filters_and_limits() -> None:
    store = InMemoryDataStore()
    alpha = await store.create_script("alpha", [])
    beta = await store.create_script("beta", [])
    for _ in range(3):
        await store.create_execution(alpha.id)
    await store.create_execution(beta.id)

    assert len(await store.list_executions()) == 4
    only_alpha = await store.list_executions(script_id=alpha.id, limit=2)
    assert len(only_alpha) == 2
    assert all(execution.script_id == alpha.id for execution in only_alpha)


@pytest.mark.asyncio
async def test_missing_screenshot_raises() -> None:
    with pytest.raises(ScreenshotNotFoundError):
        await InMemoryDataStore().get_screenshot(1)


@pytest.mark.asyncio
async def test_scripts_are_listed_newest_created_first() -> None:
    store = InMemoryDataStore()
    older = await store.create_script("older", [])
    newer = await store.create_script("newer", [])
    await store.update_script(older.id, name="older, edited")

    listed = await store.list_scripts()

    assert [script.id for script in listed] == [newer.id, older.id]


@pytest.mark.asyncio
async def test_screenshot_gallery_joins_scripts_and_skips_orphans() -> None:
    store = InMemoryDataStore()
    kept = await store.create_script("kept", [])
    dropped = await store.create_script("dropped", [])
    kept_run = await store.create_execution(kept.id)
    dropped_run = await store.create_execution(dropped.id)
    await store.create_screenshot(kept_run.id, 1, "step_001.png", PNG_BYTES)
    await store.create_screenshot(dropped_run.id, 1, "step_001.png", PNG_BYTES)

    await store.delete_script(dropped.id)
    rows, total = await store.list_all_screenshots()

    assert total == 1
    assert [(row.execution_id, row.script_id, row.script_name) for row in rows] == [(kept_run.id, kept.id, "kept")]
