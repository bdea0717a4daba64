from __future__ import annotations

import base64
from pathlib import Path
from typing import Any

import pytest

from autoscript_engine.storage.data_store import InMemoryDataStore
from autoscript_engine.storage.screenshots import (
    DataStoreScreenshotSink,
    FileScreenshotSink,
    InlineScreenshotSink,
    ScreenshotPersistenceChain,
    generate_screenshot_name,
)
from tests.browser_fakes import PNG_BYTES


class _RejectingStore(InMemoryDataStore):
    async def create_screenshot(self, *args: Any, **kwargs: Any) -> Any:
        raise RuntimeError("database is locked")


async def _execution_id(store: InMemoryDataStore) -> int:
    script = await store.create_script("shots", [])
    execution = await store.create_execution(script.id)
    return execution.id


def test_generate_screenshot_name_pads_index() -> None:
    assert generate_screenshot_name("step", 7) == "step_007.png"
    assert generate_screenshot_name("step", 12, "error") == "step_012_error.png"


@pytest.mark.asyncio
async def test_data_store_sink_wins_when_available() -> None:
    store = InMemoryDataStore()
    execution_id = await _execution_id(store)
    chain = ScreenshotPersistenceChain.from_settings(store, {"storage": {"screenshot_sinks": ["datastore", "inline"]}})

    ref = await chain.persist(execution_id=execution_id, step_number=1, filename="step_001.png", payload=PNG_BYTES)

    assert ref.sink == "datastore"
    assert ref.reference == f"/screenshots/{ref.screenshot_id}"
    record = await store.get_screenshot(ref.screenshot_id)
    assert record.data == PNG_BYTES
    assert record.content_type == "image/png"


@pytest.mark.asyncio
async def test_rejected_store_falls_back_to_filesystem(tmp_path: Path) -> None:
    store = _RejectingStore()
    execution_id = await _execution_id(store)
    chain = ScreenshotPersistenceChain([DataStoreScreenshotSink(store), FileScreenshotSink(tmp_path)])

    ref = await chain.persist(execution_id=execution_id, step_number=2, filename="step_002.png", payload=PNG_BYTES)

    expected = tmp_path / f"execution_{execution_id}" / "step_002.png"
    assert ref.sink == "filesystem"
    assert ref.reference == str(expected)
    assert ref.screenshot_id is None
    assert expected.read_bytes() == PNG_BYTES


@pytest.mark.asyncio
async def test_inline_encoding_is_the_last_resort(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("occupied", encoding="utf-8")
    store = _RejectingStore()
    execution_id = await _execution_id(store)
    chain = ScreenshotPersistenceChain([DataStoreScreenshotSink(store), FileScreenshotSink(blocker)])

    ref = await chain.persist(execution_id=execution_id, step_number=3, filename="step_003.png", payload=PNG_BYTES)

    assert ref.sink == "inline"
    prefix = "data:image/png;base64,"
    assert ref.reference.startswith(prefix)
    assert base64.b64decode(ref.reference[len(prefix):]) == PNG_BYTES


def test_chain_always_ends_with_inline_sink() -> None:
    chain = ScreenshotPersistenceChain.from_settings(InMemoryDataStore(), {"storage": {"screenshot_sinks": ["datastore"]}})

    assert [sink.name for sink in chain.sinks] == ["datastore", "inline"]
    assert isinstance(chain.sinks[-1], InlineScreenshotSink)


def test_unknown_sink_name_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown screenshot sink"):
        ScreenshotPersistenceChain.from_settings(InMemoryDataStore(), {"storage": {"screenshot_sinks": ["s3"]}})
