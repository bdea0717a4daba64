"""Screenshot capture and the ordered chain of persistence sinks."""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Any, Dict, List, Protocol, Sequence

from autoscript_engine.browser.session import BrowserSession
from autoscript_engine.browser.stability import StabilityProber
from autoscript_engine.core.errors import ScreenshotPersistenceError
from autoscript_engine.core.models import ScreenshotRef
from autoscript_engine.storage.data_store import DataStore

logger = logging.getLogger(__name__)

PNG_CONTENT_TYPE = "image/png"


def generate_screenshot_name(prefix: str, index: int, suffix: str | None = None) -> str:
    """Return a deterministic screenshot filename."""

    tail = f"_{suffix}" if suffix else ""
    return f"{prefix}_{index:03d}{tail}.png"


class ScreenshotSink(Protocol):
    name: str

    async def persist(
        self,
        *,
        execution_id: int,
        step_number: int,
        filename: str,
        payload: bytes,
        content_type: str,
    ) -> ScreenshotRef: ...


class DataStoreScreenshotSink:
    """Stores bytes as a screenshot row; the reference is the row's URL."""

    name = "datastore"

    def __init__(self, store: DataStore) -> None:
        self.store = store

    async def persist(
        self,
        *,
        execution_id: int,
        step_number: int,
        filename: str,
        payload: bytes,
        content_type: str,
    ) -> ScreenshotRef:
        try:
            record = await self.store.create_screenshot(
                execution_id,
                step_number,
                filename,
                payload,
                content_type=content_type,
            )
        except Exception as exc:  # noqa: BLE001
            raise ScreenshotPersistenceError(f"data store rejected {filename}: {exc}") from exc
        return ScreenshotRef(
            reference=record.url,
            filename=filename,
            step_number=step_number,
            screenshot_id=record.id,
            sink=self.name,
        )


class FileScreenshotSink:
    """Writes bytes under ``<artifact_root>/execution_<id>/``; the reference is the file path."""

    name = "filesystem"

    def __init__(self, artifact_root: Path | str) -> None:
        self.artifact_root = Path(artifact_root)

    async def persist(
        self,
        *,
        execution_id: int,
        step_number: int,
        filename: str,
        payload: bytes,
        content_type: str,
    ) -> ScreenshotRef:
        path = self.artifact_root / f"execution_{execution_id}" / filename
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(payload)
        except OSError as exc:
            raise ScreenshotPersistenceError(f"could not write {path}: {exc}") from exc
        return ScreenshotRef(reference=str(path), filename=filename, step_number=step_number, sink=self.name)


class InlineScreenshotSink:
    """Embeds the bytes as a ``data:`` URI. Cannot fail."""

    name = "inline"

    async def persist(
        self,
        *,
        execution_id: int,
        step_number: int,
        filename: str,
        payload: bytes,
        content_type: str,
    ) -> ScreenshotRef:
        encoded = base64.b64encode(payload).decode("ascii")
        return ScreenshotRef(
            reference=f"data:{content_type};base64,{encoded}",
            filename=filename,
            step_number=step_number,
            sink=self.name,
        )


class ScreenshotPersistenceChain:
    """Tries each sink in order; the first success wins and inline encoding is the last resort."""

    def __init__(self, sinks: Sequence[ScreenshotSink]) -> None:
        self.sinks: List[ScreenshotSink] = list(sinks)
        if not self.sinks or not isinstance(self.sinks[-1], InlineScreenshotSink):
            self.sinks.append(InlineScreenshotSink())

    @classmethod
    def from_settings(cls, store: DataStore, settings: Dict[str, Any] | None = None) -> "ScreenshotPersistenceChain":
        storage_cfg = (settings or {}).get("storage", {})
        names = storage_cfg.get("screenshot_sinks") or ["datastore", "filesystem", "inline"]
        artifact_root = storage_cfg.get("artifact_root") or "artifacts"
        sinks: List[ScreenshotSink] = []
        for name in names:
            if name == "datastore":
                sinks.append(DataStoreScreenshotSink(store))
            elif name == "filesystem":
                sinks.append(FileScreenshotSink(artifact_root))
            elif name == "inline":
                sinks.append(InlineScreenshotSink())
            else:
                raise ValueError(f"Unknown screenshot sink: {name}")
        return cls(sinks)

    async def persist(
        self,
        *,
        execution_id: int,
        step_number: int,
        filename: str,
        payload: bytes,
        content_type: str = PNG_CONTENT_TYPE,
    ) -> ScreenshotRef:
        for sink in self.sinks:
            try:
                return await sink.persist(
                    execution_id=execution_id,
                    step_number=step_number,
                    filename=filename,
                    payload=payload,
                    content_type=content_type,
                )
            except ScreenshotPersistenceError as exc:
                logger.warning("Screenshot sink %s failed, falling back: %s", sink.name, exc)
        # the trailing inline sink always succeeds
        raise ScreenshotPersistenceError(f"no screenshot sink accepted {filename}")


class ScreenshotRecorder:
    """Settles the page, captures a full-page PNG and persists it through the chain."""

    def __init__(self, prober: StabilityProber, chain: ScreenshotPersistenceChain) -> None:
        self.prober = prober
        self.chain = chain

    async def capture(
        self,
        session: BrowserSession,
        *,
        execution_id: int,
        step_number: int,
        filename: str,
    ) -> ScreenshotRef:
        await self.prober.settle(session)
        payload = await session.page.screenshot(full_page=True, type="png")
        return await self.chain.persist(
            execution_id=execution_id,
            step_number=step_number,
            filename=filename,
            payload=payload,
            content_type=PNG_CONTENT_TYPE,
        )
