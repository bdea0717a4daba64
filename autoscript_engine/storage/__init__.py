"""Persistence for scripts, executions and screenshots."""

from .data_store import DataStore, InMemoryDataStore
from .screenshots import (
    DataStoreScreenshotSink,
    FileScreenshotSink,
    InlineScreenshotSink,
    ScreenshotPersistenceChain,
    ScreenshotRecorder,
)

__all__ = [
    "DataStore",
    "DataStoreScreenshotSink",
    "FileScreenshotSink",
    "InMemoryDataStore",
    "InlineScreenshotSink",
    "ScreenshotPersistenceChain",
    "ScreenshotRecorder",
]
