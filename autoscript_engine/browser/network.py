"""Tracks page network activity to detect quiescence."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)


class NetworkActivityMonitor:
    """In-flight request counter plus an activity signal, fed by Playwright page events.

    ``wait_for_idle`` resolves once an idle window elapses with no activity and
    nothing in flight, racing that against a safety timeout.
    """

    def __init__(self) -> None:
        self._in_flight = 0
        self._activity = asyncio.Event()
        self._page: Any = None
        self._handlers: Dict[str, Callable[[Any], None]] = {
            "request": self._on_request,
            "requestfinished": self._on_request_done,
            "requestfailed": self._on_request_done,
            "response": self._on_response,
        }

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def attach(self, page: Any) -> None:
        if self._page is not None:
            self.detach()
        for event, handler in self._handlers.items():
            page.on(event, handler)
        self._page = page

    def detach(self) -> None:
        page = self._page
        if page is None:
            return
        self._page = None
        for event, handler in self._handlers.items():
            try:
                page.remove_listener(event, handler)
            except Exception:  # noqa: BLE001 - page may already be gone
                logger.debug("failed to remove %s listener", event, exc_info=True)
        self._in_flight = 0

    async def wait_for_idle(self, *, idle_ms: int, max_wait_ms: int) -> bool:
        """Return True when the page went quiet, False when ``max_wait_ms`` ran out."""

        idle_seconds = max(idle_ms, 0) / 1000.0
        try:
            await asyncio.wait_for(self._quiet_window(idle_seconds), timeout=max(max_wait_ms, 0) / 1000.0)
        except asyncio.TimeoutError:
            logger.debug("network idle wait timed out with %d requests in flight", self._in_flight)
            return False
        return True

    async def _quiet_window(self, idle_seconds: float) -> None:
        while True:
            self._activity.clear()
            try:
                await asyncio.wait_for(self._activity.wait(), timeout=idle_seconds)
            except asyncio.TimeoutError:
                if self._in_flight <= 0:
                    return

    def _on_request(self, _request: Any) -> None:
        self._in_flight += 1
        self._activity.set()

    def _on_request_done(self, _request: Any) -> None:
        self._in_flight = max(self._in_flight - 1, 0)
        self._activity.set()

    def _on_response(self, _response: Any) -> None:
        self._activity.set()
