"""Acquires and releases one isolated Playwright browser per execution."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List

from playwright.async_api import async_playwright

from autoscript_engine.browser.network import NetworkActivityMonitor
from autoscript_engine.core.errors import SessionLaunchError

logger = logging.getLogger(__name__)


@dataclass
class BrowserSession:
    """Holds Playwright session objects owned by a single execution."""

    playwright: Any
    browser: Any
    context: Any
    page: Any
    network: NetworkActivityMonitor = field(default_factory=NetworkActivityMonitor)


class BrowserSessionManager:
    """Launches a headless Chromium with one fixed-viewport page and tears it down."""

    def __init__(
        self,
        *,
        settings: Dict[str, Any] | None = None,
        playwright_factory: Callable[[], Any] | None = None,
    ) -> None:
        browser_settings = (settings or {}).get("browser", {})
        self.headless = bool(browser_settings.get("headless", True))
        self.slow_mo = int(browser_settings.get("slow_mo", 0))
        viewport = browser_settings.get("viewport") or {}
        self.viewport = {
            "width": int(viewport.get("width", 1280)),
            "height": int(viewport.get("height", 720)),
        }
        self.user_agent: str | None = browser_settings.get("user_agent")
        self.launch_args: List[str] = list(browser_settings.get("launch_args") or [])
        self._playwright_factory = playwright_factory or async_playwright

    async def acquire(self) -> BrowserSession:
        """Launch a browser and page. Partial acquisitions are released before raising."""

        playwright = browser = context = page = None
        try:
            playwright = await self._playwright_factory().start()
            browser = await playwright.chromium.launch(
                headless=self.headless,
                slow_mo=self.slow_mo,
                args=self.launch_args,
            )
            context_options: Dict[str, Any] = {"viewport": dict(self.viewport)}
            if self.user_agent:
                context_options["user_agent"] = self.user_agent
            context = await browser.new_context(**context_options)
            page = await context.new_page()
        except Exception as exc:  # noqa: BLE001
            logger.error("Browser launch failed: %s", exc)
            await self._close_all(playwright=playwright, browser=browser, context=context, page=page)
            raise SessionLaunchError(f"Failed to launch browser: {exc}") from exc
        session = BrowserSession(playwright=playwright, browser=browser, context=context, page=page)
        session.network.attach(page)
        logger.debug("Browser session acquired (headless=%s, viewport=%s)", self.headless, self.viewport)
        return session

    async def release(self, session: BrowserSession) -> None:
        """Close page, context and browser, then stop Playwright. Never raises."""

        session.network.detach()
        await self._close_all(
            playwright=session.playwright,
            browser=session.browser,
            context=session.context,
            page=session.page,
        )
        logger.debug("Browser session released")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserSession]:
        session = await self.acquire()
        try:
            yield session
        finally:
            await self.release(session)

    async def _close_all(self, *, playwright: Any, browser: Any, context: Any, page: Any) -> None:
        for label, closer in (
            ("page", getattr(page, "close", None)),
            ("context", getattr(context, "close", None)),
            ("browser", getattr(browser, "close", None)),
            ("playwright", getattr(playwright, "stop", None)),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as exc:  # noqa: BLE001 - cleanup is best effort
                logger.warning("Failed to close %s: %s", label, exc)
