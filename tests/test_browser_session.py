from __future__ import annotations

import pytest

from autoscript_engine.browser.session import BrowserSessionManager
from autoscript_engine.core.errors import SessionLaunchError
from tests.browser_fakes import FakePage, FakePlaywrightFactory

SETTINGS = {
    "browser": {
        "headless": True,
        "viewport": {"width": 1280, "height": 720},
        "user_agent": "autoscript-test",
        "launch_args": ["--no-sandbox"],
    }
}


class _StickyPage(FakePage):
    async def close(self) -> None:
        raise RuntimeError("page already crashed")


@pytest.mark.asyncio
async def test_acquire_launches_headless_page_with_fixed_viewport() -> None:
    factory = FakePlaywrightFactory()
    manager = BrowserSessionManager(settings=SETTINGS, playwright_factory=factory)

    session = await manager.acquire()

    assert session.page is factory.page
    assert factory.chromium.launch_kwargs["headless"] is True
    assert factory.chromium.launch_kwargs["args"] == ["--no-sandbox"]
    assert factory.context.options == {
        "viewport": {"width": 1280, "height": 720},
        "user_agent": "autoscript-test",
    }
    assert set(factory.page.listeners) == {"request", "requestfinished", "requestfailed", "response"}

    await manager.release(session)

    assert factory.page.closed and factory.context.closed and factory.browser.closed
    assert factory.playwright.stopped
    assert all(not handlers for handlers in factory.page.listeners.values())


@pytest.mark.asyncio
async def test_launch_failure_stops_driver_and_raises() -> None:
    factory = FakePlaywrightFactory(fail_launch=True)
    manager = BrowserSessionManager(settings=SETTINGS, playwright_factory=factory)

    with pytest.raises(SessionLaunchError) as excinfo:
        await manager.acquire()

    assert "Failed to launch browser" in str(excinfo.value)
    assert "Executable doesn't exist" in str(excinfo.value)
    assert factory.playwright.stopped is True


@pytest.mark.asyncio
async def test_page_creation_failure_closes_partial_session() -> None:
    factory = FakePlaywrightFactory(fail_new_page=True)
    manager = BrowserSessionManager(settings=SETTINGS, playwright_factory=factory)

    with pytest.raises(SessionLaunchError):
        await manager.acquire()

    assert factory.context.closed and factory.browser.closed
    assert factory.playwright.stopped


@pytest.mark.asyncio
async def test_release_continues_past_close_errors() -> None:
    factory = FakePlaywrightFactory(_StickyPage())
    manager = BrowserSessionManager(settings=SETTINGS, playwright_factory=factory)
    session = await manager.acquire()

    await manager.release(session)

    assert factory.context.closed and factory.browser.closed
    assert factory.playwright.stopped


@pytest.mark.asyncio
async def test_session_context_releases_on_error() -> None:
    factory = FakePlaywrightFactory()
    manager = BrowserSessionManager(settings=SETTINGS, playwright_factory=factory)

    with pytest.raises(ValueError):
        async with manager.session():
            raise ValueError("boom")

    assert factory.page.closed and factory.playwright.stopped
