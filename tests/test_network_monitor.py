from __future__ import annotations

import asyncio

import pytest

from autoscript_engine.browser.network import NetworkActivityMonitor
from tests.browser_fakes import FakePage


@pytest.mark.asyncio
async def test_quiet_page_reaches_idle() -> None:
    page = FakePage()
    monitor = NetworkActivityMonitor()
    monitor.attach(page)

    assert await monitor.wait_for_idle(idle_ms=10, max_wait_ms=500) is True


@pytest.mark.asyncio
async def test_pending_request_holds_until_safety_timeout() -> None:
    page = FakePage()
    monitor = NetworkActivityMonitor()
    monitor.attach(page)

    page.emit("request")

    assert monitor.in_flight == 1
    assert await monitor.wait_for_idle(idle_ms=10, max_wait_ms=60) is False


@pytest.mark.asyncio
async def test_finished_request_releases_idle_wait() -> None:
    page = FakePage()
    monitor = NetworkActivityMonitor()
    monitor.attach(page)
    page.emit("request")

    async def finish_later() -> None:
        await asyncio.sleep(0.03)
        page.emit("response")
        page.emit("requestfinished")

    finisher = asyncio.create_task(finish_later())
    idle = await monitor.wait_for_idle(idle_ms=10, max_wait_ms=1000)
    await finisher

    assert idle is True
    assert monitor.in_flight == 0


def test_failed_request_decrements_counter_without_going_negative() -> None:
    page = FakePage()
    monitor = NetworkActivityMonitor()
    monitor.attach(page)

    page.emit("request")
    page.emit("requestfailed")
    page.emit("requestfailed")

    assert monitor.in_flight == 0


def test_detach_removes_listeners_and_resets_count() -> None:
    page = FakePage()
    monitor = NetworkActivityMonitor()
    monitor.attach(page)
    page.emit("request")

    monitor.detach()

    assert monitor.in_flight == 0
    assert all(not handlers for handlers in page.listeners.values())
