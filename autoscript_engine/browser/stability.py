"""Heuristic waits that let a page settle before it is captured."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from autoscript_engine.browser.session import BrowserSession

logger = logging.getLogger(__name__)

LONGEST_ANIMATION_JS = """
() => {
    const toMs = (value) => {
        const text = (value || "").trim();
        if (!text) {
            return 0;
        }
        return text.endsWith("ms") ? parseFloat(text) || 0 : (parseFloat(text) || 0) * 1000;
    };
    const longest = (durations, delays) => {
        const d = (durations || "").split(",");
        const w = (delays || "").split(",");
        let best = 0;
        d.forEach((duration, index) => {
            best = Math.max(best, toMs(duration) + toMs(w[index] || w[0]));
        });
        return best;
    };
    let result = 0;
    for (const node of document.querySelectorAll("*")) {
        const style = window.getComputedStyle(node);
        if (style.animationName && style.animationName !== "none") {
            result = Math.max(result, longest(style.animationDuration, style.animationDelay));
        }
        result = Math.max(result, longest(style.transitionDuration, style.transitionDelay));
    }
    return result;
}
"""

ANIMATION_FRAMES_JS = """
() => new Promise((resolve) => {
    requestAnimationFrame(() => requestAnimationFrame(() => resolve(true)));
})
"""


class StabilityProber:
    """Best-effort network and animation settling. Probe errors are logged, never raised."""

    def __init__(self, *, settings: Dict[str, Any] | None = None) -> None:
        config = settings or {}
        stability_cfg = config.get("stability", {})
        timeout_cfg = config.get("timeouts", {})
        self.network_idle_ms = int(stability_cfg.get("network_idle_ms", 500))
        self.network_max_wait_ms = int(stability_cfg.get("network_max_wait_ms", 4000))
        self.animation_cap_ms = int(stability_cfg.get("animation_cap_ms", 2000))
        self.wait_extra_ms = int(timeout_cfg.get("wait_extra_ms", 5000))

    async def settle(self, session: BrowserSession) -> None:
        """Wait for network quiescence and running animations before a capture."""

        try:
            await self.wait_for_network_idle(session)
            await self.wait_for_animations(session.page)
        except Exception as exc:  # noqa: BLE001 - probing must not block the run
            logger.warning("Stability probe failed: %s", exc)

    async def settle_after_wait(self, session: BrowserSession) -> None:
        """Post-``wait`` checks: body present, network idle, DOM ready, frames rendered."""

        try:
            await asyncio.wait_for(self._wait_checks(session), timeout=self.wait_extra_ms / 1000.0)
        except asyncio.TimeoutError:
            logger.warning("Stability checks after wait exceeded %dms", self.wait_extra_ms)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Stability checks after wait failed: %s", exc)

    async def wait_for_network_idle(self, session: BrowserSession) -> bool:
        idle = await session.network.wait_for_idle(
            idle_ms=self.network_idle_ms,
            max_wait_ms=self.network_max_wait_ms,
        )
        if not idle:
            logger.debug("network still busy after %dms; continuing", self.network_max_wait_ms)
        return idle

    async def wait_for_animations(self, page: Any) -> float:
        """Sleep for the longest declared animation (capped), then two animation frames."""

        declared = await page.evaluate(LONGEST_ANIMATION_JS)
        try:
            longest_ms = max(float(declared or 0), 0.0)
        except (TypeError, ValueError):
            longest_ms = 0.0
        waited_ms = min(longest_ms, float(self.animation_cap_ms))
        if waited_ms > 0:
            await asyncio.sleep(waited_ms / 1000.0)
        await page.evaluate(ANIMATION_FRAMES_JS)
        return waited_ms

    async def _wait_checks(self, session: BrowserSession) -> None:
        page = session.page
        await page.wait_for_selector("body", timeout=self.wait_extra_ms)
        await self.wait_for_network_idle(session)
        await page.wait_for_load_state("domcontentloaded", timeout=self.wait_extra_ms)
        await page.evaluate(ANIMATION_FRAMES_JS)
