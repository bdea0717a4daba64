from __future__ import annotations

import logging
from pathlib import Path

import pytest

from autoscript_engine.utils.logging_utils import LOGGER_NAME, ExecutionLog, configure_logging


@pytest.fixture()
def package_logger():
    logger = logging.getLogger(LOGGER_NAME)
    saved_handlers, saved_level = list(logger.handlers), logger.level
    logger.handlers = []
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers = saved_handlers
    logger.setLevel(saved_level)


def test_configure_logging_installs_handlers_once(package_logger: logging.Logger, tmp_path: Path) -> None:
    cfg = {"level": "debug", "log_dir": str(tmp_path / "logs")}

    configure_logging(cfg)
    configure_logging(cfg)

    assert package_logger.level == logging.DEBUG
    assert len(package_logger.handlers) == 2
    package_logger.getChild("engine").info("session ready")
    for handler in package_logger.handlers:
        handler.flush()
    assert "session ready" in (tmp_path / "logs" / "autoscript.log").read_text(encoding="utf-8")


def test_configure_logging_reapplies_level(package_logger: logging.Logger) -> None:
    configure_logging({"level": "WARNING"})
    configure_logging({"level": "not-a-level"})

    assert package_logger.level == logging.INFO
    assert len(package_logger.handlers) == 1


def test_execution_log_appends_and_mirrors(caplog: pytest.LogCaptureFixture) -> None:
    lines: list[str] = []
    log = ExecutionLog(lines, execution_id=7)

    with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
        log.info("Navigating to: https://example.com")
        log.error("Step 2 (click) failed: Timeout")

    assert lines == ["Navigating to: https://example.com", "Step 2 (click) failed: Timeout"]
    assert "[execution 7] Step 2 (click) failed: Timeout" in caplog.text


def test_every_subpackage_is_discoverable_for_install() -> None:
    setuptools = pytest.importorskip("setuptools")
    root = Path(__file__).resolve().parents[1]

    found = set(setuptools.find_namespace_packages(where=str(root), include=["autoscript_engine*"]))

    assert {
        "autoscript_engine",
        "autoscript_engine.browser",
        "autoscript_engine.core",
        "autoscript_engine.storage",
        "autoscript_engine.utils",
        "autoscript_engine.workers",
    } <= found
