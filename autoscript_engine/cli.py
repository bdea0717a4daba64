"""Command-line entrypoint: run a script file locally or serve the API."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

import uvicorn

from autoscript_engine.config_loader import load_settings
from autoscript_engine.core.models import AutomationStep, Execution
from autoscript_engine.core.orchestrator import build_orchestrator
from autoscript_engine.utils.logging_utils import configure_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Browser automation script runner")
    parser.add_argument("--settings", default=None, help="Path to a settings YAML file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Execute a script JSON file and print the execution")
    run_parser.add_argument("script", help="JSON file with {name, description?, steps: [...]} or a bare step list")
    run_parser.add_argument("--show-browser", action="store_true", help="Run Chromium with a visible window")
    run_parser.add_argument("--output", default=None, help="Also write the execution JSON to this path")
    run_parser.add_argument("--artifacts-dir", default=None, help="Root directory for screenshot files")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    return parser.parse_args(argv)


def load_script_file(path: Path) -> Dict[str, Any]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, list):
        payload = {"name": path.stem, "steps": payload}
    if not isinstance(payload, dict) or not isinstance(payload.get("steps"), list):
        raise ValueError(f"{path} must contain a step list or an object with a 'steps' list")
    payload.setdefault("name", path.stem)
    return payload


async def run_script_file(path: Path, settings: Dict[str, Any]) -> Execution:
    payload = load_script_file(path)
    steps: List[AutomationStep] = [AutomationStep.model_validate(step) for step in payload["steps"]]
    orchestrator = build_orchestrator(settings)
    script = await orchestrator.store.create_script(payload["name"], steps, description=payload.get("description"))
    started = await orchestrator.start_execution(script.id)
    return await orchestrator.wait_for(started.execution_id)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings(Path(args.settings) if args.settings else None)
    configure_logging(settings.get("logging"))

    if args.command == "serve":
        config = uvicorn.Config("api_server:app", host=args.host, port=args.port, log_level="info")
        uvicorn.Server(config).run()
        return 0

    if args.show_browser:
        settings["browser"]["headless"] = False
    if args.artifacts_dir:
        settings["storage"]["artifact_root"] = args.artifacts_dir
    execution = asyncio.run(run_script_file(Path(args.script), settings))
    rendered = json.dumps(execution.model_dump(mode="json", by_alias=True), indent=2)
    print(rendered)
    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(rendered, encoding="utf-8")
    succeeded = execution.status == "completed" and bool(execution.result and execution.result.success)
    return 0 if succeeded else 1


if __name__ == "__main__":  # pragma: no cover - exercised via CLI test
    sys.exit(main())
