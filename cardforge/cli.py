"""Command line entry point for cardforge."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, Dict, Optional, TextIO

from dotenv import load_dotenv

from cardforge import settings
from cardforge.controller import GenerationConfig, GenerationController
from cardforge.errors import GenerationFailedError, InputValidationError
from cardforge.health import check_backend_health
from cardforge.presets import PRESETS, preset_for
from cardforge.progress import ProgressSimulator
from cardforge.transport import TutorialConfig
from cardforge.validation import require_text

_LOGGER = logging.getLogger("cardforge.cli")

_DEFAULT_ENDPOINTS = {
    "text": "/api/statblockgenerator/generate-statblock",
    "image": "/api/statblockgenerator/generate-image",
}


def _load_env_file(path: Optional[str] = None) -> None:
    """Load ``CARDFORGE_*`` variables from a ``.env`` file using python-dotenv."""

    env_path = path or os.path.join(os.path.dirname(__file__), "..", ".env")
    load_dotenv(dotenv_path=env_path)


def _configure_logging() -> None:
    logging.basicConfig(level=settings.log_level(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _build_input(description: str) -> Dict[str, Any]:
    return {"description": description}


def _to_request(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {"description": payload["description"].strip()}


def _from_response(raw: Any) -> Dict[str, Any]:
    data = raw.get("data", raw) if isinstance(raw, dict) else {}
    statblock = dict(data) if isinstance(data, dict) else {"data": data}
    statblock.setdefault("name", "Unnamed Creature")
    return statblock


class _ProgressPrinter:
    """Write a progress line whenever the milestone or the tenth changes."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._last = None

    def __call__(self, progress: ProgressSimulator) -> None:
        if not progress.is_active:
            return
        key = (int(progress.percent // 10), progress.message)
        if key == self._last:
            return
        self._last = key
        suffix = f" {progress.message}" if progress.message else ""
        self._stream.write(f"[{progress.percent:5.1f}%]{suffix}\n")
        self._stream.flush()


async def _run_generate(args: argparse.Namespace) -> int:
    tutorial = TutorialConfig(simulated_duration_ms=args.simulated_ms) if args.tutorial is not False else None
    config = GenerationConfig(
        endpoint=args.endpoint or _DEFAULT_ENDPOINTS[args.kind],
        transform_input=_to_request,
        transform_output=_from_response,
        timeout_ms=args.timeout_ms or settings.default_timeout_ms(),
        tutorial=tutorial,
        api_base_url=args.base_url,
        service="statblockgenerator",
        generation_type=args.kind,
    )
    tutorial_mode = settings.tutorial_mode_enabled() if args.tutorial is None else args.tutorial

    async with GenerationController(
        config,
        validator=require_text("description"),
        tutorial_mode=tutorial_mode,
        progress_config=preset_for(args.kind),
        event_log_path=settings.event_log_path(),
    ) as controller:
        controller.progress.subscribe(_ProgressPrinter(sys.stderr))
        try:
            output = await controller.generate(_build_input(args.description))
        except InputValidationError as exc:
            print(json.dumps({"validation_errors": exc.errors}, indent=2), file=sys.stderr)
            return 2
        except GenerationFailedError as exc:
            _LOGGER.error("%s: %s", exc.error.title, exc.error.message)
            print(json.dumps({"error": exc.error.to_dict()}, indent=2), file=sys.stderr)
            return 1

    print(json.dumps(output, indent=2, sort_keys=True))
    return 0


def _run_health(args: argparse.Namespace) -> int:
    report = check_backend_health(args.base_url, timeout=args.timeout)
    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.any_online else 1


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the cardforge CLI."""

    _load_env_file()
    _configure_logging()

    parser = argparse.ArgumentParser(description="cardforge generation CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser("generate", help="Generate a statblock from a description")
    generate_parser.add_argument("description", help="Creature description")
    generate_parser.add_argument("--endpoint", help="Generation endpoint, absolute or relative to the API base")
    generate_parser.add_argument("--base-url", dest="base_url", help="Override CARDFORGE_API_URL")
    generate_parser.add_argument("--kind", choices=sorted(PRESETS), default="text", help="Generation kind")
    generate_parser.add_argument("--timeout-ms", dest="timeout_ms", type=float, help="Watchdog timeout in milliseconds")
    generate_parser.add_argument(
        "--simulated-ms",
        dest="simulated_ms",
        type=float,
        default=settings.DEFAULT_SIMULATED_DURATION_MS,
        help="Simulated duration in tutorial mode",
    )
    mode_group = generate_parser.add_mutually_exclusive_group()
    mode_group.add_argument("--tutorial", dest="tutorial", action="store_true", help="Use the simulated transport")
    mode_group.add_argument("--live", dest="tutorial", action="store_false", help="Always call the live endpoint")
    generate_parser.set_defaults(tutorial=None)

    health_parser = subparsers.add_parser("health", help="Probe the generation backend")
    health_parser.add_argument("--base-url", dest="base_url", help="Override CARDFORGE_API_URL")
    health_parser.add_argument("--timeout", type=float, default=5.0, help="Per-probe timeout in seconds")

    args = parser.parse_args(argv)

    if args.command == "generate":
        return asyncio.run(_run_generate(args))
    if args.command == "health":
        return _run_health(args)

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
