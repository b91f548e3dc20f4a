"""Fleet stress agent - runs one load session on this machine.

Invoked by the manager over SSH:

    python -m agent.main run --run-id 20260118_143005 --duration 600 --file-size 10

The last line on stdout is a JSON object describing the outcome. The exit
code tells the manager which infrastructure step failed, if any.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from agent.config import init_settings
from agent.core.executor import LoadSession
from common.errors import (
    DirectoryCreationError,
    GeneratorLaunchError,
    RemoteExecutionError,
    SamplingError,
)
from common.utils import is_run_id

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_DIRECTORY = 3
EXIT_LAUNCH = 4
EXIT_SAMPLING = 5

EXIT_CODES = {
    DirectoryCreationError: EXIT_DIRECTORY,
    GeneratorLaunchError: EXIT_LAUNCH,
    SamplingError: EXIT_SAMPLING,
}


def exit_code_for(error: RemoteExecutionError) -> int:
    for error_type, code in EXIT_CODES.items():
        if isinstance(error, error_type):
            return code
    return EXIT_SAMPLING


def cmd_run(args) -> int:
    """Run one load session and report the outcome on stdout."""
    overrides = {}
    if args.root:
        overrides["root"] = Path(args.root)
    if args.generator:
        overrides["generator_path"] = args.generator
    settings = init_settings(**overrides)

    if not is_run_id(args.run_id):
        print(json.dumps({"status": "failed", "error": f"Invalid run id: {args.run_id}"}))
        return EXIT_USAGE

    session = LoadSession(
        run_id=args.run_id,
        duration=args.duration,
        file_size_gb=args.file_size,
        settings=settings,
    )

    try:
        result = asyncio.run(session.run())
    except RemoteExecutionError as e:
        logger.error(f"Load session failed: {e}")
        print(json.dumps({
            "status": "failed",
            "cause": e.cause.value,
            "error": str(e),
            "artifact_path": str(session.run_dir),
        }))
        return exit_code_for(e)

    print(json.dumps({
        "status": "completed",
        "artifact_path": str(result.run_dir),
        "generator_exit_code": result.generator_exit_code,
        "metrics": sorted(result.summary.averages),
    }))
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Fleet stress agent")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    run_parser = subparsers.add_parser("run", help="Run one load session")
    run_parser.add_argument("--run-id", required=True, help="Run identifier (YYYYMMDD_HHMMSS)")
    run_parser.add_argument("--duration", type=int, required=True, help="Duration in seconds")
    run_parser.add_argument("--file-size", type=float, required=True, help="Test file size in GB")
    run_parser.add_argument("--root", help="Directory that holds run directories")
    run_parser.add_argument("--generator", help="Path to the load generator")
    run_parser.set_defaults(func=cmd_run)

    args = parser.parse_args(argv)

    # stdout carries the result line, logs go to stderr
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    if not args.command:
        parser.print_help()
        return EXIT_USAGE

    if args.command == "run" and (args.duration <= 0 or args.file_size <= 0):
        parser.error("--duration and --file-size must be positive")

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
