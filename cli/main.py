"""Fleet Stress CLI - Command line interface."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import httpx

from common.errors import ProviderError, RunAbortedError
from common.models.execution import RunPlan
from common.utils import format_duration, is_run_id
from manager.config import get_settings, init_settings
from manager.core.collector import ResultCollector
from manager.core.execution_engine import ExecutionEngine
from manager.core.visualization import build_chart_data, write_chart_data
from manager.providers.targets import load_targets
from manager.storage.data_store import DataStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_PROVIDER = 2


def get_client(base_url: str = "http://localhost:8000") -> httpx.Client:
    """Get HTTP client for API calls."""
    return httpx.Client(base_url=base_url, timeout=30.0)


def print_plan(plan: RunPlan) -> None:
    print(f"Targets: {len(plan.targets)}")
    print(f"Baseline duration: {plan.baseline_duration_seconds}s, stagger delay: {plan.stagger_delay_seconds:g}s")
    print(f"\n{'#':<5} {'Target':<30} {'Starts at':<10}")
    print("-" * 47)
    for i, (target, offset) in enumerate(zip(plan.targets, plan.offsets), start=1):
        print(f"{i:<5} {target:<30} +{offset:g}s")
    print(
        f"\nProjected runtime: {format_duration(plan.projected_runtime_seconds)} "
        f"({plan.projected_runtime_seconds:g}s)"
    )


def prompt_confirm(plan: RunPlan) -> bool:
    """Show the plan and ask the operator. Anything but yes declines."""
    print_plan(plan)
    try:
        answer = input("Proceed? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def cmd_run(args) -> int:
    """Run a staggered stress test across the target list."""
    settings = get_settings()
    try:
        targets = load_targets(args.targets)
    except ProviderError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_PROVIDER

    def confirm(plan: RunPlan) -> bool:
        if args.yes:
            print_plan(plan)
            return True
        return prompt_confirm(plan)

    engine = ExecutionEngine(DataStore(settings.data_path), settings)
    try:
        outcome = asyncio.run(engine.run_execution(
            targets,
            duration=args.duration,
            delay=args.delay,
            file_size_gb=args.file_size,
            confirm=confirm,
        ))
    except RunAbortedError:
        print("Aborted. No targets were contacted.")
        return EXIT_ABORTED

    print(f"\nRun {outcome.run.run_id}: {outcome.completed} completed, {outcome.failed} failed")
    print(f"\n{'#':<5} {'Target':<30} {'Status':<12} {'Error':<40}")
    print("-" * 90)
    for r in outcome.records:
        print(f"{r.concurrency_index:<5} {r.target:<30} {r.status.value:<12} {r.error or '':<40}")
    return EXIT_OK


def cmd_collect(args) -> int:
    """Collect results from every target."""
    settings = get_settings()
    try:
        targets = load_targets(args.targets)
    except ProviderError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_PROVIDER

    output = Path(args.output) if args.output else settings.default_output_root
    collector = ResultCollector(settings, output)
    report = asyncio.run(collector.collect(targets, run_id=args.run_id, history=args.history))

    print(f"{'#':<5} {'Target':<30} {'Run':<17} {'MB/s':<10} {'IOPS':<12} {'Status':<8} {'Error':<30}")
    print("-" * 115)
    for r in report.records:
        row = r.to_row()
        print(
            f"{row['concurrency_index']:<5} {row['target']:<30} {row['run_id']:<17} "
            f"{row['throughput_mbs'] or '—':<10} {row['iops'] or '—':<12} {row['status']:<8} {row['error']:<30}"
        )
    print(f"\nSummary written to {report.summary_path}")
    return EXIT_OK


def cmd_chart(args) -> int:
    """Build chart data for a collected run."""
    settings = get_settings()
    output = Path(args.output) if args.output else settings.default_output_root

    chart = build_chart_data(output, run_id=args.run_id)
    if not chart.rows:
        print(f"No collected results in {output}")
        return EXIT_OK

    path = write_chart_data(output, chart)
    print(f"Run {chart.run_id}")
    print(f"\n{'#':<5} {'Target':<30} {'MB/s':<10} {'Peak MB/s':<10} {'IOPS':<12}")
    print("-" * 70)
    for r in chart.rows:
        throughput = f"{r.throughput_mbs:.2f}" if r.throughput_mbs is not None else "—"
        peak = f"{r.peak_throughput_mbs:.2f}" if r.peak_throughput_mbs is not None else "—"
        iops = f"{r.iops:.2f}" if r.iops is not None else "—"
        print(f"{r.concurrency_index:<5} {r.target:<30} {throughput:<10} {peak:<10} {iops:<12}")
    print(f"\nTotal: {chart.total_throughput_mbs:.2f} MB/s, {chart.total_iops:.2f} IOPS")
    print(f"Chart data written to {path}")
    return EXIT_OK


def cmd_runs(args) -> int:
    """List stored runs from the manager."""
    with get_client(args.url) as client:
        try:
            runs = client.get("/api/v1/runs/", params={"limit": args.limit}).json()
        except httpx.ConnectError:
            print(f"Error: Cannot connect to manager at {args.url}")
            return EXIT_ABORTED

    if not runs.get('runs'):
        print("No runs found")
        return EXIT_OK

    print(f"{'ID':<17} {'Status':<11} {'Targets':<8} {'Done':<6} {'Failed':<7} {'Projected':<10}")
    print("-" * 65)
    for r in runs.get('runs', []):
        projected = r.get('projected_runtime_seconds')
        projected_str = format_duration(projected) if projected is not None else "—"
        print(
            f"{r.get('id', ''):<17} {r.get('status', ''):<11} {r.get('target_count') or 0:<8} "
            f"{r.get('completed_count') or 0:<6} {r.get('failed_count') or 0:<7} {projected_str:<10}"
        )
    return EXIT_OK


def cmd_serve(args) -> int:
    """Start the manager API."""
    from manager import main as manager_main

    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if overrides:
        init_settings(**overrides)
    manager_main.main()
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Fleet Stress CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-u", "--url",
        default="http://localhost:8000",
        help="Manager URL (default: http://localhost:8000)"
    )
    parser.add_argument("--log-level", default=None, help="Logging level")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # run
    run_parser = subparsers.add_parser("run", help="Run a staggered stress test")
    run_parser.add_argument("targets", help="Target list file (.csv, .txt, .yaml)")
    run_parser.add_argument("-d", "--duration", type=int, required=True, help="Per-target duration in seconds")
    run_parser.add_argument("--delay", type=float, default=0, help="Seconds between consecutive starts")
    run_parser.add_argument("-s", "--file-size", type=float, required=True, help="Test file size in GB")
    run_parser.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")
    run_parser.set_defaults(func=cmd_run)

    # collect
    collect_parser = subparsers.add_parser("collect", help="Collect results from targets")
    collect_parser.add_argument("targets", help="Target list file (.csv, .txt, .yaml)")
    collect_parser.add_argument("-o", "--output", help="Local output directory")
    collect_parser.add_argument("--run-id", help="Collect this run instead of the newest")
    collect_parser.add_argument("--history", type=int, choices=[1, 2], default=1, help="Runs to collect per target")
    collect_parser.set_defaults(func=cmd_collect)

    # chart
    chart_parser = subparsers.add_parser("chart", help="Build chart data from collected results")
    chart_parser.add_argument("-o", "--output", help="Local output directory")
    chart_parser.add_argument("--run-id", help="Run to chart (default: newest)")
    chart_parser.set_defaults(func=cmd_chart)

    # runs
    runs_parser = subparsers.add_parser("runs", help="List stored runs")
    runs_parser.add_argument("-l", "--limit", type=int, default=20, help="Limit results")
    runs_parser.set_defaults(func=cmd_runs)

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the manager API")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port")
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format=settings.log_format,
    )

    if not args.command:
        parser.print_help()
        return EXIT_ABORTED

    if args.command == "run" and (args.duration <= 0 or args.file_size <= 0):
        parser.error("--duration and --file-size must be positive")
    if getattr(args, "run_id", None) is not None:
        if not is_run_id(args.run_id):
            parser.error(f"invalid run id: {args.run_id} (expected YYYYMMDD_HHMMSS)")

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
