"""Command-line interface for flushplan."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from time import perf_counter
from typing import Any, List, Optional

from flushplan.job import PrintJob, load_job_yaml
from flushplan.logging import get_logger, set_global_log_level
from flushplan.model.layers import filament_clusters

logger = get_logger(__name__)


def _format_table(
    headers: List[str],
    rows: List[List[str]],
    min_width: int = 6,
) -> str:
    """Format data as a simple ASCII table.

    Args:
        headers: Column headers
        rows: Data rows
        min_width: Minimum column width

    Returns:
        Formatted table string, empty when there are no rows.
    """
    if not rows:
        return ""

    cells = [[str(h) for h in headers]] + [[str(item) for item in row] for row in rows]
    widths = [
        max(min_width, max(len(row[col]) for row in cells))
        for col in range(len(headers))
    ]

    def format_row(row_data: List[str]) -> str:
        return "   " + " | ".join(
            f"{item:<{widths[i]}}" for i, item in enumerate(row_data)
        )

    lines = [format_row(cells[0])]
    lines.append("   " + "-+-".join("-" * width for width in widths))
    lines.extend(format_row(row) for row in cells[1:])
    return "\n".join(lines)


def _format_cost(value: Any) -> str:
    """Return a purge volume with up to three decimals and no trailing zeros.

    Examples:
        0.5 -> "0.5"; 10.0 -> "10"; 1234.567 -> "1,234.567".
    """
    try:
        v = float(value)
    except (TypeError, ValueError):
        return str(value)

    s = f"{v:,.3f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s


def _format_duration(seconds: float) -> str:
    if seconds < 1.0:
        return f"{seconds * 1000.0:.1f} ms"
    return f"{seconds:.2f} s"


def _default_results_path(path: Path) -> Path:
    """``<job_name>.results.json`` in the current directory."""
    return Path(f"{path.stem}.results.json")


def _load_job(path: Path) -> PrintJob:
    yaml_text = path.read_text()
    logger.info("✓ YAML file loaded successfully")
    job = load_job_yaml(yaml_text)
    logger.info("✓ Job validated successfully")
    return job


def _inspect_job(path: Path) -> None:
    """Validate a job file and print its key characteristics."""
    logger.info(f"Inspecting job from: {path}")

    try:
        job = _load_job(path)

        print("\n" + "=" * 60)
        print("FLUSHPLAN JOB INSPECTION")
        print("=" * 60)

        layer_sizes = [len(layer) for layer in job.layers]
        matrices = job.flush_matrices
        matrix_count = len(matrices) if isinstance(matrices, list) else 1
        overview = [
            ["Name", job.name or "-"],
            ["Scheduler", job.kind],
            ["Filaments", str(len(job.filaments))],
            ["Layers", str(len(job.layers))],
            ["Max filaments/layer", str(max(layer_sizes, default=0))],
            ["Flush matrices", str(matrix_count)],
            ["Custom sequences", str(len(job.custom_sequences))],
            ["Parallelism", str(job.parallelism)],
        ]
        print("\nOVERVIEW")
        print("-" * 30)
        print(_format_table(["Property", "Value"], overview))

        print("\nSTRATEGY")
        print("-" * 30)
        cfg = job.config
        print(
            f"   forecast <= {cfg.max_forecast_filaments}, "
            f"exact <= {cfg.max_exact_filaments}, "
            f"cache {'on' if cfg.use_cache else 'off'}"
        )

        if job.groups is not None:
            print("\nGROUPS")
            print("-" * 30)
            rows = []
            for gid in (0, 1):
                members = sorted(f for f, g in job.groups.items() if g == gid)
                rows.append([str(gid), " ".join(str(f) for f in members)])
            print(_format_table(["Group", "Filaments"], rows))
            if job.multi_nozzle_group is not None:
                print(
                    f"   Group {job.multi_nozzle_group} has {job.nozzle_count} nozzles"
                )

        if job.nozzles is not None:
            print("\nNOZZLES")
            print("-" * 30)
            rows = []
            for filament in job.filaments:
                info = job.nozzles.get_nozzle_for_filament(filament)
                if info is not None:
                    rows.append([str(filament), str(info.extruder_id), str(info.group_id)])
            print(_format_table(["Filament", "Extruder", "Nozzle"], rows))

        print("\nFILAMENT CLUSTERS")
        print("-" * 30)
        clusters = filament_clusters(job.layers)
        print(f"   Total: {len(clusters)}")
        for cluster in clusters:
            print(f"     {' '.join(str(f) for f in cluster)}")

        print("\n" + "=" * 60)
        print("INSPECTION COMPLETE")
        print("=" * 60)
        print(f"Usage: flushplan run {path}")

    except FileNotFoundError:
        print(f"❌ ERROR: Job file not found: {path}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Failed to inspect job: {e}")
        print("❌ ERROR: Failed to inspect job")
        print(f"  {type(e).__name__}: {e}")
        sys.exit(1)


def _run_job(
    path: Path,
    results_override: Optional[Path],
    no_results: bool,
    stdout: bool,
    table: bool,
) -> None:
    """Run a job file and export the plan as JSON by default.

    Args:
        path: Job YAML file.
        results_override: Explicit JSON output path. Defaults to
            ``<job_name>.results.json`` in the current directory.
        no_results: Whether to disable results file generation.
        stdout: Whether to also print the JSON plan to stdout.
        table: Whether to print a per-layer table.
    """
    logger.info(f"Loading job from: {path}")
    _start_time = perf_counter()

    try:
        job = _load_job(path)
        plan = job.run()
        print(
            f"✅ Scheduled {plan.layer_count} layers, "
            f"total flush {_format_cost(plan.total_cost)}"
        )

        if table:
            frame = plan.to_dataframe()
            print(frame.to_string())

        if not no_results or stdout:
            json_str = json.dumps(plan.to_dict(), indent=2, default=str)
            if not no_results:
                output = results_override or _default_results_path(path)
                output.parent.mkdir(parents=True, exist_ok=True)
                logger.info(f"Writing results to: {output}")
                output.write_text(json_str)
                print(f"✅ Results written to: {output}")
            if stdout:
                print(json_str)

        _elapsed = perf_counter() - _start_time
        logger.info(f"Job completed successfully in {_format_duration(_elapsed)}")

    except FileNotFoundError:
        logger.error(f"Job file not found: {path}")
        print(f"❌ ERROR: Job file not found: {path}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Failed to run job: {type(e).__name__}: {e}")
        print(f"❌ ERROR: Failed to run job: {type(e).__name__}: {e}")
        sys.exit(1)


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``flushplan`` command.

    Args:
        argv: Optional list of command-line arguments. If ``None``, ``sys.argv``
            is used.
    """
    parser = argparse.ArgumentParser(
        prog="flushplan",
        description="Plan filament load orders that minimize purge volume.",
    )

    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--quiet", action="store_true", help="Suppress console output (logs only)"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
        title="Available commands",
        metavar="{run,inspect}",
        help="Available commands",
    )

    run_parser = subparsers.add_parser("run", help="Schedule a print job")
    run_parser.add_argument("job", type=Path, help="Path to job YAML")
    run_parser.add_argument(
        "--results",
        "-r",
        type=Path,
        default=None,
        help="Export the plan to this JSON file (default: <job_name>.results.json)",
    )
    run_parser.add_argument(
        "--no-results",
        action="store_true",
        help="Disable results file generation",
    )
    run_parser.add_argument(
        "--stdout",
        action="store_true",
        help="Print the plan to stdout",
    )
    run_parser.add_argument(
        "--table",
        action="store_true",
        help="Print a per-layer table of orders and costs",
    )

    inspect_parser = subparsers.add_parser(
        "inspect", help="Inspect and validate a print job"
    )
    inspect_parser.add_argument("job", type=Path, help="Path to job YAML")

    effective_args = sys.argv[1:] if argv is None else argv

    if not effective_args:
        parser.print_help()
        raise SystemExit(0)

    args = parser.parse_args(effective_args)

    if args.verbose:
        set_global_log_level(logging.DEBUG)
        logger.debug("Debug logging enabled")
    elif args.quiet:
        set_global_log_level(logging.WARNING)
    else:
        set_global_log_level(logging.INFO)

    if args.command == "run":
        _run_job(
            path=args.job,
            results_override=args.results,
            no_results=args.no_results,
            stdout=args.stdout,
            table=args.table,
        )
    elif args.command == "inspect":
        _inspect_job(args.job)


if __name__ == "__main__":
    main()
