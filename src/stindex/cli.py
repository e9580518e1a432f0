from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from rich.console import Console

from .collaborators.command import collaborators_from_config
from .config import RunConfig, load_config
from .errors import (
    ConfigError,
    ConfigurationError,
    DiscoveryError,
    IndexManagerError,
    SliceDispatchError,
)
from .pipeline.run import plan_index_manager, print_summary, run_index_manager

load_dotenv()  # automatically load variables from .env if present
console = Console()

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_DISCOVERY = 3
EXIT_SLICING = 4

USAGE_NOTES = """\
Performs a temporal indexing for spatio-temporal data.
Parameters (* marks required parameters, in the config file or as flags):
  --input    (*) Path to input dataset
  --output   (*) Path to index output root
  --time     (*) Time format: hour, day, week, month, year
  --shape    (*) Record type, must be stpoint
  --overwrite    Re-slice and rebuild every partition
"""


def _load_config_or_exit(config_path: Optional[Path]) -> Dict[str, Any]:
    if config_path is None:
        return {}
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(EXIT_CONFIG)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(EXIT_CONFIG)


def _config_path(args: argparse.Namespace) -> Optional[Path]:
    value = args.config or os.getenv("STINDEX_CONFIG")
    if value:
        return Path(value)
    default = Path("stindex.yml")
    return default if default.exists() else None


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "dataset_path": args.input,
        "index_root": args.output,
        "granularity": args.time,
        "shape": args.shape,
        "overwrite": True if args.overwrite else None,
        "workers": args.workers,
        "report_path": getattr(args, "report", None),
    }


def _run_config(args: argparse.Namespace) -> RunConfig:
    data = _load_config_or_exit(_config_path(args))
    return RunConfig.from_mapping(data, _overrides(args))


def cmd_run(args: argparse.Namespace) -> int:
    try:
        config = _run_config(args)
        slicer, indexer = collaborators_from_config(config)
        if indexer is None:
            raise ConfigurationError("index_command is required to build indexes")
        summary = run_index_manager(config, indexer, slicer=slicer, run_id=args.run_id)
    except ConfigurationError as e:
        console.print(f"[red]Config error:[/red] {e}")
        console.print(USAGE_NOTES)
        return EXIT_CONFIG
    except DiscoveryError as e:
        console.print(f"[red]Discovery failed:[/red] {e}")
        return EXIT_DISCOVERY
    except SliceDispatchError as e:
        console.print(f"[red]Slicing failed:[/red] {e}")
        return EXIT_SLICING

    print_summary(summary)
    return EXIT_OK if summary.ok else EXIT_FAILED


def cmd_plan(args: argparse.Namespace) -> int:
    try:
        config = _run_config(args)
        plan = plan_index_manager(config)
    except ConfigurationError as e:
        console.print(f"[red]Config error:[/red] {e}")
        console.print(USAGE_NOTES)
        return EXIT_CONFIG
    except DiscoveryError as e:
        console.print(f"[red]Discovery failed:[/red] {e}")
        return EXIT_DISCOVERY

    if args.json:
        print(json.dumps(plan.to_dict(), indent=2))
        return EXIT_OK

    console.print(f"[bold]Slice home:[/bold] {plan.slice_home}")
    console.print(f"[bold]Index home:[/bold] {plan.index_home}")
    if plan.needs_slicing:
        console.print("[cyan]Slicing would run before discovery.[/cyan]")
    if plan.catalog is None:
        console.print("[yellow]No slices yet; partitions are known only after slicing.[/yellow]")
        return EXIT_OK
    console.print(
        f"[bold]Sliced:[/bold] {len(plan.catalog.slice_set)}  "
        f"[bold]Indexed:[/bold] {len(plan.catalog.index_set)}  "
        f"[bold]To build:[/bold] {len(plan.to_build)}"
    )
    for key in plan.to_build:
        console.print(f"  {key}")
    if plan.catalog.orphaned:
        console.print(f"[yellow]Orphaned indexes (ignored):[/yellow] {', '.join(plan.catalog.orphaned)}")
    return EXIT_OK


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", type=str, help="Path to YAML config (default: $STINDEX_CONFIG or ./stindex.yml)")
    p.add_argument("--input", type=str, help="Input dataset path")
    p.add_argument("--output", type=str, help="Index output root")
    p.add_argument("--time", type=str, help="Time granularity: hour, day, week, month, year")
    p.add_argument("--shape", type=str, help="Record type (stpoint)")
    p.add_argument("--overwrite", action="store_true", help="Re-slice and rebuild every partition")
    p.add_argument("--workers", type=int, help="Number of concurrent index builds")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stindex",
        description="Spatio-temporal index manager: build missing per-partition spatial indexes.",
        epilog=USAGE_NOTES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # run
    p_run = sub.add_parser("run", help="Slice if needed, then build every missing index")
    _add_common_args(p_run)
    p_run.add_argument("--report", type=str, help="Write the run summary as JSON to this path")
    p_run.add_argument("--run-id", type=str, help="Provide a specific run id")
    p_run.set_defaults(func=cmd_run)

    # plan
    p_plan = sub.add_parser("plan", help="Show which partitions would be built, without building")
    _add_common_args(p_plan)
    p_plan.add_argument("--json", action="store_true", help="Print the plan as JSON")
    p_plan.set_defaults(func=cmd_plan)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except SystemExit:
        raise
    except IndexManagerError as e:
        console.print(f"[red]Error:[/red] {e}")
        return EXIT_FAILED
    except Exception as e:
        console.print(f"[red]Unexpected error:[/red] {e}")
        return EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
