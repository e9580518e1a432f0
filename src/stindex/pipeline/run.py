from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console
from rich.table import Table

from ..catalog.discovery import build_catalog, list_partition_dirs
from ..catalog.types import Catalog
from ..collaborators.base import IndexCollaborator, SliceCollaborator
from ..collaborators.staging import StagedIndexCollaborator, purge_staging
from ..config import RunConfig
from ..errors import ConfigurationError, DiscoveryError
from ..granularity import resolve
from ..utils.json_utils import write_json
from ..utils.run_id import new_run_id
from ..utils.time import utc_now_iso
from .scheduler import BuildFailure, BuildReport, BuildScheduler
from .slicing import ensure_sliced

console = Console()

SLICE_DIR_NAME = "slice"
STAGING_DIR_NAME = "_staging"


@dataclass(frozen=True)
class Layout:
    slice_home: Path
    index_home: Path
    staging_root: Path


def resolve_layout(config: RunConfig) -> Layout:
    """
    <index_root>/<granularity>/<key>/             built indexes
    <dataset_parent>/slice/<granularity>/<key>/   sliced partitions
    <index_root>/_staging/<granularity>/          in-flight builds
    """
    home = resolve(config.granularity).home_dir_name
    index_root = Path(config.index_root)
    return Layout(
        slice_home=Path(config.dataset_path).parent / SLICE_DIR_NAME / home,
        index_home=index_root / home,
        staging_root=index_root / STAGING_DIR_NAME / home,
    )


@dataclass
class RunSummary:
    run_id: str
    granularity: str
    slice_home: str
    index_home: str
    sliced: bool
    discovered: int
    already_indexed: int
    built: List[str] = field(default_factory=list)
    failed: List[BuildFailure] = field(default_factory=list)
    orphaned: List[str] = field(default_factory=list)
    started_at: str = ""
    finished_at: str = ""

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "granularity": self.granularity,
            "slice_home": self.slice_home,
            "index_home": self.index_home,
            "sliced": self.sliced,
            "counts": {
                "discovered": self.discovered,
                "already_indexed": self.already_indexed,
                "built": len(self.built),
                "failed": len(self.failed),
                "orphaned": len(self.orphaned),
            },
            "built": list(self.built),
            "failed": [f.to_dict() for f in self.failed],
            "orphaned": list(self.orphaned),
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


@dataclass
class Plan:
    granularity: str
    slice_home: str
    index_home: str
    needs_slicing: bool
    catalog: Optional[Catalog] = None
    to_build: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "granularity": self.granularity,
            "slice_home": self.slice_home,
            "index_home": self.index_home,
            "needs_slicing": self.needs_slicing,
            "catalog": self.catalog.to_dict() if self.catalog else None,
            "to_build": list(self.to_build),
        }


def _initialize_index_home(index_home: Path) -> None:
    if not index_home.exists():
        console.print(f"[bold]Creating index home[/bold]: {index_home}")
        index_home.mkdir(parents=True, exist_ok=True)


def _forced_keys(catalog: Catalog, config: RunConfig) -> Optional[Tuple[str, ...]]:
    # overwrite rebuilds every sliced partition; otherwise the scheduler uses the build set
    if config.overwrite:
        return tuple(sorted(catalog.slice_set))
    return None


def run_index_manager(
    config: RunConfig,
    indexer: IndexCollaborator,
    slicer: Optional[SliceCollaborator] = None,
    stage: bool = True,
    run_id: Optional[str] = None,
) -> RunSummary:
    """
    One orchestration run: make sure the dataset is sliced, reconcile the
    slice and index trees, and build an index for every partition missing one.

    Fatal errors (configuration, discovery, slicing) propagate before any build
    is dispatched. Per-partition failures are collected in the summary; those
    keys stay unindexed and are picked up again by the next run.
    """
    if not isinstance(config, RunConfig):
        raise ConfigurationError(f"Expected RunConfig, got {type(config).__name__}")
    if indexer is None:
        raise ConfigurationError("An index collaborator is required (set index_command)")
    if config.overwrite and slicer is None:
        raise ConfigurationError("overwrite re-slices the dataset and requires a slice collaborator (set slice_command)")

    run_id = run_id or new_run_id()
    started_at = utc_now_iso()
    layout = resolve_layout(config)
    console.print(f"[bold green]Run ID:[/bold green] {run_id}")
    console.print(f"[bold]Granularity:[/bold] {config.granularity.value}")

    sliced = ensure_sliced(slicer, Path(config.dataset_path), layout.slice_home, config)

    try:
        _initialize_index_home(layout.index_home)
    except OSError as e:
        raise DiscoveryError(f"Cannot create index home {layout.index_home}: {e}") from e

    if stage:
        purge_staging(layout.staging_root)
        indexer = StagedIndexCollaborator(indexer, layout.staging_root)

    catalog = build_catalog(layout.slice_home, layout.index_home)
    if catalog.orphaned:
        console.print(
            f"[yellow]Ignoring {len(catalog.orphaned)} index(es) without a slice:[/yellow] "
            + ", ".join(catalog.orphaned)
        )

    scheduler = BuildScheduler(indexer, max_workers=config.workers)
    report: BuildReport = scheduler.run(
        catalog,
        layout.slice_home,
        layout.index_home,
        config,
        keys=_forced_keys(catalog, config),
    )

    summary = RunSummary(
        run_id=run_id,
        granularity=config.granularity.value,
        slice_home=str(layout.slice_home),
        index_home=str(layout.index_home),
        sliced=sliced,
        discovered=len(catalog.slice_set),
        already_indexed=len(catalog.slice_set & catalog.index_set),
        built=report.succeeded,
        failed=report.failed,
        orphaned=list(catalog.orphaned),
        started_at=started_at,
        finished_at=utc_now_iso(),
    )
    if config.report_path:
        write_json(Path(config.report_path), summary.to_dict())
        console.print(f"[bold]Report:[/bold] {config.report_path}")
    return summary


def plan_index_manager(config: RunConfig) -> Plan:
    """Dry run: what `run_index_manager` would do, without writing anything."""
    layout = resolve_layout(config)
    needs_slicing = config.overwrite or not layout.slice_home.exists()
    plan = Plan(
        granularity=config.granularity.value,
        slice_home=str(layout.slice_home),
        index_home=str(layout.index_home),
        needs_slicing=needs_slicing,
    )
    if not layout.slice_home.exists():
        return plan
    if layout.index_home.exists():
        catalog = build_catalog(layout.slice_home, layout.index_home)
    else:
        # index home is created on the first real run; everything sliced is missing
        catalog = Catalog(
            slice_home=layout.slice_home,
            index_home=layout.index_home,
            slice_set=list_partition_dirs(layout.slice_home),
            index_set=frozenset(),
        )
    plan.catalog = catalog
    keys = _forced_keys(catalog, config)
    plan.to_build = keys if keys is not None else catalog.build_set
    return plan


def print_summary(summary: RunSummary) -> None:
    table = Table(title=f"Index run {summary.run_id} ({summary.granularity})")
    table.add_column("Metric")
    table.add_column("Count", justify="right")
    table.add_row("Partitions discovered", str(summary.discovered))
    table.add_row("Already indexed", str(summary.already_indexed))
    table.add_row("Newly built", str(len(summary.built)))
    table.add_row("Failed", str(len(summary.failed)))
    table.add_row("Orphaned indexes (ignored)", str(len(summary.orphaned)))
    console.print(table)
    for failure in summary.failed:
        console.print(f"[red]Failed[/red] {failure.key}: {failure.cause}")
