from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple

from rich.console import Console

from ..catalog.types import Catalog
from ..collaborators.base import IndexCollaborator
from ..errors import PartitionBuildError

if TYPE_CHECKING:
    from ..config import RunConfig

console = Console()


@dataclass(frozen=True)
class BuildFailure:
    key: str
    cause: str
    cause_type: str

    @classmethod
    def from_error(cls, err: PartitionBuildError) -> "BuildFailure":
        cause_type = type(err.cause).__name__
        return cls(key=err.key, cause=str(err.cause) or cause_type, cause_type=cause_type)

    def to_dict(self) -> Dict[str, str]:
        return {"key": self.key, "cause": self.cause, "cause_type": self.cause_type}


@dataclass
class BuildReport:
    attempted: int = 0
    succeeded: List[str] = field(default_factory=list)
    failed: List[BuildFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempted": self.attempted,
            "succeeded": list(self.succeeded),
            "failed": [f.to_dict() for f in self.failed],
        }


def _dispatch_keys(catalog: Catalog, keys: Optional[Iterable[str]]) -> Tuple[str, ...]:
    if keys is None:
        return catalog.build_set
    return tuple(sorted(set(keys)))


class BuildScheduler:
    def __init__(self, indexer: IndexCollaborator, max_workers: int = 1) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.indexer = indexer
        self.max_workers = max_workers

    def _build_one(
        self, key: str, slice_home: Path, index_home: Path, config: "RunConfig"
    ) -> Tuple[str, Optional[PartitionBuildError]]:
        slice_path = slice_home / key
        index_path = index_home / key
        console.print(f"[cyan]Build[/cyan]: {key} ({slice_path} -> {index_path})")
        try:
            self.indexer.build_index(slice_path, index_path, config)
        except Exception as e:
            return key, PartitionBuildError(key, e)
        return key, None

    def run(
        self,
        catalog: Catalog,
        slice_home: Path,
        index_home: Path,
        config: "RunConfig",
        keys: Optional[Iterable[str]] = None,
    ) -> BuildReport:
        """
        Build every key of the catalog's build set (or `keys`, for forced
        rebuilds). The key set is fixed before the first worker starts and each
        key is handed to exactly one worker. A failing partition is recorded and
        never stops its siblings.
        """
        todo = _dispatch_keys(catalog, keys)
        slice_home = Path(slice_home)
        index_home = Path(index_home)
        report = BuildReport(attempted=len(todo))
        if not todo:
            console.print("[green]Nothing to build[/green]: every sliced partition is indexed")
            return report

        console.print(f"[cyan]Dispatch[/cyan]: {len(todo)} partition(s), workers={self.max_workers}")
        succeeded: List[str] = []
        failures: List[BuildFailure] = []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(todo))) as pool:
            futures = [pool.submit(self._build_one, key, slice_home, index_home, config) for key in todo]
            for fut in as_completed(futures):
                key, err = fut.result()
                if err is None:
                    succeeded.append(key)
                    console.print(f"[green]Built[/green]: {key}")
                else:
                    failures.append(BuildFailure.from_error(err))
                    console.print(f"[yellow]Build failed for {key}:[/yellow] {err.cause}")

        # Deterministic report order regardless of completion order
        report.succeeded = sorted(succeeded)
        report.failed = sorted(failures, key=lambda f: f.key)
        return report
