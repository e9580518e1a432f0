from __future__ import annotations

import os
import secrets
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console

from ..errors import CollaboratorError
from .base import IndexCollaborator

if TYPE_CHECKING:
    from ..config import RunConfig

console = Console()


def purge_staging(staging_root: Path) -> int:
    """
    Remove leftovers of interrupted builds. Returns how many entries were removed.
    """
    staging_root = Path(staging_root)
    if not staging_root.exists():
        return 0
    removed = 0
    for entry in staging_root.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
        removed += 1
    if removed:
        console.print(f"[yellow]Removed {removed} stale staging entr{'y' if removed == 1 else 'ies'} from {staging_root}[/yellow]")
    return removed


class StagedIndexCollaborator:
    """
    Wraps an IndexCollaborator so that a partition's index only becomes
    visible under index-home once its build fully succeeded.

    The inner collaborator builds into `<staging_root>/<key>.<token>`; on
    success that directory is renamed onto the canonical index path. The
    staging root must live on the same filesystem as index-home so the rename
    is atomic. A failed or interrupted build never leaves anything under
    index-home, so the key is simply rediscovered as missing on the next run.
    """

    def __init__(self, inner: IndexCollaborator, staging_root: Path) -> None:
        self.inner = inner
        self.staging_root = Path(staging_root)

    def _staging_path(self, key: str, tag: str = "") -> Path:
        return self.staging_root / f"{key}.{tag}{secrets.token_hex(4)}"

    def build_index(self, partition_input: Path, partition_output: Path, config: "RunConfig") -> None:
        partition_output = Path(partition_output)
        key = partition_output.name
        self.staging_root.mkdir(parents=True, exist_ok=True)
        staged = self._staging_path(key)
        try:
            self.inner.build_index(partition_input, staged, config)
            if not staged.is_dir():
                raise CollaboratorError(f"Index build for {key} reported success but produced no directory")
            self._publish(staged, partition_output)
        finally:
            if staged.exists():
                shutil.rmtree(staged, ignore_errors=True)

    def _publish(self, staged: Path, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        if not target.exists():
            os.replace(staged, target)
            return
        # Rebuild: move the previous index aside first, a directory rename cannot replace a non-empty one.
        retired = self._staging_path(target.name, tag="old.")
        os.replace(target, retired)
        try:
            os.replace(staged, target)
        except OSError:
            os.replace(retired, target)
            raise
        shutil.rmtree(retired, ignore_errors=True)
