from __future__ import annotations

from pathlib import Path
from typing import FrozenSet

from rich.console import Console

from ..errors import DiscoveryError
from .types import Catalog

console = Console()

# Hadoop-style markers (_SUCCESS, _temporary) and hidden entries are not partitions.
_IGNORED_PREFIXES = (".", "_")


def list_partition_dirs(home: Path) -> FrozenSet[str]:
    """
    Names of the partition directories directly under `home`.
    Files, hidden entries and underscore markers are skipped.
    """
    home = Path(home)
    if not home.exists():
        raise DiscoveryError(f"Home directory does not exist: {home}")
    if not home.is_dir():
        raise DiscoveryError(f"Home path is not a directory: {home}")
    names = set()
    try:
        for entry in home.iterdir():
            if entry.name.startswith(_IGNORED_PREFIXES):
                continue
            if entry.is_dir():
                names.add(entry.name)
    except OSError as e:
        raise DiscoveryError(f"Failed to list {home}: {e}") from e
    return frozenset(names)


def build_catalog(slice_home: Path, index_home: Path) -> Catalog:
    index_set = list_partition_dirs(index_home)
    slice_set = list_partition_dirs(slice_home)
    catalog = Catalog(
        slice_home=Path(slice_home),
        index_home=Path(index_home),
        slice_set=slice_set,
        index_set=index_set,
    )
    console.print(
        f"[cyan]Catalog[/cyan]: sliced={len(slice_set)} indexed={len(index_set)} "
        f"missing={len(catalog.build_set)}"
    )
    return catalog
