from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

from rich.console import Console

from ..collaborators.base import SliceCollaborator
from ..errors import SliceDispatchError

if TYPE_CHECKING:
    from ..config import RunConfig

console = Console()


def ensure_sliced(
    slicer: Optional[SliceCollaborator],
    dataset_path: Path,
    slice_home: Path,
    config: "RunConfig",
) -> bool:
    """
    Invoke the slicer once when slice-home is absent (or when overwrite is set).
    Returns True if slicing ran, False if existing slices were reused.
    """
    slice_home = Path(slice_home)
    if slice_home.exists() and not config.overwrite:
        console.print(f"[bold]Slices exist[/bold]: {slice_home}")
        return False

    if slicer is None:
        reason = "overwrite is set" if slice_home.exists() else "it is missing"
        raise SliceDispatchError(
            f"Slice home {slice_home} must be (re)sliced because {reason}, but no slice collaborator is configured"
        )

    console.print(f"[cyan]Slicing[/cyan]: {dataset_path} -> {slice_home.parent}")
    try:
        slicer.slice(Path(dataset_path), slice_home.parent, config)
    except Exception as e:
        raise SliceDispatchError(f"Slicing {dataset_path} failed: {e}") from e

    if not slice_home.is_dir():
        raise SliceDispatchError(f"Slicing finished but {slice_home} was not produced")
    return True
