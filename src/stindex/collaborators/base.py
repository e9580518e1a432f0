from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..config import RunConfig


@runtime_checkable
class SliceCollaborator(Protocol):
    def slice(self, input_path: Path, output_parent: Path, config: "RunConfig") -> None:
        """
        Split the raw dataset at `input_path` into one directory per time bucket
        under `output_parent/<granularity>/`. Raises on failure.
        """
        ...


@runtime_checkable
class IndexCollaborator(Protocol):
    def build_index(self, partition_input: Path, partition_output: Path, config: "RunConfig") -> None:
        """
        Build the spatial index of one partition into `partition_output`.
        Blocks until the build finished; raises on failure.
        """
        ...
