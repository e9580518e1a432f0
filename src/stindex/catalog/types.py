from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Tuple


class PartitionState(str, Enum):
    UNSLICED = "unsliced"
    SLICED_UNINDEXED = "sliced_unindexed"
    INDEXED = "indexed"


@dataclass(frozen=True)
class Catalog:
    slice_home: Path
    index_home: Path
    slice_set: FrozenSet[str]
    index_set: FrozenSet[str]
    build_set: Tuple[str, ...] = field(init=False)
    orphaned: Tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "build_set", tuple(sorted(self.slice_set - self.index_set)))
        object.__setattr__(self, "orphaned", tuple(sorted(self.index_set - self.slice_set)))

    def state_of(self, key: str) -> PartitionState:
        if key in self.index_set:
            return PartitionState.INDEXED
        if key in self.slice_set:
            return PartitionState.SLICED_UNINDEXED
        return PartitionState.UNSLICED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slice_home": str(self.slice_home),
            "index_home": str(self.index_home),
            "slice_set": sorted(self.slice_set),
            "index_set": sorted(self.index_set),
            "build_set": list(self.build_set),
            "orphaned": list(self.orphaned),
        }
