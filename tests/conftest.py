from __future__ import annotations

import threading
from pathlib import Path
from typing import Iterable, List, Set

import pytest

from stindex.config import RunConfig


class FakeIndexer:
    """Writes a tiny index directory; raises for keys listed in `fail_keys`."""

    def __init__(self, fail_keys: Iterable[str] = ()) -> None:
        self.fail_keys: Set[str] = set(fail_keys)
        self.calls: List[str] = []
        self.outputs: List[Path] = []
        self._lock = threading.Lock()

    def build_index(self, partition_input: Path, partition_output: Path, config: RunConfig) -> None:
        key = Path(partition_input).name
        with self._lock:
            self.calls.append(key)
            self.outputs.append(Path(partition_output))
        if key in self.fail_keys:
            raise RuntimeError(f"boom while indexing {key}")
        partition_output = Path(partition_output)
        partition_output.mkdir(parents=True)
        (partition_output / "_master.str").write_text(key, encoding="utf-8")


class FakeSlicer:
    """Creates one directory per key under <output_parent>/<granularity>/."""

    def __init__(self, keys: Iterable[str] = (), fail: bool = False, produce: bool = True) -> None:
        self.keys = list(keys)
        self.fail = fail
        self.produce = produce
        self.calls: List[tuple] = []

    def slice(self, input_path: Path, output_parent: Path, config: RunConfig) -> None:
        self.calls.append((Path(input_path), Path(output_parent)))
        if self.fail:
            raise RuntimeError("slicer crashed")
        if not self.produce:
            return
        home = Path(output_parent) / config.granularity.value
        home.mkdir(parents=True, exist_ok=True)
        for key in self.keys:
            (home / key).mkdir(exist_ok=True)


def make_dirs(home: Path, names: Iterable[str]) -> None:
    home.mkdir(parents=True, exist_ok=True)
    for name in names:
        (home / name).mkdir()


@pytest.fixture
def make_config(tmp_path: Path):
    def _make(**overrides) -> RunConfig:
        data = {
            "dataset_path": tmp_path / "data" / "raw",
            "index_root": tmp_path / "indexes",
            "granularity": "day",
            "shape": "stpoint",
        }
        data.update(overrides)
        return RunConfig.from_mapping(data)

    return _make


@pytest.fixture
def slice_home(tmp_path: Path) -> Path:
    return tmp_path / "data" / "slice" / "day"


@pytest.fixture
def index_home(tmp_path: Path) -> Path:
    return tmp_path / "indexes" / "day"
