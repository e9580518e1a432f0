from __future__ import annotations

from pathlib import Path

import pytest

from conftest import make_dirs
from stindex.catalog.discovery import build_catalog, list_partition_dirs
from stindex.catalog.types import PartitionState
from stindex.errors import DiscoveryError


def _snapshot(root: Path):
    return sorted(str(p.relative_to(root)) for p in root.rglob("*"))


@pytest.mark.parametrize(
    "sliced,indexed",
    [
        ({"A", "B", "C"}, {"A"}),
        ({"A", "B"}, set()),
        ({"A", "B"}, {"A", "B"}),
        (set(), set()),
        ({"A"}, {"A", "Z"}),
    ],
)
def test_build_set_is_slice_minus_index(tmp_path: Path, sliced, indexed):
    s_home, i_home = tmp_path / "slice", tmp_path / "index"
    make_dirs(s_home, sliced)
    make_dirs(i_home, indexed)

    catalog = build_catalog(s_home, i_home)

    assert catalog.slice_set == frozenset(sliced)
    assert catalog.index_set == frozenset(indexed)
    assert set(catalog.build_set) == sliced - indexed
    assert not set(catalog.build_set) & catalog.index_set
    assert list(catalog.build_set) == sorted(catalog.build_set)


def test_non_directory_entries_ignored(tmp_path: Path):
    s_home, i_home = tmp_path / "slice", tmp_path / "index"
    make_dirs(s_home, ["2024-03-14", "2024-03-15"])
    make_dirs(i_home, ["2024-03-14"])
    (s_home / "2024-03-16").write_text("stray file", encoding="utf-8")
    (s_home / "_SUCCESS").write_text("", encoding="utf-8")
    (s_home / ".hidden").mkdir()
    (i_home / "2024-03-15").write_text("not an index", encoding="utf-8")
    (i_home / "_temporary").mkdir()

    catalog = build_catalog(s_home, i_home)

    assert catalog.slice_set == {"2024-03-14", "2024-03-15"}
    assert catalog.index_set == {"2024-03-14"}
    assert catalog.build_set == ("2024-03-15",)


def test_partition_states(tmp_path: Path):
    s_home, i_home = tmp_path / "slice", tmp_path / "index"
    make_dirs(s_home, ["A", "B"])
    make_dirs(i_home, ["A", "Z"])

    catalog = build_catalog(s_home, i_home)

    assert catalog.state_of("A") is PartitionState.INDEXED
    assert catalog.state_of("B") is PartitionState.SLICED_UNINDEXED
    assert catalog.state_of("C") is PartitionState.UNSLICED
    assert catalog.orphaned == ("Z",)
    assert "Z" not in catalog.build_set


def test_discovery_never_writes(tmp_path: Path):
    s_home, i_home = tmp_path / "slice", tmp_path / "index"
    make_dirs(s_home, ["A", "B"])
    make_dirs(i_home, ["A"])
    before = _snapshot(tmp_path)

    build_catalog(s_home, i_home)

    assert _snapshot(tmp_path) == before


def test_missing_home_is_fatal(tmp_path: Path):
    make_dirs(tmp_path / "slice", ["A"])
    with pytest.raises(DiscoveryError):
        build_catalog(tmp_path / "slice", tmp_path / "missing-index")
    make_dirs(tmp_path / "index", [])
    with pytest.raises(DiscoveryError):
        build_catalog(tmp_path / "missing-slice", tmp_path / "index")


def test_home_that_is_a_file_is_fatal(tmp_path: Path):
    home = tmp_path / "slice"
    home.write_text("oops", encoding="utf-8")
    with pytest.raises(DiscoveryError):
        list_partition_dirs(home)


def test_catalog_to_dict(tmp_path: Path):
    s_home, i_home = tmp_path / "slice", tmp_path / "index"
    make_dirs(s_home, ["B", "A"])
    make_dirs(i_home, ["A"])
    data = build_catalog(s_home, i_home).to_dict()
    assert data["slice_set"] == ["A", "B"]
    assert data["build_set"] == ["B"]
    assert data["orphaned"] == []
