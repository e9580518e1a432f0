from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeIndexer, make_dirs
from stindex.catalog.discovery import build_catalog
from stindex.collaborators.staging import StagedIndexCollaborator, purge_staging
from stindex.errors import CollaboratorError


class _NoOutputIndexer:
    def build_index(self, partition_input, partition_output, config):
        return None


class _HalfWrittenIndexer:
    def build_index(self, partition_input, partition_output, config):
        Path(partition_output).mkdir(parents=True)
        (Path(partition_output) / "part-00000").write_text("partial", encoding="utf-8")
        raise RuntimeError("node lost")


def test_success_publishes_into_index_home(tmp_path: Path, make_config):
    staging = tmp_path / "staging"
    index_home = tmp_path / "index"
    index_home.mkdir()
    inner = FakeIndexer()

    StagedIndexCollaborator(inner, staging).build_index(tmp_path / "slice" / "K", index_home / "K", make_config())

    assert (index_home / "K" / "_master.str").read_text(encoding="utf-8") == "K"
    assert inner.outputs[0].parent == staging
    assert list(staging.iterdir()) == []


def test_failure_leaves_nothing_discoverable(tmp_path: Path, make_config):
    staging = tmp_path / "staging"
    slice_home, index_home = tmp_path / "slice", tmp_path / "index"
    make_dirs(slice_home, ["K"])
    make_dirs(index_home, [])

    with pytest.raises(RuntimeError):
        StagedIndexCollaborator(_HalfWrittenIndexer(), staging).build_index(
            slice_home / "K", index_home / "K", make_config()
        )

    assert not (index_home / "K").exists()
    assert list(staging.iterdir()) == []
    assert build_catalog(slice_home, index_home).build_set == ("K",)


def test_success_without_output_is_an_error(tmp_path: Path, make_config):
    index_home = tmp_path / "index"
    with pytest.raises(CollaboratorError):
        StagedIndexCollaborator(_NoOutputIndexer(), tmp_path / "staging").build_index(
            tmp_path / "slice" / "K", index_home / "K", make_config()
        )
    assert not (index_home / "K").exists()


def test_rebuild_replaces_existing_index(tmp_path: Path, make_config):
    staging = tmp_path / "staging"
    index_home = tmp_path / "index"
    (index_home / "K").mkdir(parents=True)
    (index_home / "K" / "old-file").write_text("old", encoding="utf-8")

    StagedIndexCollaborator(FakeIndexer(), staging).build_index(tmp_path / "slice" / "K", index_home / "K", make_config())

    assert not (index_home / "K" / "old-file").exists()
    assert (index_home / "K" / "_master.str").exists()
    assert list(staging.iterdir()) == []


def test_purge_staging(tmp_path: Path):
    staging = tmp_path / "staging"
    assert purge_staging(staging) == 0
    (staging / "K.abcd1234").mkdir(parents=True)
    (staging / "K.abcd1234" / "part-00000").write_text("x", encoding="utf-8")
    (staging / "stray.tmp").write_text("x", encoding="utf-8")

    assert purge_staging(staging) == 2
    assert list(staging.iterdir()) == []
