"""Tests for the selectable restore tree."""

from __future__ import annotations

import pytest

from konserve.models.manifest import Manifest, ManifestRecord
from konserve.models.restore_tree import (
    ROOT_ID,
    NodeKind,
    RestoreTree,
    SelectionState,
    fold_states,
)

S = SelectionState.SELECTED
N = SelectionState.NOT_SELECTED
P = SelectionState.PARTIALLY_SELECTED


@pytest.fixture
def tree() -> RestoreTree:
    manifest = Manifest(
        fingerprint="fp",
        records=[
            ManifestRecord("notes.txt", "/src/notes.txt"),
            ManifestRecord("docs/sub/b.txt", "/src/docs/sub/b.txt"),
            ManifestRecord("docs/a.txt", "/src/docs/a.txt"),
            ManifestRecord("Zeta/z.txt", "/src/Zeta/z.txt"),
        ],
    )
    return RestoreTree.from_manifest(manifest)


class TestFold:
    @pytest.mark.parametrize(
        "states, expected",
        [
            ([S, S], S),
            ([S, N], P),
            ([N, N], N),
            ([P, N], P),
            ([P, S], P),
            ([], N),
        ],
    )
    def test_fold(self, states: list[SelectionState], expected: SelectionState) -> None:
        assert fold_states(states) is expected


class TestConstruction:
    def test_leaves_match_records(self, tree: RestoreTree) -> None:
        paths = sorted(n.archive_relative_path for n in tree.files())
        assert paths == ["Zeta/z.txt", "docs/a.txt", "docs/sub/b.txt", "notes.txt"]

    def test_siblings_sorted_by_name(self, tree: RestoreTree) -> None:
        assert [c.name for c in tree.children(tree.root)] == ["Zeta", "docs", "notes.txt"]
        docs = tree.find("docs")
        assert docs is not None
        assert [c.name for c in tree.children(docs)] == ["a.txt", "sub"]

    def test_node_kinds_and_sources(self, tree: RestoreTree) -> None:
        sub = tree.find("docs/sub")
        b = tree.find("docs/sub/b.txt")
        assert sub is not None and sub.kind is NodeKind.DIRECTORY
        assert sub.original_source_path is None
        assert b is not None and b.kind is NodeKind.FILE
        assert b.original_source_path == "/src/docs/sub/b.txt"
        assert tree.parent(b) is sub

    def test_everything_starts_unselected(self, tree: RestoreTree) -> None:
        assert all(n.selected is N for n in tree.walk())

    def test_duplicate_record_is_rejected(self, tree: RestoreTree) -> None:
        assert tree.add_record(ManifestRecord("docs/a.txt", "/elsewhere")) is None
        assert len(tree.files()) == 4
        assert tree.warnings

    def test_file_directory_clash_is_rejected(self, tree: RestoreTree) -> None:
        assert tree.add_record(ManifestRecord("notes.txt/inner", "/x")) is None
        assert tree.find("notes.txt/inner") is None

    def test_walk_is_depth_first(self, tree: RestoreTree) -> None:
        order = [n.archive_relative_path for n in tree.walk()]
        assert order == [
            "", "Zeta", "Zeta/z.txt", "docs", "docs/a.txt", "docs/sub", "docs/sub/b.txt", "notes.txt",
        ]


class TestSelection:
    def test_selecting_leaf_updates_ancestors(self, tree: RestoreTree) -> None:
        b = tree.find("docs/sub/b.txt")
        tree.set_selected(b.id, True)
        assert tree.find("docs/sub").selected is S
        assert tree.find("docs").selected is P
        assert tree.root.selected is P

    def test_all_children_selected_makes_parent_selected(self, tree: RestoreTree) -> None:
        tree.set_selected(tree.find("docs/a.txt").id, True)
        tree.set_selected(tree.find("docs/sub/b.txt").id, True)
        assert tree.find("docs").selected is S

    def test_directory_toggle_cascades(self, tree: RestoreTree) -> None:
        docs = tree.find("docs")
        tree.set_selected(docs.id, True)
        assert [n.archive_relative_path for n in tree.selected_files()] == [
            "docs/a.txt", "docs/sub/b.txt",
        ]
        tree.set_selected(docs.id, False)
        assert tree.selected_count == 0
        assert tree.root.selected is N

    def test_deselect_one_leaf_under_selected_directory(self, tree: RestoreTree) -> None:
        tree.select_all()
        assert tree.root.selected is S
        tree.set_selected(tree.find("docs/a.txt").id, False)
        assert tree.find("docs").selected is P
        assert tree.find("docs/sub").selected is S
        assert tree.root.selected is P
        assert tree.selected_count == 3

    def test_directory_state_is_always_fold_of_children(self, tree: RestoreTree) -> None:
        tree.set_selected(tree.find("Zeta/z.txt").id, True)
        tree.set_selected(tree.find("docs/sub").id, True)
        for node in tree.walk():
            if node.is_dir:
                assert node.selected is fold_states(c.selected for c in tree.children(node))

    def test_select_all_on_empty_tree(self) -> None:
        empty = RestoreTree()
        empty.select_all()
        assert empty.root.selected is N
        assert empty.nodes[ROOT_ID].children == []
