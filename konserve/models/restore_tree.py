"""Restore tree — selectable hierarchy rebuilt from an archive manifest.

Nodes live in a flat list and refer to each other by integer id, so the
tree never holds parent/child object references.  Directory selection is
never stored independently: it is recomputed from the children whenever a
node below it changes.
"""

from __future__ import annotations

from bisect import insort
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Iterable, Iterator

from konserve.models.manifest import Manifest, ManifestRecord

ROOT_ID = 0


class NodeKind(StrEnum):
    FILE = "file"
    DIRECTORY = "directory"


class SelectionState(StrEnum):
    NOT_SELECTED = "not_selected"
    SELECTED = "selected"
    PARTIALLY_SELECTED = "partially_selected"


def fold_states(states: Iterable[SelectionState]) -> SelectionState:
    """Combine child states into the parent directory's state."""
    seen = set(states)
    if not seen or seen == {SelectionState.NOT_SELECTED}:
        return SelectionState.NOT_SELECTED
    if seen == {SelectionState.SELECTED}:
        return SelectionState.SELECTED
    return SelectionState.PARTIALLY_SELECTED


@dataclass
class RestoreNode:
    """One file or directory in the restore tree."""

    id: int
    name: str
    kind: NodeKind
    archive_relative_path: str
    parent_id: int | None = None
    children: list[int] = field(default_factory=list)  # Ids, ordered by name
    original_source_path: str | None = None  # Files only
    selected: SelectionState = SelectionState.NOT_SELECTED

    @property
    def is_file(self) -> bool:
        return self.kind is NodeKind.FILE

    @property
    def is_dir(self) -> bool:
        return self.kind is NodeKind.DIRECTORY


class RestoreTree:
    """Id-addressed tree with a synthetic root directory at ``ROOT_ID``."""

    def __init__(self) -> None:
        self.nodes: list[RestoreNode] = [
            RestoreNode(id=ROOT_ID, name="", kind=NodeKind.DIRECTORY, archive_relative_path="")
        ]
        self._by_path: dict[str, int] = {"": ROOT_ID}
        self.warnings: list[str] = []

    @classmethod
    def from_manifest(cls, manifest: Manifest) -> RestoreTree:
        tree = cls()
        for record in manifest.records:
            tree.add_record(record)
        return tree

    # ── Construction ──

    @property
    def root(self) -> RestoreNode:
        return self.nodes[ROOT_ID]

    def add_record(self, record: ManifestRecord) -> RestoreNode | None:
        """
        Fold one manifest record into the tree.

        Directory nodes along the path are created or reused; the last
        segment becomes a file node.  Returns ``None`` (and records a
        warning) when the record clashes with an existing node.
        """
        segments = record.segments
        if not segments:
            self.warnings.append(f"Empty archive path for {record.original_source_path}")
            return None

        parent = self.root
        for depth, segment in enumerate(segments[:-1], start=1):
            path = "/".join(segments[:depth])
            existing = self._by_path.get(path)
            if existing is None:
                parent = self._new_node(parent, segment, NodeKind.DIRECTORY, path)
            elif self.nodes[existing].is_file:
                self.warnings.append(f"'{path}' is both a file and a directory")
                return None
            else:
                parent = self.nodes[existing]

        path = "/".join(segments)
        if path in self._by_path:
            self.warnings.append(f"Duplicate archive path '{path}'")
            return None
        node = self._new_node(parent, segments[-1], NodeKind.FILE, path)
        node.original_source_path = record.original_source_path
        self._recompute_ancestors(node.id)
        return node

    def _new_node(
        self, parent: RestoreNode, name: str, kind: NodeKind, path: str,
    ) -> RestoreNode:
        node = RestoreNode(
            id=len(self.nodes),
            name=name,
            kind=kind,
            archive_relative_path=path,
            parent_id=parent.id,
        )
        self.nodes.append(node)
        self._by_path[path] = node.id
        insort(parent.children, node.id, key=lambda i: self.nodes[i].name)
        return node

    # ── Navigation ──

    def __len__(self) -> int:
        return len(self.nodes)

    def find(self, archive_relative_path: str) -> RestoreNode | None:
        node_id = self._by_path.get(archive_relative_path.strip("/"))
        return None if node_id is None else self.nodes[node_id]

    def children(self, node: RestoreNode) -> list[RestoreNode]:
        return [self.nodes[i] for i in node.children]

    def parent(self, node: RestoreNode) -> RestoreNode | None:
        return None if node.parent_id is None else self.nodes[node.parent_id]

    def walk(self, start: RestoreNode | None = None) -> Iterator[RestoreNode]:
        """Depth-first, pre-order, children in name order."""
        stack = [(start or self.root).id]
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def files(self) -> list[RestoreNode]:
        return [n for n in self.walk() if n.is_file]

    def selected_files(self) -> list[RestoreNode]:
        return [n for n in self.walk() if n.is_file and n.selected is SelectionState.SELECTED]

    @property
    def selected_count(self) -> int:
        return len(self.selected_files())

    # ── Selection ──

    def set_selected(self, node_id: int, selected: bool) -> None:
        """Toggle a file, or every file under a directory, then refresh ancestors."""
        state = SelectionState.SELECTED if selected else SelectionState.NOT_SELECTED
        node = self.nodes[node_id]
        if node.is_file:
            node.selected = state
        else:
            # Reversed pre-order visits every child before its parent
            for child in reversed(list(self.walk(node))):
                if child.is_file:
                    child.selected = state
                else:
                    child.selected = fold_states(self.nodes[i].selected for i in child.children)
        self._recompute_ancestors(node.id)

    def select_all(self, selected: bool = True) -> None:
        self.set_selected(ROOT_ID, selected)

    def _recompute_ancestors(self, node_id: int) -> None:
        parent_id = self.nodes[node_id].parent_id
        while parent_id is not None:
            parent = self.nodes[parent_id]
            parent.selected = fold_states(self.nodes[i].selected for i in parent.children)
            parent_id = parent.parent_id
