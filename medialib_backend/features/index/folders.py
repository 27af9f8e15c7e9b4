"""
Folder hierarchy over document paths.

Nodes live in an arena keyed by path (no leading slash); parent and children
are path references, so the structure is a forest with O(1) lookups.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from ...shared import DOCUMENT_SUFFIX
from .models import FolderNodeType


@dataclass
class FolderNode:
    path: str
    name: str
    level: int
    type: FolderNodeType
    parent: Optional[str] = None
    children: set[str] = field(default_factory=set)
    count: int = 0
    has_files: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "name": self.name,
            "level": self.level,
            "type": self.type,
            "parent": self.parent,
            "children": sorted(self.children),
            "count": self.count,
            "hasFiles": self.has_files,
        }


def _doc_parts(doc: str) -> list[str]:
    return [p for p in str(doc or "").split("/") if p]


class FolderHierarchy:
    def __init__(self) -> None:
        self.nodes: dict[str, FolderNode] = {}

    def __contains__(self, path: object) -> bool:
        return path in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[FolderNode]:
        return iter(self.nodes.values())

    def get(self, path: str) -> Optional[FolderNode]:
        return self.nodes.get(str(path or "").lstrip("/"))

    def roots(self) -> list[FolderNode]:
        return [node for node in self.nodes.values() if node.parent is None]

    def add_document(self, doc: str) -> None:
        """Create the folder chain and file node for an `.html` document path."""
        parts = _doc_parts(doc)
        if not parts or not parts[-1].endswith(DOCUMENT_SUFFIX):
            return
        current = ""
        for part in parts[:-1]:
            parent = current or None
            current = f"{current}/{part}" if current else part
            if current not in self.nodes:
                self.nodes[current] = FolderNode(
                    path=current, name=part, level=current.count("/") + 1, type="folder", parent=parent
                )
            if parent is not None:
                self.nodes[parent].children.add(current)

        file_path = "/".join(parts)
        parent_path = "/".join(parts[:-1]) or None
        if file_path not in self.nodes:
            self.nodes[file_path] = FolderNode(
                path=file_path, name=parts[-1], level=len(parts), type="file", parent=parent_path
            )
        if parent_path is not None:
            folder = self.nodes[parent_path]
            folder.has_files = True
            folder.children.add(file_path)

    def count_records(self, records: Iterable[Mapping[str, Any]]) -> None:
        """Recompute counts: each record counts once for its file node and every ancestor folder."""
        for node in self.nodes.values():
            node.count = 0
        for record in records:
            parts = _doc_parts(str(record.get("doc") or ""))
            if not parts or not parts[-1].endswith(DOCUMENT_SUFFIX):
                continue
            file_node = self.nodes.get("/".join(parts))
            if file_node is not None:
                file_node.count += 1
            current = ""
            for part in parts[:-1]:
                current = f"{current}/{part}" if current else part
                folder = self.nodes.get(current)
                if folder is not None:
                    folder.count += 1

    def root_total(self) -> int:
        return sum(node.count for node in self.roots())

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {path: self.nodes[path].to_dict() for path in sorted(self.nodes)}


def build_folder_hierarchy(records: Iterable[Mapping[str, Any]]) -> FolderHierarchy:
    records = list(records)
    hierarchy = FolderHierarchy()
    for record in records:
        hierarchy.add_document(str(record.get("doc") or ""))
    hierarchy.count_records(records)
    return hierarchy
