"""File-tree construction and main-file selection."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from .models import FileNode

MAIN_FILE_LIMIT = 10

MAIN_FILE_NAMES = frozenset(
    {
        "readme.md",
        "index.js",
        "index.ts",
        "main.py",
        "app.py",
        "package.json",
    }
)

MAIN_FILE_SUFFIXES = (".py", ".js", ".ts")


def is_main_file(name: str) -> bool:
    lowered = name.lower()
    return lowered in MAIN_FILE_NAMES or lowered.endswith(MAIN_FILE_SUFFIXES)


def select_main_files(tree: Sequence[FileNode], limit: int = MAIN_FILE_LIMIT) -> List[str]:
    """Return up to ``limit`` worthwhile file paths in depth-first order.

    Traversal follows ``children`` order as given, so callers must pass a tree
    that was path-sorted (see :func:`sort_tree`) for the result to be
    reproducible.
    """
    selected: List[str] = []

    def _walk(nodes: Iterable[FileNode]) -> None:
        for node in nodes:
            if len(selected) >= limit:
                return
            if node.is_directory:
                _walk(node.children)
            elif is_main_file(node.name):
                selected.append(node.path)

    _walk(tree)
    return selected[:limit]


def sort_tree(nodes: Sequence[FileNode]) -> List[FileNode]:
    """Return a copy of ``nodes`` with every level sorted by path."""
    ordered: List[FileNode] = []
    for node in sorted(nodes, key=lambda item: item.path):
        ordered.append(
            FileNode(
                name=node.name,
                path=node.path,
                kind=node.kind,
                children=sort_tree(node.children) if node.is_directory else [],
                size=node.size,
            )
        )
    return ordered


def build_file_tree(entries: Iterable[Mapping[str, Any]]) -> List[FileNode]:
    """Nest a flat git tree listing (``path``/``type``/``size`` entries).

    Entries of type ``tree`` become directories, everything else a file.
    Entries whose parent directory is absent from the listing are dropped.
    """
    roots: List[FileNode] = []
    by_path: Dict[str, FileNode] = {}
    for entry in sorted(entries, key=lambda item: str(item.get("path", ""))):
        path = str(entry.get("path") or "")
        if not path:
            continue
        is_directory = entry.get("type") == "tree"
        size = entry.get("size")
        node = FileNode(
            name=PurePosixPath(path).name,
            path=path,
            kind="directory" if is_directory else "file",
            size=None if is_directory or not isinstance(size, int) else size,
        )
        by_path[path] = node
        parent_path, _, _ = path.rpartition("/")
        if not parent_path:
            roots.append(node)
            continue
        parent = by_path.get(parent_path)
        if parent is not None and parent.is_directory:
            parent.children.append(node)
    return sort_tree(roots)


__all__ = [
    "MAIN_FILE_LIMIT",
    "MAIN_FILE_NAMES",
    "build_file_tree",
    "is_main_file",
    "select_main_files",
    "sort_tree",
]
