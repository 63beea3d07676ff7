"""Diagram tree nodes, path annotation and fold-state preservation.

Node objects are rebuilt from scratch on every update, so nothing here keeps a
reference to a node across cycles. The path written into `payload["path"]` is
the only identity that survives a rebuild.
"""

from __future__ import annotations

import html
import itertools
import re
from dataclasses import dataclass, field
from typing import Any, Iterator

from .outline import join_path

_TAG_RE = re.compile(r"<[^>]*>")
_node_ids = itertools.count(1)


@dataclass(eq=False)
class DiagramNode:
    content: str = ""
    children: list[DiagramNode] = field(default_factory=list)
    depth: int = 0
    payload: dict[str, Any] = field(default_factory=dict)
    key: int = field(default_factory=lambda: next(_node_ids))

    @property
    def path(self) -> str | None:
        return self.payload.get("path")

    @property
    def folded(self) -> bool:
        return bool(self.payload.get("fold"))

    def __repr__(self) -> str:
        return f"DiagramNode({self.content!r}, depth={self.depth}, children={len(self.children)})"


def walk(root: DiagramNode | None) -> Iterator[DiagramNode]:
    """Pre-order traversal."""
    if root is None:
        return
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def walk_visible(root: DiagramNode | None) -> Iterator[DiagramNode]:
    """Pre-order traversal that does not descend into folded nodes."""
    if root is None:
        return
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        if not node.folded:
            stack.extend(reversed(node.children))


def decode_content(content: str) -> str:
    """Plain text of a node's HTML content."""
    return html.unescape(_TAG_RE.sub("", content or "")).strip()


def annotate_paths(root: DiagramNode, parent_path: str = "") -> None:
    """Assign payload["path"] to every node, recursively."""
    if root.content:
        path = join_path(parent_path, decode_content(root.content))
        root.payload["path"] = path
    else:
        # Grouping nodes (e.g. several top-level headings) add no segment.
        path = parent_path
        root.payload.pop("path", None)
    for child in root.children:
        annotate_paths(child, path)


def collect_nodes(root: DiagramNode | None) -> dict[str, DiagramNode]:
    """Map path -> node; first node in document order wins on duplicates."""
    nodes: dict[str, DiagramNode] = {}
    for node in walk(root):
        path = node.path
        if path and path not in nodes:
            nodes[path] = node
    return nodes


def snapshot_folded(old_root: DiagramNode | None) -> frozenset[str]:
    return frozenset(node.path for node in walk(old_root) if node.folded and node.path)


def restore_folded(new_root: DiagramNode, snapshot: frozenset[str]) -> int:
    """Fold every node of `new_root` whose path is in `snapshot`.

    Nodes not listed keep their natural (unfolded) state; snapshot paths that
    no longer exist are dropped.
    """
    restored = 0
    for node in walk(new_root):
        if node.path in snapshot:
            node.payload["fold"] = True
            restored += 1
        else:
            node.payload.pop("fold", None)
    return restored


def apply_initial_expand_level(root: DiagramNode, level: int) -> None:
    for node in walk(root):
        if node.children and node.depth >= level:
            node.payload["fold"] = True
