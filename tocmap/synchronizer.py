"""Rebuild pipeline that keeps the mindmap in step with the document outline."""

from __future__ import annotations

import logging

from .config import MindmapOptions
from .diagram import DiagramNode, annotate_paths, apply_initial_expand_level, collect_nodes, restore_folded, snapshot_folded
from .index import PathIndex
from .outline import HeadingInfo, build_toc_markdown, extract_headings, outline_hash
from .protocols import DiagramHandle, HostDocument, Scheduler, TreeTransformer

logger = logging.getLogger(__name__)

EMPTY_OUTLINE_MESSAGE = "This document has no headings"


class OutlineSynchronizer:
    """Owns the per-view state: index, node registry, current tree and hash.

    Only `update` mutates this state, and it runs to completion on the UI
    thread, so readers (the navigator) never observe a half-built cycle.
    """

    def __init__(
        self,
        host: HostDocument,
        transformer: TreeTransformer,
        scheduler: Scheduler,
        options: MindmapOptions | None = None,
    ):
        self.host = host
        self.transformer = transformer
        self.scheduler = scheduler
        self.options = options or MindmapOptions()
        self.diagram: DiagramHandle | None = None
        self.index = PathIndex()
        self.nodes: dict[str, DiagramNode] = {}
        self.headings: list[HeadingInfo] = []
        self.root: DiagramNode | None = None
        self.outline_hash: str | None = None
        self.rebuild_count = 0
        self.last_error: str | None = None

    def attach(self, diagram: DiagramHandle) -> None:
        self.diagram = diagram
        # A fresh surface has nothing drawn; the next update must not short-circuit.
        self.outline_hash = None

    def detach(self) -> None:
        diagram, self.diagram = self.diagram, None
        if diagram is not None:
            diagram.destroy()

    def update(self, force: bool = False) -> bool:
        """Run one rebuild cycle; return True when the diagram data was replaced."""
        if self.diagram is None:
            return False

        headings = extract_headings(self.host)
        new_hash = outline_hash(headings)
        if not force and new_hash == self.outline_hash:
            # Same outline, but the host may hand out new element references.
            self.headings = headings
            self.index.rebuild(headings, self.root)
            return False

        if not headings:
            self.diagram.show_message(EMPTY_OUTLINE_MESSAGE)
            self._commit([], None, new_hash)
            return True

        try:
            markdown = build_toc_markdown(headings)
            root = self.transformer.transform(markdown).root
            annotate_paths(root)
            if self.root is None:
                apply_initial_expand_level(root, self.options.initial_expand_level)
            else:
                restored = restore_folded(root, snapshot_folded(self.root))
                logger.debug("Restored %d folded nodes", restored)
            self.diagram.set_data(root, self.options.layout_options())
        except Exception as exc:
            # Keep the previous index so already-resolved navigation still works.
            logger.exception("Rebuilding the outline mindmap failed")
            self.last_error = str(exc)
            # The surface now shows the error, so an unchanged outline must redraw.
            self.outline_hash = None
            self.diagram.show_message(f"Render error: {exc}", error=True)
            return False

        self._commit(headings, root, new_hash)
        logger.info("Outline mindmap rebuilt: %d headings, %d indexed", len(headings), len(self.index))
        return True

    def _commit(self, headings: list[HeadingInfo], root: DiagramNode | None, new_hash: str) -> None:
        self.headings = headings
        self.root = root
        self.nodes = collect_nodes(root)
        self.index.rebuild(headings, root)
        self.outline_hash = new_hash
        self.last_error = None
        self.rebuild_count += 1
