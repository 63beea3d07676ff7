"""Viewport-aware navigation between the document and the mindmap."""

from __future__ import annotations

import enum
import logging
import math
from typing import TYPE_CHECKING, Hashable, Sequence

from .geometry import Rect, focus_transform, untransformed_center, zoom_about
from .outline import HeadingInfo, ancestor_paths

if TYPE_CHECKING:
    from .diagram import DiagramNode
    from .synchronizer import OutlineSynchronizer

logger = logging.getLogger(__name__)


class NavigationOutcome(enum.Enum):
    FOCUSED = "focused"
    PENDING = "pending"  # ancestors expanded, waiting for layout to settle
    FALLBACK = "fallback"  # node not found, whole diagram fitted
    IGNORED = "ignored"  # no diagram, or nothing to navigate to


class Navigator:
    def __init__(self, sync: OutlineSynchronizer):
        self._sync = sync

    @property
    def options(self):
        return self._sync.options

    def current_visible_heading(self, headings: Sequence[HeadingInfo] | None = None) -> HeadingInfo | None:
        """First heading within [top - margin, bottom], else the one closest to top."""
        host = self._sync.host
        if headings is None:
            headings = self._sync.headings
        top, bottom = host.viewport()
        margin = self.options.viewport_margin

        closest: HeadingInfo | None = None
        min_distance = math.inf
        for heading in headings:
            offset = host.heading_offset(heading.element)
            if offset is None:
                continue
            if top - margin <= offset <= bottom:
                return heading
            distance = abs(offset - top)
            if distance < min_distance:
                min_distance = distance
                closest = heading
        return closest

    def calculate_optimal_scale(self, rect: Rect | None, current_zoom: float) -> float:
        """Zoom at which the node's text matches the document's body font size."""
        default = self.options.default_scale
        base_size = self._sync.host.base_font_size()
        if rect is None or rect.height <= 0 or not current_zoom or current_zoom <= 0:
            logger.debug("Node geometry unavailable (rect=%s, zoom=%s); using scale %s", rect, current_zoom, default)
            return default
        if not base_size or base_size <= 0:
            logger.debug("Body font size unavailable; using scale %s", default)
            return default

        height_at_unit_zoom = rect.height / current_zoom
        scale = base_size / height_at_unit_zoom
        logger.debug(
            "Body font %.1f, node height %.1f at zoom %.2f (%.1f at 1.0) -> scale %.2f",
            base_size,
            rect.height,
            current_zoom,
            height_at_unit_zoom,
            scale,
        )
        return scale

    def pan_and_zoom_to_node(self, node: DiagramNode, rect: Rect, target_scale: float) -> None:
        diagram = self._sync.diagram
        if diagram is None:
            return
        current = diagram.current_transform()
        center = untransformed_center(rect, current)
        transform = focus_transform(center, diagram.surface_size(), target_scale)
        diagram.apply_transform(transform, self.options.fit_animation_ms)
        diagram.highlight_node(node, self.options.node_highlight_color, self.options.highlight_duration_ms)

    def _rendered(self, path: str) -> tuple[DiagramNode | None, Rect | None]:
        diagram = self._sync.diagram
        node = self._sync.nodes.get(path)
        if node is None or diagram is None:
            return node, None
        return node, diagram.node_rect(node)

    def _focus(self, node: DiagramNode, rect: Rect) -> None:
        scale = self.calculate_optimal_scale(rect, self._sync.diagram.current_transform().k)
        self.pan_and_zoom_to_node(node, rect, scale)

    def _fallback_fit(self, path: str) -> NavigationOutcome:
        logger.warning("No diagram node for %r; fitting whole diagram. Known paths: %s", path, self._sync.index.paths())
        self._sync.diagram.fit()
        return NavigationOutcome.FALLBACK

    def expand_ancestors(self, path: str) -> int:
        """Unfold every folded ancestor of `path`, outermost first."""
        diagram = self._sync.diagram
        expanded = 0
        for ancestor in ancestor_paths(path):
            node = self._sync.nodes.get(ancestor)
            if node is not None and node.folded:
                diagram.toggle_node(node)
                expanded += 1
        return expanded

    def navigate_to_heading(self, path: str | None) -> NavigationOutcome:
        if self._sync.diagram is None or not path:
            return NavigationOutcome.IGNORED

        node, rect = self._rendered(path)
        if node is not None and rect is not None:
            self._focus(node, rect)
            return NavigationOutcome.FOCUSED

        if not self.expand_ancestors(path):
            return self._fallback_fit(path)

        def retry() -> None:
            # Lookups go by path, so a rebuild in the meantime is harmless.
            if self._sync.diagram is None:
                return
            node, rect = self._rendered(path)
            if node is not None and rect is not None:
                self._focus(node, rect)
            else:
                self._fallback_fit(path)

        self._sync.scheduler.call_later(self.options.settle_ms, retry)
        return NavigationOutcome.PENDING

    def navigate_to_element(self, element: Hashable) -> NavigationOutcome:
        """Heading activated in the document: focus its node."""
        path = self._sync.index.lookup_path(element)
        if path is None:
            logger.warning("Heading %r is not indexed. Known paths: %s", element, self._sync.index.paths())
            if self._sync.diagram is not None:
                self._sync.diagram.fit()
                return NavigationOutcome.FALLBACK
            return NavigationOutcome.IGNORED
        return self.navigate_to_heading(path)

    def fit_to_current_heading(self) -> NavigationOutcome:
        if self._sync.diagram is None:
            return NavigationOutcome.IGNORED
        heading = self.current_visible_heading()
        if heading is None:
            logger.info("No current heading; fitting whole diagram")
            self._sync.diagram.fit()
            return NavigationOutcome.FALLBACK
        logger.info("Current visible heading: %r", heading.text)
        return self.navigate_to_heading(heading.path)

    def navigate_to_diagram_node(self, node: DiagramNode) -> bool:
        """Diagram node clicked: scroll the document to its heading."""
        path = node.path
        element = self._sync.index.lookup_element(path)
        if element is None:
            logger.warning("No heading for node path %r. Known paths: %s", path, self._sync.index.paths())
            return False

        host = self._sync.host
        host.scroll_to_heading(element, self.options.scroll_offset)
        host.highlight_heading(element, self.options.heading_highlight_color)
        self._sync.scheduler.call_later(self.options.scroll_settle_ms, lambda: host.clear_heading_highlight(element))
        return True

    def zoom_by(self, factor: float) -> None:
        diagram = self._sync.diagram
        if diagram is None or factor <= 0:
            return
        width, height = diagram.surface_size()
        transform = zoom_about(diagram.current_transform(), factor, (width / 2.0, height / 2.0))
        diagram.apply_transform(transform, self.options.zoom_animation_ms)

    def zoom_in(self) -> None:
        self.zoom_by(1.0 + self.options.zoom_step)

    def zoom_out(self) -> None:
        self.zoom_by(1.0 / (1.0 + self.options.zoom_step))
