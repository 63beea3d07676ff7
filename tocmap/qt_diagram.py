"""QGraphicsView mindmap surface implementing the DiagramHandle protocol.

Nodes are laid out left to right: one column per depth, rows assigned in
pre-order over the visible (unfolded) part of the tree. Pan and zoom are a
single transform on a canvas item, so scene coordinates equal viewport
coordinates and `node_rect` is directly comparable with the surface size.
"""

from __future__ import annotations

import logging
from typing import Any

from PySide6.QtCore import QEasingCurve, QPointF, Qt, QVariantAnimation, Signal
from PySide6.QtGui import QBrush, QColor, QPainter, QPainterPath, QPen, QTransform
from PySide6.QtWidgets import (
    QFrame,
    QGraphicsEllipseItem,
    QGraphicsItem,
    QGraphicsPathItem,
    QGraphicsRectItem,
    QGraphicsScene,
    QGraphicsTextItem,
    QGraphicsView,
)

from .config import DEFAULT_PALETTE
from .diagram import DiagramNode, walk, walk_visible
from .geometry import Rect, ViewTransform, zoom_about

logger = logging.getLogger(__name__)

FOLD_RADIUS = 5.0
NODE_PADDING = 4.0
MAX_FIT_SCALE = 2.0
WHEEL_ZOOM_STEP = 1.15
CLICK_SLOP_PX = 4


class NodeItem(QGraphicsRectItem):
    def __init__(self, node: DiagramNode, color: QColor, parent: QGraphicsItem):
        super().__init__(parent)
        self.node = node
        self.color = color
        self.text = QGraphicsTextItem(self)
        self.text.setHtml(node.content)
        self.text.setPos(NODE_PADDING, NODE_PADDING / 2)
        bounds = self.text.boundingRect()
        self.setRect(0, 0, bounds.width() + 2 * NODE_PADDING, bounds.height() + NODE_PADDING)
        self.setPen(Qt.PenStyle.NoPen)
        self.setBrush(Qt.BrushStyle.NoBrush)
        self.setCursor(Qt.CursorShape.PointingHandCursor)

        self.fold_circle: QGraphicsEllipseItem | None = None
        if node.children:
            rect = self.rect()
            self.fold_circle = QGraphicsEllipseItem(
                rect.right() + 2, rect.bottom() - FOLD_RADIUS, 2 * FOLD_RADIUS, 2 * FOLD_RADIUS, self
            )
            self.fold_circle.setPen(QPen(color, 1.5))
            self.fold_circle.setBrush(QBrush(color if node.folded else QColor("#ffffff")))
            self.fold_circle.setCursor(Qt.CursorShape.PointingHandCursor)

    def anchor_out(self) -> QPointF:
        rect = self.rect()
        return self.mapToParent(QPointF(rect.right() + 2 * FOLD_RADIUS + 2, rect.bottom()))

    def anchor_in(self) -> QPointF:
        rect = self.rect()
        return self.mapToParent(QPointF(rect.left(), rect.bottom()))


class MindmapView(QGraphicsView):
    """Surface widget. Emits `node_clicked` with the DiagramNode under the cursor."""

    node_clicked = Signal(object)

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setScene(QGraphicsScene(self))
        self.setRenderHint(QPainter.RenderHint.Antialiasing)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setAlignment(Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop)
        self.setFrameShape(QFrame.Shape.NoFrame)
        self.setBackgroundBrush(QBrush(QColor("#ffffff")))
        self.diagram: MindmapDiagram | None = None
        self._press_pos: QPointF | None = None
        self._last_pos: QPointF | None = None
        self._dragging = False

    def resizeEvent(self, event) -> None:  # noqa: N802
        super().resizeEvent(event)
        self.scene().setSceneRect(0, 0, self.viewport().width(), self.viewport().height())

    def wheelEvent(self, event) -> None:  # noqa: N802
        if self.diagram is None:
            return
        factor = WHEEL_ZOOM_STEP if event.angleDelta().y() > 0 else 1.0 / WHEEL_ZOOM_STEP
        pos = event.position()
        transform = zoom_about(self.diagram.current_transform(), factor, (pos.x(), pos.y()))
        self.diagram.apply_transform(transform, 0)

    def mousePressEvent(self, event) -> None:  # noqa: N802
        if event.button() == Qt.MouseButton.LeftButton:
            self._press_pos = event.position()
            self._last_pos = event.position()
            self._dragging = False
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event) -> None:  # noqa: N802
        if self._press_pos is not None and self.diagram is not None:
            pos = event.position()
            if not self._dragging and (pos - self._press_pos).manhattanLength() > CLICK_SLOP_PX:
                self._dragging = True
            if self._dragging:
                delta = pos - self._last_pos
                current = self.diagram.current_transform()
                self.diagram.apply_transform(ViewTransform(current.x + delta.x(), current.y + delta.y(), current.k), 0)
            self._last_pos = pos
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event) -> None:  # noqa: N802
        was_click = self._press_pos is not None and not self._dragging
        self._press_pos = None
        self._last_pos = None
        self._dragging = False
        super().mouseReleaseEvent(event)
        if not was_click or self.diagram is None or event.button() != Qt.MouseButton.LeftButton:
            return
        self.diagram.handle_click(self.mapToScene(event.position().toPoint()))


class MindmapDiagram:
    """One rendering session on a MindmapView, created on show and destroyed on hide."""

    def __init__(self, view: MindmapView, options: dict[str, Any]):
        self.view = view
        self.options = dict(options)
        self.root: DiagramNode | None = None
        self._transform = ViewTransform()
        self._items: dict[int, NodeItem] = {}
        self._animations: dict[int, QVariantAnimation] = {}
        self._transform_animation: QVariantAnimation | None = None
        self._message_item: QGraphicsTextItem | None = None
        self._canvas = QGraphicsRectItem()
        self._canvas.setPen(Qt.PenStyle.NoPen)
        view.scene().addItem(self._canvas)
        view.scene().setSceneRect(0, 0, view.viewport().width(), view.viewport().height())
        view.diagram = self

    # -- data -------------------------------------------------------------

    def set_data(self, root: DiagramNode, options: dict[str, Any] | None = None) -> None:
        if options:
            self.options.update(options)
        self.root = root
        self._clear_message()
        self._render()

    def toggle_node(self, node: DiagramNode) -> None:
        node.payload["fold"] = not node.folded
        self._render()

    def show_message(self, text: str, error: bool = False) -> None:
        self.root = None
        self._clear_items()
        self._clear_message()
        item = QGraphicsTextItem(text)
        item.setDefaultTextColor(QColor("#d32f2f" if error else "#555555"))
        rect = item.boundingRect()
        width, height = self.surface_size()
        if error:
            item.setPos(10, 10)
        else:
            item.setPos((width - rect.width()) / 2, (height - rect.height()) / 2)
        self.view.scene().addItem(item)
        self._message_item = item

    def destroy(self) -> None:
        for animation in list(self._animations.values()):
            animation.stop()
        self._animations.clear()
        if self._transform_animation is not None:
            self._transform_animation.stop()
            self._transform_animation = None
        self._clear_message()
        self._clear_items()
        self.view.scene().removeItem(self._canvas)
        if self.view.diagram is self:
            self.view.diagram = None

    # -- geometry ---------------------------------------------------------

    def surface_size(self) -> tuple[float, float]:
        viewport = self.view.viewport()
        return float(viewport.width()), float(viewport.height())

    def current_transform(self) -> ViewTransform:
        return self._transform

    def apply_transform(self, transform: ViewTransform, duration_ms: int) -> None:
        if self._transform_animation is not None:
            self._transform_animation.stop()
            self._transform_animation = None
        if duration_ms <= 0:
            self._set_transform(transform)
            return

        start = self._transform
        animation = QVariantAnimation()
        animation.setStartValue(0.0)
        animation.setEndValue(1.0)
        animation.setDuration(int(duration_ms))
        animation.setEasingCurve(QEasingCurve.Type.InOutCubic)

        def step(value) -> None:
            t = float(value)
            self._set_transform(
                ViewTransform(
                    start.x + (transform.x - start.x) * t,
                    start.y + (transform.y - start.y) * t,
                    start.k + (transform.k - start.k) * t,
                )
            )

        animation.valueChanged.connect(step)
        self._transform_animation = animation
        animation.start()

    def _set_transform(self, transform: ViewTransform) -> None:
        self._transform = transform
        self._canvas.setTransform(QTransform(transform.k, 0, 0, transform.k, transform.x, transform.y))

    def node_rect(self, node: DiagramNode) -> Rect | None:
        item = self._items.get(node.key)
        if item is None:
            return None
        bounds = item.mapRectToScene(item.rect())
        return Rect(bounds.left(), bounds.top(), bounds.width(), bounds.height())

    def fit(self) -> None:
        bounds = self._canvas.childrenBoundingRect()
        width, height = self.surface_size()
        if bounds.isEmpty() or width <= 0 or height <= 0:
            return
        ratio = float(self.options.get("fit_ratio", 0.95))
        scale = min(width / bounds.width() * ratio, height / bounds.height() * ratio, MAX_FIT_SCALE)
        center = bounds.center()
        self.apply_transform(
            ViewTransform(width / 2 - center.x() * scale, height / 2 - center.y() * scale, scale),
            int(self.options.get("fit_animation_ms", 500)),
        )

    def highlight_node(self, node: DiagramNode, color: str, duration_ms: int) -> None:
        item = self._items.get(node.key)
        if item is None:
            return
        previous = self._animations.pop(node.key, None)
        if previous is not None:
            previous.stop()

        base = QColor(item.color)
        base.setAlpha(0)
        target = QColor(color)
        animation = QVariantAnimation()
        animation.setDuration(max(1, int(duration_ms)))
        animation.setStartValue(base)
        animation.setKeyValueAt(0.5, target)
        animation.setEndValue(base)
        animation.valueChanged.connect(lambda value: item.setBrush(QBrush(value)))
        animation.finished.connect(lambda: item.setBrush(Qt.BrushStyle.NoBrush))
        animation.finished.connect(lambda key=node.key: self._animations.pop(key, None))
        self._animations[node.key] = animation
        animation.start()

    # -- interaction ------------------------------------------------------

    def handle_click(self, scene_pos: QPointF) -> None:
        for item in self.view.scene().items(scene_pos):
            if isinstance(item, QGraphicsEllipseItem) and isinstance(item.parentItem(), NodeItem):
                self.toggle_node(item.parentItem().node)
                return
            owner = item if isinstance(item, NodeItem) else item.parentItem()
            if isinstance(owner, NodeItem):
                self.view.node_clicked.emit(owner.node)
                return

    # -- rendering --------------------------------------------------------

    def _clear_items(self) -> None:
        for animation in list(self._animations.values()):
            animation.stop()
        self._animations.clear()
        for child in list(self._canvas.childItems()):
            self.view.scene().removeItem(child)
        self._items.clear()

    def _clear_message(self) -> None:
        if self._message_item is not None:
            self.view.scene().removeItem(self._message_item)
            self._message_item = None

    def _palette(self) -> list[QColor]:
        colors = self.options.get("color") or list(DEFAULT_PALETTE)
        return [QColor(value) for value in colors]

    def _render(self) -> None:
        self._clear_items()
        if self.root is None:
            return
        palette = self._palette()
        freeze_level = int(self.options.get("color_freeze_level", 2))
        spacing_h = float(self.options.get("spacing_horizontal", 80))
        spacing_v = float(self.options.get("spacing_vertical", 20))
        padding_x = float(self.options.get("padding_x", 20))

        column_widths: dict[int, float] = {}
        next_color = 0

        def build(node: DiagramNode, parent_color: QColor | None) -> None:
            nonlocal next_color
            # Branches get their own color down to the freeze level, then inherit.
            if parent_color is None or node.depth <= freeze_level:
                color = palette[next_color % len(palette)]
                next_color += 1
            else:
                color = parent_color
            item = NodeItem(node, color, self._canvas)
            self._items[node.key] = item
            column_widths[node.depth] = max(column_widths.get(node.depth, 0.0), item.rect().width())
            if not node.folded:
                for child in node.children:
                    build(child, color)

        build(self.root, None)

        column_x: dict[int, float] = {}
        x = padding_x
        for depth in sorted(column_widths):
            column_x[depth] = x
            x += column_widths[depth] + 2 * FOLD_RADIUS + spacing_h

        # Leaves take consecutive rows; parents center on their visible children.
        cursor_y = 0.0

        def place(node: DiagramNode) -> float:
            nonlocal cursor_y
            item = self._items[node.key]
            height = item.rect().height()
            visible_children = [] if node.folded else node.children
            if not visible_children:
                top = cursor_y
                cursor_y += height + spacing_v
            else:
                centers = [place(child) for child in visible_children]
                top = (centers[0] + centers[-1]) / 2 - height / 2
            item.setPos(column_x[node.depth], top)
            return top + height / 2

        place(self.root)

        for node in walk_visible(self.root):
            parent_item = self._items[node.key]
            underline = QGraphicsPathItem(self._canvas)
            rect = parent_item.mapRectToParent(parent_item.rect())
            line = QPainterPath(QPointF(rect.left(), rect.bottom()))
            line.lineTo(QPointF(rect.right(), rect.bottom()))
            underline.setPath(line)
            underline.setPen(QPen(parent_item.color, 1.5))
            if node.folded:
                continue
            for child in node.children:
                child_item = self._items[child.key]
                start, end = parent_item.anchor_out(), child_item.anchor_in()
                path = QPainterPath(start)
                mid_x = (start.x() + end.x()) / 2
                path.cubicTo(QPointF(mid_x, start.y()), QPointF(mid_x, end.y()), end)
                edge = QGraphicsPathItem(path, self._canvas)
                edge.setPen(QPen(child_item.color, 1.5))
                edge.setZValue(-1)
                child_item.setZValue(1)

        self._set_transform(self._transform)
        logger.debug("Rendered %d of %d nodes", len(self._items), sum(1 for _ in walk(self.root)))


class QtDiagramFactory:
    def create(self, surface: MindmapView, options: dict[str, Any], root: DiagramNode | None) -> MindmapDiagram:
        diagram = MindmapDiagram(surface, options)
        if root is not None:
            diagram.set_data(root)
        return diagram
