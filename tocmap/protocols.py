"""Contracts between the synchronization engine and its collaborators.

The engine never touches widgets directly. A host document, a markdown-to-tree
transform and a diagram library are handed in through these protocols; the Qt
implementations live in `qt_host` and `qt_diagram`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Hashable, NamedTuple, Protocol, Sequence

if TYPE_CHECKING:
    from .diagram import DiagramNode
    from .geometry import Rect, ViewTransform


class RawHeading(NamedTuple):
    """One heading element as reported by the host, in document order."""

    element: Hashable
    level: int
    text: str
    id: str = ""


class HostDocument(Protocol):
    def get_headings(self) -> Sequence[RawHeading]: ...

    def get_markdown(self) -> str: ...

    def resolve_image_path(self, src: str) -> str: ...

    def viewport(self) -> tuple[float, float]:
        """Return (top, bottom) of the visible region in document coordinates."""
        ...

    def heading_offset(self, element: Hashable) -> float | None: ...

    def base_font_size(self) -> float | None:
        """Font size of body paragraphs, or None when it cannot be measured."""
        ...

    def scroll_to_heading(self, element: Hashable, top_offset: float) -> None: ...

    def highlight_heading(self, element: Hashable, color: str) -> None: ...

    def clear_heading_highlight(self, element: Hashable) -> None: ...


class DiagramHandle(Protocol):
    def set_data(self, root: DiagramNode, options: dict[str, Any]) -> None: ...

    def toggle_node(self, node: DiagramNode) -> None: ...

    def fit(self) -> None: ...

    def current_transform(self) -> ViewTransform: ...

    def apply_transform(self, transform: ViewTransform, duration_ms: int) -> None: ...

    def node_rect(self, node: DiagramNode) -> Rect | None:
        """Rendered bounds in surface coordinates, None when the node is not drawn."""
        ...

    def surface_size(self) -> tuple[float, float]: ...

    def highlight_node(self, node: DiagramNode, color: str, duration_ms: int) -> None: ...

    def show_message(self, text: str, error: bool = False) -> None: ...

    def destroy(self) -> None: ...


class DiagramFactory(Protocol):
    def create(self, surface: Any, options: dict[str, Any], root: DiagramNode | None) -> DiagramHandle: ...


class TreeTransformer(Protocol):
    def transform(self, markdown: str) -> Any:
        """Return an object with a `root` DiagramNode attribute."""
        ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...
