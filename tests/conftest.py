from __future__ import annotations

import pytest

from tocmap.config import MindmapOptions
from tocmap.diagram import walk_visible
from tocmap.geometry import Rect, ViewTransform
from tocmap.protocols import RawHeading
from tocmap.scheduler import ManualScheduler
from tocmap.transform import MarkdownTreeTransformer


class FakeHost:
    """In-memory document: headings are (element, level, text, offset) tuples."""

    def __init__(self, headings=(), viewport=(0.0, 500.0), font_size=16.0):
        self.headings = list(headings)
        self.view = viewport
        self.font_size = font_size
        self.scrolled: list[tuple[object, float]] = []
        self.highlighted: dict[object, str] = {}
        self.cleared: list[object] = []

    def set_headings(self, headings) -> None:
        self.headings = list(headings)

    def get_headings(self):
        return [RawHeading(element, level, text) for element, level, text, _offset in self.headings]

    def get_markdown(self) -> str:
        return "\n\n".join(f"{'#' * level} {text}" for _e, level, text, _o in self.headings)

    def resolve_image_path(self, src: str) -> str:
        return src

    def viewport(self):
        return self.view

    def heading_offset(self, element):
        for candidate, _level, _text, offset in self.headings:
            if candidate == element:
                return offset
        return None

    def base_font_size(self):
        return self.font_size

    def scroll_to_heading(self, element, top_offset: float) -> None:
        self.scrolled.append((element, top_offset))

    def highlight_heading(self, element, color: str) -> None:
        self.highlighted[element] = color

    def clear_heading_highlight(self, element) -> None:
        self.highlighted.pop(element, None)
        self.cleared.append(element)


class FakeObserver:
    def __init__(self, callback):
        self.callback = callback
        self.disconnected = False

    def disconnect(self) -> None:
        self.disconnected = True


class ObservableHost(FakeHost):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.observers: list[FakeObserver] = []

    def observe(self, callback) -> FakeObserver:
        observer = FakeObserver(callback)
        self.observers.append(observer)
        return observer


class FakeDiagram:
    """Records calls; visible nodes are 100x(20*k) boxes stacked by pre-order."""

    def __init__(self, size=(400.0, 300.0)):
        self.size = size
        self.root = None
        self.transform = ViewTransform()
        self.set_data_calls = 0
        self.fit_calls = 0
        self.applied: list[tuple[ViewTransform, int]] = []
        self.highlights: list[tuple[object, str, int]] = []
        self.messages: list[tuple[str, bool]] = []
        self.toggled: list[object] = []
        self.destroyed = False
        self.fail_next_set_data: Exception | None = None

    def set_data(self, root, options) -> None:
        if self.fail_next_set_data is not None:
            exc, self.fail_next_set_data = self.fail_next_set_data, None
            raise exc
        self.root = root
        self.set_data_calls += 1

    def toggle_node(self, node) -> None:
        node.payload["fold"] = not node.folded
        self.toggled.append(node)

    def fit(self) -> None:
        self.fit_calls += 1

    def current_transform(self) -> ViewTransform:
        return self.transform

    def apply_transform(self, transform: ViewTransform, duration_ms: int) -> None:
        self.transform = transform
        self.applied.append((transform, duration_ms))

    def node_rect(self, node):
        for row, candidate in enumerate(walk_visible(self.root)):
            if candidate is node:
                k = self.transform.k
                left, top = self.transform.apply(10.0, row * 30.0)
                return Rect(left, top, 100.0 * k, 20.0 * k)
        return None

    def surface_size(self):
        return self.size

    def highlight_node(self, node, color: str, duration_ms: int) -> None:
        self.highlights.append((node, color, duration_ms))

    def show_message(self, text: str, error: bool = False) -> None:
        self.root = None
        self.messages.append((text, error))

    def destroy(self) -> None:
        self.destroyed = True


class FakeDiagramFactory:
    def __init__(self):
        self.created: list[FakeDiagram] = []

    def create(self, surface, options, root):
        diagram = FakeDiagram()
        self.created.append(diagram)
        return diagram


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def options():
    return MindmapOptions()


@pytest.fixture
def transformer():
    return MarkdownTreeTransformer()


@pytest.fixture
def host():
    return ObservableHost(
        [
            ("intro", 1, "Intro", 0.0),
            ("background", 2, "Background", 120.0),
            ("methods", 2, "Methods", 400.0),
            ("conclusion", 1, "Conclusion", 900.0),
            ("background-2", 2, "Background", 1000.0),
        ]
    )


@pytest.fixture
def diagram_factory():
    return FakeDiagramFactory()
