from __future__ import annotations

import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
QtWidgets = pytest.importorskip("PySide6.QtWidgets")
QtGui = pytest.importorskip("PySide6.QtGui")
QtTest = pytest.importorskip("PySide6.QtTest")

from tocmap.config import MindmapOptions  # noqa: E402
from tocmap.detector import is_heading_mutation  # noqa: E402
from tocmap.diagram import annotate_paths, collect_nodes  # noqa: E402
from tocmap.geometry import ViewTransform  # noqa: E402
from tocmap.qt_diagram import MindmapView, QtDiagramFactory  # noqa: E402
from tocmap.qt_host import OutlineTextEdit, QtDocumentHost, heading_slug  # noqa: E402
from tocmap.scheduler import QtScheduler  # noqa: E402

SAMPLE = "# Intro\n\nBody text.\n\n## Background\n\n## Methods\n\n# Conclusion\n"


@pytest.fixture(scope="module")
def qapp():
    return QtWidgets.QApplication.instance() or QtWidgets.QApplication([])


@pytest.fixture
def editor(qapp):
    widget = OutlineTextEdit()
    widget.resize(600, 400)
    widget.setMarkdown(SAMPLE)
    return widget


def test_host_reports_headings_with_stable_anchors(editor, tmp_path) -> None:
    host = QtDocumentHost(editor, tmp_path)

    first = host.get_headings()
    second = host.get_headings()

    assert [(h.level, h.text) for h in first] == [(1, "Intro"), (2, "Background"), (2, "Methods"), (1, "Conclusion")]
    assert [h.element for h in first] == [h.element for h in second]
    assert first[1].id == "background"
    assert host.anchor_for_block(first[2].element.block_number) is first[2].element
    assert host.heading_offset(first[0].element) is not None
    assert host.resolve_image_path("img.png") == (tmp_path / "img.png").resolve().as_uri()
    assert host.resolve_image_path("https://example.com/a.png") == "https://example.com/a.png"


def test_heading_highlight_is_cleared(editor) -> None:
    host = QtDocumentHost(editor, fade_ms=0)
    element = host.get_headings()[0].element

    host.highlight_heading(element, "#fff3bf")
    assert len(editor.extraSelections()) == 1
    assert editor.extraSelections()[0].format.background().color() == QtGui.QColor("#fff3bf")
    host.clear_heading_highlight(element)
    assert editor.extraSelections() == []


def test_heading_highlight_fades_in_and_out(editor) -> None:
    host = QtDocumentHost(editor, fade_ms=50)
    element = host.get_headings()[0].element

    host.highlight_heading(element, "#fff3bf")
    assert editor.extraSelections()[0].format.background().color().alpha() == 0
    QtTest.QTest.qWait(200)
    assert editor.extraSelections()[0].format.background().color().alpha() == 255

    host.clear_heading_highlight(element)
    assert len(editor.extraSelections()) == 1
    QtTest.QTest.qWait(200)
    assert editor.extraSelections() == []


def test_observer_reports_heading_changes(editor) -> None:
    host = QtDocumentHost(editor)
    batches = []
    observer = host.observe(batches.append)

    editor.setMarkdown(SAMPLE + "\n## Appendix\n")
    observer.disconnect()
    editor.setMarkdown(SAMPLE)

    assert batches
    assert any(is_heading_mutation(record) for batch in batches for record in batch)


def test_heading_slug() -> None:
    assert heading_slug("Hello, World!") == "hello-world"


def test_diagram_renders_and_folds(qapp, transformer) -> None:
    view = MindmapView()
    view.resize(400, 300)
    diagram = QtDiagramFactory().create(view, MindmapOptions().layout_options(), None)
    root = transformer.transform("# Intro\n## Background\n## Methods\n# Conclusion").root
    annotate_paths(root)
    nodes = collect_nodes(root)

    diagram.set_data(root)
    assert diagram.node_rect(nodes["Intro\nMethods"]) is not None

    diagram.toggle_node(nodes["Intro"])
    assert nodes["Intro"].folded
    assert diagram.node_rect(nodes["Intro\nMethods"]) is None

    diagram.apply_transform(ViewTransform(10.0, 20.0, 1.5), 0)
    assert diagram.current_transform() == ViewTransform(10.0, 20.0, 1.5)

    diagram.show_message("This document has no headings")
    assert diagram.node_rect(nodes["Intro"]) is None
    diagram.destroy()
    assert view.diagram is None


def test_cancelled_qt_timer_is_inactive(qapp) -> None:
    handle = QtScheduler().call_later(1000, lambda: None)

    assert handle.active
    handle.cancel()
    assert not handle.active


def test_print_outline(tmp_path, capsys) -> None:
    from tocmap.app import print_outline

    path = tmp_path / "doc.md"
    path.write_text("# A\n\ntext\n\n### B\n", encoding="utf-8")

    assert print_outline(path) == 0
    assert capsys.readouterr().out.splitlines() == ["A  [A]", "  B  [A > B]"]
