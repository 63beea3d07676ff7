"""tocmap: markdown editor with a live heading-outline mindmap."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QAction
from PySide6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from .component import TocMindmap
from .config import MindmapOptions, config_file_path, load_options
from .outline import headings_from_raw
from .qt_diagram import MindmapView, QtDiagramFactory
from .qt_host import OutlineTextEdit, QtDocumentHost
from .scheduler import QtScheduler
from .transform import MarkdownTreeTransformer

logger = logging.getLogger(__name__)

FILE_WATCH_INTERVAL_MS = 1200
EDITOR_WIDTH = 830


class TocMapWindow(QMainWindow):
    def __init__(self, path: Path | None, options: MindmapOptions):
        super().__init__()
        self.current_file: Path | None = path.resolve() if path is not None else None
        self._file_signature: tuple[int, int] | None = None

        self.setWindowTitle("tocmap")
        # Panel size options describe the mindmap pane; the editor gets the rest.
        self.resize(EDITOR_WIDTH + options.window_width, options.window_height + 260)

        self.editor = OutlineTextEdit()
        self.editor.setAcceptRichText(True)
        self.host = QtDocumentHost(self.editor, self.current_file.parent if self.current_file else None)

        self.mindmap_view = MindmapView()
        self.mindmap = TocMindmap(
            self.host,
            QtDiagramFactory(),
            self.mindmap_view,
            QtScheduler(self),
            options=options,
        )
        self.mindmap_view.node_clicked.connect(self.mindmap.on_node_clicked)
        self.editor.heading_clicked.connect(self._on_heading_clicked)

        self.title_label = QLabel("Outline mindmap")
        self.title_label.setStyleSheet("font-weight: bold; color: #333;")
        buttons = [
            ("+", "Zoom in", self.mindmap.zoom_in),
            ("-", "Zoom out", self.mindmap.zoom_out),
            ("Refresh", "Rebuild the mindmap", self._refresh_mindmap),
            ("Fit", "Focus the heading at the top of the editor", self.mindmap.fit),
            ("x", "Close", self.toggle_mindmap),
        ]
        header = QHBoxLayout()
        header.setContentsMargins(8, 4, 8, 4)
        header.addWidget(self.title_label, 1)
        for label, tooltip, slot in buttons:
            button = QPushButton(label)
            button.setToolTip(tooltip)
            button.setFlat(True)
            button.clicked.connect(lambda _checked=False, s=slot: s())
            header.addWidget(button)

        self.mindmap_panel = QWidget()
        panel_layout = QVBoxLayout(self.mindmap_panel)
        panel_layout.setContentsMargins(0, 0, 0, 0)
        panel_layout.setSpacing(0)
        header_widget = QWidget()
        header_widget.setLayout(header)
        header_widget.setStyleSheet("background: #f8f9fa; border-bottom: 1px solid #eee;")
        panel_layout.addWidget(header_widget)
        panel_layout.addWidget(self.mindmap_view, 1)
        self.mindmap_panel.setMinimumWidth(200)

        self.splitter = QSplitter(Qt.Horizontal)
        self.splitter.addWidget(self.editor)
        self.splitter.addWidget(self.mindmap_panel)
        self.splitter.setChildrenCollapsible(False)
        self.splitter.setSizes([EDITOR_WIDTH, options.window_width])

        central = QWidget()
        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self.splitter, 1)
        self.setCentralWidget(central)
        self.statusBar().showMessage("Ctrl+click a heading to find it in the mindmap")

        self._file_watch_timer = QTimer(self)
        self._file_watch_timer.setInterval(FILE_WATCH_INTERVAL_MS)
        self._file_watch_timer.timeout.connect(self._on_file_change_watch_tick)
        self._file_watch_timer.start()

        self._add_shortcuts()
        if self.current_file is not None:
            self._load_file(self.current_file)
        self.mindmap_panel.hide()
        # Show once the widgets have real geometry so the first fit has a size.
        QTimer.singleShot(0, self.toggle_mindmap)

    def _add_shortcuts(self) -> None:
        """Register window-level keyboard shortcuts."""
        toggle_action = QAction("Toggle Mindmap", self)
        toggle_action.setShortcut("F2")
        toggle_action.triggered.connect(self.toggle_mindmap)
        self.addAction(toggle_action)

        refresh_action = QAction("Refresh Mindmap", self)
        refresh_action.setShortcut("F5")
        refresh_action.triggered.connect(self._refresh_mindmap)
        self.addAction(refresh_action)

        fit_action = QAction("Fit To Current Heading", self)
        fit_action.setShortcut("Ctrl+0")
        fit_action.triggered.connect(self.mindmap.fit)
        self.addAction(fit_action)

    def toggle_mindmap(self) -> None:
        if self.mindmap.is_visible:
            self.mindmap.hide()
            self.mindmap_panel.hide()
            return
        self.mindmap_panel.show()
        try:
            self.mindmap.show()
        except Exception as exc:
            self.mindmap_panel.hide()
            self.statusBar().showMessage(f"Could not show mindmap: {exc}")
            return
        QTimer.singleShot(100, self._fit_whole_diagram)

    def _fit_whole_diagram(self) -> None:
        if self.mindmap.sync.diagram is not None:
            self.mindmap.sync.diagram.fit()

    def _refresh_mindmap(self) -> None:
        if self.mindmap.refresh():
            self.statusBar().showMessage("Mindmap rebuilt", 2000)

    def _on_heading_clicked(self, block_number: int) -> None:
        anchor = self.host.anchor_for_block(block_number)
        if anchor is None:
            # Heading typed after the last rebuild; pick it up first.
            self.mindmap.refresh()
            anchor = self.host.anchor_for_block(block_number)
        if anchor is not None and self.mindmap.is_visible:
            self.mindmap.on_heading_activated(anchor)

    def _load_file(self, path: Path) -> None:
        try:
            text = path.read_text(encoding="utf-8")
            stat = path.stat()
        except OSError as exc:
            self.statusBar().showMessage(f"Could not read {path}: {exc}")
            return
        self.editor.setMarkdown(text)
        self.editor.document().setModified(False)
        self._file_signature = (int(stat.st_mtime_ns), int(stat.st_size))
        self.setWindowTitle(f"tocmap - {path.name}")

    def _on_file_change_watch_tick(self) -> None:
        """Reload the document when the file changes on disk and has no local edits."""
        if self.current_file is None:
            return
        try:
            stat = self.current_file.stat()
        except OSError:
            # File may be temporarily inaccessible while external tools save.
            return

        current_sig = (int(stat.st_mtime_ns), int(stat.st_size))
        if self._file_signature is None or current_sig == self._file_signature:
            self._file_signature = current_sig
            return
        # Update baseline first so repeated ticks during one save do not
        # trigger duplicate reloads.
        self._file_signature = current_sig
        if self.editor.document().isModified():
            self.statusBar().showMessage("File changed on disk; keeping local edits")
            return
        self._load_file(self.current_file)

    def closeEvent(self, event) -> None:  # noqa: N802
        self.mindmap.destroy()
        super().closeEvent(event)


def print_outline(path: Path) -> int:
    """Print every heading's path, one per line, indented by depth."""
    transformer = MarkdownTreeTransformer()
    headings = headings_from_raw(transformer.source_headings(path.read_text(encoding="utf-8")))
    for heading in headings:
        segments = heading.path.split("\n")
        print(f"{'  ' * (len(segments) - 1)}{heading.text}  [{' > '.join(segments)}]")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="tocmap",
        description="Edit a markdown file next to a live mindmap of its headings.",
    )
    parser.add_argument("path", nargs="?", default=None, help="Markdown file to open.")
    parser.add_argument(
        "--outline",
        action="store_true",
        help="Print heading paths and exit without starting the GUI.",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING).")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    path = Path(args.path).expanduser() if args.path is not None else None
    if path is not None and not path.is_file():
        print(f"Not a file: {path}", file=sys.stderr)
        return 2
    if args.outline:
        if path is None:
            print("--outline needs a markdown file", file=sys.stderr)
            return 2
        return print_outline(path)

    app = QApplication(sys.argv)
    app.setApplicationName("tocmap")
    window = TocMapWindow(path, load_options(config_file_path()))
    window.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
