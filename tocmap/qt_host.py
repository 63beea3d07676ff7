"""Host document backed by a rich-text QTextEdit holding the markdown."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable
from urllib.parse import urlparse

from PySide6.QtCore import Qt, QVariantAnimation, Signal
from PySide6.QtGui import QColor, QFontInfo, QTextBlock, QTextCharFormat, QTextCursor, QTextDocument, QTextFormat
from PySide6.QtWidgets import QTextEdit

from .detector import MutationRecord
from .protocols import RawHeading

logger = logging.getLogger(__name__)

HEADING_FADE_MS = 200


def _heading_level(block: QTextBlock) -> int:
    return block.blockFormat().headingLevel() if block.isValid() else 0


def _iter_blocks(document: QTextDocument):
    block = document.begin()
    while block.isValid():
        yield block
        block = block.next()


def heading_slug(text: str) -> str:
    slug = re.sub(r"[^\w\s-]", "", text.lower()).strip()
    return re.sub(r"[\s_-]+", "-", slug)


class HeadingAnchor:
    """Stable identity for one heading block.

    A QTextCursor is moved by the document as text is inserted or removed
    before it, so the anchor keeps pointing at the same block across edits.
    """

    def __init__(self, document: QTextDocument, position: int):
        self._cursor = QTextCursor(document)
        self._cursor.setPosition(position)

    def block(self) -> QTextBlock:
        return self._cursor.block()

    @property
    def block_number(self) -> int:
        return self._cursor.block().blockNumber()

    def __repr__(self) -> str:
        return f"HeadingAnchor(block={self.block_number})"


class OutlineTextEdit(QTextEdit):
    """QTextEdit that reports Ctrl+click on a heading."""

    heading_clicked = Signal(int)

    def mouseReleaseEvent(self, event) -> None:  # noqa: N802
        super().mouseReleaseEvent(event)
        if event.button() != Qt.MouseButton.LeftButton:
            return
        if not event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            return
        block = self.cursorForPosition(event.position().toPoint()).block()
        if _heading_level(block):
            self.heading_clicked.emit(block.blockNumber())


class DocumentObserver:
    """Turns QTextDocument edits into heading-scoped mutation records."""

    def __init__(self, document: QTextDocument, callback: Callable[[list[MutationRecord]], None]):
        self._document = document
        self._callback = callback
        self._heading_count = self._count_headings()
        document.contentsChange.connect(self._on_contents_change)

    def _count_headings(self) -> int:
        return sum(1 for block in _iter_blocks(self._document) if _heading_level(block))

    def _on_contents_change(self, position: int, removed: int, added: int) -> None:
        records: list[MutationRecord] = []
        end = position + max(added, 0)
        block = self._document.findBlock(position)
        while block.isValid() and block.position() <= end:
            if _heading_level(block):
                # Equal removed/added counts is how Qt reports a format-only change.
                if removed == added:
                    records.append(MutationRecord("attributes", target_is_heading=True))
                else:
                    records.append(MutationRecord("text", target_in_heading=True))
                break
            block = block.next()

        count = self._count_headings()
        if count != self._heading_count:
            records.append(
                MutationRecord(
                    "children",
                    added_headings=max(0, count - self._heading_count),
                    removed_headings=max(0, self._heading_count - count),
                )
            )
            self._heading_count = count
        if records:
            self._callback(records)

    def disconnect(self) -> None:
        try:
            self._document.contentsChange.disconnect(self._on_contents_change)
        except (RuntimeError, TypeError):
            # Document already destroyed.
            pass


class QtDocumentHost:
    """Implements the HostDocument protocol on top of a QTextEdit."""

    def __init__(self, editor: QTextEdit, base_dir: Path | None = None, fade_ms: int = HEADING_FADE_MS):
        self.editor = editor
        self.base_dir = base_dir
        self.fade_ms = fade_ms
        self._anchors: list[HeadingAnchor] = []
        self._highlights: dict[HeadingAnchor, QTextEdit.ExtraSelection] = {}
        self._colors: dict[HeadingAnchor, QColor] = {}
        self._fades: dict[HeadingAnchor, QVariantAnimation] = {}

    @property
    def document(self) -> QTextDocument:
        return self.editor.document()

    def get_headings(self) -> list[RawHeading]:
        # Reuse anchors still sitting on a heading block so element identity
        # survives cycles that do not rebuild the diagram.
        previous = {anchor.block_number: anchor for anchor in self._anchors if _heading_level(anchor.block())}
        anchors: list[HeadingAnchor] = []
        headings: list[RawHeading] = []
        for block in _iter_blocks(self.document):
            level = _heading_level(block)
            if not level:
                continue
            anchor = previous.get(block.blockNumber()) or HeadingAnchor(self.document, block.position())
            anchors.append(anchor)
            text = block.text().strip()
            headings.append(RawHeading(anchor, level, text, heading_slug(text)))
        self._anchors = anchors
        return headings

    def anchor_for_block(self, block_number: int) -> HeadingAnchor | None:
        for anchor in self._anchors:
            if anchor.block_number == block_number:
                return anchor
        return None

    def get_markdown(self) -> str:
        return self.editor.toMarkdown()

    def resolve_image_path(self, src: str) -> str:
        if urlparse(src).scheme or self.base_dir is None:
            return src
        candidate = Path(src)
        if not candidate.is_absolute():
            candidate = self.base_dir / candidate
        return candidate.resolve().as_uri()

    def viewport(self) -> tuple[float, float]:
        top = float(self.editor.verticalScrollBar().value())
        return top, top + float(self.editor.viewport().height())

    def heading_offset(self, element: HeadingAnchor) -> float | None:
        block = element.block()
        if not block.isValid():
            return None
        layout = self.document.documentLayout()
        if layout is None:
            return None
        return float(layout.blockBoundingRect(block).top())

    def base_font_size(self) -> float | None:
        size = QFontInfo(self.document.defaultFont()).pixelSize()
        return float(size) if size > 0 else None

    def scroll_to_heading(self, element: HeadingAnchor, top_offset: float) -> None:
        offset = self.heading_offset(element)
        if offset is None:
            logger.debug("Cannot scroll to %r: block no longer exists", element)
            return
        scrollbar = self.editor.verticalScrollBar()
        scrollbar.setValue(int(max(scrollbar.minimum(), min(scrollbar.maximum(), offset - top_offset))))

    def highlight_heading(self, element: HeadingAnchor, color: str) -> None:
        target = QColor(color)
        start = QColor(target)
        start.setAlpha(0)
        self._colors[element] = target
        self._fade(element, start, target)

    def clear_heading_highlight(self, element: HeadingAnchor) -> None:
        target = self._colors.pop(element, None)
        if target is None:
            return
        end = QColor(target)
        end.setAlpha(0)
        self._fade(element, target, end, on_done=lambda: self._remove_selection(element))

    def _fade(
        self,
        element: HeadingAnchor,
        start: QColor,
        end: QColor,
        on_done: Callable[[], None] | None = None,
    ) -> None:
        previous = self._fades.pop(element, None)
        if previous is not None:
            previous.stop()
            previous.deleteLater()
        if self.fade_ms <= 0:
            self._set_selection(element, end)
            if on_done is not None:
                on_done()
            return

        animation = QVariantAnimation(self.editor)
        animation.setStartValue(start)
        animation.setEndValue(end)
        animation.setDuration(self.fade_ms)
        animation.valueChanged.connect(lambda value: self._set_selection(element, QColor(value)))

        def finished() -> None:
            if self._fades.get(element) is animation:
                del self._fades[element]
            animation.deleteLater()
            if on_done is not None:
                on_done()

        animation.finished.connect(finished)
        self._fades[element] = animation
        self._set_selection(element, start)
        animation.start()

    def _set_selection(self, element: HeadingAnchor, color: QColor) -> None:
        block = element.block()
        if not block.isValid():
            self._remove_selection(element)
            return
        selection = QTextEdit.ExtraSelection()
        selection.cursor = QTextCursor(block)
        fmt = QTextCharFormat()
        fmt.setBackground(color)
        fmt.setProperty(QTextFormat.Property.FullWidthSelection, True)
        selection.format = fmt
        self._highlights[element] = selection
        self.editor.setExtraSelections(list(self._highlights.values()))

    def _remove_selection(self, element: HeadingAnchor) -> None:
        if self._highlights.pop(element, None) is not None:
            self.editor.setExtraSelections(list(self._highlights.values()))

    def observe(self, callback: Callable[[list[MutationRecord]], None]) -> DocumentObserver:
        return DocumentObserver(self.document, callback)
