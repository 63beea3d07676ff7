"""Lifecycle of the outline mindmap view: show, hide, toggle, options."""

from __future__ import annotations

import logging
from typing import Any, Hashable

from .config import MindmapOptions
from .detector import ChangeDetector, ScopedObserverSource, select_change_source
from .diagram import DiagramNode
from .errors import ChangeSourceUnavailable
from .navigator import NavigationOutcome, Navigator
from .protocols import DiagramFactory, HostDocument, Scheduler, TreeTransformer
from .synchronizer import OutlineSynchronizer
from .transform import MarkdownTreeTransformer

logger = logging.getLogger(__name__)


class TocMindmap:
    """Outline mindmap bound to one host document.

    The change detector only runs while the view is visible; hiding tears it
    down together with the diagram handle.
    """

    def __init__(
        self,
        host: HostDocument,
        diagram_factory: DiagramFactory,
        surface: Any,
        scheduler: Scheduler,
        *,
        transformer: TreeTransformer | None = None,
        options: MindmapOptions | None = None,
    ):
        transformer = transformer or MarkdownTreeTransformer(resolve_image=host.resolve_image_path)
        self.sync = OutlineSynchronizer(host, transformer, scheduler, options)
        self.navigator = Navigator(self.sync)
        self.detector: ChangeDetector | None = None
        self._factory = diagram_factory
        self._surface = surface
        self._visible = False
        self._destroyed = False

    @property
    def options(self) -> MindmapOptions:
        return self.sync.options

    @property
    def is_visible(self) -> bool:
        return self._visible

    def show(self) -> None:
        if self._visible or self._destroyed:
            return
        logger.info("Showing outline mindmap")
        try:
            self.sync.attach(self._factory.create(self._surface, self.options.layout_options(), None))
            self._visible = True
            self.sync.update(force=True)
            self._start_detector()
        except Exception:
            logger.exception("Showing outline mindmap failed")
            self.hide()
            raise

    def hide(self) -> None:
        if not self._visible and self.sync.diagram is None:
            return
        self._stop_detector()
        self.sync.detach()
        self._visible = False
        logger.info("Outline mindmap hidden")

    def toggle(self) -> None:
        if self._visible:
            self.hide()
        else:
            self.show()

    def refresh(self) -> bool:
        return self.sync.update(force=True)

    def destroy(self) -> None:
        self.hide()
        self._destroyed = True

    def update_options(self, **partial: Any) -> MindmapOptions:
        """Apply a partial options update; invalid keys or values raise InvalidOptionError."""
        previous = self.options
        self.sync.options = previous.merged(**partial)
        current = self.sync.options

        if self.detector is not None:
            self.detector.debounce_ms = current.debounce_ms
        if self._visible and current.enable_real_time_update != previous.enable_real_time_update:
            if current.enable_real_time_update:
                self._start_detector()
            else:
                self._stop_detector()
        if self._visible and current.layout_options() != previous.layout_options():
            self.sync.update(force=True)
        return current

    def fit(self) -> NavigationOutcome:
        return self.navigator.fit_to_current_heading()

    def zoom_in(self) -> None:
        self.navigator.zoom_in()

    def zoom_out(self) -> None:
        self.navigator.zoom_out()

    def on_node_clicked(self, node: DiagramNode) -> bool:
        return self.navigator.navigate_to_diagram_node(node)

    def on_heading_activated(self, element: Hashable) -> NavigationOutcome:
        return self.navigator.navigate_to_element(element)

    def _start_detector(self) -> None:
        if not self.options.enable_real_time_update:
            return
        if self.detector is None:
            try:
                source = select_change_source(self.sync.host)
            except ChangeSourceUnavailable as exc:
                logger.warning("Live updates disabled: %s", exc)
                return
            self.detector = ChangeDetector(
                source,
                self.sync.scheduler,
                self.sync.update,
                debounce_ms=self.options.debounce_ms,
            )
        try:
            self.detector.start()
        except ChangeSourceUnavailable as exc:
            fallback = ScopedObserverSource.probe(self.sync.host)
            if fallback is None or isinstance(self.detector.source, ScopedObserverSource):
                logger.warning("Live updates disabled: %s", exc)
                self.detector = None
                return
            logger.info("Host notifications unusable (%s); observing headings instead", exc)
            self.detector.source = fallback
            self.detector.start()

    def _stop_detector(self) -> None:
        if self.detector is not None:
            self.detector.stop()
