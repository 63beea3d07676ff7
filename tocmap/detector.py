"""Debounced detection of outline-relevant document changes.

Two interchangeable trigger sources feed one debounce timer:

* `HostNotificationSource` subscribes to a change channel the host exposes
  (first match from `NOTIFICATION_CHANNELS`).
* `ScopedObserverSource` falls back to the host's structural observer and
  only reacts to mutations that touch headings.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable

from .errors import ChangeSourceUnavailable
from .protocols import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

NOTIFICATION_CHANNELS = ("outline_changed", "headings_changed", "contents_changed")
# Event names tried against an `on(event, callback)` style registrar.
NOTIFICATION_EVENTS = ("outline", "edit")


@dataclass(frozen=True)
class MutationRecord:
    kind: str  # "text", "children" or "attributes"
    target_is_heading: bool = False
    target_in_heading: bool = False
    added_headings: int = 0
    removed_headings: int = 0


def is_heading_mutation(record: MutationRecord) -> bool:
    if record.target_is_heading:
        return True
    if record.kind == "text" and record.target_in_heading:
        return True
    return record.kind == "children" and (record.added_headings > 0 or record.removed_headings > 0)


class ChangeSource:
    name = "abstract"

    def install(self, callback: Callable[[], None]) -> None:
        raise NotImplementedError

    def uninstall(self) -> None:
        raise NotImplementedError


class HostNotificationSource(ChangeSource):
    name = "host-notification"

    def __init__(self, host: Any, channel: str):
        self._host = host
        self.channel = channel
        self._dispose: Callable[[], None] | None = None
        self._callback: Callable[[], None] | None = None
        self._permanent = False

    @classmethod
    def probe(cls, host: Any) -> HostNotificationSource | None:
        for channel in NOTIFICATION_CHANNELS:
            candidate = getattr(host, channel, None)
            if candidate is None:
                continue
            if callable(getattr(candidate, "connect", None)) or callable(getattr(candidate, "on", None)):
                return cls(host, channel)
        return None

    def install(self, callback: Callable[[], None]) -> None:
        self.uninstall()
        self._callback = callback
        if self._permanent:
            # Registrar gave no way to remove the earlier listener; reuse it.
            return
        channel = getattr(self._host, self.channel)
        if callable(getattr(channel, "connect", None)):
            # Qt-style signal; extra signal arguments are ignored.
            channel.connect(self._emit)
            self._dispose = lambda: channel.disconnect(self._emit)
            return

        for event in NOTIFICATION_EVENTS:
            try:
                result = channel.on(event, self._emit)
            except (KeyError, ValueError, TypeError):
                continue
            if callable(result):
                self._dispose = result
            elif callable(getattr(channel, "off", None)):
                self._dispose = lambda event=event: channel.off(event, self._emit)
            else:
                self._permanent = True
                logger.debug("Listener on %s.%s cannot be removed; muting it on uninstall", self.channel, event)
            return
        self._callback = None
        raise ChangeSourceUnavailable(f"{self.channel} accepts none of {NOTIFICATION_EVENTS}")

    def _emit(self, *_args) -> None:
        if self._callback is not None:
            self._callback()

    def uninstall(self) -> None:
        self._callback = None
        dispose, self._dispose = self._dispose, None
        if dispose is None:
            return
        try:
            dispose()
        except (RuntimeError, TypeError) as exc:
            # Qt raises RuntimeError when the sender is already gone.
            logger.debug("Listener on %s already released: %s", self.channel, exc)


class ScopedObserverSource(ChangeSource):
    name = "scoped-observer"

    def __init__(self, host: Any):
        self._host = host
        self._observer: Any = None

    @classmethod
    def probe(cls, host: Any) -> ScopedObserverSource | None:
        return cls(host) if callable(getattr(host, "observe", None)) else None

    def install(self, callback: Callable[[], None]) -> None:
        self.uninstall()

        def on_mutations(records) -> None:
            if any(is_heading_mutation(record) for record in records):
                callback()

        self._observer = self._host.observe(on_mutations)

    def uninstall(self) -> None:
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.disconnect()


def select_change_source(host: Any) -> ChangeSource:
    """Prefer host notifications; fall back to scoped observation."""
    source = HostNotificationSource.probe(host)
    if source is not None:
        return source
    logger.debug("No host change channel on %s; observing headings instead", type(host).__name__)
    source = ScopedObserverSource.probe(host)
    if source is not None:
        return source
    raise ChangeSourceUnavailable(f"{type(host).__name__} has no change notification or observer")


class DetectorState(enum.Enum):
    IDLE = "idle"
    PENDING_REBUILD = "pending"


class ChangeDetector:
    """Coalesces bursts of triggers into one `on_settled` call."""

    def __init__(
        self,
        source: ChangeSource,
        scheduler: Scheduler,
        on_settled: Callable[[], None],
        debounce_ms: int = 200,
    ):
        self.source = source
        self._scheduler = scheduler
        self._on_settled = on_settled
        self.debounce_ms = debounce_ms
        self.state = DetectorState.IDLE
        self._timer: TimerHandle | None = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        if self._active:
            return
        self.source.install(self.trigger)
        self._active = True
        logger.debug("Change detector started (%s)", self.source.name)

    def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        self.source.uninstall()
        self._cancel_timer()
        self.state = DetectorState.IDLE
        logger.debug("Change detector stopped (%s)", self.source.name)

    def trigger(self) -> None:
        if not self._active:
            return
        self._cancel_timer()
        self.state = DetectorState.PENDING_REBUILD
        self._timer = self._scheduler.call_later(self.debounce_ms, self._on_timer)

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _on_timer(self) -> None:
        self._timer = None
        if not self._active or self.state is not DetectorState.PENDING_REBUILD:
            return
        try:
            self._on_settled()
        finally:
            # A trigger raised during the rebuild keeps its own pending timer.
            if self._timer is None:
                self.state = DetectorState.IDLE
