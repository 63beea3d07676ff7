"""Exceptions raised by tocmap."""

from __future__ import annotations


class TocmapError(Exception):
    """Base class for tocmap errors."""


class ChangeSourceUnavailable(TocmapError):
    """Host exposes neither a change notification channel nor an observer."""


class InvalidOptionError(TocmapError, ValueError):
    """Option key is unknown or its value is outside the allowed range."""

    def __init__(self, key: str, message: str):
        super().__init__(f"{key}: {message}")
        self.key = key
