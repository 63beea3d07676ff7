"""tocmap: live mindmap of a markdown document's heading outline."""

from __future__ import annotations

__version__ = "0.3.0"

PATH_SEPARATOR = "\n"
