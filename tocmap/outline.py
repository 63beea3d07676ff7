"""Heading extraction and the path identity shared with the diagram."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Hashable, Iterable, Sequence

from . import PATH_SEPARATOR
from .protocols import HostDocument, RawHeading

# CommonMark lets any ASCII punctuation be backslash-escaped; escaping all of
# it makes the transform render the heading text literally.
_MARKDOWN_PUNCTUATION = re.compile(r"""([!"#$%&'()*+,\-./:;<=>?@\[\\\]^_`{|}~])""")


@dataclass(frozen=True)
class HeadingInfo:
    level: int
    text: str
    id: str
    index: int
    path: str
    element: Hashable = None


def join_path(parent: str, text: str) -> str:
    return f"{parent}{PATH_SEPARATOR}{text}" if parent else text


def ancestor_paths(path: str) -> list[str]:
    """Proper ancestors of `path`, outermost first."""
    parts = path.split(PATH_SEPARATOR)
    return [PATH_SEPARATOR.join(parts[:end]) for end in range(1, len(parts))]


def compute_paths(entries: Iterable[tuple[int, str]]) -> list[str]:
    """Compute one path per (level, text) pair, in order.

    The stack holds at most level-1 slots; skipped levels are None so a jump
    such as H1 -> H3 nests under the H1 without inventing an H2.
    """
    stack: list[str | None] = []
    paths = []
    for level, text in entries:
        depth = max(level, 1) - 1
        if len(stack) > depth:
            del stack[depth:]
        else:
            stack.extend([None] * (depth - len(stack)))
        stack.append(text)
        paths.append(PATH_SEPARATOR.join(part for part in stack if part is not None))
    return paths


def headings_from_raw(raw_headings: Iterable[RawHeading]) -> list[HeadingInfo]:
    kept: list[RawHeading] = []
    for raw in raw_headings:
        text = (raw.text or "").strip()
        if not text:
            continue
        kept.append(raw._replace(text=text, level=min(max(int(raw.level), 1), 6)))

    paths = compute_paths((raw.level, raw.text) for raw in kept)
    return [
        HeadingInfo(
            level=raw.level,
            text=raw.text,
            id=raw.id or f"heading-{index}",
            index=index,
            path=path,
            element=raw.element,
        )
        for index, (raw, path) in enumerate(zip(kept, paths))
    ]


def extract_headings(host: HostDocument) -> list[HeadingInfo]:
    """Scan the host's headings in document order and assign paths."""
    return headings_from_raw(host.get_headings())


def outline_hash(headings: Sequence[HeadingInfo]) -> str:
    """Cheap fingerprint of the ordered (index, path) pairs."""
    digest = hashlib.sha1()
    for heading in headings:
        digest.update(f"{heading.index}\x00{heading.path}\x1e".encode("utf-8", errors="replace"))
    return digest.hexdigest()


def escape_markdown_text(text: str) -> str:
    return _MARKDOWN_PUNCTUATION.sub(r"\\\1", text)


def build_toc_markdown(headings: Sequence[HeadingInfo]) -> str:
    return "\n".join(f"{'#' * heading.level} {escape_markdown_text(heading.text)}" for heading in headings)
