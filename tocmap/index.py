"""Bidirectional path <-> heading element index."""

from __future__ import annotations

from typing import Hashable, Iterator, Sequence

from .diagram import DiagramNode, collect_nodes
from .outline import HeadingInfo


class PathIndex:
    """Two inverse mappings rebuilt wholesale after every diagram rebuild.

    Only paths present both in the heading list and in the annotated tree are
    indexed. Anything else (text mismatch, body-content nodes) is left out.
    """

    def __init__(self) -> None:
        self.path_to_element: dict[str, Hashable] = {}
        self.element_to_path: dict[Hashable, str] = {}

    def clear(self) -> None:
        self.path_to_element.clear()
        self.element_to_path.clear()

    def rebuild(self, headings: Sequence[HeadingInfo], annotated_root: DiagramNode | None) -> PathIndex:
        self.clear()
        node_paths = collect_nodes(annotated_root)
        for heading in headings:
            if heading.path not in node_paths or heading.element is None:
                continue
            # Keep the two maps exact inverses: first heading wins a shared path.
            if heading.path in self.path_to_element or heading.element in self.element_to_path:
                continue
            self.path_to_element[heading.path] = heading.element
            self.element_to_path[heading.element] = heading.path
        return self

    def lookup_element(self, path: str | None) -> Hashable | None:
        if path is None:
            return None
        return self.path_to_element.get(path)

    def lookup_path(self, element: Hashable) -> str | None:
        return self.element_to_path.get(element)

    def paths(self) -> list[str]:
        return list(self.path_to_element)

    def __len__(self) -> int:
        return len(self.path_to_element)

    def __contains__(self, path: object) -> bool:
        return path in self.path_to_element

    def __iter__(self) -> Iterator[str]:
        return iter(self.path_to_element)
