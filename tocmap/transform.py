"""Markdown to mindmap tree, built on markdown-it-py."""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from typing import Callable

from markdown_it import MarkdownIt
from markdown_it.token import Token
from mdit_py_plugins.dollarmath import dollarmath_plugin

from .diagram import DiagramNode, decode_content
from .protocols import RawHeading


@dataclass
class TransformResult:
    root: DiagramNode
    features: set[str] = field(default_factory=set)


class MarkdownTreeTransformer:
    """Turns headings and list items into a DiagramNode tree.

    Headings nest by level; list items nest under the heading (or list item)
    that contains them. Other block content is not part of the mindmap.
    """

    def __init__(self, resolve_image: Callable[[str], str] | None = None) -> None:
        self._resolve_image = resolve_image
        # No typographer: node text has to come back out exactly as it went in.
        self._md = MarkdownIt("commonmark", {"html": False}).enable("strikethrough")
        # Keep $...$ as math tokens so emphasis rules do not mangle TeX.
        self._md.use(dollarmath_plugin)

        default_image = self._md.renderer.rules["image"]

        def custom_image(tokens, idx, options, env):
            token = tokens[idx]
            src = token.attrGet("src")
            if src and self._resolve_image is not None:
                token.attrSet("src", self._resolve_image(str(src)))
            return default_image(tokens, idx, options, env)

        def custom_math_inline(tokens, idx, options, env):
            if isinstance(env, dict):
                env.setdefault("features", set()).add("math")
            return f"${html.escape(tokens[idx].content)}$"

        self._md.renderer.rules["image"] = custom_image
        self._md.renderer.rules["math_inline"] = custom_math_inline

    def _render_inline(self, token: Token, env: dict) -> str:
        return self._md.renderer.renderInline(token.children or [], self._md.options, env).strip()

    def transform(self, markdown: str) -> TransformResult:
        env: dict = {}
        tokens = self._md.parse(markdown or "", env)
        root = DiagramNode(content="", depth=0)
        # (heading level, node); level 0 is the synthetic root.
        heading_stack: list[tuple[int, DiagramNode]] = [(0, root)]
        # Nodes of currently open list items, innermost last.
        item_stack: list[DiagramNode] = []
        pending_item: list[DiagramNode | None] = []

        def attach(parent: DiagramNode, content: str) -> DiagramNode:
            node = DiagramNode(content=content)
            parent.children.append(node)
            return node

        i = 0
        while i < len(tokens):
            token = tokens[i]
            if token.type == "heading_open":
                level = int(token.tag[1:])
                inline = tokens[i + 1]
                while heading_stack[-1][0] >= level:
                    heading_stack.pop()
                node = attach(heading_stack[-1][1], self._render_inline(inline, env))
                heading_stack.append((level, node))
                item_stack.clear()
                i += 3
                continue
            if token.type == "list_item_open":
                pending_item.append(None)
            elif token.type == "inline" and pending_item and pending_item[-1] is None:
                parent = item_stack[-1] if item_stack else heading_stack[-1][1]
                node = attach(parent, self._render_inline(token, env))
                pending_item[-1] = node
                item_stack.append(node)
            elif token.type == "list_item_close":
                # A heading inside the item may already have reset item_stack.
                if pending_item.pop() is not None and item_stack:
                    item_stack.pop()
            i += 1

        if len(root.children) == 1:
            root = root.children[0]
        _assign_depths(root, 0)
        return TransformResult(root=root, features=set(env.get("features", ())))

    def source_headings(self, markdown: str) -> list[RawHeading]:
        """Headings of a markdown source as the host would report them; elements are line numbers."""
        env: dict = {}
        tokens = self._md.parse(markdown or "", env)
        headings = []
        for token, inline in zip(tokens, tokens[1:]):
            if token.type != "heading_open":
                continue
            line = token.map[0] if token.map else len(headings)
            headings.append(RawHeading(line, int(token.tag[1:]), decode_content(self._render_inline(inline, env))))
        return headings


def _assign_depths(node: DiagramNode, depth: int) -> None:
    node.depth = depth
    for child in node.children:
        _assign_depths(child, depth + 1)
