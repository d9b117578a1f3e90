# src/glance/store/documents.py

from __future__ import annotations

"""
Rich-text documents.

Tasks store their title and content as editor JSON ({"type": ..., "content": [...]}).
The core only needs three things from a document: its plain text (for search),
and whether it contains headings or lists (for input checks). Raw dicts are parsed
once into a closed set of node types and folded with a visitor.

Matching looks at "type" and "content" only; every other attribute is ignored.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

LIST_TYPES = frozenset({"bulletlist", "orderedlist", "tasklist"})
LIST_ITEM_TYPES = frozenset({"listitem", "taskitem"})
_KNOWN_CONTAINERS = frozenset({"paragraph", "heading"}) | LIST_TYPES | LIST_ITEM_TYPES

R = TypeVar("R")


@dataclass(frozen=True, slots=True)
class Text:
    text: str


@dataclass(frozen=True, slots=True)
class Paragraph:
    children: tuple[Node, ...]


@dataclass(frozen=True, slots=True)
class ListNode:
    kind: str
    children: tuple[Node, ...]


@dataclass(frozen=True, slots=True)
class ListItem:
    children: tuple[Node, ...]


@dataclass(frozen=True, slots=True)
class Heading:
    children: tuple[Node, ...]


@dataclass(frozen=True, slots=True)
class Unknown:
    """Any other node (doc root, images, hard breaks, ...). Keeps its children and stray text."""

    node_type: str
    children: tuple[Node, ...]
    text: str | None = None


Node = Text | Paragraph | ListNode | ListItem | Heading | Unknown


class DocumentVisitor(Generic[R]):
    """
    Fold over a parsed document.

    visit() dispatches on the node class; subclasses implement one method per node
    type. A node type without a handler is a programming error, not a silent skip.
    """

    def visit(self, node: Node) -> R:
        if isinstance(node, Text):
            return self.visit_text(node)
        if isinstance(node, Paragraph):
            return self.visit_paragraph(node)
        if isinstance(node, ListNode):
            return self.visit_list(node)
        if isinstance(node, ListItem):
            return self.visit_list_item(node)
        if isinstance(node, Heading):
            return self.visit_heading(node)
        if isinstance(node, Unknown):
            return self.visit_unknown(node)
        raise TypeError(f"unsupported document node: {type(node).__name__}")

    def visit_all(self, nodes: Sequence[Node]) -> list[R]:
        return [self.visit(n) for n in nodes]

    def visit_text(self, node: Text) -> R:
        raise NotImplementedError

    def visit_paragraph(self, node: Paragraph) -> R:
        raise NotImplementedError

    def visit_list(self, node: ListNode) -> R:
        raise NotImplementedError

    def visit_list_item(self, node: ListItem) -> R:
        raise NotImplementedError

    def visit_heading(self, node: Heading) -> R:
        raise NotImplementedError

    def visit_unknown(self, node: Unknown) -> R:
        raise NotImplementedError


class _PlainTextVisitor(DocumentVisitor[list[str]]):
    def visit_text(self, node: Text) -> list[str]:
        return [node.text]

    def _children(self, children: tuple[Node, ...]) -> list[str]:
        out: list[str] = []
        for part in self.visit_all(children):
            out.extend(part)
        return out

    def visit_paragraph(self, node: Paragraph) -> list[str]:
        return self._children(node.children)

    def visit_list(self, node: ListNode) -> list[str]:
        return self._children(node.children)

    def visit_list_item(self, node: ListItem) -> list[str]:
        return self._children(node.children)

    def visit_heading(self, node: Heading) -> list[str]:
        return self._children(node.children)

    def visit_unknown(self, node: Unknown) -> list[str]:
        head = [node.text] if node.text is not None else []
        return head + self._children(node.children)


class _ContainsVisitor(DocumentVisitor[bool]):
    def __init__(self, *, headings: bool, lists: bool) -> None:
        self._headings = headings
        self._lists = lists

    def _any(self, children: tuple[Node, ...]) -> bool:
        return any(self.visit(c) for c in children)

    def visit_text(self, node: Text) -> bool:
        return False

    def visit_paragraph(self, node: Paragraph) -> bool:
        return self._any(node.children)

    def visit_list(self, node: ListNode) -> bool:
        return self._lists or self._any(node.children)

    def visit_list_item(self, node: ListItem) -> bool:
        return self._lists or self._any(node.children)

    def visit_heading(self, node: Heading) -> bool:
        return self._headings or self._any(node.children)

    def visit_unknown(self, node: Unknown) -> bool:
        return self._any(node.children)


# ---- parsing ----


def parse_node(raw: Any) -> tuple[Node, ...]:
    """
    Parse editor JSON into nodes.

    Objects become one node, arrays become their parsed members, anything else
    (numbers, strings, null) contributes nothing.
    """
    if isinstance(raw, list):
        out: list[Node] = []
        for item in raw:
            out.extend(parse_node(item))
        return tuple(out)

    if not isinstance(raw, dict):
        return ()

    node_type = str(raw.get("type") or "")
    key = node_type.lower()
    children = parse_node(raw.get("content"))
    text = raw.get("text")
    text = text if isinstance(text, str) else None

    if key == "text" and text is not None:
        return (Text(text), *children)
    if key in _KNOWN_CONTAINERS and text is not None:
        # Stray text on a container still counts, ahead of its children.
        children = (Text(text), *children)
    if key == "paragraph":
        return (Paragraph(children),)
    if key == "heading":
        return (Heading(children),)
    if key in LIST_TYPES:
        return (ListNode(node_type, children),)
    if key in LIST_ITEM_TYPES:
        return (ListItem(children),)
    return (Unknown(node_type, children, text),)


def extract_plain_text(doc: Any) -> str:
    """Concatenate every text run, space separated, trimmed."""
    parts = []
    for node in parse_node(doc):
        parts.extend(_PlainTextVisitor().visit(node))
    return "".join(f"{p} " for p in parts).strip()


def contains_heading(doc: Any) -> bool:
    visitor = _ContainsVisitor(headings=True, lists=False)
    return any(visitor.visit(n) for n in parse_node(doc))


def contains_list(doc: Any) -> bool:
    visitor = _ContainsVisitor(headings=False, lists=True)
    return any(visitor.visit(n) for n in parse_node(doc))


def search_text(title: Any, content: Any) -> str:
    """The plain-text projection stored in the search index for one task."""
    return f"{extract_plain_text(title)}\n{extract_plain_text(content)}"


def paragraph_doc(text: str) -> dict[str, Any]:
    """
    A one-paragraph document.

    Used for titles typed at the console and for rows that only carry the
    legacy plain-text title.
    """
    inline = [{"type": "text", "text": text}] if text and text.strip() else []
    return {"type": "doc", "content": [{"type": "paragraph", "content": inline}]}
