"""In-memory document tree for rendered, highlighted source.

A tree holds three node kinds. Text nodes carry source characters. Element
nodes carry markup and contribute no characters of their own. Marker nodes
are synthetic annotations added by the weaver; their subtree (an icon) is
never part of the source text.

Invariant: `source_text(root)` equals the original source file, before and
after weaving.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Iterator

from tracemark.entries import Entry

ROOT_TAG = "#root"


class NodeKind(StrEnum):
    TEXT = "text"
    ELEMENT = "element"
    MARKER = "marker"


@dataclass(eq=False)
class Node:
    kind: NodeKind
    data: str = ""
    tag: str = ""
    attrs: dict[str, str] = field(default_factory=dict)
    children: list["Node"] = field(default_factory=list)
    entry: Entry | None = None

    @property
    def first_child(self) -> Node | None:
        return self.children[0] if self.children else None

    @property
    def last_child(self) -> Node | None:
        return self.children[-1] if self.children else None

    def append(self, *children: Node) -> Node:
        if self.kind is NodeKind.TEXT:
            raise TypeError("text nodes cannot have children")
        self.children.extend(children)
        return self

    def __repr__(self) -> str:
        if self.kind is NodeKind.TEXT:
            return f"Node(text={self.data!r})"
        if self.kind is NodeKind.MARKER:
            entry_id = self.entry.id if self.entry is not None else None
            return f"Node(marker={entry_id!r})"
        return f"Node(<{self.tag}> children={len(self.children)})"


def text(data: str) -> Node:
    return Node(kind=NodeKind.TEXT, data=data)


def element(tag: str, *children: Node, **attrs: str) -> Node:
    # `class` is a keyword; accept `class_` and store it as "class".
    normalized = {key.rstrip("_"): value for key, value in attrs.items()}
    return Node(kind=NodeKind.ELEMENT, tag=tag, attrs=normalized, children=list(children))


def root(*children: Node) -> Node:
    return element(ROOT_TAG, *children)


def marker(tag: str, entry: Entry, *children: Node, **attrs: str) -> Node:
    return Node(
        kind=NodeKind.MARKER,
        tag=tag,
        attrs=dict(attrs),
        children=list(children),
        entry=entry,
    )


def iter_preorder(node: Node, *, include_markers: bool = True) -> Iterator[Node]:
    """Yield `node` and its descendants in document order without recursion."""
    stack: list[Node] = [node]
    while stack:
        current = stack.pop()
        if current.kind is NodeKind.MARKER and not include_markers:
            continue
        yield current
        stack.extend(reversed(current.children))


def source_text(node: Node) -> str:
    return "".join(
        item.data
        for item in iter_preorder(node, include_markers=False)
        if item.kind is NodeKind.TEXT
    )


def full_text(node: Node) -> str:
    return "".join(
        item.data for item in iter_preorder(node) if item.kind is NodeKind.TEXT
    )


def markers(node: Node) -> list[Node]:
    return [item for item in iter_preorder(node) if item.kind is NodeKind.MARKER]


def clone(node: Node) -> Node:
    """Structural deep copy; entries are shared since they are immutable."""
    copied_root = _shallow_copy(node)
    stack: list[tuple[Node, Node]] = [(node, copied_root)]
    while stack:
        original, copied = stack.pop()
        for child in original.children:
            child_copy = _shallow_copy(child)
            copied.children.append(child_copy)
            stack.append((child, child_copy))
    return copied_root


def _shallow_copy(node: Node) -> Node:
    return Node(
        kind=node.kind,
        data=node.data,
        tag=node.tag,
        attrs=dict(node.attrs),
        entry=node.entry,
    )
