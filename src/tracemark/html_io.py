"""HTML boundary: highlighted markup in, woven markup out.

Highlighters such as Prism or Pygments emit an HTML fragment whose text,
once character references are decoded, is exactly the source file. This
module turns such a fragment into a document tree and serializes a (woven)
tree back to HTML.
"""

from __future__ import annotations

import html
from html.parser import HTMLParser

from tracemark.document import ROOT_TAG, Node, NodeKind, element, root, text

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)


class _TreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.root = root()
        self._open: list[Node] = [self.root]

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        node = element(tag)
        node.attrs = {name: value or "" for name, value in attrs}
        self._open[-1].append(node)
        if tag not in VOID_ELEMENTS:
            self._open.append(node)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        node = element(tag)
        node.attrs = {name: value or "" for name, value in attrs}
        self._open[-1].append(node)

    def handle_endtag(self, tag: str) -> None:
        # Unbalanced end tags close up to the nearest matching open element
        # and are otherwise ignored.
        for depth in range(len(self._open) - 1, 0, -1):
            if self._open[depth].tag == tag:
                del self._open[depth:]
                return

    def handle_data(self, data: str) -> None:
        if not data:
            return
        parent = self._open[-1]
        last = parent.last_child
        if last is not None and last.kind is NodeKind.TEXT:
            last.data += data
        else:
            parent.append(text(data))


def parse_fragment(markup: str) -> Node:
    builder = _TreeBuilder()
    builder.feed(markup)
    builder.close()
    return builder.root


def render(node: Node) -> str:
    parts: list[str] = []
    # Explicit stack of (node, closing) pairs keeps deep trees off the C stack.
    stack: list[tuple[Node, bool]] = [(node, False)]
    while stack:
        current, closing = stack.pop()
        if current.kind is NodeKind.TEXT:
            parts.append(html.escape(current.data, quote=False))
            continue
        is_root = current.tag == ROOT_TAG
        if closing:
            if not is_root:
                parts.append(f"</{current.tag}>")
            continue
        if not is_root:
            parts.append(_open_tag(current))
            if current.tag in VOID_ELEMENTS and not current.children:
                continue
        stack.append((current, True))
        for child in reversed(current.children):
            stack.append((child, False))
    return "".join(parts)


def _open_tag(node: Node) -> str:
    attrs = "".join(
        f' {name}="{html.escape(value, quote=True)}"' for name, value in node.attrs.items()
    )
    return f"<{node.tag}{attrs}>"
