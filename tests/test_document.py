from __future__ import annotations

import pytest

from tracemark.document import (
    NodeKind,
    clone,
    element,
    full_text,
    iter_preorder,
    marker,
    markers,
    root,
    source_text,
    text,
)


def test_source_text_concatenates_text_in_document_order() -> None:
    tree = root(
        element("span", text("const"), class_="token keyword"),
        text(" x = "),
        element("span", element("b", text("1")), text(";\n")),
    )
    assert source_text(tree) == "const x = 1;\n"
    assert tree.children[0].attrs == {"class": "token keyword"}


def test_source_text_skips_marker_subtrees(make_entry) -> None:
    tree = root(text("ab"), marker("a", make_entry(1, 1), element("mark", text("▲"))), text("c"))
    assert source_text(tree) == "abc"
    assert full_text(tree) == "ab▲c"
    assert [node.entry.id for node in markers(tree)] == ["0"]


def test_iter_preorder_handles_deep_trees_without_recursion() -> None:
    tree = root()
    node = tree
    for _ in range(5_000):
        child = element("span")
        node.append(child)
        node = child
    node.append(text("x"))
    assert source_text(tree) == "x"
    assert list(iter_preorder(tree))[-1].data == "x"


def test_iter_preorder_visits_parents_before_children() -> None:
    inner = text("b")
    middle = element("i", inner)
    tree = root(text("a"), middle, text("c"))
    kinds = [(node.kind, node.tag or node.data) for node in iter_preorder(tree)]
    assert kinds == [
        (NodeKind.ELEMENT, "#root"),
        (NodeKind.TEXT, "a"),
        (NodeKind.ELEMENT, "i"),
        (NodeKind.TEXT, "b"),
        (NodeKind.TEXT, "c"),
    ]


def test_clone_is_structural_and_independent() -> None:
    tree = root(element("span", text("x"), class_="k"), text("\ny"))
    copied = clone(tree)
    assert source_text(copied) == source_text(tree)
    copied.children[0].children[0].data = "z"
    copied.children[0].attrs["class"] = "changed"
    assert source_text(tree) == "x\ny"
    assert tree.children[0].attrs["class"] == "k"


def test_text_nodes_reject_children() -> None:
    with pytest.raises(TypeError):
        text("a").append(text("b"))
