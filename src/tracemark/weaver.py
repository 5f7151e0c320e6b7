"""Weave entry markers into a rendered document tree.

The weaver walks the tree in document order while tracking the (line,
column) cursor of the source text seen so far. Each text node is split on
line breaks; after every fragment the cursor is compared with the front of
the entry queue, and every entry on the cursor line whose column has been
reached or passed gets a marker spliced in right after the text node.

Highlighters split text into tokens that do not always end on an entry's
exact column, so attachment uses `cursor column >= entry column` rather than
equality: the marker lands at the first token boundary at or after the
target.

Entries the cursor can no longer reach (their line has been left behind, or
the text ends first) are returned as unresolved, never dropped.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from tracemark.diagnostics import Diagnostic, DiagnosticKind, DiagnosticSink
from tracemark.document import Node, NodeKind, clone, source_text
from tracemark.entries import Entry, EntryGroups, entry_to_json
from tracemark.env_policy import audit_enabled_from_env
from tracemark.invariants import never
from tracemark.markers import make_marker
from tracemark.order_contract import OrderPolicy, ordered_or_sorted
from tracemark.ordering import entry_position_key, first_queue_violation, sort_entry_groups


@dataclass
class _Frame:
    parent: Node
    index: int

    @property
    def node(self) -> Node:
        return self.parent.children[self.index]


@dataclass
class WeaveState:
    root: Node
    queue: deque[Entry]
    line: int = 1
    column: int = 1
    stack: list[_Frame] = field(default_factory=list)
    expected_line_lengths: list[int] | None = None
    walked: list[str] | None = None

    @property
    def current(self) -> Node:
        return self.stack[-1].node

    @property
    def audit(self) -> bool:
        return self.expected_line_lengths is not None


@dataclass(frozen=True)
class PlacedMarker:
    entry: Entry
    node: Node
    line: int
    column: int


@dataclass(frozen=True)
class WeaveResult:
    root: Node
    placed: tuple[PlacedMarker, ...]
    unresolved: tuple[Entry, ...]
    diagnostics: tuple[Diagnostic, ...]

    @property
    def ok(self) -> bool:
        return not self.unresolved

    @property
    def unresolved_count(self) -> int:
        return len(self.unresolved)

    def summary(self) -> str:
        placed = len(self.placed)
        if self.ok:
            return f"{placed} markers placed"
        return (
            f"{placed} markers placed, "
            f"{self.unresolved_count} markers could not be placed"
        )


def weave(
    root: Node,
    entries: Iterable[Entry],
    *,
    file_id: str,
    audit: bool | None = None,
    copy: bool = False,
    active_id: str | None = None,
    queue_policy: OrderPolicy | str | None = None,
) -> WeaveResult:
    """Insert one marker per entry into the tree rooted at `root`.

    `entries` must already be ordered by (line, column); `queue_policy`
    selects how the order contract treats the caller's order (default
    trust). With `copy=True` the input tree is left untouched and the woven
    copy is returned in the result.
    """
    if root.kind is NodeKind.TEXT:
        never("weave root must be an element", root=repr(root))
    if audit is None:
        audit = audit_enabled_from_env()
    tree = clone(root) if copy else root
    sink = DiagnosticSink()
    queue = deque(
        ordered_or_sorted(
            entries,
            source="weave.queue",
            key=entry_position_key,
            policy=queue_policy if queue_policy is not None else OrderPolicy.TRUST,
        )
    )
    state = WeaveState(root=tree, queue=queue)
    original_text = ""
    if audit:
        original_text = source_text(tree)
        state.expected_line_lengths = [len(line) for line in original_text.split("\n")]
        state.walked = []
        _audit_queue_order(queue, sink)
    if tree.children:
        state.stack.append(_Frame(tree, 0))

    placed: list[PlacedMarker] = []
    unresolved: list[Entry] = []
    _retire_passed(state, unresolved)
    while state.stack:
        if not state.queue and not state.audit:
            break
        node = state.current
        if node.kind is NodeKind.TEXT:
            _consume_text(state, node, file_id, active_id, placed, unresolved, sink)
        elif node.kind not in (NodeKind.ELEMENT, NodeKind.MARKER):
            never("unknown node kind", kind=str(node.kind))
        _advance(state)

    unresolved.extend(state.queue)
    state.queue.clear()
    if unresolved:
        sink.report(
            DiagnosticKind.UNRESOLVED_ENTRIES,
            f"{len(unresolved)} markers could not be placed",
            file_id=file_id,
            entries=[entry_to_json(entry) for entry in unresolved],
        )
    if state.walked is not None and "".join(state.walked) != original_text:
        sink.report(
            DiagnosticKind.CONCATENATION_MISMATCH,
            "walked text differs from the tree's source text",
            walked_length=sum(len(part) for part in state.walked),
            expected_length=len(original_text),
        )
    return WeaveResult(
        root=tree,
        placed=tuple(placed),
        unresolved=tuple(unresolved),
        diagnostics=sink.records,
    )


def weave_groups(
    root: Node,
    groups: EntryGroups,
    *,
    file_id: str,
    audit: bool | None = None,
    copy: bool = False,
    active_id: str | None = None,
) -> WeaveResult:
    return weave(
        root,
        sort_entry_groups(groups),
        file_id=file_id,
        audit=audit,
        copy=copy,
        active_id=active_id,
    )


def _consume_text(
    state: WeaveState,
    node: Node,
    file_id: str,
    active_id: str | None,
    placed: list[PlacedMarker],
    unresolved: list[Entry],
    sink: DiagnosticSink,
) -> None:
    if state.walked is not None:
        state.walked.append(node.data)
    # Markers for this node are chained after it, at the node's own depth.
    depth = len(state.stack) - 1
    # A text node cannot be split here: that would mean re-tokenizing what
    # the highlighter already produced.
    for index, fragment in enumerate(node.data.split("\n")):
        if index > 0:
            if state.audit:
                _audit_line_boundary(state, sink)
            state.line += 1
            state.column = 1
            _retire_passed(state, unresolved)
        state.column += len(fragment)
        inserted = False
        while state.queue and _reaches(state, state.queue[0]):
            entry = state.queue.popleft()
            mark = make_marker(file_id, entry, active_id=active_id)
            _splice_after(state, depth, mark)
            placed.append(PlacedMarker(entry, mark, state.line, state.column))
            inserted = True
            _retire_passed(state, unresolved)
        if inserted:
            _descend_to_last(state)


def _reaches(state: WeaveState, entry: Entry) -> bool:
    return entry.line == state.line and state.column >= entry.column


def _retire_passed(state: WeaveState, unresolved: list[Entry]) -> None:
    # The cursor line never decreases, so an entry on an earlier line is lost.
    while state.queue and state.queue[0].line < state.line:
        unresolved.append(state.queue.popleft())


def _splice_after(state: WeaveState, depth: int, mark: Node) -> None:
    del state.stack[depth + 1 :]
    frame = state.stack[depth]
    frame.parent.children.insert(frame.index + 1, mark)
    frame.index += 1


def _descend_to_last(state: WeaveState) -> None:
    node = state.current
    while node.children:
        state.stack.append(_Frame(node, len(node.children) - 1))
        node = node.children[-1]


def _advance(state: WeaveState) -> None:
    node = state.current
    if node.kind is NodeKind.ELEMENT and node.children:
        state.stack.append(_Frame(node, 0))
        return
    while state.stack:
        frame = state.stack[-1]
        if frame.index + 1 < len(frame.parent.children):
            frame.index += 1
            return
        state.stack.pop()


def _audit_queue_order(queue: Sequence[Entry], sink: DiagnosticSink) -> None:
    violation = first_queue_violation(queue)
    if violation is None:
        return
    previous, current = violation
    sink.report(
        DiagnosticKind.QUEUE_OUT_OF_ORDER,
        f"entry {current.id} at {current.line}:{current.column} follows "
        f"entry {previous.id} at {previous.line}:{previous.column}",
        previous_id=previous.id,
        current_id=current.id,
    )


def _audit_line_boundary(state: WeaveState, sink: DiagnosticSink) -> None:
    lengths = state.expected_line_lengths or []
    if state.line - 1 < len(lengths):
        expected = lengths[state.line - 1] + 1
    else:
        expected = None
    if expected != state.column:
        sink.report(
            DiagnosticKind.LINE_LENGTH_MISMATCH,
            f"line {state.line}: expected column {expected}, cursor at {state.column}",
            line=state.line,
            expected_column=expected,
            cursor_column=state.column,
        )
    if not _pointer_within_root(state):
        sink.report(
            DiagnosticKind.POINTER_OUTSIDE_ROOT,
            f"traversal pointer left the root subtree at line {state.line}",
            line=state.line,
            depth=len(state.stack),
        )


def _pointer_within_root(state: WeaveState) -> bool:
    if not state.stack or state.stack[0].parent is not state.root:
        return False
    for outer, inner in zip(state.stack, state.stack[1:]):
        if not 0 <= outer.index < len(outer.parent.children):
            return False
        if inner.parent is not outer.node:
            return False
    last = state.stack[-1]
    return 0 <= last.index < len(last.parent.children)
