"""Structured, non-fatal diagnostics reported by a weave."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Callable, Iterator

from tracemark.json_types import JSONObject, JSONValue


class DiagnosticKind(StrEnum):
    UNRESOLVED_ENTRIES = "unresolved_entries"
    LINE_LENGTH_MISMATCH = "line_length_mismatch"
    POINTER_OUTSIDE_ROOT = "pointer_outside_root"
    QUEUE_OUT_OF_ORDER = "queue_out_of_order"
    CONCATENATION_MISMATCH = "concatenation_mismatch"


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    payload: JSONObject = field(default_factory=dict)

    def to_json(self) -> JSONObject:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "payload": {key: self.payload[key] for key in sorted(self.payload)},
        }

    def render(self) -> str:
        return f"[{self.kind.value}] {self.message}"


Observer = Callable[[Diagnostic], None]

_OBSERVER_CONTEXT: ContextVar[Observer | None] = ContextVar(
    "tracemark_diagnostic_observer",
    default=None,
)


class DiagnosticSink:
    """Per-call collector; forwards each record to the scoped observer, if any."""

    def __init__(self) -> None:
        self._records: list[Diagnostic] = []

    def report(self, kind: DiagnosticKind, message: str, **payload: JSONValue) -> Diagnostic:
        diagnostic = Diagnostic(kind=kind, message=message, payload=dict(payload))
        self._records.append(diagnostic)
        observer = _OBSERVER_CONTEXT.get()
        if observer is not None:
            observer(diagnostic)
        return diagnostic

    @property
    def records(self) -> tuple[Diagnostic, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)


@contextmanager
def diagnostic_scope(observer: Observer) -> Iterator[None]:
    token = _OBSERVER_CONTEXT.set(observer)
    try:
        yield
    finally:
        _OBSERVER_CONTEXT.reset(token)
