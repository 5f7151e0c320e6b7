"""Exception types raised by tracemark."""

from __future__ import annotations

from typing import Mapping


class TracemarkError(Exception):
    """Base class for all tracemark failures."""


class UnrecognizedClassificationError(TracemarkError, ValueError):
    """A raw engine code is not in the known classification table.

    This is a hard parse error: it usually means the trace was produced by an
    unsupported engine version, so the record must not be scored with a
    fallback state.
    """

    def __init__(self, code: object, *, domain: str) -> None:
        super().__init__(f"unrecognized {domain} classification: {code!r}")
        self.code = code
        self.domain = domain


class EntryPayloadError(TracemarkError, ValueError):
    def __init__(self, message: str, *, field: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field


class NeverRaise(RuntimeError):
    """Sentinel exception for code paths that must be unreachable.

    Raised through `tracemark.invariants.never()`; reaching it means a caller
    contract (for example a caller-ordered queue) was violated.
    """

    def __init__(self, message: str, *, payload: Mapping[str, object] | None = None):
        super().__init__(message)
        self.reason = message
        self.payload: dict[str, object] = {
            str(key): value for key, value in (payload or {}).items()
        }

    @property
    def payload_dict(self) -> dict[str, object]:
        return {"reason": self.reason, "env": dict(self.payload)}


class NeverThrown(NeverRaise):
    """Alias for NeverRaise used by the explicit never() marker."""
