"""tracemark package root."""

from tracemark.exceptions import (
    EntryPayloadError,
    NeverRaise,
    NeverThrown,
    TracemarkError,
    UnrecognizedClassificationError,
)
from tracemark.invariants import never
from tracemark.ordering import sort_entries
from tracemark.severity import classify, severity_of
from tracemark.weaver import WeaveResult, weave

__all__ = [
    "__version__",
    "EntryPayloadError",
    "NeverRaise",
    "NeverThrown",
    "TracemarkError",
    "UnrecognizedClassificationError",
    "WeaveResult",
    "classify",
    "never",
    "severity_of",
    "sort_entries",
    "weave",
]

__version__ = "0.1.0"
