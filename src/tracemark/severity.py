"""Classification and severity tiers for V8 runtime-event codes.

Raw engine codes are mapped to a semantic state by exact lookup, and each
semantic state is mapped to an integer severity tier:

    MIN_SEVERITY       nothing to worry about
    MIN_SEVERITY + 1   worth a look (e.g. a polymorphic inline cache)
    MIN_SEVERITY + 2   likely a performance problem
    UNKNOWN_SEVERITY   the engine reported a state we cannot interpret

UNKNOWN_SEVERITY sorts above every real tier so that uninterpretable data is
never rendered as harmless.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Mapping

from tracemark.exceptions import UnrecognizedClassificationError

MIN_SEVERITY = 1
MAX_SEVERITY = MIN_SEVERITY + 2
UNKNOWN_SEVERITY = MAX_SEVERITY + 1


class ICState(StrEnum):
    UNINITIALIZED = "uninitialized"
    PREMONOMORPHIC = "premonomorphic"
    MONOMORPHIC = "monomorphic"
    RECOMPUTE_HANDLER = "recompute_handler"
    POLYMORPHIC = "polymorphic"
    MEGAMORPHIC = "megamorphic"
    GENERIC = "generic"
    UNKNOWN = "unknown"


class CodeState(StrEnum):
    COMPILED = "compiled"
    OPTIMIZABLE = "optimizable"
    OPTIMIZED = "optimized"
    UNKNOWN = "unknown"


class BailoutType(StrEnum):
    SOFT = "soft"
    LAZY = "lazy"
    EAGER = "eager"
    UNKNOWN = "unknown"


# V8 ICState characters, see src/ic/ic.cc TransitionMarkFromState.
_IC_STATE_CODES: Mapping[str, ICState] = {
    "0": ICState.UNINITIALIZED,
    ".": ICState.PREMONOMORPHIC,
    "1": ICState.MONOMORPHIC,
    "^": ICState.RECOMPUTE_HANDLER,
    "P": ICState.POLYMORPHIC,
    "N": ICState.MEGAMORPHIC,
    "G": ICState.GENERIC,
    "X": ICState.UNKNOWN,
}

_IC_STATE_SEVERITY: Mapping[ICState, int] = {
    ICState.UNINITIALIZED: MIN_SEVERITY,
    ICState.PREMONOMORPHIC: MIN_SEVERITY,
    ICState.MONOMORPHIC: MIN_SEVERITY,
    ICState.RECOMPUTE_HANDLER: MIN_SEVERITY,
    ICState.POLYMORPHIC: MIN_SEVERITY + 1,
    ICState.MEGAMORPHIC: MIN_SEVERITY + 2,
    ICState.GENERIC: MIN_SEVERITY + 2,
    ICState.UNKNOWN: UNKNOWN_SEVERITY,
}

# Function-state markers on code-creation events.
_CODE_STATE_CODES: Mapping[str, CodeState] = {
    "": CodeState.COMPILED,
    "~": CodeState.OPTIMIZABLE,
    "*": CodeState.OPTIMIZED,
}

_CODE_STATE_SEVERITY: Mapping[CodeState, int] = {
    CodeState.COMPILED: MIN_SEVERITY + 2,
    CodeState.OPTIMIZABLE: MIN_SEVERITY + 1,
    CodeState.OPTIMIZED: MIN_SEVERITY,
    CodeState.UNKNOWN: UNKNOWN_SEVERITY,
}

_BAILOUT_SEVERITY: Mapping[BailoutType, int] = {
    BailoutType.SOFT: MIN_SEVERITY,
    BailoutType.LAZY: MIN_SEVERITY + 1,
    BailoutType.EAGER: MIN_SEVERITY + 2,
    BailoutType.UNKNOWN: UNKNOWN_SEVERITY,
}


def classify(code: str) -> ICState:
    """Map a single-character inline-cache code to its semantic state.

    Raises UnrecognizedClassificationError for any code outside the table;
    callers treat that as a hard parse error.
    """
    if type(code) is not str or len(code) != 1:
        raise UnrecognizedClassificationError(code, domain="ic_state")
    try:
        return _IC_STATE_CODES[code]
    except KeyError:
        raise UnrecognizedClassificationError(code, domain="ic_state") from None


def severity_of(state: ICState) -> int:
    try:
        return _IC_STATE_SEVERITY[ICState(state)]
    except ValueError:
        raise UnrecognizedClassificationError(state, domain="ic_state") from None


def classify_code_state(code: str) -> CodeState:
    if type(code) is not str:
        raise UnrecognizedClassificationError(code, domain="code_state")
    try:
        return _CODE_STATE_CODES[code]
    except KeyError:
        raise UnrecognizedClassificationError(code, domain="code_state") from None


def code_state_severity(state: CodeState) -> int:
    try:
        return _CODE_STATE_SEVERITY[CodeState(state)]
    except ValueError:
        raise UnrecognizedClassificationError(state, domain="code_state") from None


def classify_bailout(raw: str) -> BailoutType:
    try:
        return BailoutType(str(raw).strip().lower())
    except ValueError:
        raise UnrecognizedClassificationError(raw, domain="bailout_type") from None


def bailout_severity(bailout: BailoutType) -> int:
    try:
        return _BAILOUT_SEVERITY[BailoutType(bailout)]
    except ValueError:
        raise UnrecognizedClassificationError(bailout, domain="bailout_type") from None


def is_unknown_severity(value: int) -> bool:
    return value == UNKNOWN_SEVERITY


def severity_tier(value: int) -> int:
    """Clamp a severity onto the 1-based display tiers (unknown shows as worst)."""
    if is_unknown_severity(value):
        return MAX_SEVERITY - MIN_SEVERITY + 1
    return min(max(value, MIN_SEVERITY), MAX_SEVERITY) - MIN_SEVERITY + 1
