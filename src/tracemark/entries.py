"""Typed runtime-event entries and their JSON carrier.

Entries arrive already resolved to a file position and severity; this module
only decodes them, scores pre-split IC records and re-encodes entries for
reports. Entries are immutable once built.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Iterable, Mapping, Sequence

from tracemark.exceptions import EntryPayloadError
from tracemark.json_types import JSONObject, JSONValue, RawRecord
from tracemark.severity import (
    MIN_SEVERITY,
    BailoutType,
    CodeState,
    ICState,
    bailout_severity,
    classify,
    classify_bailout,
    classify_code_state,
    code_state_severity,
    severity_of,
)


class EntryType(StrEnum):
    # Declaration order is the tie-break precedence for coincident entries.
    CODES = "codes"
    DEOPTS = "deopts"
    ICS = "ics"


ENTRY_TYPE_PRECEDENCE: dict[EntryType, int] = {
    entry_type: index for index, entry_type in enumerate(EntryType)
}


@dataclass(frozen=True)
class CodeUpdate:
    timestamp: int
    state: CodeState


@dataclass(frozen=True)
class DeoptUpdate:
    timestamp: int
    bailout_type: BailoutType
    deopt_reason: str = ""
    optimization_state: str = ""
    inlined: bool = False
    inlined_at: str = ""


@dataclass(frozen=True)
class ICUpdate:
    type: str
    old_state: ICState
    new_state: ICState
    key: str = ""
    map: str = ""
    modifier: str = ""
    slow_reason: str = ""
    optimization_state: str = ""


@dataclass(frozen=True)
class Entry:
    id: str
    type: EntryType
    file: str
    line: int
    column: int
    severity: int
    function_name: str = ""

    @property
    def position(self) -> tuple[int, int]:
        return (self.line, self.column)


@dataclass(frozen=True)
class CodeEntry(Entry):
    updates: tuple[CodeUpdate, ...] = ()


@dataclass(frozen=True)
class DeoptEntry(Entry):
    updates: tuple[DeoptUpdate, ...] = ()


@dataclass(frozen=True)
class ICEntry(Entry):
    updates: tuple[ICUpdate, ...] = ()


@dataclass(frozen=True)
class EntryGroups:
    codes: tuple[Entry, ...] = ()
    deopts: tuple[Entry, ...] = ()
    ics: tuple[Entry, ...] = ()

    def __len__(self) -> int:
        return len(self.codes) + len(self.deopts) + len(self.ics)


@dataclass(frozen=True)
class ScoredICRecord:
    line: int
    column: int
    update: ICUpdate
    severity: int


def update_severity(update: CodeUpdate | DeoptUpdate | ICUpdate) -> int:
    if isinstance(update, ICUpdate):
        return severity_of(update.new_state)
    if isinstance(update, DeoptUpdate):
        return bailout_severity(update.bailout_type)
    return code_state_severity(update.state)


def entry_severity(updates: Iterable[CodeUpdate | DeoptUpdate | ICUpdate]) -> int:
    return max((update_severity(update) for update in updates), default=MIN_SEVERITY)


def ic_update_from_fields(ic_type: str, fields: Sequence[str]) -> ScoredICRecord:
    """Score an IC record whose log line has already been split into fields.

    Field order follows the engine's IC events: code offset, line, column,
    old state, new state, map, key, modifier, slow reason. Unknown state
    codes raise UnrecognizedClassificationError.
    """
    if len(fields) < 6:
        raise EntryPayloadError(
            f"expected at least 6 fields, got {len(fields)}", field="fields"
        )
    padded = list(fields) + [""] * (9 - len(fields))
    update = ICUpdate(
        type=ic_type,
        old_state=classify(padded[3]),
        new_state=classify(padded[4]),
        map=padded[5],
        key=padded[6],
        modifier=padded[7],
        slow_reason=padded[8],
    )
    return ScoredICRecord(
        line=_as_position(padded[1], field="line"),
        column=_as_position(padded[2], field="column"),
        update=update,
        severity=update_severity(update),
    )


def _as_position(value: object, *, field: str) -> int:
    if isinstance(value, bool):
        raise EntryPayloadError("expected a positive integer", field=field)
    try:
        number = int(str(value).strip())
    except ValueError:
        raise EntryPayloadError(
            f"expected a positive integer, got {value!r}", field=field
        ) from None
    if number < 1:
        raise EntryPayloadError(f"must be >= 1, got {number}", field=field)
    return number


def _as_str(payload: RawRecord, *names: str, default: str = "") -> str:
    for name in names:
        value = payload.get(name)
        if value is not None:
            return str(value)
    return default


def _as_int(payload: RawRecord, name: str, default: int = 0) -> int:
    value = payload.get(name, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise EntryPayloadError(f"expected an integer, got {value!r}", field=name)
    return value


_IC_STATE_ALIASES = {"unintialized": ICState.UNINITIALIZED}


def _ic_state(value: object) -> ICState:
    text = str(value)
    if text in _IC_STATE_ALIASES:
        return _IC_STATE_ALIASES[text]
    try:
        return ICState(text)
    except ValueError:
        # Raw single-character codes are accepted too.
        return classify(text)


def _code_state(value: str) -> CodeState:
    try:
        return CodeState(value)
    except ValueError:
        # Raw log markers ("", "~", "*") are accepted too.
        return classify_code_state(value)


def _code_update(raw: RawRecord) -> CodeUpdate:
    state = _as_str(raw, "state", default=CodeState.UNKNOWN.value)
    return CodeUpdate(timestamp=_as_int(raw, "timestamp"), state=_code_state(state))


def _deopt_update(raw: RawRecord) -> DeoptUpdate:
    bailout = _as_str(raw, "bailoutType", "bailout_type", default=BailoutType.UNKNOWN.value)
    return DeoptUpdate(
        timestamp=_as_int(raw, "timestamp"),
        bailout_type=classify_bailout(bailout),
        deopt_reason=_as_str(raw, "deoptReason", "deopt_reason"),
        optimization_state=_as_str(raw, "optimizationState", "optimization_state"),
        inlined=bool(raw.get("inlined", False)),
        inlined_at=_as_str(raw, "inlinedAt", "inlined_at"),
    )


def _ic_update(raw: RawRecord) -> ICUpdate:
    return ICUpdate(
        type=_as_str(raw, "type"),
        old_state=_ic_state(raw.get("oldState", raw.get("old_state", "X"))),
        new_state=_ic_state(raw.get("newState", raw.get("new_state", "X"))),
        key=_as_str(raw, "key"),
        map=_as_str(raw, "map"),
        modifier=_as_str(raw, "modifier"),
        slow_reason=_as_str(raw, "slowReason", "slow_reason"),
        optimization_state=_as_str(raw, "optimizationState", "optimization_state"),
    )


_UPDATE_DECODERS = {
    EntryType.CODES: _code_update,
    EntryType.DEOPTS: _deopt_update,
    EntryType.ICS: _ic_update,
}

_ENTRY_CLASSES: dict[EntryType, type[Entry]] = {
    EntryType.CODES: CodeEntry,
    EntryType.DEOPTS: DeoptEntry,
    EntryType.ICS: ICEntry,
}


def entry_from_json(payload: RawRecord, *, entry_type: EntryType | None = None) -> Entry:
    """Decode one upstream entry record.

    The declared `severity` is kept as supplied; when it is missing it is
    derived from the entry's updates.
    """
    if not isinstance(payload, Mapping):
        raise EntryPayloadError("expected an object", field="entry")
    raw_type = payload.get("type", entry_type.value if entry_type else None)
    try:
        resolved_type = EntryType(str(raw_type))
    except ValueError:
        raise EntryPayloadError(f"unknown entry type {raw_type!r}", field="type") from None
    if entry_type is not None and resolved_type is not entry_type:
        raise EntryPayloadError(
            f"entry of type {resolved_type.value!r} listed under {entry_type.value!r}",
            field="type",
        )
    if "id" not in payload:
        raise EntryPayloadError("missing entry id", field="id")
    raw_updates = payload.get("updates", [])
    if not isinstance(raw_updates, list):
        raise EntryPayloadError("expected a list", field="updates")
    decoder = _UPDATE_DECODERS[resolved_type]
    updates = tuple(
        decoder(_require_mapping(item, field="updates")) for item in raw_updates
    )
    severity = payload.get("severity")
    if severity is None:
        severity = entry_severity(updates)
    elif isinstance(severity, bool) or not isinstance(severity, int):
        raise EntryPayloadError(f"expected an integer, got {severity!r}", field="severity")
    return _ENTRY_CLASSES[resolved_type](
        id=str(payload["id"]),
        type=resolved_type,
        file=_as_str(payload, "file"),
        line=_as_position(payload.get("line"), field="line"),
        column=_as_position(payload.get("column"), field="column"),
        severity=severity,
        function_name=_as_str(payload, "functionName", "function_name"),
        updates=updates,
    )


def _require_mapping(value: object, *, field: str) -> RawRecord:
    if not isinstance(value, Mapping):
        raise EntryPayloadError("expected an object", field=field)
    return value


def entry_groups_from_json(payload: RawRecord) -> EntryGroups:
    groups: dict[str, tuple[Entry, ...]] = {}
    for entry_type in EntryType:
        raw = payload.get(entry_type.value, [])
        if isinstance(raw, Mapping):
            # Upstream keys some collections by id.
            raw = list(raw.values())
        if not isinstance(raw, list):
            raise EntryPayloadError("expected a list", field=entry_type.value)
        groups[entry_type.value] = tuple(
            entry_from_json(_require_mapping(item, field=entry_type.value), entry_type=entry_type)
            for item in raw
        )
    return EntryGroups(**groups)


def _update_to_json(update: CodeUpdate | DeoptUpdate | ICUpdate) -> JSONObject:
    if isinstance(update, ICUpdate):
        return {
            "type": update.type,
            "oldState": update.old_state.value,
            "newState": update.new_state.value,
            "key": update.key,
            "map": update.map,
            "modifier": update.modifier,
            "slowReason": update.slow_reason,
            "optimizationState": update.optimization_state,
            "severity": update_severity(update),
        }
    if isinstance(update, DeoptUpdate):
        return {
            "timestamp": update.timestamp,
            "bailoutType": update.bailout_type.value,
            "deoptReason": update.deopt_reason,
            "optimizationState": update.optimization_state,
            "inlined": update.inlined,
            "inlinedAt": update.inlined_at,
            "severity": update_severity(update),
        }
    return {
        "timestamp": update.timestamp,
        "state": update.state.value,
        "severity": update_severity(update),
    }


def entry_to_json(entry: Entry) -> JSONObject:
    updates: list[JSONValue] = [
        _update_to_json(update) for update in getattr(entry, "updates", ())
    ]
    return {
        "id": entry.id,
        "type": entry.type.value,
        "functionName": entry.function_name,
        "file": entry.file,
        "line": entry.line,
        "column": entry.column,
        "severity": entry.severity,
        "updates": updates,
    }


def entry_groups_from_entries(entries: Iterable[Entry]) -> EntryGroups:
    buckets: dict[EntryType, list[Entry]] = {entry_type: [] for entry_type in EntryType}
    for entry in entries:
        buckets[entry.type].append(entry)
    return EntryGroups(
        codes=tuple(buckets[EntryType.CODES]),
        deopts=tuple(buckets[EntryType.DEOPTS]),
        ics=tuple(buckets[EntryType.ICS]),
    )


__all__ = [
    "CodeEntry",
    "CodeUpdate",
    "DeoptEntry",
    "DeoptUpdate",
    "ENTRY_TYPE_PRECEDENCE",
    "Entry",
    "EntryGroups",
    "EntryType",
    "ICEntry",
    "ICUpdate",
    "ScoredICRecord",
    "entry_from_json",
    "entry_groups_from_entries",
    "entry_groups_from_json",
    "entry_severity",
    "entry_to_json",
    "ic_update_from_fields",
    "update_severity",
]
