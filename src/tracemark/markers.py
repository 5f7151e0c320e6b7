from __future__ import annotations

from tracemark.document import Node, element, marker, text
from tracemark.entries import Entry, EntryType
from tracemark.severity import severity_tier

MARKER_CLASS = "deopt-marker"
ACTIVE_CLASS = "active"

_ICONS: dict[EntryType, str] = {
    EntryType.CODES: "▲",
    EntryType.DEOPTS: "▼",
    EntryType.ICS: "☎",
}


def marker_icon(entry_type: EntryType) -> str:
    return _ICONS[EntryType(entry_type)]


def severity_class(severity: int) -> str:
    return f"sev{severity_tier(severity)}"


def marker_id(file_id: str, entry_id: str) -> str:
    return f"/file/{file_id}/{entry_id}"


def make_marker(file_id: str, entry: Entry, *, active_id: str | None = None) -> Node:
    """Build the `<a><mark>icon</mark></a>` marker node for one entry.

    `active_id` is the marker id currently selected by the viewer; the
    matching marker gets the active class.
    """
    link_id = marker_id(file_id, entry.id)
    classes = [MARKER_CLASS, severity_class(entry.severity)]
    if active_id is not None and active_id.lstrip("#") == link_id:
        classes.append(ACTIVE_CLASS)
    return marker(
        "a",
        entry,
        element("mark", text(marker_icon(entry.type))),
        id=link_id,
        href="#" + link_id,
        **{"class": " ".join(classes)},
    )
