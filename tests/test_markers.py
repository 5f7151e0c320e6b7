from __future__ import annotations

import pytest

from tracemark.document import NodeKind, full_text, source_text
from tracemark.entries import EntryType
from tracemark.html_io import render
from tracemark.markers import make_marker, marker_icon, marker_id, severity_class
from tracemark.severity import MIN_SEVERITY, UNKNOWN_SEVERITY


@pytest.mark.parametrize(
    ("entry_type", "icon"),
    [(EntryType.CODES, "▲"), (EntryType.DEOPTS, "▼"), (EntryType.ICS, "☎")],
)
def test_marker_icon_per_category(entry_type: EntryType, icon: str) -> None:
    assert marker_icon(entry_type) == icon


def test_severity_class_renders_unknown_as_most_alarming() -> None:
    assert severity_class(MIN_SEVERITY) == "sev1"
    assert severity_class(MIN_SEVERITY + 1) == "sev2"
    assert severity_class(MIN_SEVERITY + 2) == "sev3"
    assert severity_class(UNKNOWN_SEVERITY) == "sev3"


def test_make_marker_exposes_an_addressable_hook(make_entry) -> None:
    entry = make_entry(2, 4, entry_type=EntryType.DEOPTS, severity=2, entry_id="42")
    node = make_marker("7", entry)
    assert node.kind is NodeKind.MARKER
    assert node.entry is entry
    assert node.attrs["id"] == marker_id("7", "42") == "/file/7/42"
    assert node.attrs["href"] == "#/file/7/42"
    assert node.attrs["class"] == "deopt-marker sev2"
    assert source_text(node) == ""
    assert full_text(node) == "▼"
    assert render(node) == (
        '<a id="/file/7/42" href="#/file/7/42" class="deopt-marker sev2"><mark>▼</mark></a>'
    )


def test_make_marker_flags_the_active_marker(make_entry) -> None:
    entry = make_entry(1, 1, entry_id="3")
    assert make_marker("f", entry, active_id="#/file/f/3").attrs["class"].endswith(" active")
    assert "active" not in make_marker("f", entry, active_id="/file/f/4").attrs["class"]
