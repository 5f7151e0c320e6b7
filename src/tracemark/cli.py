from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import typer

from tracemark.config import merge_payload, weave_defaults, weave_settings
from tracemark.diagnostics import Diagnostic, diagnostic_scope
from tracemark.entries import (
    EntryGroups,
    entry_from_json,
    entry_groups_from_entries,
    entry_groups_from_json,
    entry_to_json,
)
from tracemark.exceptions import (
    EntryPayloadError,
    NeverThrown,
    UnrecognizedClassificationError,
)
from tracemark.html_io import parse_fragment, render
from tracemark.json_types import JSONObject, JSONValue
from tracemark.order_contract import order_telemetry
from tracemark.ordering import sort_entry_groups
from tracemark.severity import classify, severity_of
from tracemark.weaver import WeaveResult, weave

app = typer.Typer(add_completion=False)

_STDOUT_ALIAS = "-"


def _echo_diagnostic(diagnostic: Diagnostic) -> None:
    typer.echo(diagnostic.render(), err=True)


def _load_entry_groups(path: Path) -> EntryGroups:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, list):
        return entry_groups_from_entries(entry_from_json(item) for item in payload)
    if isinstance(payload, dict):
        return entry_groups_from_json(payload)
    raise EntryPayloadError("expected an object or a list", field="entries")


def _result_payload(result: WeaveResult, rendered: str) -> JSONObject:
    placed: list[JSONValue] = [
        {
            "id": item.entry.id,
            "marker_id": item.node.attrs.get("id", ""),
            "line": item.line,
            "column": item.column,
        }
        for item in result.placed
    ]
    unresolved: list[JSONValue] = [entry_to_json(entry) for entry in result.unresolved]
    diagnostics: list[JSONValue] = [item.to_json() for item in result.diagnostics]
    return {
        "summary": result.summary(),
        "placed": placed,
        "unresolved": unresolved,
        "diagnostics": diagnostics,
        "html": rendered,
    }


@app.command("classify")
def classify_command(
    codes: List[str] = typer.Argument(..., help="Raw inline-cache state codes."),
) -> None:
    """Print the semantic state and severity of raw inline-cache codes."""
    failed = False
    for code in codes:
        try:
            state = classify(code)
        except UnrecognizedClassificationError as exc:
            typer.echo(f"error: {exc}", err=True)
            failed = True
            continue
        typer.echo(f"{code}\t{state.value}\t{severity_of(state)}")
    if failed:
        raise typer.Exit(code=2)


@app.command("weave")
def weave_command(
    html_path: Path = typer.Option(..., "--html", exists=True, dir_okay=False),
    entries_path: Path = typer.Option(..., "--entries", exists=True, dir_okay=False),
    file_id: Optional[str] = typer.Option(None, "--file-id"),
    audit: Optional[bool] = typer.Option(None, "--audit/--no-audit"),
    active_id: Optional[str] = typer.Option(None, "--active-id"),
    order_policy: Optional[str] = typer.Option(None, "--order-policy"),
    output: Optional[Path] = typer.Option(None, "--output"),
    json_output: bool = typer.Option(False, "--json"),
    fail_on_unresolved: Optional[bool] = typer.Option(
        None, "--fail-on-unresolved/--no-fail-on-unresolved"
    ),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Overlay entry markers onto a highlighted HTML fragment."""
    explicit = {
        "file_id": file_id,
        "audit": audit,
        "active_id": active_id,
        "order_policy": order_policy,
        "fail_on_unresolved": fail_on_unresolved,
    }
    settings = weave_settings(
        merge_payload(explicit, weave_defaults(root=root, config_path=config)),
        fallback_file_id=html_path.name,
    )

    try:
        groups = _load_entry_groups(entries_path)
    except (EntryPayloadError, UnrecognizedClassificationError) as exc:
        typer.echo(f"error: {entries_path}: {exc}", err=True)
        raise typer.Exit(code=2)
    except json.JSONDecodeError as exc:
        typer.echo(f"error: {entries_path}: invalid JSON ({exc})", err=True)
        raise typer.Exit(code=2)

    try:
        with order_telemetry() as telemetry:
            queue = sort_entry_groups(groups, policy=settings.order_policy)
    except NeverThrown as exc:
        typer.echo(f"error: {exc} ({exc.payload})", err=True)
        raise typer.Exit(code=2)
    for event in telemetry:
        typer.echo(
            f"[order] {event['source']}: caller order regressed at index "
            f"{event['current_index']}; sorted",
            err=True,
        )

    tree = parse_fragment(html_path.read_text(encoding="utf-8"))
    with diagnostic_scope(_echo_diagnostic):
        result = weave(
            tree,
            queue,
            file_id=settings.file_id,
            audit=settings.audit,
            active_id=settings.active_id,
        )

    rendered = render(result.root)
    text = (
        json.dumps(_result_payload(result, rendered), indent=2) + "\n"
        if json_output
        else rendered
    )
    if output is None or str(output) == _STDOUT_ALIAS:
        typer.echo(text, nl=False)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
    typer.echo(result.summary(), err=True)
    if not result.ok and settings.fail_on_unresolved:
        raise typer.Exit(code=1)
