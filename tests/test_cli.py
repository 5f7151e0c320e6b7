from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from tracemark import cli

HIGHLIGHTED = (
    '<span class="token keyword">function</span> <span class="token function">f</span>'
    '<span class="token punctuation">(</span>o<span class="token punctuation">)</span> {\n'
    "  return o.x;\n"
    "}\n"
)

ENTRIES = {
    "codes": [
        {
            "id": "0",
            "type": "codes",
            "functionName": "f",
            "file": "/app/f.js",
            "line": 1,
            "column": 10,
            "severity": 1,
            "updates": [{"timestamp": 1, "state": "optimized"}],
        }
    ],
    "deopts": [],
    "ics": [
        {
            "id": "1",
            "type": "ics",
            "functionName": "f",
            "file": "/app/f.js",
            "line": 2,
            "column": 12,
            "severity": 3,
            "updates": [
                {"type": "LoadIC", "oldState": "1", "newState": "N", "key": "x", "map": "0x1"}
            ],
        }
    ],
}


def _runner() -> CliRunner:
    try:
        return CliRunner(mix_stderr=False)
    except TypeError:
        return CliRunner()


def _write_inputs(tmp_path: Path, entries: object = ENTRIES) -> tuple[Path, Path]:
    html_path = tmp_path / "f.js.html"
    html_path.write_text(HIGHLIGHTED, encoding="utf-8")
    entries_path = tmp_path / "entries.json"
    entries_path.write_text(json.dumps(entries), encoding="utf-8")
    return html_path, entries_path


def test_cli_classify_prints_state_and_severity() -> None:
    result = _runner().invoke(cli.app, ["classify", "^", "P", "N"])
    assert result.exit_code == 0
    assert result.stdout.splitlines() == [
        "^\trecompute_handler\t1",
        "P\tpolymorphic\t2",
        "N\tmegamorphic\t3",
    ]


def test_cli_classify_fails_on_unrecognized_codes() -> None:
    result = _runner().invoke(cli.app, ["classify", "1", "Z"])
    assert result.exit_code == 2
    assert "1\tmonomorphic\t1" in result.stdout
    assert "Z" in result.stderr


def test_cli_weave_writes_woven_html(tmp_path: Path) -> None:
    html_path, entries_path = _write_inputs(tmp_path)
    output = tmp_path / "out" / "woven.html"
    result = _runner().invoke(
        cli.app,
        [
            "weave",
            "--html",
            str(html_path),
            "--entries",
            str(entries_path),
            "--file-id",
            "3",
            "--output",
            str(output),
            "--root",
            str(tmp_path),
        ],
    )
    assert result.exit_code == 0, result.output
    woven = output.read_text(encoding="utf-8")
    assert 'id="/file/3/0"' in woven
    assert 'class="deopt-marker sev3"' in woven
    assert "<mark>▲</mark>" in woven and "<mark>☎</mark>" in woven
    assert "2 markers placed" in result.stderr


def test_cli_weave_json_reports_unresolved_markers(tmp_path: Path) -> None:
    entries = json.loads(json.dumps(ENTRIES))
    entries["ics"][0]["line"] = 40
    html_path, entries_path = _write_inputs(tmp_path, entries)
    result = _runner().invoke(
        cli.app,
        [
            "weave",
            "--html",
            str(html_path),
            "--entries",
            str(entries_path),
            "--json",
            "--fail-on-unresolved",
            "--root",
            str(tmp_path),
        ],
    )
    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["summary"] == "1 markers placed, 1 markers could not be placed"
    assert [entry["id"] for entry in payload["unresolved"]] == ["1"]
    assert payload["placed"][0]["marker_id"] == "/file/f.js.html/0"
    assert "[unresolved_entries]" in result.stderr


def test_cli_weave_reads_defaults_from_config(tmp_path: Path) -> None:
    html_path, entries_path = _write_inputs(tmp_path)
    (tmp_path / "tracemark.toml").write_text(
        '[weave]\nfile_id = "cfg"\nactive_id = "/file/cfg/1"\n', encoding="utf-8"
    )
    result = _runner().invoke(
        cli.app,
        ["weave", "--html", str(html_path), "--entries", str(entries_path), "--root", str(tmp_path)],
    )
    assert result.exit_code == 0, result.output
    assert 'id="/file/cfg/1"' in result.stdout
    assert "deopt-marker sev3 active" in result.stdout


def test_cli_weave_rejects_malformed_entries(tmp_path: Path) -> None:
    html_path, entries_path = _write_inputs(tmp_path, {"ics": [{"id": "1", "type": "ics"}]})
    result = _runner().invoke(
        cli.app,
        ["weave", "--html", str(html_path), "--entries", str(entries_path), "--root", str(tmp_path)],
    )
    assert result.exit_code == 2
    assert "line" in result.stderr


def test_cli_weave_rejects_unknown_order_policy(tmp_path: Path) -> None:
    html_path, entries_path = _write_inputs(tmp_path)
    result = _runner().invoke(
        cli.app,
        [
            "weave",
            "--html",
            str(html_path),
            "--entries",
            str(entries_path),
            "--order-policy",
            "sideways",
            "--root",
            str(tmp_path),
        ],
    )
    assert result.exit_code == 2
    assert "unknown order policy" in result.stderr


def test_cli_weave_accepts_a_flat_entry_list(tmp_path: Path) -> None:
    flat = ENTRIES["ics"] + ENTRIES["codes"]
    html_path, entries_path = _write_inputs(tmp_path, flat)
    result = _runner().invoke(
        cli.app,
        ["weave", "--html", str(html_path), "--entries", str(entries_path), "--root", str(tmp_path)],
    )
    assert result.exit_code == 0, result.output
    assert result.stdout.index("/file/f.js.html/0") < result.stdout.index("/file/f.js.html/1")
