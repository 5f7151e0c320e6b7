from __future__ import annotations

"""Project configuration read from `tracemark.toml`.

Only the `[weave]` table is consulted. Missing or unreadable files behave
like an empty table so the command line never fails on configuration.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, TypeAlias
import tomllib

from tracemark.env_policy import audit_enabled_from_env

DEFAULT_CONFIG_NAME = "tracemark.toml"
WEAVE_SECTION = "weave"

ConfigTable: TypeAlias = dict[str, Any]

_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})


def load_config(root: Path | None = None, config_path: Path | None = None) -> ConfigTable:
    path = config_path or (root or Path.cwd()) / DEFAULT_CONFIG_NAME
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError):
        return {}
    return data


def weave_defaults(root: Path | None = None, config_path: Path | None = None) -> ConfigTable:
    section = load_config(root=root, config_path=config_path).get(WEAVE_SECTION)
    return dict(section) if isinstance(section, dict) else {}


def merge_payload(payload: Mapping[str, Any], defaults: Mapping[str, Any]) -> ConfigTable:
    """Overlay explicitly given values on the configured defaults."""
    merged = dict(defaults)
    merged.update((key, value) for key, value in payload.items() if value is not None)
    return merged


def as_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_WORDS
    if isinstance(value, (bool, int)):
        return bool(value)
    return False


def as_text(value: object, default: str = "") -> str:
    text = value.strip() if isinstance(value, str) else ""
    return text or default


@dataclass(frozen=True)
class WeaveSettings:
    file_id: str
    audit: bool
    active_id: str | None = None
    order_policy: str | None = None
    fail_on_unresolved: bool = False


def weave_settings(options: Mapping[str, Any], *, fallback_file_id: str) -> WeaveSettings:
    """Coerce merged `[weave]` options; audit falls back to `TRACEMARK_AUDIT`."""
    audit = options.get("audit")
    return WeaveSettings(
        file_id=as_text(options.get("file_id"), default=fallback_file_id),
        audit=audit_enabled_from_env() if audit is None else as_bool(audit),
        active_id=as_text(options.get("active_id")) or None,
        order_policy=as_text(options.get("order_policy")) or None,
        fail_on_unresolved=as_bool(options.get("fail_on_unresolved", False)),
    )
