"""Invariant markers for tracemark."""

from __future__ import annotations

from typing import NoReturn

from tracemark.exceptions import NeverThrown


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path as intentionally unreachable.

    The env payload is carried on the raised exception for reporting; it is
    not evaluated.
    """
    normalized = str(reason or "never() invariant reached").strip()
    raise NeverThrown(normalized, payload=env)
