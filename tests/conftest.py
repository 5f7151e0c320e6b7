from __future__ import annotations

import os
import sys
from pathlib import Path

SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


from contextlib import contextmanager
from typing import Iterator, Mapping

import pytest

from tracemark.entries import Entry, EntryType
from tracemark.env_policy import AUDIT_ENV, ORDER_POLICY_ENV
from tracemark.severity import MIN_SEVERITY


@contextmanager
def _env_scope(values: Mapping[str, str | None]) -> Iterator[None]:
    """Apply env overrides (None unsets) and restore the prior values on exit."""
    saved = {name: os.environ.get(name) for name in values}
    try:
        for name, value in values.items():
            os.environ.pop(name, None)
            if value is not None:
                os.environ[name] = value
        yield
    finally:
        for name, value in saved.items():
            os.environ.pop(name, None)
            if value is not None:
                os.environ[name] = value


@pytest.fixture(autouse=True)
def _isolated_env():
    # Keep ambient toggles from the developer shell out of the tests.
    with _env_scope({AUDIT_ENV: None, ORDER_POLICY_ENV: None}):
        yield


@pytest.fixture
def env_scope():
    return _env_scope


@pytest.fixture
def make_entry():
    counter = iter(range(1_000_000))

    def _make(
        line: int,
        column: int,
        *,
        entry_type: EntryType = EntryType.ICS,
        severity: int = MIN_SEVERITY,
        entry_id: str | None = None,
        file: str = "/app/index.js",
    ) -> Entry:
        return Entry(
            id=entry_id if entry_id is not None else str(next(counter)),
            type=entry_type,
            file=file,
            line=line,
            column=column,
            severity=severity,
        )

    return _make
