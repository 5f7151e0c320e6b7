from __future__ import annotations

import pytest

from tracemark import invariants
from tracemark.env_policy import AUDIT_ENV, audit_enabled_from_env, env_flag, env_text
from tracemark.exceptions import (
    EntryPayloadError,
    NeverRaise,
    NeverThrown,
    TracemarkError,
    UnrecognizedClassificationError,
)


def test_never_raises_never_thrown_with_payload() -> None:
    with pytest.raises(NeverThrown) as excinfo:
        invariants.never("boom", flag=True)
    assert isinstance(excinfo.value, NeverRaise)
    assert excinfo.value.reason == "boom"
    assert excinfo.value.payload == {"flag": True}
    assert excinfo.value.payload_dict == {"reason": "boom", "env": {"flag": True}}


def test_never_defaults_its_reason() -> None:
    with pytest.raises(NeverThrown, match="never\\(\\) invariant reached"):
        invariants.never()


def test_payload_errors_are_value_errors() -> None:
    error = EntryPayloadError("expected a list", field="updates")
    assert isinstance(error, TracemarkError)
    assert isinstance(error, ValueError)
    assert error.field == "updates"
    assert str(error) == "updates: expected a list"
    classification = UnrecognizedClassificationError("Z", domain="ic_state")
    assert isinstance(classification, ValueError)
    assert (classification.code, classification.domain) == ("Z", "ic_state")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("1", True), (" Yes ", True), ("off", False), ("0", False), ("maybe", None), ("", None)],
)
def test_env_flag_is_tri_state(raw: str, expected: bool | None, env_scope) -> None:
    with env_scope({AUDIT_ENV: raw}):
        assert env_flag(AUDIT_ENV) is expected


def test_audit_env_defaults_off(env_scope) -> None:
    with env_scope({AUDIT_ENV: None}):
        assert env_text(AUDIT_ENV) == ""
        assert audit_enabled_from_env() is False
    with env_scope({AUDIT_ENV: "true"}):
        assert audit_enabled_from_env() is True
