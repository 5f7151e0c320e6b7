from __future__ import annotations

import os

_TRUTHY_VALUES = {"1", "true", "yes", "on"}
_FALSEY_VALUES = {"0", "false", "no", "off"}

AUDIT_ENV = "TRACEMARK_AUDIT"
ORDER_POLICY_ENV = "TRACEMARK_ORDER_POLICY"


def env_text(name: str, *, default: str = "") -> str:
    return os.getenv(name, default).strip()


def env_flag(name: str) -> bool | None:
    """Tri-state reading of a boolean env toggle; None when unset or unparsable."""
    value = env_text(name).lower()
    if value in _TRUTHY_VALUES:
        return True
    if value in _FALSEY_VALUES:
        return False
    return None


def audit_enabled_from_env() -> bool:
    return env_flag(AUDIT_ENV) is True
