from __future__ import annotations

"""Caller-order policy for queues that are expected to arrive pre-sorted.

Upstream producers normally emit entries already in position order. The
policy decides whether that order is re-sorted, validated, trusted, or
enforced; it resolves from an explicit argument, then the innermost
`order_policy(...)` scope, then `TRACEMARK_ORDER_POLICY`, then `SORT`.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, TypeVar

from tracemark.env_policy import ORDER_POLICY_ENV, env_text
from tracemark.invariants import never


T = TypeVar("T")

OrderEvent = dict[str, object]


class OrderPolicy(str, Enum):
    SORT = "sort"
    CHECK = "check"
    TRUST = "trust"
    ENFORCE = "enforce"


_ENV_ALIASES = {
    "off": OrderPolicy.SORT,
    "false": OrderPolicy.SORT,
    "0": OrderPolicy.SORT,
    "on": OrderPolicy.ENFORCE,
    "true": OrderPolicy.ENFORCE,
    "1": OrderPolicy.ENFORCE,
}

_scoped_policy: ContextVar[OrderPolicy | None] = ContextVar(
    "tracemark_order_policy", default=None
)
_event_sink: ContextVar[list[OrderEvent] | None] = ContextVar(
    "tracemark_order_events", default=None
)


@dataclass(frozen=True)
class OrderViolation:
    previous_index: int
    current_index: int
    previous_key: Any
    current_key: Any
    kind: str  # "out_of_order" or "incomparable"

    def describe(self, *, source: str, policy: OrderPolicy) -> OrderEvent:
        return {
            "source": source,
            "policy": policy.value,
            "violation_kind": self.kind,
            "previous_index": self.previous_index,
            "current_index": self.current_index,
            "previous_key": repr(self.previous_key),
            "current_key": repr(self.current_key),
        }


def normalize_policy(policy: OrderPolicy | str) -> OrderPolicy:
    if isinstance(policy, OrderPolicy):
        return policy
    try:
        return OrderPolicy(policy.strip().lower())
    except ValueError:
        never(
            "unknown order policy",
            policy=policy,
            allowed=[candidate.value for candidate in OrderPolicy],
        )


def get_order_policy(policy: OrderPolicy | str | None = None) -> OrderPolicy:
    if policy is not None:
        return normalize_policy(policy)
    scoped = _scoped_policy.get()
    if scoped is not None:
        return scoped
    raw = env_text(ORDER_POLICY_ENV).lower()
    if not raw:
        return OrderPolicy.SORT
    return _ENV_ALIASES.get(raw) or normalize_policy(raw)


@contextmanager
def order_policy(policy: OrderPolicy | str) -> Iterator[OrderPolicy]:
    resolved = normalize_policy(policy)
    token = _scoped_policy.set(resolved)
    try:
        yield resolved
    finally:
        _scoped_policy.reset(token)


@contextmanager
def order_telemetry() -> Iterator[list[OrderEvent]]:
    """Collect a record of every queue that had to be re-sorted."""
    events: list[OrderEvent] = []
    token = _event_sink.set(events)
    try:
        yield events
    finally:
        _event_sink.reset(token)


def first_order_violation(
    values: Iterable[T],
    *,
    key: Callable[[T], Any] | None = None,
) -> OrderViolation | None:
    """Find the first adjacent pair whose keys decrease or cannot be compared."""
    previous: Any = None
    for index, value in enumerate(values):
        current = value if key is None else key(value)
        if index > 0:
            try:
                regressed = bool(current < previous)
            except TypeError:
                return OrderViolation(index - 1, index, previous, current, "incomparable")
            if regressed:
                return OrderViolation(index - 1, index, previous, current, "out_of_order")
        previous = current
    return None


def ordered_or_sorted(
    values: Iterable[T],
    *,
    source: str,
    key: Callable[[T], Any] | None = None,
    policy: OrderPolicy | str | None = None,
    on_unsorted: Callable[[OrderEvent], None] | None = None,
) -> list[T]:
    """Return `values` in ascending key order under the resolved policy.

    SORT always applies a stable sort. TRUST returns the caller's order
    untouched. CHECK validates and falls back to a stable sort on the first
    regression, reporting it to `on_unsorted` and any `order_telemetry()`
    scope. ENFORCE fails through `never()` on the first regression.
    """
    items = list(values)
    resolved = get_order_policy(policy)
    if resolved is OrderPolicy.SORT:
        return sorted(items, key=key)
    if resolved is OrderPolicy.TRUST:
        return items
    violation = first_order_violation(items, key=key)
    if violation is None:
        return items
    event = violation.describe(source=source, policy=resolved)
    if resolved is OrderPolicy.ENFORCE:
        if violation.kind == "incomparable":
            never("caller-ordered queue has incomparable keys", **event)
        never("caller-ordered queue regressed", **event)
    event["action"] = "fallback_sort"
    sink = _event_sink.get()
    if sink is not None:
        sink.append(event)
    if on_unsorted is not None:
        on_unsorted(event)
    return sorted(items, key=key)
