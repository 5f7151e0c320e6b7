from __future__ import annotations

from typing import Callable, Iterable, Sequence

from tracemark.entries import ENTRY_TYPE_PRECEDENCE, Entry, EntryGroups, EntryType
from tracemark.order_contract import (
    OrderPolicy,
    first_order_violation,
    ordered_or_sorted,
)


def entry_position_key(entry: Entry) -> tuple[int, int]:
    return (entry.line, entry.column)


def sort_entries(
    codes: Iterable[Entry] = (),
    deopts: Iterable[Entry] = (),
    ics: Iterable[Entry] = (),
    *,
    policy: OrderPolicy | str | None = None,
    on_unsorted: Callable[[dict[str, object]], None] | None = None,
) -> list[Entry]:
    """Merge the three category collections into one queue.

    The queue is always ordered by (line, column). Coincident entries keep
    category precedence (codes, deopts, ics) and then their order within the
    category, so identical input always yields an identical queue.

    `policy` applies to each category as supplied by the caller: `trust`
    skips validation, `check` reports a regressed category and `enforce`
    rejects one. The merge itself always sorts.
    """
    tagged: list[tuple[tuple[int, int, int, int], Entry]] = []
    for entry_type, collection in (
        (EntryType.CODES, codes),
        (EntryType.DEOPTS, deopts),
        (EntryType.ICS, ics),
    ):
        category = ordered_or_sorted(
            collection,
            source=f"sort_entries.{entry_type.value}",
            key=entry_position_key,
            policy=policy,
            on_unsorted=on_unsorted,
        )
        precedence = ENTRY_TYPE_PRECEDENCE[entry_type]
        for index, entry in enumerate(category):
            tagged.append(((entry.line, entry.column, precedence, index), entry))
    tagged.sort(key=lambda item: item[0])
    return [entry for _key, entry in tagged]


def sort_entry_groups(
    groups: EntryGroups,
    *,
    policy: OrderPolicy | str | None = None,
) -> list[Entry]:
    return sort_entries(groups.codes, groups.deopts, groups.ics, policy=policy)


def first_queue_violation(
    entries: Sequence[Entry],
) -> tuple[Entry, Entry] | None:
    """Return the first adjacent pair whose positions decrease, if any."""
    violation = first_order_violation(entries, key=entry_position_key)
    if violation is None:
        return None
    return (entries[violation.previous_index], entries[violation.current_index])
