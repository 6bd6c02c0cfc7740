"""Goal resolution: derive per-sinner shard targets from ID/EGO goals."""

from __future__ import annotations

from typing import List

from .catalog import Catalog, CatalogItem
from .state import ProgressRecord, legacy_target

__all__ = [
    "goal_items",
    "has_item_goals",
    "legacy_target",
    "recompute_all_targets",
    "recompute_target",
]


def goal_items(record: ProgressRecord, catalog: Catalog, sinner: str) -> List[CatalogItem]:
    """Items currently marked as goals for ``sinner``, in catalog order."""

    slug = catalog.slug_for(sinner)
    if not slug:
        return []
    return [
        item
        for item in catalog.items_for(sinner)
        if record.peek_item_state(slug, item.id).goal
    ]


def has_item_goals(record: ProgressRecord, catalog: Catalog, sinner: str) -> bool:
    return bool(goal_items(record, catalog, sinner))


def recompute_target(record: ProgressRecord, catalog: Catalog, sinner: str) -> int | None:
    """Set the sinner's target to the cost of its enabled goals.

    The result is 0 when no enabled goal remains; the legacy count-based target
    is not used as a fallback here. Unknown sinners are ignored.
    """

    slug = catalog.slug_for(sinner)
    if not slug:
        return None

    total = 0
    for item in catalog.items_for(sinner):
        state = record.peek_item_state(slug, item.id)
        if not state.goal or state.enabled is False:
            continue
        total += catalog.cost_for(item)

    record.sinner_targets[sinner] = total
    return total


def recompute_all_targets(record: ProgressRecord, catalog: Catalog) -> None:
    for name in catalog.names:
        recompute_target(record, catalog, name)
