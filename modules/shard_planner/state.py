"""Progress record model and the typed (de)serialization rules for it."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from .catalog import Catalog

# Serialized key names; compatible with blobs written by the browser tool.
KEY_ACTIVE = "activeSinner"
KEY_SHARDS = "sinnerShards"
KEY_TARGETS = "sinnerTargets"
KEY_GOALS = "sinnerGoals"
KEY_ITEMS = "idEgoState"
KEY_RUNS = "runsCompleted"
KEY_TOTAL = "totalShardsGained"
KEY_BONUS = "bonusShardsTotal"
KEY_BOXES = "unopenedBoxes"
KEY_HISTORY = "history"
KEY_LEGACY_CURRENT = "currentShards"


@dataclass
class ItemProgressState:
    owned: bool = False
    goal: bool = False
    enabled: bool = True

    def to_payload(self) -> Dict[str, bool]:
        return {"owned": self.owned, "goal": self.goal, "enabled": self.enabled}


@dataclass
class LegacyGoal:
    count000: int = 1
    count00: int = 0

    def to_payload(self) -> Dict[str, int]:
        return {"count000": self.count000, "count00": self.count00}


@dataclass(frozen=True)
class RunLogEntry:
    run_number: int
    shards_gained: int
    sinner: str
    timestamp: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "runNumber": self.run_number,
            "shardsGained": self.shards_gained,
            "sinner": self.sinner,
            "timestamp": self.timestamp,
        }


@dataclass
class ProgressRecord:
    active_sinner: str
    sinner_shards: Dict[str, int] = field(default_factory=dict)
    sinner_targets: Dict[str, int] = field(default_factory=dict)
    sinner_goals: Dict[str, LegacyGoal] = field(default_factory=dict)
    item_progress: Dict[str, Dict[str, ItemProgressState]] = field(default_factory=dict)
    runs_completed: int = 0
    total_shards_gained: int = 0
    bonus_shards_total: int = 0
    unopened_boxes: int = 0
    history: List[RunLogEntry] = field(default_factory=list)

    def item_state(self, slug: str, item_id: str) -> ItemProgressState:
        """Return the state for ``(slug, item_id)``, creating the default lazily."""

        items = self.item_progress.setdefault(slug, {})
        state = items.get(item_id)
        if state is None:
            state = ItemProgressState()
            items[item_id] = state
        return state

    def peek_item_state(self, slug: str, item_id: str) -> ItemProgressState:
        """Read-only variant of :meth:`item_state`; never mutates the record."""

        state = self.item_progress.get(slug, {}).get(item_id)
        return state if state is not None else ItemProgressState()

    def shards_for(self, name: str) -> int:
        return int(self.sinner_shards.get(name, 0) or 0)

    def target_for(self, name: str, default: int) -> int:
        value = self.sinner_targets.get(name)
        return default if value is None else int(value)

    def to_payload(self) -> Dict[str, Any]:
        return {
            KEY_ACTIVE: self.active_sinner,
            KEY_SHARDS: dict(self.sinner_shards),
            KEY_TARGETS: dict(self.sinner_targets),
            KEY_GOALS: {name: goal.to_payload() for name, goal in self.sinner_goals.items()},
            KEY_ITEMS: {
                slug: {item_id: state.to_payload() for item_id, state in items.items()}
                for slug, items in self.item_progress.items()
            },
            KEY_RUNS: self.runs_completed,
            KEY_TOTAL: self.total_shards_gained,
            KEY_BONUS: self.bonus_shards_total,
            KEY_BOXES: self.unopened_boxes,
            KEY_HISTORY: [entry.to_payload() for entry in self.history],
        }


def legacy_target(goal: LegacyGoal, catalog: Catalog) -> int:
    constants = catalog.constants
    return goal.count000 * constants.cost_per_000 + goal.count00 * constants.cost_per_00


def create_empty_item_progress(catalog: Catalog) -> Dict[str, Dict[str, ItemProgressState]]:
    result: Dict[str, Dict[str, ItemProgressState]] = {}
    for sinner in catalog.sinners:
        result[sinner.slug] = {
            item.id: ItemProgressState() for item in catalog.items_for(sinner.name)
        }
    return result


def create_initial_record(catalog: Catalog) -> ProgressRecord:
    """Return the default record: every sinner at the starting shard count."""

    constants = catalog.constants
    active = catalog.default_active()
    shards: Dict[str, int] = {}
    targets: Dict[str, int] = {}
    goals: Dict[str, LegacyGoal] = {}
    for name in catalog.names:
        shards[name] = 0
        goals[name] = LegacyGoal(count000=1, count00=0)
        targets[name] = legacy_target(goals[name], catalog)
    shards[active] = constants.initial_shards_owned

    return ProgressRecord(
        active_sinner=active,
        sinner_shards=shards,
        sinner_targets=targets,
        sinner_goals=goals,
        item_progress=create_empty_item_progress(catalog),
    )


# --- typed deserialization helpers ---


def is_non_negative_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, float) and not math.isfinite(value):
        return False
    return value >= 0


def coerce_count(value: Any, default: int) -> int:
    """Non-negative number -> int; anything else falls back to ``default``."""

    if is_non_negative_number(value):
        return int(value)
    return default


def coerce_item_state(raw: Any) -> ItemProgressState:
    """Coerce a stored item entry.

    ``owned`` falls back to the legacy ``own`` field, then ``False``; ``goal`` is
    truthiness; ``enabled`` is only ``False`` when stored explicitly as ``False``.
    """

    if not isinstance(raw, Mapping):
        return ItemProgressState()
    owned = raw.get("owned")
    if owned is None:
        owned = raw.get("own")
    return ItemProgressState(
        owned=bool(owned) if owned is not None else False,
        goal=bool(raw.get("goal")),
        enabled=raw.get("enabled") is not False,
    )


def merge_item_progress(
    saved: Any, base: Dict[str, Dict[str, ItemProgressState]]
) -> Dict[str, Dict[str, ItemProgressState]]:
    result = {slug: dict(items) for slug, items in base.items()}
    if not isinstance(saved, Mapping):
        return result
    for slug, items in saved.items():
        bucket = result.setdefault(str(slug), {})
        if not isinstance(items, Mapping):
            continue
        for item_id, raw in items.items():
            bucket[str(item_id)] = coerce_item_state(raw)
    return result


def has_any_saved_goals(saved: Any) -> bool:
    if not isinstance(saved, Mapping):
        return False
    for items in saved.values():
        if not isinstance(items, Mapping):
            continue
        for raw in items.values():
            if isinstance(raw, Mapping) and raw.get("goal"):
                return True
    return False


def _merge_int_mapping(saved: Any, base: Dict[str, int], catalog: Catalog) -> Dict[str, int]:
    if not isinstance(saved, Mapping):
        return dict(base)
    result: Dict[str, int] = {}
    for name in catalog.names:
        result[name] = coerce_count(saved.get(name), base[name]) if name in saved else base[name]
    return result


def _coerce_legacy_goal(raw: Any, default: LegacyGoal) -> LegacyGoal:
    if not isinstance(raw, Mapping):
        return LegacyGoal(default.count000, default.count00)
    return LegacyGoal(
        count000=coerce_count(raw.get("count000"), 0),
        count00=coerce_count(raw.get("count00"), 0),
    )


def _merge_goals(
    saved: Any, base: Dict[str, LegacyGoal], catalog: Catalog
) -> Dict[str, LegacyGoal]:
    if not isinstance(saved, Mapping):
        return {name: LegacyGoal(goal.count000, goal.count00) for name, goal in base.items()}
    return {name: _coerce_legacy_goal(saved.get(name), base[name]) for name in catalog.names}


def coerce_history(raw: Any) -> List[RunLogEntry]:
    if not isinstance(raw, list):
        return []
    entries: List[RunLogEntry] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        run_number = item.get("runNumber")
        if not is_non_negative_number(run_number):
            continue
        entries.append(
            RunLogEntry(
                run_number=int(run_number),
                shards_gained=coerce_count(item.get("shardsGained"), 0),
                sinner=str(item.get("sinner") or ""),
                timestamp=str(item.get("timestamp") or ""),
            )
        )
    return entries


def merge_record(parsed: Mapping[str, Any], catalog: Catalog) -> ProgressRecord:
    """Merge a parsed blob onto a fresh default record.

    Missing or malformed fields fall back to defaults. When any saved item is a
    goal, targets are recomputed from item goals for every sinner that has
    goal items; sinners without any keep their stored legacy target.
    """

    from .goals import has_item_goals, recompute_target

    base = create_initial_record(catalog)

    if KEY_SHARDS not in parsed and is_non_negative_number(parsed.get(KEY_LEGACY_CURRENT)):
        base.sinner_shards[base.active_sinner] = int(parsed[KEY_LEGACY_CURRENT])

    active = parsed.get(KEY_ACTIVE)
    merged = ProgressRecord(
        active_sinner=active if catalog.is_valid(active) else base.active_sinner,
        sinner_shards=_merge_int_mapping(parsed.get(KEY_SHARDS), base.sinner_shards, catalog),
        sinner_targets=_merge_int_mapping(parsed.get(KEY_TARGETS), base.sinner_targets, catalog),
        sinner_goals=_merge_goals(parsed.get(KEY_GOALS), base.sinner_goals, catalog),
        item_progress=merge_item_progress(parsed.get(KEY_ITEMS), base.item_progress),
        runs_completed=coerce_count(parsed.get(KEY_RUNS), base.runs_completed),
        total_shards_gained=coerce_count(parsed.get(KEY_TOTAL), base.total_shards_gained),
        bonus_shards_total=coerce_count(parsed.get(KEY_BONUS), base.bonus_shards_total),
        unopened_boxes=coerce_count(parsed.get(KEY_BOXES), base.unopened_boxes),
        history=coerce_history(parsed.get(KEY_HISTORY)),
    )

    if has_any_saved_goals(parsed.get(KEY_ITEMS)):
        for name in catalog.names:
            if has_item_goals(merged, catalog, name):
                recompute_target(merged, catalog, name)

    return merged


__all__ = [
    "ItemProgressState",
    "LegacyGoal",
    "ProgressRecord",
    "RunLogEntry",
    "coerce_count",
    "coerce_history",
    "coerce_item_state",
    "create_empty_item_progress",
    "create_initial_record",
    "has_any_saved_goals",
    "is_non_negative_number",
    "legacy_target",
    "merge_item_progress",
    "merge_record",
]
