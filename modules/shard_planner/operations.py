"""User-triggered state transitions for the shard planner.

Every operation either commits fully (mutation, then persist) or rejects with a
validation message and leaves the record untouched. Destructive operations are
two-phase: ``propose_*`` describes the change, :meth:`ShardPlanner.commit`
applies it once the caller has confirmed.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .catalog import Catalog, CatalogItem
from .goals import has_item_goals, recompute_target
from .projections import Projection, project
from .state import LegacyGoal, ProgressRecord, RunLogEntry, create_initial_record, legacy_target
from .store import StateStore

log = logging.getLogger("md.shards.ops")

ACTION_MARK_OBTAINED = "mark_obtained"
ACTION_RESET = "reset"

AMOUNT_ERROR = "Please enter a non-negative number of shards."
BOXES_ERROR = "Please enter a non-negative number of boxes."
SEARCH_EMPTY_ERROR = "Type part of an ID or EGO name to search."
SEARCH_MISS_ERROR = "No ID or EGO found with that name."


@dataclass(frozen=True)
class Proposal:
    action: str
    description: str
    sinner: Optional[str] = None
    item_id: Optional[str] = None


@dataclass(frozen=True)
class OperationResult:
    ok: bool
    message: str = ""
    proposal: Optional[Proposal] = None
    persisted: bool = False

    @classmethod
    def invalid(cls, message: str) -> "OperationResult":
        return cls(ok=False, message=message)


def parse_amount(raw: Any) -> Optional[int]:
    """Parse user input into a floored non-negative integer, or ``None``.

    Empty strings, booleans, non-finite and negative values are rejected.
    """

    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    if isinstance(raw, float):
        value = raw
    else:
        text = str(raw).strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    if not math.isfinite(value) or value < 0:
        return None
    return int(math.floor(value))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ShardPlanner:
    """Holds one progress record and applies operations to it."""

    def __init__(
        self,
        store: StateStore,
        catalog: Catalog | None = None,
        record: ProgressRecord | None = None,
        *,
        clock: Callable[[], str] = _now_iso,
    ) -> None:
        self.store = store
        self.catalog = catalog or store.catalog
        self.record = record if record is not None else store.load()
        self._clock = clock

    # --- helpers ---

    def _commit(self, message: str, *, action: str, **fields: Any) -> OperationResult:
        persisted = self.store.save(self.record)
        log.info("shard planner update", extra={"action": action, "persisted": persisted, **fields})
        return OperationResult(ok=True, message=message, persisted=persisted)

    def _lookup(self, sinner: str, item_id: str) -> Tuple[str, CatalogItem] | OperationResult:
        if not self.catalog.is_valid(sinner):
            return OperationResult.invalid(f"Unknown Sinner: {sinner}.")
        item = self.catalog.find_item(sinner, item_id)
        if item is None:
            return OperationResult.invalid(f"{sinner} has no ID or EGO with id {item_id!r}.")
        slug = self.catalog.slug_for(sinner)
        if slug is None:
            return OperationResult.invalid(f"Unknown Sinner: {sinner}.")
        return slug, item

    def projection(self, sinner: str | None = None) -> Projection:
        return project(self.record, self.catalog, sinner)

    # --- farming / bonus ---

    def log_run(self, amount: Any) -> OperationResult:
        shards = parse_amount(amount)
        if shards is None:
            return OperationResult.invalid(AMOUNT_ERROR)
        record = self.record
        active = record.active_sinner
        record.runs_completed += 1
        record.total_shards_gained += shards
        record.sinner_shards[active] = record.shards_for(active) + shards
        record.history.append(
            RunLogEntry(
                run_number=record.runs_completed,
                shards_gained=shards,
                sinner=active,
                timestamp=self._clock(),
            )
        )
        return self._commit(
            f"Run #{record.runs_completed}: +{shards} shards for {active}.",
            action="run",
            sinner=active,
            amount=shards,
        )

    def log_bonus(self, amount: Any) -> OperationResult:
        shards = parse_amount(amount)
        if shards is None:
            return OperationResult.invalid(AMOUNT_ERROR)
        record = self.record
        active = record.active_sinner
        record.bonus_shards_total += shards
        record.sinner_shards[active] = record.shards_for(active) + shards
        return self._commit(
            f"Bonus: +{shards} shards for {active}.",
            action="bonus",
            sinner=active,
            amount=shards,
        )

    # --- raw edits ---

    def edit_shards(self, updates: Mapping[str, Any]) -> OperationResult:
        """Overwrite shard counts; an empty value counts as 0."""

        parsed: Dict[str, int] = {}
        for name, raw in updates.items():
            if not self.catalog.is_valid(name):
                return OperationResult.invalid(f"Unknown Sinner: {name}.")
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                parsed[name] = 0
                continue
            value = parse_amount(raw)
            if value is None:
                return OperationResult.invalid(
                    f"Invalid shard value for {name}. Please use a non-negative number."
                )
            parsed[name] = value
        if not parsed:
            return OperationResult.invalid("No shard values given.")
        self.record.sinner_shards.update(parsed)
        summary = ", ".join(f"{name}={value}" for name, value in parsed.items())
        return self._commit(f"Shards updated: {summary}.", action="edit_shards", detail=summary)

    def edit_legacy_goals(self, updates: Mapping[str, Tuple[Any, Any]]) -> OperationResult:
        """Overwrite the ``000``/``00`` counts and the count-based target."""

        parsed: Dict[str, LegacyGoal] = {}
        for name, counts in updates.items():
            if not self.catalog.is_valid(name):
                return OperationResult.invalid(f"Unknown Sinner: {name}.")
            try:
                raw000, raw00 = counts
            except (TypeError, ValueError):
                return OperationResult.invalid(f"Goal counts for {name} need a 000 and a 00 value.")
            count000 = parse_amount(raw000)
            count00 = parse_amount(raw00)
            if count000 is None or count00 is None:
                return OperationResult.invalid(
                    f"Invalid goal counts for {name}. Please use non-negative whole numbers."
                )
            parsed[name] = LegacyGoal(count000=count000, count00=count00)
        if not parsed:
            return OperationResult.invalid("No goal counts given.")
        for name, goal in parsed.items():
            self.record.sinner_goals[name] = goal
            # item goals own the target while any exist
            if has_item_goals(self.record, self.catalog, name):
                recompute_target(self.record, self.catalog, name)
            else:
                self.record.sinner_targets[name] = legacy_target(goal, self.catalog)
        summary = ", ".join(
            f"{name}={goal.count000}x000+{goal.count00}x00" for name, goal in parsed.items()
        )
        return self._commit(f"Goal counts updated: {summary}.", action="edit_goals", detail=summary)

    # --- item toggles ---

    def set_owned(self, sinner: str, item_id: str, value: bool) -> OperationResult:
        found = self._lookup(sinner, item_id)
        if isinstance(found, OperationResult):
            return found
        slug, item = found
        self.record.item_state(slug, item.id).owned = bool(value)
        verb = "owned" if value else "not owned"
        return self._commit(
            f"{item.name} marked as {verb}.", action="owned", sinner=sinner, item=item.id
        )

    def set_goal(self, sinner: str, item_id: str, value: bool) -> OperationResult:
        found = self._lookup(sinner, item_id)
        if isinstance(found, OperationResult):
            return found
        slug, item = found
        state = self.record.item_state(slug, item.id)
        state.goal = bool(value)
        target = recompute_target(self.record, self.catalog, sinner)
        verb = "added to" if value else "removed from"
        return self._commit(
            f"{item.name} {verb} {sinner}'s goals. Target: {target} shards.",
            action="goal",
            sinner=sinner,
            item=item.id,
        )

    def set_enabled(self, sinner: str, item_id: str, value: bool) -> OperationResult:
        found = self._lookup(sinner, item_id)
        if isinstance(found, OperationResult):
            return found
        slug, item = found
        if not self.record.peek_item_state(slug, item.id).goal:
            return OperationResult.invalid(f"{item.name} is not one of {sinner}'s goals.")
        self.record.item_state(slug, item.id).enabled = bool(value)
        target = recompute_target(self.record, self.catalog, sinner)
        verb = "included in" if value else "excluded from"
        return self._commit(
            f"{item.name} {verb} the target. Target: {target} shards.",
            action="enabled",
            sinner=sinner,
            item=item.id,
        )

    # --- two-phase operations ---

    def propose_mark_obtained(self, sinner: str, item_id: str) -> OperationResult:
        found = self._lookup(sinner, item_id)
        if isinstance(found, OperationResult):
            return found
        slug, item = found
        if not self.record.peek_item_state(slug, item.id).goal:
            return OperationResult.invalid(f"{item.name} is not one of {sinner}'s goals.")
        cost = self.catalog.cost_for(item)
        description = (
            f'Mark "{item.name}" as obtained for {sinner}? This will mark it as Owned, '
            f"remove it from your goals, and subtract {cost} shards from {sinner}'s shard total."
        )
        proposal = Proposal(
            action=ACTION_MARK_OBTAINED, description=description, sinner=sinner, item_id=item.id
        )
        return OperationResult(ok=True, message=description, proposal=proposal)

    def propose_reset(self) -> OperationResult:
        description = "Reset all progression? Every Sinner goes back to the starting shards and goals."
        proposal = Proposal(action=ACTION_RESET, description=description)
        return OperationResult(ok=True, message=description, proposal=proposal)

    def commit(self, proposal: Proposal) -> OperationResult:
        if proposal.action == ACTION_RESET:
            return self._commit_reset()
        if proposal.action == ACTION_MARK_OBTAINED:
            return self._commit_mark_obtained(proposal.sinner or "", proposal.item_id or "")
        return OperationResult.invalid(f"Unknown action: {proposal.action}.")

    def _commit_mark_obtained(self, sinner: str, item_id: str) -> OperationResult:
        found = self._lookup(sinner, item_id)
        if isinstance(found, OperationResult):
            return found
        slug, item = found
        state = self.record.item_state(slug, item.id)
        if not state.goal:
            return OperationResult.invalid(f"{item.name} is not one of {sinner}'s goals.")
        cost = self.catalog.cost_for(item)
        state.owned = True
        state.goal = False
        state.enabled = True
        self.record.sinner_shards[sinner] = max(0, self.record.shards_for(sinner) - cost)
        target = recompute_target(self.record, self.catalog, sinner)
        return self._commit(
            f"Got {item.name}! -{cost} shards for {sinner}. Target: {target} shards.",
            action="got_it",
            sinner=sinner,
            item=item.id,
            cost=cost,
        )

    def _commit_reset(self) -> OperationResult:
        self.record = create_initial_record(self.catalog)
        return self._commit("Progress reset.", action="reset")

    # --- misc ---

    def set_unopened_boxes(self, count: Any) -> OperationResult:
        boxes = parse_amount(count)
        if boxes is None:
            return OperationResult.invalid(BOXES_ERROR)
        self.record.unopened_boxes = boxes
        return self._commit(f"Unopened boxes set to {boxes}.", action="boxes", amount=boxes)

    def switch_sinner(self, name: str) -> OperationResult:
        if not self.catalog.is_valid(name):
            return OperationResult.invalid(f"Unknown Sinner: {name}.")
        self.record.active_sinner = name
        return self._commit(f"Now tracking {name}.", action="switch", sinner=name)

    def search(self, query: str) -> Tuple[str, CatalogItem] | OperationResult:
        if not (query or "").strip():
            return OperationResult.invalid(SEARCH_EMPTY_ERROR)
        match = self.catalog.search(query)
        if match is None:
            return OperationResult.invalid(SEARCH_MISS_ERROR)
        return match


__all__ = [
    "ACTION_MARK_OBTAINED",
    "ACTION_RESET",
    "AMOUNT_ERROR",
    "BOXES_ERROR",
    "SEARCH_EMPTY_ERROR",
    "SEARCH_MISS_ERROR",
    "OperationResult",
    "Proposal",
    "ShardPlanner",
    "parse_amount",
]
