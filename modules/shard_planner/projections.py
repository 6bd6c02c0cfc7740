"""Projection math for shard goals: remaining shards, runs and boxes left."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional

from .catalog import Catalog, GameConstants
from .state import ProgressRecord

PLACEHOLDER = "–"
TARGET_REACHED = "0 (target reached)"


@dataclass(frozen=True)
class Projection:
    sinner: str
    current: int
    target: int
    remaining: int
    runs_left_theoretical: float
    runs_left_theoretical_ceil: int
    boxes_needed_avg: float
    modules_needed: int
    expected_per_run: int
    actual_average_per_run: Optional[float]
    runs_left_actual: Optional[float]

    @property
    def target_reached(self) -> bool:
        return self.remaining == 0


@dataclass(frozen=True)
class SinnerOverview:
    sinner: str
    current: int
    target: int
    remaining: int
    runs_left: float
    boxes_needed: float

    @property
    def done(self) -> bool:
        return self.remaining == 0


def _ratio(numerator: int, denominator: float) -> float:
    try:
        return numerator / denominator
    except OverflowError:
        return math.inf


def remaining_shards(current: int, target: int) -> int:
    return max(target - current, 0)


def runs_left_theoretical(remaining: int, constants: GameConstants) -> float:
    per_run = constants.expected_shards_per_run
    if remaining <= 0 or per_run <= 0:
        return 0.0
    return _ratio(remaining, per_run)


def boxes_needed_avg(remaining: int, constants: GameConstants) -> float:
    if remaining <= 0 or constants.avg_shards_per_box <= 0:
        return 0.0
    return _ratio(remaining, constants.avg_shards_per_box)


def actual_average_per_run(runs_completed: int, total_shards_gained: int) -> Optional[float]:
    if runs_completed <= 0:
        return None
    return _ratio(total_shards_gained, runs_completed)


def runs_left_actual(remaining: int, average: Optional[float]) -> Optional[float]:
    """Runs left at the observed average; ``0.0`` once the target is reached."""

    if remaining <= 0:
        return 0.0
    if average is None or average <= 0:
        return None
    return _ratio(remaining, average)


def stash_expected_shards(unopened_boxes: int, constants: GameConstants) -> int:
    return max(unopened_boxes, 0) * constants.avg_shards_per_box


def weekly_bonus_expected(constants: GameConstants) -> int:
    return constants.weekly_bonus_boxes * constants.avg_shards_per_box


def project(record: ProgressRecord, catalog: Catalog, sinner: str | None = None) -> Projection:
    constants = catalog.constants
    name = sinner or record.active_sinner
    current = record.shards_for(name)
    target = record.target_for(name, constants.default_target_shards)
    remaining = remaining_shards(current, target)

    theoretical = runs_left_theoretical(remaining, constants)
    per_run = constants.expected_shards_per_run
    ceil_runs = -(-remaining // per_run) if remaining > 0 and per_run > 0 else 0
    average = actual_average_per_run(record.runs_completed, record.total_shards_gained)

    return Projection(
        sinner=name,
        current=current,
        target=target,
        remaining=remaining,
        runs_left_theoretical=theoretical,
        runs_left_theoretical_ceil=ceil_runs,
        boxes_needed_avg=boxes_needed_avg(remaining, constants),
        modules_needed=ceil_runs * constants.modules_per_run,
        expected_per_run=constants.expected_shards_per_run,
        actual_average_per_run=average,
        runs_left_actual=runs_left_actual(remaining, average),
    )


def overview(record: ProgressRecord, catalog: Catalog) -> List[SinnerOverview]:
    rows: List[SinnerOverview] = []
    constants = catalog.constants
    for name in catalog.names:
        current = record.shards_for(name)
        target = record.target_for(name, constants.default_target_shards)
        remaining = remaining_shards(current, target)
        rows.append(
            SinnerOverview(
                sinner=name,
                current=current,
                target=target,
                remaining=remaining,
                runs_left=runs_left_theoretical(remaining, constants),
                boxes_needed=boxes_needed_avg(remaining, constants),
            )
        )
    return rows


# --- display formatting ---


def format_runs(value: Optional[float]) -> str:
    if value is None:
        return PLACEHOLDER
    return f"{value:.2f}"


def format_boxes(value: Optional[float]) -> str:
    if value is None:
        return PLACEHOLDER
    return f"{value:.1f}"


def format_runs_left_theoretical(projection: Projection) -> str:
    if projection.target_reached:
        return TARGET_REACHED
    return format_runs(projection.runs_left_theoretical)


def format_actual_average(projection: Projection) -> str:
    """Observed shards per run; hidden once the target is reached or nothing was gained."""

    average = projection.actual_average_per_run
    if projection.target_reached or average is None or average <= 0:
        return PLACEHOLDER
    return format_runs(average)


def format_runs_left_actual(projection: Projection) -> str:
    if projection.target_reached:
        return TARGET_REACHED
    return format_runs(projection.runs_left_actual)


__all__ = [
    "PLACEHOLDER",
    "TARGET_REACHED",
    "Projection",
    "SinnerOverview",
    "actual_average_per_run",
    "boxes_needed_avg",
    "format_actual_average",
    "format_boxes",
    "format_runs",
    "format_runs_left_actual",
    "format_runs_left_theoretical",
    "overview",
    "project",
    "remaining_shards",
    "runs_left_actual",
    "runs_left_theoretical",
    "stash_expected_shards",
    "weekly_bonus_expected",
]
