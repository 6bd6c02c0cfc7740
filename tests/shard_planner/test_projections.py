from __future__ import annotations

import pytest

from modules.shard_planner.projections import (
    PLACEHOLDER,
    TARGET_REACHED,
    format_actual_average,
    format_boxes,
    format_runs,
    format_runs_left_actual,
    format_runs_left_theoretical,
    overview,
    project,
    stash_expected_shards,
    weekly_bonus_expected,
)
from modules.shard_planner.state import create_initial_record


@pytest.fixture
def record(catalog):
    record = create_initial_record(catalog)
    record.sinner_shards["Yi Sang"] = 130
    record.sinner_targets["Yi Sang"] = 400
    return record


def test_theoretical_projection_example(record, catalog):
    projection = project(record, catalog)

    assert projection.remaining == 270
    assert projection.expected_per_run == 18
    assert format_runs(projection.runs_left_theoretical) == "15.00"
    assert projection.runs_left_theoretical_ceil == 15
    assert format_boxes(projection.boxes_needed_avg) == "135.0"
    assert projection.modules_needed == 75


def test_actual_average_example(record, catalog):
    record.runs_completed = 10
    record.total_shards_gained = 150

    projection = project(record, catalog)

    assert format_runs(projection.actual_average_per_run) == "15.00"
    assert format_runs_left_actual(projection) == "18.00"


def test_actual_metrics_hidden_without_runs(record, catalog):
    projection = project(record, catalog)

    assert projection.actual_average_per_run is None
    assert format_runs(projection.actual_average_per_run) == PLACEHOLDER
    assert format_runs_left_actual(projection) == PLACEHOLDER


def test_zero_average_has_no_actual_runs_left(record, catalog):
    record.runs_completed = 4
    record.total_shards_gained = 0

    projection = project(record, catalog)

    assert projection.actual_average_per_run == 0
    assert projection.runs_left_actual is None


def test_target_reached_reports_zero(record, catalog):
    record.sinner_shards["Yi Sang"] = 500
    record.runs_completed = 2
    record.total_shards_gained = 40

    projection = project(record, catalog)

    assert projection.remaining == 0
    assert projection.target_reached
    assert projection.runs_left_theoretical == 0
    assert projection.runs_left_theoretical_ceil == 0
    assert projection.boxes_needed_avg == 0
    assert projection.modules_needed == 0
    assert format_runs_left_theoretical(projection) == TARGET_REACHED
    assert format_runs_left_actual(projection) == TARGET_REACHED


def test_actual_average_display(record, catalog):
    assert format_actual_average(project(record, catalog)) == PLACEHOLDER

    record.runs_completed = 10
    assert format_actual_average(project(record, catalog)) == PLACEHOLDER

    record.total_shards_gained = 150
    assert format_actual_average(project(record, catalog)) == "15.00"

    record.sinner_shards["Yi Sang"] = 500
    projection = project(record, catalog)
    assert projection.actual_average_per_run == 15
    assert format_actual_average(projection) == PLACEHOLDER


def test_huge_totals_do_not_overflow(record, catalog):
    record.sinner_targets["Yi Sang"] = 10**400
    record.runs_completed = 1
    record.total_shards_gained = 10**400

    projection = project(record, catalog)

    assert projection.remaining == 10**400 - 130
    assert projection.runs_left_theoretical_ceil == -(-(10**400 - 130) // 18)


def test_project_other_sinner(record, catalog):
    record.sinner_shards["Faust"] = 100
    projection = project(record, catalog, "Faust")

    assert projection.sinner == "Faust"
    assert projection.remaining == 300


def test_ceiling_rounds_up_partial_runs(record, catalog):
    record.sinner_shards["Yi Sang"] = 131
    projection = project(record, catalog)

    assert projection.remaining == 269
    assert projection.runs_left_theoretical_ceil == 15
    assert format_runs(projection.runs_left_theoretical) == "14.94"


def test_overview_covers_every_sinner(record, catalog):
    record.sinner_shards["Gregor"] = 450
    rows = overview(record, catalog)

    assert [row.sinner for row in rows] == list(catalog.names)
    gregor = next(row for row in rows if row.sinner == "Gregor")
    assert gregor.done
    assert gregor.runs_left == 0


def test_stash_and_weekly_bonus(catalog):
    constants = catalog.constants
    assert stash_expected_shards(12, constants) == 24
    assert stash_expected_shards(-3, constants) == 0
    assert weekly_bonus_expected(constants) == 126
