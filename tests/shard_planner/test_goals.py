from __future__ import annotations

from modules.shard_planner.goals import (
    goal_items,
    has_item_goals,
    recompute_all_targets,
    recompute_target,
)
from modules.shard_planner.state import create_initial_record


def test_target_is_sum_of_enabled_goal_costs(catalog):
    record = create_initial_record(catalog)
    record.item_state("yi-sang", "the-pequod-first-mate-yi-sang").goal = True
    record.item_state("yi-sang", "molar-office-fixer-yi-sang").goal = True
    record.item_state("yi-sang", "dimension-shredder").goal = True

    assert recompute_target(record, catalog, "Yi Sang") == 950
    assert record.sinner_targets["Yi Sang"] == 950


def test_disabled_goals_do_not_count(catalog):
    record = create_initial_record(catalog)
    state = record.item_state("yi-sang", "the-pequod-first-mate-yi-sang")
    state.goal = True
    state.enabled = False

    assert recompute_target(record, catalog, "Yi Sang") == 0
    assert has_item_goals(record, catalog, "Yi Sang")


def test_no_goals_yields_zero_target(catalog):
    record = create_initial_record(catalog)

    assert record.sinner_targets["Faust"] == 400
    assert recompute_target(record, catalog, "Faust") == 0
    assert goal_items(record, catalog, "Faust") == []


def test_unknown_sinner_is_ignored(catalog):
    record = create_initial_record(catalog)
    assert recompute_target(record, catalog, "Vergilius") is None
    assert "Vergilius" not in record.sinner_targets


def test_recompute_all_targets(catalog):
    record = create_initial_record(catalog)
    record.item_state("gregor", "lantern").goal = True

    recompute_all_targets(record, catalog)

    assert record.sinner_targets["Gregor"] == 400
    assert record.sinner_targets["Outis"] == 0
