from __future__ import annotations

import pytest

from modules.shard_planner.operations import (
    ACTION_MARK_OBTAINED,
    ACTION_RESET,
    AMOUNT_ERROR,
    BOXES_ERROR,
    SEARCH_EMPTY_ERROR,
    SEARCH_MISS_ERROR,
    Proposal,
    ShardPlanner,
    parse_amount,
)
from modules.shard_planner.state import create_initial_record
from modules.shard_planner.store import StateStore

from planner_fakes import FIXED_TIMESTAMP, FailingBackend

PEQUOD = "the-pequod-first-mate-yi-sang"
SEVEN = "seven-assoc-south-section-6-yi-sang"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12", 12),
        (" 7.9 ", 7),
        (3, 3),
        (0, 0),
        ("", None),
        ("-5", None),
        ("abc", None),
        ("inf", None),
        ("nan", None),
        (True, None),
        (None, None),
        (10**400, 10**400),
        ("1e400", None),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


def test_log_run_updates_counters_and_history(planner):
    result = planner.log_run("20")

    record = planner.record
    assert result.ok and result.persisted
    assert record.runs_completed == 1
    assert record.total_shards_gained == 20
    assert record.sinner_shards["Yi Sang"] == 20
    assert len(record.history) == 1
    entry = record.history[0]
    assert entry.run_number == 1
    assert entry.sinner == "Yi Sang"
    assert entry.timestamp == FIXED_TIMESTAMP

    planner.log_run(4)
    assert record.history[-1].run_number == record.runs_completed == 2


def test_log_run_rejects_invalid_amount(planner, backend):
    result = planner.log_run("")

    assert not result.ok
    assert result.message == AMOUNT_ERROR
    assert planner.record.runs_completed == 0
    assert backend.data == {}


def test_malformed_bonus_leaves_counters_unchanged(planner, catalog):
    before = planner.record.to_payload()

    result = planner.log_bonus("-5")

    assert not result.ok
    assert result.message == AMOUNT_ERROR
    assert planner.record.to_payload() == before


def test_bonus_credits_active_sinner_only(planner):
    planner.switch_sinner("Faust")
    result = planner.log_bonus("63")

    assert result.ok
    assert planner.record.sinner_shards["Faust"] == 63
    assert planner.record.bonus_shards_total == 63
    assert planner.record.runs_completed == 0
    assert planner.record.history == []


def test_edit_shards_treats_blank_as_zero(planner):
    planner.record.sinner_shards["Faust"] = 40
    result = planner.edit_shards({"Faust": " ", "Gregor": "12.8"})

    assert result.ok
    assert planner.record.sinner_shards["Faust"] == 0
    assert planner.record.sinner_shards["Gregor"] == 12


def test_edit_shards_validates_everything_first(planner):
    result = planner.edit_shards({"Faust": "5", "Gregor": "-1"})

    assert not result.ok
    assert planner.record.sinner_shards["Faust"] == 0
    assert not planner.edit_shards({"Dante": "1"}).ok


def test_edit_legacy_goals_sets_count_target(planner):
    result = planner.edit_legacy_goals({"Outis": ("2", "1")})

    assert result.ok
    assert planner.record.sinner_targets["Outis"] == 950
    assert planner.record.sinner_goals["Outis"].count000 == 2


def test_edit_legacy_goals_keeps_item_target(planner):
    planner.set_goal("Yi Sang", SEVEN, True)
    planner.edit_legacy_goals({"Yi Sang": ("3", "0")})

    assert planner.record.sinner_goals["Yi Sang"].count000 == 3
    assert planner.record.sinner_targets["Yi Sang"] == 150


def test_set_goal_recomputes_target(planner):
    planner.set_goal("Yi Sang", PEQUOD, True)
    planner.set_goal("Yi Sang", SEVEN, True)
    assert planner.record.sinner_targets["Yi Sang"] == 550

    planner.set_goal("Yi Sang", PEQUOD, False)
    assert planner.record.sinner_targets["Yi Sang"] == 150


def test_set_enabled_toggles_contribution(planner):
    planner.set_goal("Yi Sang", PEQUOD, True)

    planner.set_enabled("Yi Sang", PEQUOD, False)
    assert planner.record.sinner_targets["Yi Sang"] == 0

    planner.set_enabled("Yi Sang", PEQUOD, True)
    assert planner.record.sinner_targets["Yi Sang"] == 400


def test_set_enabled_requires_goal(planner):
    result = planner.set_enabled("Yi Sang", PEQUOD, False)
    assert not result.ok


def test_set_owned_does_not_touch_target(planner):
    planner.set_goal("Yi Sang", PEQUOD, True)
    planner.set_owned("Yi Sang", SEVEN, True)

    assert planner.record.item_state("yi-sang", SEVEN).owned
    assert planner.record.sinner_targets["Yi Sang"] == 400


def test_unknown_item_or_sinner_rejected(planner):
    assert not planner.set_goal("Vergilius", PEQUOD, True).ok
    assert not planner.set_goal("Faust", PEQUOD, True).ok
    assert not planner.switch_sinner("Vergilius").ok


def test_sinner_without_slug_rejected(planner, monkeypatch):
    monkeypatch.setattr(planner.catalog, "slug_for", lambda name: None)

    result = planner.set_goal("Yi Sang", PEQUOD, True)

    assert not result.ok
    assert result.message == "Unknown Sinner: Yi Sang."
    assert planner.record.sinner_targets["Yi Sang"] == 400


def test_mark_obtained_two_phase(planner):
    planner.set_goal("Yi Sang", PEQUOD, True)
    planner.set_goal("Yi Sang", SEVEN, True)
    planner.record.sinner_shards["Yi Sang"] = 500

    proposal_result = planner.propose_mark_obtained("Yi Sang", PEQUOD)
    assert proposal_result.ok
    proposal = proposal_result.proposal
    assert proposal.action == ACTION_MARK_OBTAINED
    assert 'Mark "The Pequod First Mate Yi Sang" as obtained for Yi Sang?' in proposal.description
    assert "subtract 400 shards" in proposal.description
    assert planner.record.sinner_shards["Yi Sang"] == 500

    result = planner.commit(proposal)

    state = planner.record.item_state("yi-sang", PEQUOD)
    assert result.ok
    assert state.owned and not state.goal and state.enabled
    assert planner.record.sinner_shards["Yi Sang"] == 100
    assert planner.record.sinner_targets["Yi Sang"] == 150


def test_mark_obtained_clamps_at_zero(planner):
    planner.set_goal("Yi Sang", PEQUOD, True)
    planner.record.sinner_shards["Yi Sang"] = 120

    planner.commit(planner.propose_mark_obtained("Yi Sang", PEQUOD).proposal)

    assert planner.record.sinner_shards["Yi Sang"] == 0
    assert planner.record.sinner_targets["Yi Sang"] == 0


def test_mark_obtained_requires_goal(planner):
    result = planner.propose_mark_obtained("Yi Sang", PEQUOD)
    assert not result.ok
    assert result.proposal is None


def test_reset_two_phase(planner, catalog):
    planner.log_run("30")
    proposal = planner.propose_reset().proposal
    assert proposal.action == ACTION_RESET
    assert planner.record.runs_completed == 1

    planner.commit(proposal)

    assert planner.record == create_initial_record(catalog)


def test_unknown_proposal_action(planner):
    assert not planner.commit(Proposal(action="explode", description="?")).ok


def test_unopened_boxes(planner):
    assert planner.set_unopened_boxes("14").ok
    assert planner.record.unopened_boxes == 14

    result = planner.set_unopened_boxes("-1")
    assert result.message == BOXES_ERROR
    assert planner.record.unopened_boxes == 14


def test_search_messages(planner):
    assert planner.search("  ").message == SEARCH_EMPTY_ERROR
    assert planner.search("zzzz").message == SEARCH_MISS_ERROR
    sinner, item = planner.search("pequod")
    assert (sinner, item.id) == ("Yi Sang", PEQUOD)


def test_round_trip_after_operations(planner, store, catalog):
    planner.switch_sinner("Ishmael")
    planner.log_run("18")
    planner.log_bonus("5")
    planner.set_unopened_boxes("3")
    planner.set_goal("Ishmael", "the-pequod-captain-ishmael", True)
    planner.set_goal("Ishmael", "snagharpoon", True)
    planner.set_enabled("Ishmael", "snagharpoon", False)
    planner.set_owned("Ishmael", "lcb-sinner-ishmael", True)
    planner.edit_legacy_goals({"Faust": ("0", "2")})
    planner.set_goal("Yi Sang", SEVEN, True)
    planner.commit(planner.propose_mark_obtained("Yi Sang", SEVEN).proposal)

    assert store.load() == planner.record


def test_failed_write_keeps_mutation(catalog):
    store = StateStore(FailingBackend(), catalog)
    planner = ShardPlanner(store, catalog)

    result = planner.log_run("10")

    assert result.ok
    assert not result.persisted
    assert planner.record.runs_completed == 1
