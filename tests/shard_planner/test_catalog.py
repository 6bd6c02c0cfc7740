from __future__ import annotations

import json

import pytest

from modules.shard_planner.catalog import (
    KIND_EGO,
    SINNER_NAMES,
    Catalog,
    CatalogError,
    CatalogItem,
    load_catalog,
    slugify,
)


def test_default_catalog_has_twelve_sinners(catalog):
    assert catalog.names == SINNER_NAMES
    assert len(catalog.names) == 12
    assert catalog.default_active() == "Yi Sang"


def test_slugify_strips_diacritics():
    assert slugify("Ryōshū") == "ryoshu"
    assert slugify("Don Quixote") == "don-quixote"
    assert slugify("Lobotomy E.G.O::Regret Faust") == "lobotomy-e-g-o-regret-faust"


def test_cost_for_uses_rarity_table(catalog):
    base = catalog.find_item("Yi Sang", "lcb-sinner-yi-sang")
    two = catalog.find_item("Yi Sang", "seven-assoc-south-section-6-yi-sang")
    three = catalog.find_item("Yi Sang", "the-pequod-first-mate-yi-sang")
    ego = catalog.find_item("Yi Sang", "dimension-shredder")

    assert catalog.cost_for(base) == 0
    assert catalog.cost_for(two) == 150
    assert catalog.cost_for(three) == 400
    assert catalog.cost_for(ego) == 400
    assert ego.kind == KIND_EGO


def test_unknown_rarity_costs_nothing(catalog):
    item = CatalogItem(id="x", name="Mystery", rarity="0000")
    assert catalog.cost_for(item) == 0


def test_items_for_lists_identities_then_egos(catalog):
    items = catalog.items_for("Faust")
    kinds = [item.kind for item in items]
    assert kinds == sorted(kinds, key=lambda kind: kind == KIND_EGO)
    assert catalog.items_for("Nobody") == ()


def test_search_returns_first_match_in_catalog_order(catalog):
    sinner, item = catalog.search("w corp. l3")
    assert sinner == "Yi Sang"
    assert item.id == "w-corp-l3-cleanup-agent-yi-sang"
    assert catalog.search("   ") is None
    assert catalog.search("no such thing") is None


def test_resolve_item_prefers_exact_id(catalog):
    sinner, item = catalog.resolve_item("red-eyes")
    assert sinner == "Ryōshū"
    assert item.name == "Red Eyes"

    sinner, item = catalog.resolve_item("wild hunt heathcliff")
    assert sinner == "Heathcliff"


def test_resolve_sinner_accepts_slug_and_prefix(catalog):
    assert catalog.resolve_sinner("ryoshu") == "Ryōshū"
    assert catalog.resolve_sinner("Don") == "Don Quixote"
    assert catalog.resolve_sinner("hong lu") == "Hong Lu"
    assert catalog.resolve_sinner("zzz") is None


def test_from_mapping_builds_custom_catalog():
    catalog = Catalog.from_mapping(
        {
            "sinners": ["Alpha", {"name": "Beta", "slug": "b"}],
            "shardCostByRarity": {"00": 100, "000": 300},
            "identities": {"alpha": [{"id": "a1", "name": "Alpha One", "rarity": "000"}]},
            "egos": {"b": [{"id": "b1", "name": "Beta Ego", "rarity": "00"}]},
            "constants": {"avgShardsPerBox": 3, "defaultActiveSinner": "Beta"},
        }
    )

    assert catalog.names == ("Alpha", "Beta")
    assert catalog.default_active() == "Beta"
    assert catalog.constants.expected_shards_per_run == 27
    assert catalog.cost_for(catalog.find_item("Alpha", "a1")) == 300
    assert catalog.find_item("Beta", "b1").kind == KIND_EGO


def test_from_mapping_rejects_duplicate_ids():
    with pytest.raises(CatalogError):
        Catalog.from_mapping(
            {
                "sinners": ["Alpha"],
                "identities": {"alpha": [{"id": "a"}, {"id": "a"}]},
            }
        )


def test_load_catalog_reads_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"sinners": ["Solo"]}), encoding="utf-8")

    catalog = load_catalog(path)

    assert catalog.names == ("Solo",)
    assert catalog.default_active() == "Solo"


def test_load_catalog_reports_bad_json(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text("{nope", encoding="utf-8")

    with pytest.raises(CatalogError):
        load_catalog(path)
