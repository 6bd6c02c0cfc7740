"""Static Sinner and ID/EGO catalog for the shard planner."""

from __future__ import annotations

import json
import logging
import re
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

log = logging.getLogger("md.shards.catalog")

KIND_ID = "ID"
KIND_EGO = "EGO"


class CatalogError(RuntimeError):
    """Raised when a catalog dataset cannot be parsed."""


@dataclass(frozen=True)
class Sinner:
    name: str
    slug: str


@dataclass(frozen=True)
class CatalogItem:
    id: str
    name: str
    rarity: str
    img: str = ""
    kind: str = KIND_ID


@dataclass(frozen=True)
class GameConstants:
    initial_shards_owned: int = 0
    default_target_shards: int = 400
    avg_shards_per_box: int = 2  # 1-3 shards per box
    boxes_per_run: int = 9
    weekly_bonus_boxes: int = 63
    cost_per_000: int = 400
    cost_per_00: int = 150
    modules_per_run: int = 5
    default_active_sinner: str = "Yi Sang"

    @property
    def expected_shards_per_run(self) -> int:
        return self.avg_shards_per_box * self.boxes_per_run


SINNER_NAMES: Tuple[str, ...] = (
    "Yi Sang",
    "Faust",
    "Don Quixote",
    "Ryōshū",
    "Meursault",
    "Hong Lu",
    "Heathcliff",
    "Ishmael",
    "Rodion",
    "Sinclair",
    "Outis",
    "Gregor",
)

SHARD_COST_BY_RARITY: Dict[str, int] = {
    "base": 0,
    "00": 150,
    "000": 400,
    "EGO": 400,
}

# (name, rarity) per sinner; identities then EGOs.
_IDENTITIES: Dict[str, List[Tuple[str, str]]] = {
    "Yi Sang": [
        ("LCB Sinner Yi Sang", "base"),
        ("Seven Assoc. South Section 6 Yi Sang", "00"),
        ("Molar Office Fixer Yi Sang", "00"),
        ("The Pequod First Mate Yi Sang", "000"),
        ("W Corp. L3 Cleanup Agent Yi Sang", "000"),
        ("Blade Lineage Salsu Yi Sang", "000"),
    ],
    "Faust": [
        ("LCB Sinner Faust", "base"),
        ("W Corp. L2 Cleanup Agent Faust", "00"),
        ("Zwei Association South Section 4 Faust", "00"),
        ("Lobotomy E.G.O::Regret Faust", "000"),
        ("The One Who Grips Faust", "000"),
    ],
    "Don Quixote": [
        ("LCB Sinner Don Quixote", "base"),
        ("Shi Association South Section 5 Director Don Quixote", "00"),
        ("W Corp. L3 Cleanup Agent Don Quixote", "000"),
        ("Cinq Association East Section 3 Don Quixote", "000"),
        ("The Manager of La Manchaland Don Quixote", "000"),
    ],
    "Ryōshū": [
        ("LCB Sinner Ryōshū", "base"),
        ("Seven Assoc. South Section 6 Ryōshū", "00"),
        ("LCCB Assistant Manager Ryōshū", "00"),
        ("Kurokumo Clan Wakashu Ryōshū", "000"),
        ("W Corp. L3 Cleanup Agent Ryōshū", "000"),
    ],
    "Meursault": [
        ("LCB Sinner Meursault", "base"),
        ("Liu Assoc. South Section 6 Meursault", "00"),
        ("Rosespanner Workshop Fixer Meursault", "00"),
        ("The Middle Little Brother Meursault", "000"),
        ("W Corp. L2 Cleanup Agent Meursault", "000"),
    ],
    "Hong Lu": [
        ("LCB Sinner Hong Lu", "base"),
        ("Kurokumo Clan Wakashu Hong Lu", "00"),
        ("Liu Assoc. South Section 5 Hong Lu", "00"),
        ("Tingtang Gang Gangleader Hong Lu", "000"),
        ("K Corp. Class 3 Excision Staff Hong Lu", "000"),
    ],
    "Heathcliff": [
        ("LCB Sinner Heathcliff", "base"),
        ("Shi Association South Section 5 Heathcliff", "00"),
        ("N Corp. E.G.O::Fell Bullet Heathcliff", "00"),
        ("Wild Hunt Heathcliff", "000"),
        ("R Corp. 4th Pack Rabbit Heathcliff", "000"),
    ],
    "Ishmael": [
        ("LCB Sinner Ishmael", "base"),
        ("Shi Association South Section 5 Ishmael", "00"),
        ("LCCB Assistant Manager Ishmael", "00"),
        ("R Corp. 4th Pack Reindeer Ishmael", "000"),
        ("The Pequod Captain Ishmael", "000"),
    ],
    "Rodion": [
        ("LCB Sinner Rodion", "base"),
        ("LCCB Assistant Manager Rodion", "00"),
        ("N Corp. Mittelhammer Rodion", "00"),
        ("Kurokumo Clan Wakashu Rodion", "000"),
        ("The Princess of La Manchaland Rodion", "000"),
    ],
    "Sinclair": [
        ("LCB Sinner Sinclair", "base"),
        ("Zwei Association South Section 6 Sinclair", "00"),
        ("Los Mariachis Jefe Sinclair", "00"),
        ("Blade Lineage Cutthroat Sinclair", "000"),
        ("Lobotomy E.G.O::Red Sheet Sinclair", "000"),
    ],
    "Outis": [
        ("LCB Sinner Outis", "base"),
        ("Seven Assoc. South Section 4 Outis", "00"),
        ("Blade Lineage Cutthroat Outis", "00"),
        ("G Corp. Head Manager Outis", "000"),
        ("The Ring Pointillist Student Outis", "000"),
    ],
    "Gregor": [
        ("LCB Sinner Gregor", "base"),
        ("Rosespanner Workshop Rep. Gregor", "00"),
        ("Liu Assoc. South Section 6 Gregor", "00"),
        ("G Corp. Manager Corporal Gregor", "000"),
        ("Twinhook Pirates First Mate Gregor", "000"),
    ],
}

_EGOS: Dict[str, List[Tuple[str, str]]] = {
    "Yi Sang": [("Crow's Eye View", "base"), ("Dimension Shredder", "EGO"), ("4th Match Flame", "EGO")],
    "Faust": [("Representation Emitter", "base"), ("Fluid Sac", "EGO")],
    "Don Quixote": [("La Sangre de Sancho", "base"), ("Electric Screaming", "EGO")],
    "Ryōshū": [("Forest for the Flames", "base"), ("Red Eyes", "EGO")],
    "Meursault": [("Chains of Others", "base"), ("Pursuance", "EGO")],
    "Hong Lu": [("Land of Illusion", "base"), ("Roseate Desire", "EGO")],
    "Heathcliff": [("Bodysack", "base"), ("Holiday", "EGO")],
    "Ishmael": [("Snagharpoon", "base"), ("Ardor Blossom Star", "EGO")],
    "Rodion": [("What is Cast", "base"), ("Rime Shank", "EGO")],
    "Sinclair": [("Branch of Knowledge", "base"), ("Impending Day", "EGO")],
    "Outis": [("To Pathos Mathos", "base"), ("Magic Bullet", "EGO")],
    "Gregor": [("Suddenly, One Day", "base"), ("Lantern", "EGO")],
}


def slugify(value: str) -> str:
    """Return an ASCII, dash-separated slug (``"Ryōshū"`` -> ``"ryoshu"``)."""

    text = unicodedata.normalize("NFKD", str(value or ""))
    text = text.encode("ascii", "ignore").decode("ascii").lower()
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")


@dataclass
class Catalog:
    """Read-only lookups over the sinners, their items and the cost table."""

    sinners: Tuple[Sinner, ...]
    identities: Mapping[str, Tuple[CatalogItem, ...]]
    egos: Mapping[str, Tuple[CatalogItem, ...]]
    cost_by_rarity: Mapping[str, int]
    constants: GameConstants = field(default_factory=GameConstants)

    def __post_init__(self) -> None:
        self._slug_by_name = {sinner.name: sinner.slug for sinner in self.sinners}
        self._name_by_slug = {sinner.slug: sinner.name for sinner in self.sinners}

    # --- sinners ---

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(sinner.name for sinner in self.sinners)

    def is_valid(self, name: Any) -> bool:
        return isinstance(name, str) and name in self._slug_by_name

    def slug_for(self, name: str) -> str | None:
        return self._slug_by_name.get(name)

    def name_for(self, slug: str) -> str | None:
        return self._name_by_slug.get(slug)

    def default_active(self) -> str:
        preferred = self.constants.default_active_sinner
        if self.is_valid(preferred):
            return preferred
        return self.sinners[0].name

    def resolve_sinner(self, value: str | None) -> str | None:
        """Match a user-typed sinner name, slug or unique prefix."""

        text = (value or "").strip()
        if not text:
            return None
        if self.is_valid(text):
            return text
        slug = slugify(text)
        if slug in self._name_by_slug:
            return self._name_by_slug[slug]
        matches = [sinner.name for sinner in self.sinners if sinner.slug.startswith(slug)]
        if slug and len(matches) == 1:
            return matches[0]
        return None

    # --- items ---

    def items_for(self, name: str) -> Tuple[CatalogItem, ...]:
        slug = self.slug_for(name)
        if not slug:
            return ()
        return tuple(self.identities.get(slug, ())) + tuple(self.egos.get(slug, ()))

    def find_item(self, name: str, item_id: str) -> CatalogItem | None:
        for item in self.items_for(name):
            if item.id == item_id:
                return item
        return None

    def all_items(self) -> Iterable[Tuple[str, CatalogItem]]:
        for sinner in self.sinners:
            for item in self.items_for(sinner.name):
                yield sinner.name, item

    def cost_for(self, item: CatalogItem) -> int:
        cost = self.cost_by_rarity.get(item.rarity)
        if isinstance(cost, bool) or not isinstance(cost, int):
            return 0
        return cost

    def search(self, query: str) -> Tuple[str, CatalogItem] | None:
        """Return the first ``(sinner, item)`` whose name contains ``query``."""

        needle = (query or "").strip().lower()
        if not needle:
            return None
        for sinner_name, item in self.all_items():
            if needle in (item.name or "").lower():
                return sinner_name, item
        return None

    def resolve_item(self, query: str) -> Tuple[str, CatalogItem] | None:
        """Resolve an item by id, then exact name, then substring search."""

        text = (query or "").strip()
        if not text:
            return None
        lowered = text.lower()
        for sinner_name, item in self.all_items():
            if item.id == text:
                return sinner_name, item
        for sinner_name, item in self.all_items():
            if item.name.lower() == lowered:
                return sinner_name, item
        return self.search(text)

    def rarity_label(self, item: CatalogItem) -> str:
        if item.rarity == "base":
            return f"Base {item.kind}"
        suffix = "" if item.rarity == KIND_EGO else f" {item.kind}"
        return f"{item.rarity}{suffix} · {self.cost_for(item)} shards"

    # --- construction ---

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Catalog":
        """Build a catalog from a JSON-style mapping.

        Expected shape::

            {
              "sinners": ["Yi Sang", ...] | [{"name": ..., "slug": ...}, ...],
              "shardCostByRarity": {"000": 400, ...},
              "identities": {"<slug>": [{"id", "name", "rarity", "img"}, ...]},
              "egos": {"<slug>": [...]},
              "constants": {"avgShardsPerBox": 2, ...}   # optional
            }
        """

        if not isinstance(data, Mapping):
            raise CatalogError("catalog payload must be a JSON object")

        raw_sinners = data.get("sinners")
        if not isinstance(raw_sinners, Sequence) or not raw_sinners:
            raise CatalogError("catalog requires a non-empty 'sinners' list")
        sinners: List[Sinner] = []
        for entry in raw_sinners:
            if isinstance(entry, str):
                sinners.append(Sinner(name=entry, slug=slugify(entry)))
            elif isinstance(entry, Mapping) and entry.get("name"):
                name = str(entry["name"])
                sinners.append(Sinner(name=name, slug=str(entry.get("slug") or slugify(name))))
            else:
                raise CatalogError(f"invalid sinner entry: {entry!r}")

        costs_raw = data.get("shardCostByRarity") or {}
        if not isinstance(costs_raw, Mapping):
            raise CatalogError("'shardCostByRarity' must be an object")
        costs = {
            str(key): int(value)
            for key, value in costs_raw.items()
            if isinstance(value, (int, float)) and not isinstance(value, bool)
        }

        identities = _parse_items(data.get("identities"), KIND_ID)
        egos = _parse_items(data.get("egos"), KIND_EGO)
        constants = _parse_constants(data.get("constants"))
        return cls(
            sinners=tuple(sinners),
            identities=identities,
            egos=egos,
            cost_by_rarity=costs,
            constants=constants,
        )


_CONSTANT_KEYS = {
    "initialShardsOwned": "initial_shards_owned",
    "defaultTargetShards": "default_target_shards",
    "avgShardsPerBox": "avg_shards_per_box",
    "boxesPerRun": "boxes_per_run",
    "weeklyBonusBoxes": "weekly_bonus_boxes",
    "costPer000": "cost_per_000",
    "costPer00": "cost_per_00",
    "modulesPerRun": "modules_per_run",
}


def _parse_constants(raw: Any) -> GameConstants:
    if raw is None:
        return GameConstants()
    if not isinstance(raw, Mapping):
        raise CatalogError("'constants' must be an object")
    values: Dict[str, Any] = {}
    for key, attr in _CONSTANT_KEYS.items():
        if key in raw:
            value = raw[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise CatalogError(f"constant {key} must be a non-negative integer")
            values[attr] = value
    if "defaultActiveSinner" in raw:
        values["default_active_sinner"] = str(raw["defaultActiveSinner"])
    return GameConstants(**values)


def _parse_items(raw: Any, kind: str) -> Dict[str, Tuple[CatalogItem, ...]]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise CatalogError(f"{kind} lists must be an object keyed by sinner slug")
    result: Dict[str, Tuple[CatalogItem, ...]] = {}
    for slug, entries in raw.items():
        items: List[CatalogItem] = []
        seen: set[str] = set()
        for entry in entries or []:
            if not isinstance(entry, Mapping) or not entry.get("id"):
                raise CatalogError(f"invalid {kind} entry for {slug}: {entry!r}")
            item_id = str(entry["id"])
            if item_id in seen:
                raise CatalogError(f"duplicate item id {item_id!r} for {slug}")
            seen.add(item_id)
            items.append(
                CatalogItem(
                    id=item_id,
                    name=str(entry.get("name") or item_id),
                    rarity=str(entry.get("rarity") or "base"),
                    img=str(entry.get("img") or ""),
                    kind=kind,
                )
            )
        result[str(slug)] = tuple(items)
    return result


def _build_items(
    source: Mapping[str, List[Tuple[str, str]]], kind: str
) -> Dict[str, Tuple[CatalogItem, ...]]:
    result: Dict[str, Tuple[CatalogItem, ...]] = {}
    for name, entries in source.items():
        slug = slugify(name)
        result[slug] = tuple(
            CatalogItem(
                id=slugify(item_name),
                name=item_name,
                rarity=rarity,
                img=f"images/{slug}/{slugify(item_name)}.webp",
                kind=kind,
            )
            for item_name, rarity in entries
        )
    return result


def default_catalog() -> Catalog:
    """Return the built-in catalog."""

    return Catalog(
        sinners=tuple(Sinner(name=name, slug=slugify(name)) for name in SINNER_NAMES),
        identities=_build_items(_IDENTITIES, KIND_ID),
        egos=_build_items(_EGOS, KIND_EGO),
        cost_by_rarity=dict(SHARD_COST_BY_RARITY),
    )


def load_catalog(path: str | Path | None = None) -> Catalog:
    """Load a catalog JSON file, or the built-in catalog when ``path`` is empty."""

    if not path:
        return default_catalog()
    catalog_path = Path(path)
    try:
        data = json.loads(catalog_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise CatalogError(f"failed to read catalog {catalog_path}: {exc}") from exc
    catalog = Catalog.from_mapping(data)
    log.info(
        "catalog loaded",
        extra={"path": str(catalog_path), "sinners": len(catalog.sinners)},
    )
    return catalog


__all__ = [
    "KIND_EGO",
    "KIND_ID",
    "SHARD_COST_BY_RARITY",
    "SINNER_NAMES",
    "Catalog",
    "CatalogError",
    "CatalogItem",
    "GameConstants",
    "Sinner",
    "default_catalog",
    "load_catalog",
    "slugify",
]
