from __future__ import annotations

from types import SimpleNamespace

import pytest

from modules.shard_planner.catalog import default_catalog
from modules.shard_planner.operations import ShardPlanner
from modules.shard_planner.store import MemoryBackend, StateStore

from planner_fakes import (
    FIXED_TIMESTAMP,
    FakeChannel,
    FakeContext,
    FakeGuild,
    FakeInteraction,
    FakeUser,
)


@pytest.fixture
def catalog():
    return default_catalog()


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def store(backend, catalog):
    return StateStore(backend, catalog)


@pytest.fixture
def planner(store, catalog):
    return ShardPlanner(store, catalog, clock=lambda: FIXED_TIMESTAMP)


@pytest.fixture
def fake_discord_env():
    return SimpleNamespace(
        Guild=FakeGuild,
        Channel=FakeChannel,
        User=FakeUser,
        Context=FakeContext,
        Interaction=FakeInteraction,
    )
