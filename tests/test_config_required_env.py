import pytest

from shared import config as config_mod


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    monkeypatch.setattr(config_mod, "_CONFIG", {})


@pytest.mark.parametrize("blank", [None, "", "   "])
def test_missing_discord_token_raises(blank, monkeypatch):
    if blank is None:
        monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    else:
        monkeypatch.setenv("DISCORD_TOKEN", blank)

    with pytest.raises(config_mod.ShardPlannerConfigError):
        config_mod.require_env()


def test_import_does_not_require_token(monkeypatch):
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)

    snapshot = config_mod.reload_config()

    assert snapshot["DISCORD_TOKEN"] == ""
    assert config_mod.get_discord_token() == ""


def test_unknown_state_backend_rejected(monkeypatch):
    monkeypatch.setenv("SHARD_STATE_BACKEND", "redis")

    with pytest.raises(config_mod.ShardPlannerConfigError):
        config_mod.reload_config()


def test_sheets_backend_needs_sheet_id(monkeypatch):
    monkeypatch.setenv("SHARD_STATE_BACKEND", "sheets")
    monkeypatch.delenv("SHARD_STATE_SHEET_ID", raising=False)

    with pytest.raises(config_mod.ShardPlannerConfigError):
        config_mod.reload_config()

    monkeypatch.setenv("SHARD_STATE_SHEET_ID", "sheet-123")
    config_mod.reload_config()
    assert config_mod.get_state_backend() == "sheets"
    assert config_mod.get_state_sheet_id() == "sheet-123"
    assert config_mod.get_state_tab() == "ShardState"


def test_state_defaults(monkeypatch):
    for name in ("SHARD_STATE_BACKEND", "SHARD_STATE_PATH", "SHARD_STATE_KEY", "SHARD_PLANNER_COMMAND"):
        monkeypatch.delenv(name, raising=False)

    config_mod.reload_config()

    assert config_mod.get_state_backend() == "file"
    assert config_mod.get_state_path() == "data/md_shards.json"
    assert config_mod.get_state_key() == "mdShardCalculatorState_v1"
    assert config_mod.get_planner_command() == "md"


def test_snapshot_log_redacts_token(monkeypatch, caplog):
    monkeypatch.setenv("DISCORD_TOKEN", "abcdefghijklmnopqrstuvwxyz")

    with caplog.at_level("INFO", logger="md.config"):
        config_mod.reload_config()

    record = next(r for r in caplog.records if r.getMessage() == "config loaded")
    assert record.config["DISCORD_TOKEN"] != "abcdefghijklmnopqrstuvwxyz"
    assert config_mod.cfg.get("discord-token") == "abcdefghijklmnopqrstuvwxyz"
