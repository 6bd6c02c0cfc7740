import logging

import pytest

from shared import config as config_mod


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    monkeypatch.setattr(config_mod, "_CONFIG", {})
    monkeypatch.setattr(config_mod, "_log_channel_warning_emitted", False)


def test_log_channel_disabled_when_env_missing(monkeypatch, caplog):
    monkeypatch.delenv("LOG_CHANNEL_ID", raising=False)
    caplog.set_level(logging.INFO, logger="md.config")

    config_mod.reload_config()
    config_mod.reload_config()

    notices = [r for r in caplog.records if "Log channel disabled" in r.getMessage()]
    assert len(notices) == 1
    assert config_mod.get_log_channel_id() is None


def test_log_channel_parses_first_integer(monkeypatch):
    monkeypatch.setenv("LOG_CHANNEL_ID", "<#123456789>")

    config_mod.reload_config()

    assert config_mod.get_log_channel_id() == 123456789
