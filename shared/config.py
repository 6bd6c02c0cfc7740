"""Runtime configuration helpers for the shard planner bot."""

from __future__ import annotations

import logging
import os
import re
from typing import Dict, Optional

from config import runtime as _runtime
from shared.redaction import mask_secret, mask_service_account, sanitize_text

__all__ = [
    "ShardPlannerConfigError",
    "cfg",
    "reload_config",
    "require_env",
    "get_env_name",
    "get_bot_name",
    "get_command_prefix",
    "get_discord_token",
    "get_log_channel_id",
    "get_planner_command",
    "get_state_backend",
    "get_state_path",
    "get_state_key",
    "get_state_sheet_id",
    "get_state_tab",
    "get_catalog_path",
]

log = logging.getLogger("md.config")

# ===== Config Schema (authoritative) =====
_REQUIRED_ENV = ("DISCORD_TOKEN",)

_STATE_BACKENDS = ("file", "sheets", "memory")
DEFAULT_STATE_PATH = "data/md_shards.json"
DEFAULT_STATE_KEY = "mdShardCalculatorState_v1"
DEFAULT_STATE_TAB = "ShardState"

_MISSING_VALUE = "—"
_INT_RE = re.compile(r"\d+")

_log_channel_warning_emitted = False

_CONFIG: Dict[str, object] = {}

_SECRET_KEYS = {
    "DISCORD_TOKEN",
    "GSPREAD_CREDENTIALS",
}


class ShardPlannerConfigError(RuntimeError):
    """Raised when the environment cannot produce a usable configuration."""


def require_env(*names: str) -> None:
    """Fail fast when any required variable (default: ``DISCORD_TOKEN``) is blank."""

    for name in names or _REQUIRED_ENV:
        value = os.getenv(name)
        if value is None or str(value).strip() == "":
            raise ShardPlannerConfigError(f"Missing required environment variable: {name}")


def _redact_value(key: str, value: object) -> str:
    key_upper = str(key).upper()

    if value in (None, "", [], (), {}):
        return _MISSING_VALUE

    if key_upper in _SECRET_KEYS or "TOKEN" in key_upper or "CREDENTIAL" in key_upper:
        stripped = str(value).strip()
        if not stripped:
            return _MISSING_VALUE
        if "service_account" in stripped and "private_key" in stripped:
            return mask_service_account(stripped)
        return mask_secret(stripped)

    return str(sanitize_text(value))


def _first_int(raw: str | None) -> Optional[int]:
    if not raw:
        return None
    match = _INT_RE.search(raw)
    return int(match.group(0)) if match else None


def _refresh_log_channel() -> Optional[int]:
    """Refresh the cached log channel identifier and warn once when unset."""

    global _log_channel_warning_emitted

    channel_id = _first_int(os.getenv("LOG_CHANNEL_ID"))
    if channel_id is None:
        if not _log_channel_warning_emitted:
            log.info("Log channel disabled; set LOG_CHANNEL_ID to mirror actions to Discord.")
            _log_channel_warning_emitted = True
    else:
        _log_channel_warning_emitted = False
    return channel_id


def _state_backend() -> str:
    raw = (os.getenv("SHARD_STATE_BACKEND") or "file").strip().lower() or "file"
    if raw not in _STATE_BACKENDS:
        raise ShardPlannerConfigError(
            f"SHARD_STATE_BACKEND must be one of {', '.join(_STATE_BACKENDS)} (got {raw!r})"
        )
    return raw


def _load_config() -> Dict[str, object]:
    config: Dict[str, object] = {
        "BOT_NAME": _runtime.get_bot_name(),
        "DISCORD_TOKEN": os.getenv("DISCORD_TOKEN", ""),
        "ENV_NAME": _runtime.get_env_name(),
        "COMMAND_PREFIX": _runtime.get_command_prefix(),
        "LOG_LEVEL": _runtime.get_log_level(),
        "LOG_CHANNEL_ID": _refresh_log_channel(),
        "SHARD_PLANNER_COMMAND": _runtime.get_planner_command(),
        "SHARD_STATE_BACKEND": _state_backend(),
        "SHARD_STATE_PATH": (os.getenv("SHARD_STATE_PATH") or "").strip() or DEFAULT_STATE_PATH,
        "SHARD_STATE_KEY": (os.getenv("SHARD_STATE_KEY") or "").strip() or DEFAULT_STATE_KEY,
        "SHARD_STATE_SHEET_ID": (os.getenv("SHARD_STATE_SHEET_ID") or "").strip(),
        "SHARD_STATE_TAB": (os.getenv("SHARD_STATE_TAB") or "").strip() or DEFAULT_STATE_TAB,
        "SHARD_CATALOG_PATH": (os.getenv("SHARD_CATALOG_PATH") or "").strip(),
        "GSPREAD_CREDENTIALS": os.getenv("GSPREAD_CREDENTIALS", ""),
    }
    for key, value in os.environ.items():
        if key.startswith("COLOR_"):
            config[key] = value

    if config["SHARD_STATE_BACKEND"] == "sheets" and not config["SHARD_STATE_SHEET_ID"]:
        raise ShardPlannerConfigError("SHARD_STATE_SHEET_ID is required for the sheets backend")

    return config


def _log_snapshot(snapshot: Dict[str, object]) -> None:
    redacted = {key: _redact_value(key, value) for key, value in snapshot.items()}
    log.info("config loaded", extra={"config": redacted})


def reload_config() -> Dict[str, object]:
    """Reload configuration from environment and return a snapshot."""

    snapshot = _load_config()

    global _CONFIG
    _CONFIG = snapshot
    _log_snapshot(snapshot)
    return dict(_CONFIG)


def _normalise_key(name: object) -> Optional[str]:
    if name is None:
        return None
    text = str(name).strip()
    if not text:
        return None
    mapped = re.sub(r"[^A-Za-z0-9_]", "_", text)
    mapped = re.sub(r"__+", "_", mapped).strip("_")
    return mapped.upper() or None


class _ConfigFacade:
    __slots__ = ()

    def get(self, key: object, default: object | None = None) -> object | None:
        if not _CONFIG:
            reload_config()
        normalised = _normalise_key(key)
        if not normalised:
            return default
        return _CONFIG.get(normalised, default)

    def __contains__(self, key: object) -> bool:  # pragma: no cover - convenience
        normalised = _normalise_key(key)
        return bool(normalised) and normalised in _CONFIG


cfg = _ConfigFacade()


def _str(key: str, default: str = "") -> str:
    value = cfg.get(key)
    return str(value) if isinstance(value, str) and value else default


def get_env_name(default: str = "dev") -> str:
    return _str("ENV_NAME", default)


def get_bot_name(default: str = "MD-Shard-Planner") -> str:
    return _str("BOT_NAME", default)


def get_command_prefix(default: str = "!") -> str:
    return _str("COMMAND_PREFIX", default)


def get_discord_token() -> str:
    return _str("DISCORD_TOKEN")


def get_log_channel_id() -> Optional[int]:
    value = cfg.get("LOG_CHANNEL_ID")
    if isinstance(value, int) and value > 0:
        return value
    return None


def get_planner_command(default: str = "md") -> str:
    return _str("SHARD_PLANNER_COMMAND", default)


def get_state_backend() -> str:
    return _str("SHARD_STATE_BACKEND", "file")


def get_state_path() -> str:
    return _str("SHARD_STATE_PATH", DEFAULT_STATE_PATH)


def get_state_key() -> str:
    return _str("SHARD_STATE_KEY", DEFAULT_STATE_KEY)


def get_state_sheet_id() -> str:
    return _str("SHARD_STATE_SHEET_ID")


def get_state_tab() -> str:
    return _str("SHARD_STATE_TAB", DEFAULT_STATE_TAB)


def get_catalog_path() -> str:
    return _str("SHARD_CATALOG_PATH")
