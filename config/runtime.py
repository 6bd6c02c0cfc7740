from __future__ import annotations

# config/runtime.py
import os


def get_env_name(default: str = "dev") -> str:
    return os.getenv("ENV_NAME", default)


def get_bot_name(default: str = "MD-Shard-Planner") -> str:
    return os.getenv("BOT_NAME", default)


def get_command_prefix(default: str = "!") -> str:
    return os.getenv("COMMAND_PREFIX", default)


def get_log_level(default: str = "INFO") -> str:
    return (os.getenv("LOG_LEVEL") or default).strip().upper()


def get_planner_command(default: str = "md") -> str:
    """Name of the prefix command group (``!md`` by default)."""

    value = (os.getenv("SHARD_PLANNER_COMMAND") or "").strip()
    return value or default
