"""Human-friendly labels for log lines mirrored to Discord."""

from __future__ import annotations

from typing import Optional

import discord

__all__ = [
    "LOG_EMOJI",
    "action_line",
    "channel_label",
    "human_reason",
    "user_label",
]

LOG_EMOJI = {
    "success": "✅",
    "lifecycle": "📘",
    "error": "❌",
}

# Actions that only happen after a button confirmation.
_CONFIRMED_ACTIONS = frozenset({"mark_obtained", "reset"})


def _clean_name(name: Optional[str], default: str) -> str:
    if not name:
        return default
    text = str(name).strip()
    return text or default


def channel_label(guild: Optional[discord.Guild], cid: Optional[int]) -> str:
    """Return ``#name`` for a guild channel, or ``#unknown``."""

    if guild is None or cid is None:
        return "#unknown"
    getter = getattr(guild, "get_channel", None)
    channel = getter(cid) if callable(getter) else None
    if channel is None:
        return "#unknown"
    return f"#{_clean_name(getattr(channel, 'name', None), 'channel')}"


def user_label(guild: Optional[discord.Guild], uid: Optional[int]) -> str:
    """Return a human label for a guild user/member."""

    if uid is None:
        return "unknown"
    if guild is None:
        return "unknown"
    getter = getattr(guild, "get_member", None)
    member = getter(uid) if callable(getter) else None
    if member is None:
        return "unknown"
    return _clean_name(getattr(member, "display_name", None), "unknown")


def human_reason(exc_or_msg: object) -> str:
    """Normalize exceptions and Discord HTTP errors to one line of text."""

    if exc_or_msg is None:
        return "-"
    if isinstance(exc_or_msg, str):
        text = " ".join(exc_or_msg.split())
        return text or "-"
    if isinstance(exc_or_msg, discord.HTTPException):
        status = getattr(exc_or_msg, "status", None)
        code = getattr(exc_or_msg, "code", None)
        suffix = ""
        if status or code:
            suffix = f" ({status or '?'}" + (f"/{code}" if code else "") + ")"
        detail = " ".join(str(getattr(exc_or_msg, "text", "")).split())
        base = f"{exc_or_msg.__class__.__name__}{suffix}"
        return f"{base}: {detail}" if detail else base
    if isinstance(exc_or_msg, Exception):
        text = " ".join(str(exc_or_msg).split())
        label = exc_or_msg.__class__.__name__
        return f"{label}: {text}" if text else label
    return "-"


def action_line(
    action: str,
    guild: Optional[discord.Guild],
    uid: Optional[int],
    detail: str,
    *,
    cid: Optional[int] = None,
) -> str:
    """One-line summary of a planner action for the log channel."""

    emoji = LOG_EMOJI["success"] if action in _CONFIRMED_ACTIONS else LOG_EMOJI["lifecycle"]
    parts = [f"{emoji} MD Shards — {action}", user_label(guild, uid)]
    if cid is not None:
        parts.append(channel_label(guild, cid))
    parts.append(" ".join(str(detail or "-").split()))
    return " • ".join(parts)
