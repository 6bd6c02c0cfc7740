"""Runtime wiring for the bot: extension loading and the log channel."""

from __future__ import annotations

import logging

from discord.ext import commands

from shared.config import get_log_channel_id

log = logging.getLogger("md.runtime")

_ACTIVE_RUNTIME: "Runtime | None" = None

EXTENSIONS = ("modules.shard_planner",)


def set_active_runtime(runtime: "Runtime | None") -> None:
    """Set the active runtime used by module-level helpers."""

    global _ACTIVE_RUNTIME
    _ACTIVE_RUNTIME = runtime


def get_active_runtime() -> "Runtime | None":
    """Return the active runtime instance if one has been registered."""

    return _ACTIVE_RUNTIME


async def send_log_message(message: str) -> None:
    """Proxy to the active runtime's log channel helper, if available."""

    runtime = get_active_runtime()
    if runtime is None:
        return
    await runtime.send_log_message(message)


def _trim_message(message: str, *, limit: int = 1800) -> str:
    message = message.strip()
    if len(message) <= limit:
        return message
    return f"{message[: limit - 1]}…"


class Runtime:
    """Container object that owns the bot and its log channel."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        set_active_runtime(self)

    async def send_log_message(self, message: str) -> None:
        channel_id = get_log_channel_id()
        if not channel_id:
            return
        content = _trim_message(str(message))
        if not content:
            return
        await self.bot.wait_until_ready()
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(channel_id)
            except Exception:
                log.exception("failed to fetch log channel", extra={"channel_id": channel_id})
                return
        try:
            await channel.send(content)
        except Exception:
            log.exception("failed to send log message", extra={"channel_id": channel_id})

    async def load_extensions(self) -> None:
        """Load all feature modules into the bot."""

        for name in EXTENSIONS:
            await self.bot.load_extension(name)
            log.info("extension loaded", extra={"extension": name})

    async def start(self, token: str) -> None:
        await self.load_extensions()
        await self.bot.start(token)

    async def close(self) -> None:
        if not self.bot.is_closed():
            await self.bot.close()
        set_active_runtime(None)
