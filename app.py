from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands

from config import runtime as runtime_config
from shared.config import (
    get_bot_name,
    get_command_prefix,
    get_discord_token,
    get_env_name,
    reload_config,
    require_env,
)
from shared.logfmt import LOG_EMOJI, human_reason, user_label
from shared.logging import set_trace_id, setup_logging
from modules.common.runtime import Runtime

log = logging.getLogger("md.app")

INTENTS = discord.Intents.default()
INTENTS.message_content = True


def build_bot() -> commands.Bot:
    bot = commands.Bot(
        command_prefix=commands.when_mentioned_or(get_command_prefix()),
        intents=INTENTS,
    )

    @bot.before_invoke
    async def _assign_trace(ctx: commands.Context) -> None:
        set_trace_id()

    @bot.event
    async def on_ready():
        log.info(
            "bot ready",
            extra={"user": str(bot.user), "guilds": len(bot.guilds)},
        )

    @bot.event
    async def on_command_error(ctx: commands.Context, error: Exception):
        if isinstance(error, commands.CommandNotFound):
            return
        if isinstance(error, (commands.MissingRequiredArgument, commands.BadArgument)):
            await ctx.reply(str(error), mention_author=False)
            return
        log.warning(
            "cmd error: cmd=%s user=%s err=%r",
            getattr(ctx.command, "qualified_name", None),
            getattr(ctx.author, "id", None),
            error,
        )
        try:
            await runtime_for(bot).send_log_message(
                f"{LOG_EMOJI['error']} Command error — "
                f"{getattr(ctx.command, 'qualified_name', None) or '-'} • "
                f"{user_label(getattr(ctx, 'guild', None), getattr(ctx.author, 'id', None))} • "
                f"{human_reason(error)}"
            )
        except Exception:
            log.exception("failed to send command error to log channel")

    return bot


_RUNTIMES: dict[int, Runtime] = {}


def runtime_for(bot: commands.Bot) -> Runtime:
    runtime = _RUNTIMES.get(id(bot))
    if runtime is None:
        runtime = Runtime(bot)
        _RUNTIMES[id(bot)] = runtime
    return runtime


async def main() -> None:
    require_env()
    setup_logging(
        static_fields={"env": runtime_config.get_env_name(), "bot": runtime_config.get_bot_name()},
        level=runtime_config.get_log_level(),
    )
    reload_config()
    log.info("starting", extra={"env": get_env_name(), "bot": get_bot_name()})
    bot = build_bot()
    runtime = runtime_for(bot)
    try:
        await runtime.start(get_discord_token())
    finally:
        await runtime.close()


if __name__ == "__main__":
    asyncio.run(main())
