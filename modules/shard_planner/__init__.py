"""MD shard planner extension."""

import logging

from discord.ext import commands

from .cog import ShardPlannerCog

__all__ = ["ShardPlannerCog", "setup"]


async def setup(bot: commands.Bot) -> None:
    """Load the ShardPlannerCog."""

    await bot.add_cog(ShardPlannerCog(bot))
    logging.getLogger("md.shards.cog").info("Shard planner cog loaded")
