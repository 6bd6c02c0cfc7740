"""Discord cog exposing the MD shard planner as ``!md`` commands."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Tuple

import discord
from discord.ext import commands

from config import runtime as runtime_config
from modules.common import runtime
from shared import config as shared_config
from shared.logfmt import action_line

from .catalog import Catalog, CatalogItem, load_catalog
from .operations import (
    SEARCH_EMPTY_ERROR,
    SEARCH_MISS_ERROR,
    OperationResult,
    Proposal,
    ShardPlanner,
)
from .projections import overview
from .store import StateStore, build_backend
from .views import (
    ConfirmView,
    build_goals_embed,
    build_history_embed,
    build_item_embed,
    build_overview_embed,
    build_panel_embed,
)

log = logging.getLogger("md.shards.cog")

_ON_WORDS = {"on", "yes", "true", "1", "add"}
_OFF_WORDS = {"off", "no", "false", "0", "remove"}


def build_default_store(catalog: Catalog) -> StateStore:
    backend = build_backend(
        shared_config.get_state_backend(),
        path=shared_config.get_state_path(),
        sheet_id=shared_config.get_state_sheet_id(),
        tab_name=shared_config.get_state_tab(),
    )
    return StateStore(backend, catalog, key=shared_config.get_state_key())


def split_toggle(text: str) -> Tuple[str, bool]:
    """Split a trailing ``on``/``off`` word from ``text``; default is on."""

    parts = (text or "").strip().rsplit(None, 1)
    if len(parts) == 2:
        word = parts[1].lower()
        if word in _ON_WORDS:
            return parts[0], True
        if word in _OFF_WORDS:
            return parts[0], False
    return (text or "").strip(), True


class ShardPlannerCog(commands.Cog):
    def __init__(
        self,
        bot: commands.Bot,
        *,
        store: StateStore | None = None,
        catalog: Catalog | None = None,
    ) -> None:
        self.bot = bot
        self.catalog = catalog or (store.catalog if store else load_catalog(shared_config.get_catalog_path()))
        self.store = store or build_default_store(self.catalog)
        self._locks: Dict[int, asyncio.Lock] = {}

    # === Commands ===

    @commands.group(
        name=runtime_config.get_planner_command(),
        invoke_without_command=True,
        help="Mirror Dungeon shard planner. Shows the panel for your active Sinner.",
    )
    async def md(self, ctx: commands.Context) -> None:
        async with self._user_lock(ctx.author.id):
            planner = await self._load(ctx.author.id)
        await self._reply_panel(ctx, planner)

    @md.command(name="run", help="Log a finished run and the shards it gave.")
    async def md_run(self, ctx: commands.Context, amount: str) -> None:
        await self._mutate(ctx, "run", lambda planner: planner.log_run(amount), panel=True)

    @md.command(name="bonus", help="Add bonus shards (weekly boxes, events) to the active Sinner.")
    async def md_bonus(self, ctx: commands.Context, amount: str) -> None:
        await self._mutate(ctx, "bonus", lambda planner: planner.log_bonus(amount), panel=True)

    @md.command(name="shards", help="Set a Sinner's shard count: !md shards <sinner> <count>.")
    async def md_shards(self, ctx: commands.Context, *, args: str) -> None:
        parts = args.strip().rsplit(None, 1)
        if len(parts) != 2:
            await self._reply(ctx, "Usage: `!md shards <sinner> <count>`.")
            return
        sinner = self.catalog.resolve_sinner(parts[0])
        if sinner is None:
            await self._reply(ctx, f"Unknown Sinner: {parts[0]}.")
            return
        await self._mutate(ctx, "edit_shards", lambda planner: planner.edit_shards({sinner: parts[1]}))

    @md.command(name="legacy", help="Set count-based goals: !md legacy <sinner> <000 count> <00 count>.")
    async def md_legacy(self, ctx: commands.Context, *, args: str) -> None:
        parts = args.strip().rsplit(None, 2)
        if len(parts) != 3:
            await self._reply(ctx, "Usage: `!md legacy <sinner> <000 count> <00 count>`.")
            return
        sinner = self.catalog.resolve_sinner(parts[0])
        if sinner is None:
            await self._reply(ctx, f"Unknown Sinner: {parts[0]}.")
            return
        await self._mutate(
            ctx,
            "edit_goals",
            lambda planner: planner.edit_legacy_goals({sinner: (parts[1], parts[2])}),
        )

    @md.command(name="own", help="Mark an ID/EGO as owned: !md own <name> [on|off].")
    async def md_own(self, ctx: commands.Context, *, query: str) -> None:
        await self._toggle(ctx, "owned", query, lambda p, s, i, v: p.set_owned(s, i, v))

    @md.command(name="goal", help="Add or remove an ID/EGO goal: !md goal <name> [on|off].")
    async def md_goal(self, ctx: commands.Context, *, query: str) -> None:
        await self._toggle(ctx, "goal", query, lambda p, s, i, v: p.set_goal(s, i, v))

    @md.command(name="include", help="Include or exclude a goal from the target: !md include <name> [on|off].")
    async def md_include(self, ctx: commands.Context, *, query: str) -> None:
        await self._toggle(ctx, "enabled", query, lambda p, s, i, v: p.set_enabled(s, i, v))

    @md.command(name="got", help="Mark a goal ID/EGO as obtained and spend its shards.")
    async def md_got(self, ctx: commands.Context, *, query: str) -> None:
        resolved = self._resolve_item(query)
        if isinstance(resolved, str):
            await self._reply(ctx, resolved)
            return
        sinner, item = resolved
        async with self._user_lock(ctx.author.id):
            planner = await self._load(ctx.author.id)
        result = planner.propose_mark_obtained(sinner, item.id)
        await self._confirm(ctx, result)

    @md.command(name="boxes", help="Set how many unopened boxes you are holding.")
    async def md_boxes(self, ctx: commands.Context, count: str) -> None:
        await self._mutate(ctx, "boxes", lambda planner: planner.set_unopened_boxes(count), panel=True)

    @md.command(name="sinner", help="Switch the active Sinner.")
    async def md_sinner(self, ctx: commands.Context, *, name: str) -> None:
        sinner = self.catalog.resolve_sinner(name)
        if sinner is None:
            await self._reply(ctx, f"Unknown Sinner: {name}.")
            return
        await self._mutate(ctx, "switch", lambda planner: planner.switch_sinner(sinner), panel=True)

    @md.command(name="reset", help="Reset all progress (asks for confirmation).")
    async def md_reset(self, ctx: commands.Context) -> None:
        async with self._user_lock(ctx.author.id):
            planner = await self._load(ctx.author.id)
        await self._confirm(ctx, planner.propose_reset())

    @md.command(name="overview", help="Progress for every Sinner.")
    async def md_overview(self, ctx: commands.Context) -> None:
        async with self._user_lock(ctx.author.id):
            planner = await self._load(ctx.author.id)
        embed = build_overview_embed(
            overview(planner.record, self.catalog), active=planner.record.active_sinner
        )
        await ctx.reply(embed=embed, mention_author=False)

    @md.command(name="history", help="The most recent logged runs.")
    async def md_history(self, ctx: commands.Context) -> None:
        async with self._user_lock(ctx.author.id):
            planner = await self._load(ctx.author.id)
        await ctx.reply(embed=build_history_embed(planner.record.history), mention_author=False)

    @md.command(name="goals", help="ID/EGO goals for a Sinner (default: the active one).")
    async def md_goals(self, ctx: commands.Context, *, name: str | None = None) -> None:
        sinner = None
        if name:
            sinner = self.catalog.resolve_sinner(name)
            if sinner is None:
                await self._reply(ctx, f"Unknown Sinner: {name}.")
                return
        async with self._user_lock(ctx.author.id):
            planner = await self._load(ctx.author.id)
        embed = build_goals_embed(
            record=planner.record,
            catalog=self.catalog,
            sinner=sinner or planner.record.active_sinner,
        )
        await ctx.reply(embed=embed, mention_author=False)

    @md.command(name="find", help="Search IDs and EGOs by name.")
    async def md_find(self, ctx: commands.Context, *, query: str = "") -> None:
        async with self._user_lock(ctx.author.id):
            planner = await self._load(ctx.author.id)
        found = planner.search(query)
        if isinstance(found, OperationResult):
            await self._reply(ctx, found.message)
            return
        sinner, item = found
        slug = self.catalog.slug_for(sinner) or ""
        embed = build_item_embed(
            sinner=sinner,
            item=item,
            state=planner.record.peek_item_state(slug, item.id),
            catalog=self.catalog,
        )
        await ctx.reply(embed=embed, mention_author=False)

    # === Helpers ===

    def _slot_key(self, user_id: int) -> str:
        return f"{self.store.key}:{user_id}"

    def _open(self, user_id: int) -> ShardPlanner:
        return ShardPlanner(self.store.for_key(self._slot_key(user_id)), self.catalog)

    async def _load(self, user_id: int) -> ShardPlanner:
        return await asyncio.to_thread(self._open, user_id)

    def _resolve_item(self, query: str) -> Tuple[str, CatalogItem] | str:
        if not (query or "").strip():
            return SEARCH_EMPTY_ERROR
        resolved = self.catalog.resolve_item(query)
        if resolved is None:
            return SEARCH_MISS_ERROR
        return resolved

    async def _mutate(
        self,
        ctx: commands.Context,
        action: str,
        operation: Callable[[ShardPlanner], OperationResult],
        *,
        panel: bool = False,
    ) -> None:
        async with self._user_lock(ctx.author.id):
            planner = await self._load(ctx.author.id)
            result = await asyncio.to_thread(operation, planner)
        if not result.ok:
            await self._reply(ctx, result.message)
            return
        if panel:
            await self._reply_panel(ctx, planner, content=result.message)
        else:
            await self._reply(ctx, result.message)
        await self._log_action(action, ctx.author, ctx.channel, result.message)

    async def _toggle(
        self,
        ctx: commands.Context,
        action: str,
        query: str,
        operation: Callable[[ShardPlanner, str, str, bool], OperationResult],
    ) -> None:
        text, value = split_toggle(query)
        resolved = self._resolve_item(text)
        if isinstance(resolved, str):
            await self._reply(ctx, resolved)
            return
        sinner, item = resolved
        await self._mutate(ctx, action, lambda planner: operation(planner, sinner, item.id, value))

    async def _confirm(self, ctx: commands.Context, result: OperationResult) -> None:
        if not result.ok or result.proposal is None:
            await self._reply(ctx, result.message)
            return
        proposal = result.proposal
        owner_id = ctx.author.id

        async def on_confirm(interaction: discord.Interaction) -> None:
            outcome = await self.commit_proposal(owner_id, proposal)
            await interaction.response.edit_message(content=outcome.message, view=None)
            if outcome.ok:
                await self._log_action(proposal.action, interaction.user, interaction.channel, outcome.message)

        view = ConfirmView(owner_id=owner_id, on_confirm=on_confirm)
        view.message = await ctx.reply(proposal.description, view=view, mention_author=False)

    async def commit_proposal(self, user_id: int, proposal: Proposal) -> OperationResult:
        async with self._user_lock(user_id):
            planner = await self._load(user_id)
            return await asyncio.to_thread(planner.commit, proposal)

    async def _reply(self, ctx: commands.Context, message: str) -> None:
        await ctx.reply(message, mention_author=False)

    async def _reply_panel(
        self, ctx: commands.Context, planner: ShardPlanner, *, content: str | None = None
    ) -> None:
        embed = build_panel_embed(
            projection=planner.projection(),
            record=planner.record,
            catalog=self.catalog,
        )
        await ctx.reply(content=content, embed=embed, mention_author=False)

    async def _log_action(
        self,
        action: str,
        user: discord.abc.User,
        channel: discord.abc.Messageable | None,
        detail: str,
    ) -> None:
        guild = getattr(channel, "guild", None)
        log.info(
            "md action",
            extra={
                "action": action,
                "user": getattr(user, "id", None),
                "detail": detail,
                "channel": getattr(channel, "id", None),
            },
        )
        await runtime.send_log_message(
            action_line(
                action,
                guild,
                getattr(user, "id", None),
                detail,
                cid=getattr(channel, "id", None),
            )
        )

    def _user_lock(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock


__all__ = ["ShardPlannerCog", "build_default_store", "split_toggle"]
