"""Embed and component helpers for the shard planner."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Sequence

import discord

from shared import theme

from .catalog import Catalog, CatalogItem
from .goals import goal_items
from .projections import (
    PLACEHOLDER,
    Projection,
    SinnerOverview,
    format_actual_average,
    format_boxes,
    format_runs,
    format_runs_left_actual,
    format_runs_left_theoretical,
    stash_expected_shards,
    weekly_bonus_expected,
)
from .state import ItemProgressState, ProgressRecord, RunLogEntry

log = logging.getLogger("md.shards.views")

FOOTER_TEXT = "Type !help md for the planner commands"
CONFIRM_TIMEOUT = 60.0
HISTORY_LIMIT = 10
PROGRESS_SEGMENTS = 10


def build_panel_embed(
    *,
    projection: Projection,
    record: ProgressRecord,
    catalog: Catalog,
    author_name: str | None = None,
    author_icon_url: str | None = None,
) -> discord.Embed:
    constants = catalog.constants
    colour = theme.colors.done if projection.target_reached else theme.colors.planner
    embed = discord.Embed(colour=colour, description=_progress_bar(projection))
    embed.set_author(
        name=author_name or f"MD Shards — {projection.sinner}",
        icon_url=author_icon_url,
    )
    embed.add_field(
        name="Shards",
        value=(
            f"Current: **{projection.current:,}** / {projection.target:,}\n"
            f"Remaining: **{projection.remaining:,}**"
        ),
        inline=False,
    )

    runs_line = format_runs_left_theoretical(projection)
    if not projection.target_reached:
        runs_line += f" (≈ {projection.runs_left_theoretical_ceil} runs)"
    embed.add_field(
        name="Expected",
        value=(
            f"Per run: {projection.expected_per_run} shards "
            f"({constants.boxes_per_run} boxes × {constants.avg_shards_per_box})\n"
            f"Runs left: {runs_line}\n"
            f"Boxes needed: {format_boxes(projection.boxes_needed_avg)}\n"
            f"Modules needed: {projection.modules_needed:,}"
        ),
        inline=False,
    )
    embed.add_field(
        name="Your average",
        value=(
            f"Per run: {format_actual_average(projection)}\n"
            f"Runs left: {format_runs_left_actual(projection)}"
        ),
        inline=False,
    )
    embed.add_field(
        name="Totals",
        value=(
            f"Runs logged: {record.runs_completed:,}\n"
            f"Shards from runs: {record.total_shards_gained:,}\n"
            f"Bonus shards: {record.bonus_shards_total:,}"
        ),
        inline=True,
    )
    embed.add_field(
        name="Stash",
        value=(
            f"Unopened boxes: {record.unopened_boxes:,} "
            f"(≈ {stash_expected_shards(record.unopened_boxes, constants):,} shards)\n"
            f"Weekly bonus: {constants.weekly_bonus_boxes} boxes "
            f"(≈ {weekly_bonus_expected(constants):,} shards)"
        ),
        inline=True,
    )
    _apply_footer(embed)
    return embed


def build_overview_embed(rows: Sequence[SinnerOverview], *, active: str) -> discord.Embed:
    embed = discord.Embed(colour=theme.colors.planner)
    embed.set_author(name="MD Shards — All Sinners")
    lines = []
    for row in rows:
        marker = "▶ " if row.sinner == active else ""
        if row.done:
            tail = "target reached"
        else:
            tail = (
                f"{row.remaining:,} left · {format_runs(row.runs_left)} runs · "
                f"{format_boxes(row.boxes_needed)} boxes"
            )
        lines.append(f"{marker}**{row.sinner}**: {row.current:,}/{row.target:,} · {tail}")
    embed.description = "\n".join(lines) or PLACEHOLDER
    _apply_footer(embed)
    return embed


def build_goals_embed(
    *, record: ProgressRecord, catalog: Catalog, sinner: str
) -> discord.Embed:
    slug = catalog.slug_for(sinner) or ""
    embed = discord.Embed(colour=theme.colors.planner)
    embed.set_author(name=f"Goals — {sinner}")
    items = goal_items(record, catalog, sinner)
    if not items:
        goal = record.sinner_goals.get(sinner)
        counts = f"{goal.count000}× 000, {goal.count00}× 00" if goal else PLACEHOLDER
        embed.description = (
            "No ID or EGO goals yet. Add one with `!md goal <name>`.\n"
            f"Count-based goal: {counts}"
        )
    else:
        lines = []
        for item in items:
            state = record.peek_item_state(slug, item.id)
            flag = "" if state.enabled else " *(excluded)*"
            lines.append(f"• {item.name} — {catalog.rarity_label(item)}{flag}")
        embed.description = "\n".join(lines)
    embed.add_field(
        name="Target",
        value=f"{record.target_for(sinner, catalog.constants.default_target_shards):,} shards",
        inline=False,
    )
    _apply_footer(embed)
    return embed


def build_item_embed(
    *, sinner: str, item: CatalogItem, state: ItemProgressState, catalog: Catalog
) -> discord.Embed:
    embed = discord.Embed(colour=theme.colors.planner, title=item.name)
    embed.set_author(name=f"{sinner} · {item.kind}")
    embed.add_field(name="Rarity", value=catalog.rarity_label(item), inline=True)
    embed.add_field(name="Owned", value="Yes" if state.owned else "No", inline=True)
    goal_text = "No"
    if state.goal:
        goal_text = "Yes" if state.enabled else "Yes (excluded)"
    embed.add_field(name="Goal", value=goal_text, inline=True)
    embed.set_footer(text=f"id: {item.id}")
    return embed


def build_history_embed(
    entries: Iterable[RunLogEntry], *, limit: int = HISTORY_LIMIT
) -> discord.Embed:
    recent = list(entries)[-limit:]
    embed = discord.Embed(colour=theme.colors.planner)
    embed.set_author(name="MD Shards — Run History")
    if not recent:
        embed.description = "No runs logged yet."
    else:
        embed.description = "\n".join(
            f"#{entry.run_number} · +{entry.shards_gained} · {entry.sinner or PLACEHOLDER}"
            f" · {human_time(entry.timestamp) or PLACEHOLDER}"
            for entry in reversed(recent)
        )
    _apply_footer(embed)
    return embed


def _progress_bar(projection: Projection, segments: int = PROGRESS_SEGMENTS) -> str:
    if projection.target <= 0:
        ratio = 1.0
    else:
        ratio = projection.current / projection.target
    ratio = max(0.0, min(ratio, 1.0))
    filled = int(ratio * segments)
    return f"{'🟩' * filled}{'⬜' * (segments - filled)} {ratio * 100:.0f}%"


def _apply_footer(embed: discord.Embed) -> None:
    embed.set_footer(text=FOOTER_TEXT)


def human_time(iso_value: str) -> str:
    if not iso_value:
        return ""
    try:
        dt = datetime.fromisoformat(iso_value.replace("Z", "+00:00"))
    except ValueError:
        return iso_value
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M UTC")


class ConfirmView(discord.ui.View):
    """Confirm/Cancel buttons for a destructive action; only the owner may click."""

    def __init__(
        self,
        *,
        owner_id: int,
        on_confirm: Callable[[discord.Interaction], Awaitable[None]],
        timeout: float = CONFIRM_TIMEOUT,
    ) -> None:
        super().__init__(timeout=timeout)
        self.owner_id = owner_id
        self._on_confirm = on_confirm
        self.message: discord.Message | None = None
        self.resolved = False

    async def interaction_check(self, interaction: discord.Interaction) -> bool:  # type: ignore[override]
        if interaction.user.id != self.owner_id:
            await interaction.response.send_message(
                "Only the person who asked can confirm this.", ephemeral=True
            )
            return False
        return True

    @discord.ui.button(label="Confirm", style=discord.ButtonStyle.danger)
    async def confirm(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        await self.handle_confirm(interaction)

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.secondary)
    async def cancel(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        await self.handle_cancel(interaction)

    async def handle_confirm(self, interaction: discord.Interaction) -> None:
        if self.resolved:
            return
        self.resolved = True
        self.stop()
        await self._on_confirm(interaction)

    async def handle_cancel(self, interaction: discord.Interaction) -> None:
        if self.resolved:
            return
        self.resolved = True
        self.stop()
        await interaction.response.edit_message(content="Cancelled.", embed=None, view=None)

    async def on_timeout(self) -> None:
        if self.resolved:
            return
        self.resolved = True
        if self.message is not None:
            try:
                await self.message.edit(content="Timed out; nothing changed.", view=None)
            except discord.HTTPException as exc:
                log.debug("confirm prompt edit failed", extra={"error": str(exc)})


__all__ = [
    "CONFIRM_TIMEOUT",
    "ConfirmView",
    "build_goals_embed",
    "build_history_embed",
    "build_item_embed",
    "build_overview_embed",
    "build_panel_embed",
    "human_time",
]
