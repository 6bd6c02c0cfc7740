"""Theme helpers for embeds."""

from __future__ import annotations

import discord

from shared.config import cfg

__all__ = ["colors"]


class _ThemeColors:
    __slots__ = ()

    @staticmethod
    def _resolve(name: str, default: int) -> discord.Colour:
        key = f"COLOR_{name}".upper()
        raw = cfg.get(key)
        if isinstance(raw, int):
            return discord.Colour(int(raw))
        if isinstance(raw, str):
            text = raw.strip()
            if text.startswith("#"):
                text = text[1:]
            if text.lower().startswith("0x"):
                text = text[2:]
            try:
                return discord.Colour(int(text, 16))
            except ValueError:
                return discord.Colour(default)
        return discord.Colour(default)

    @property
    def planner(self) -> discord.Colour:
        return self._resolve("planner", 0xC9A227)

    @property
    def done(self) -> discord.Colour:
        return self._resolve("done", 0x2ECC71)

    @property
    def warning(self) -> discord.Colour:
        return self._resolve("warning", 0xE67E22)


colors = _ThemeColors()
