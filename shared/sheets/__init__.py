"""Google Sheets helpers (import side-effect free; gspread loads on first use)."""

from __future__ import annotations

import importlib
from typing import Any

__all__ = ["get_client", "get_worksheet", "reset_cache", "with_backoff"]


def __getattr__(name: str) -> Any:
    if name not in __all__:
        raise AttributeError(f"module 'shared.sheets' has no attribute {name!r}")
    value = getattr(importlib.import_module("shared.sheets.core"), name)
    globals()[name] = value
    return value
