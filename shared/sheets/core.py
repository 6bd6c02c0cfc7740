"""gspread access for the sheet-backed shard state store."""

from __future__ import annotations

import json
import logging
import random
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, TypeVar

import gspread
from gspread import Worksheet
from gspread.exceptions import APIError, WorksheetNotFound

from shared.config import ShardPlannerConfigError, cfg

try:  # pragma: no cover - requests ships with gspread's auth stack
    from requests import exceptions as requests_exceptions
except ImportError:  # pragma: no cover
    requests_exceptions = None


log = logging.getLogger("md.sheets.core")

_CLIENT_LOCK = threading.Lock()
_CLIENT: Optional[gspread.Client] = None


@dataclass
class _CachedTab:
    worksheet: Worksheet
    expires_at: float


_TAB_CACHE: Dict[Tuple[str, str], _CachedTab] = {}

_RETRY_STATUS = {408, 425, 429, 500, 502, 503, 504}
_NEW_TAB_ROWS = 200

T = TypeVar("T")


def reset_cache() -> None:
    """Forget the client and every cached worksheet handle."""

    global _CLIENT
    with _CLIENT_LOCK:
        _CLIENT = None
    _TAB_CACHE.clear()


def _load_credentials() -> Mapping[str, Any]:
    raw = str(cfg.get("GSPREAD_CREDENTIALS") or "").strip()
    if not raw:
        raise ShardPlannerConfigError("GSPREAD_CREDENTIALS is required for the sheets backend")
    if not raw.startswith("{"):
        # a path to the service-account file
        try:
            raw = Path(raw).read_text(encoding="utf-8")
        except OSError as exc:
            raise ShardPlannerConfigError(f"cannot read GSPREAD_CREDENTIALS file: {exc}") from exc
    try:
        creds = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ShardPlannerConfigError("GSPREAD_CREDENTIALS must be service-account JSON") from exc
    if not isinstance(creds, Mapping):
        raise ShardPlannerConfigError("GSPREAD_CREDENTIALS JSON must be an object")
    return creds


def get_client() -> gspread.Client:
    """Return the shared gspread client, authorising on first use."""

    global _CLIENT
    with _CLIENT_LOCK:
        if _CLIENT is None:
            log.debug("authorising gspread client")
            _CLIENT = gspread.service_account_from_dict(_load_credentials())
        return _CLIENT


def _should_retry(exc: Exception) -> bool:
    if isinstance(exc, APIError):
        resp = getattr(exc, "response", None)
        if getattr(resp, "status_code", None) in _RETRY_STATUS:
            return True
        blob = f"{getattr(resp, 'text', '') or ''} {exc}".lower()
        return "rate limit" in blob or "quota" in blob
    if requests_exceptions is not None and isinstance(exc, requests_exceptions.RequestException):
        return True
    return False


def with_backoff(
    func: Callable[[], T], *, retries: int = 4, base_delay: float = 0.5, max_delay: float = 8.0
) -> T:
    """Call ``func``, retrying transient Sheets failures with jittered backoff."""

    attempt = 0
    delay = base_delay
    while True:
        try:
            return func()
        except Exception as exc:
            attempt += 1
            if attempt > retries or not _should_retry(exc):
                raise
            log.warning(
                "sheets call failed; retrying",
                extra={"attempt": attempt, "retries": retries, "error": str(exc)},
            )
            time.sleep(min(max_delay, delay) + random.uniform(0.0, base_delay))
            delay *= 2


def get_worksheet(
    sheet_id: str,
    tab_name: str,
    *,
    headers: Sequence[str] | None = None,
    ttl: float = 300.0,
) -> Worksheet:
    """Open ``tab_name`` in ``sheet_id``, cached for ``ttl`` seconds.

    When the tab does not exist and ``headers`` are given, the tab is created
    with that header row.
    """

    now = time.monotonic()
    cache_key = (sheet_id, tab_name)
    cached = _TAB_CACHE.get(cache_key)
    if cached is not None and cached.expires_at > now:
        return cached.worksheet

    spreadsheet = with_backoff(lambda: get_client().open_by_key(sheet_id))
    try:
        worksheet = with_backoff(lambda: spreadsheet.worksheet(tab_name))
    except WorksheetNotFound:
        if not headers:
            raise
        log.info("creating shard state tab", extra={"tab": tab_name})
        worksheet = with_backoff(
            lambda: spreadsheet.add_worksheet(title=tab_name, rows=_NEW_TAB_ROWS, cols=len(headers))
        )
        with_backoff(lambda: worksheet.append_row(list(headers), value_input_option="RAW"))

    if ttl > 0:
        _TAB_CACHE[cache_key] = _CachedTab(worksheet=worksheet, expires_at=now + ttl)
    return worksheet


__all__ = ["get_client", "get_worksheet", "reset_cache", "with_backoff"]
