"""Persistence for the progress record: load/merge/save over a key-value slot."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from shared.sheets import core as sheets_core

from .catalog import Catalog
from .state import ProgressRecord, create_initial_record, merge_record

log = logging.getLogger("md.shards.store")

DEFAULT_STATE_KEY = "mdShardCalculatorState_v1"
SHEET_HEADERS: List[str] = ["key", "value", "updated_iso"]


class KeyValueBackend(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class ShardStateBackendError(RuntimeError):
    """Raised by backends when the underlying storage is unusable."""


class MemoryBackend:
    """Dict-backed slot storage."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileBackend:
    """All slots in one JSON object on disk, rewritten atomically."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ShardStateBackendError(f"state file {self.path} is not valid JSON") from exc
        if not isinstance(data, dict):
            raise ShardStateBackendError(f"state file {self.path} must hold a JSON object")
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, ensure_ascii=False, indent=2, sort_keys=True)
                os.replace(tmp_name, self.path)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
                raise


class SheetsBackend:
    """Slots stored as rows of a worksheet with ``key | value | updated_iso``."""

    def __init__(self, sheet_id: str, tab_name: str) -> None:
        self.sheet_id = sheet_id
        self.tab_name = tab_name
        self._lock = threading.Lock()

    def _worksheet(self):
        return sheets_core.get_worksheet(self.sheet_id, self.tab_name, headers=SHEET_HEADERS)

    def _matrix(self, worksheet) -> Sequence[Sequence[Any]]:
        matrix = sheets_core.with_backoff(lambda: worksheet.get_all_values())
        if not matrix:
            raise ShardStateBackendError("shard state worksheet is empty; headers required")
        header = [str(cell or "").strip().lower() for cell in matrix[0]]
        if header[: len(SHEET_HEADERS)] != SHEET_HEADERS:
            raise ShardStateBackendError("shard state headers do not match SHEET_HEADERS")
        return matrix

    @staticmethod
    def _find_row(matrix: Sequence[Sequence[Any]], key: str) -> int | None:
        for row_number, row in enumerate(matrix[1:], start=2):
            if row and str(row[0] or "").strip() == key:
                return row_number
        return None

    def get(self, key: str) -> Optional[str]:
        worksheet = self._worksheet()
        matrix = self._matrix(worksheet)
        row_number = self._find_row(matrix, key)
        if row_number is None:
            return None
        row = matrix[row_number - 1]
        return str(row[1]) if len(row) > 1 and row[1] not in (None, "") else None

    def set(self, key: str, value: str) -> None:
        stamp = datetime.now(timezone.utc).replace(microsecond=0).isoformat()
        payload = [key, value, stamp]
        with self._lock:
            worksheet = self._worksheet()
            matrix = self._matrix(worksheet)
            row_number = self._find_row(matrix, key)
            if row_number is None:
                sheets_core.with_backoff(
                    lambda: worksheet.append_row(payload, value_input_option="RAW")
                )
                return
            sheets_core.with_backoff(
                lambda: worksheet.update(
                    f"A{row_number}:C{row_number}", [payload], value_input_option="RAW"
                )
            )


class StateStore:
    """Loads and saves one :class:`ProgressRecord` under a named slot.

    Failures never propagate: ``load`` falls back to the default record and
    ``save`` reports ``False``.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        catalog: Catalog,
        key: str = DEFAULT_STATE_KEY,
    ) -> None:
        self.backend = backend
        self.catalog = catalog
        self.key = key

    def default_record(self) -> ProgressRecord:
        return create_initial_record(self.catalog)

    def load(self) -> ProgressRecord:
        try:
            raw = self.backend.get(self.key)
        except Exception:
            log.exception("Failed to load shard state", extra={"key": self.key})
            return self.default_record()
        if not raw:
            return self.default_record()
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError) as exc:
            log.warning(
                "Failed to parse shard state; using defaults",
                extra={"key": self.key, "error": str(exc)},
            )
            return self.default_record()
        if not isinstance(parsed, Mapping):
            log.warning(
                "Shard state is not an object; using defaults",
                extra={"key": self.key, "kind": type(parsed).__name__},
            )
            return self.default_record()
        try:
            return merge_record(parsed, self.catalog)
        except (ArithmeticError, TypeError, ValueError) as exc:
            log.warning(
                "Failed to merge shard state; using defaults",
                extra={"key": self.key, "error": str(exc)},
            )
            return self.default_record()

    def save(self, record: ProgressRecord) -> bool:
        try:
            blob = json.dumps(record.to_payload(), ensure_ascii=False)
            self.backend.set(self.key, blob)
        except Exception:
            log.exception("Failed to save shard state", extra={"key": self.key})
            return False
        return True

    def for_key(self, key: str) -> "StateStore":
        """Return a store over the same backend for another slot."""

        return StateStore(self.backend, self.catalog, key=key)


def build_backend(
    kind: str,
    *,
    path: str | Path | None = None,
    sheet_id: str | None = None,
    tab_name: str | None = None,
) -> KeyValueBackend:
    """Construct the configured backend (``file``, ``sheets`` or ``memory``)."""

    normalized = (kind or "file").strip().lower()
    if normalized == "memory":
        return MemoryBackend()
    if normalized == "sheets":
        if not sheet_id or not tab_name:
            raise ShardStateBackendError("sheets backend requires a sheet id and tab name")
        return SheetsBackend(sheet_id, tab_name)
    if normalized == "file":
        if not path:
            raise ShardStateBackendError("file backend requires a path")
        return JsonFileBackend(path)
    raise ShardStateBackendError(f"unknown state backend: {kind!r}")


__all__ = [
    "DEFAULT_STATE_KEY",
    "SHEET_HEADERS",
    "JsonFileBackend",
    "KeyValueBackend",
    "MemoryBackend",
    "SheetsBackend",
    "ShardStateBackendError",
    "StateStore",
    "build_backend",
]
