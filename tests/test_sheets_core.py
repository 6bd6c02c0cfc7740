from types import SimpleNamespace

import pytest
from gspread.exceptions import WorksheetNotFound

from shared import config as config_mod
from shared.sheets import core


class _RateLimited(Exception):
    pass


@pytest.fixture(autouse=True)
def _isolated(monkeypatch):
    monkeypatch.setattr(config_mod, "_CONFIG", {})
    monkeypatch.setattr(core.time, "sleep", lambda _seconds: None)
    core.reset_cache()
    yield
    core.reset_cache()


def test_with_backoff_retries_transient_errors(monkeypatch):
    monkeypatch.setattr(core, "_should_retry", lambda exc: isinstance(exc, _RateLimited))
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise _RateLimited("quota")
        return "ok"

    assert core.with_backoff(flaky) == "ok"
    assert len(calls) == 3


def test_with_backoff_raises_permanent_errors():
    calls = []

    def broken():
        calls.append(1)
        raise ValueError("bad range")

    with pytest.raises(ValueError):
        core.with_backoff(broken)
    assert len(calls) == 1


def test_missing_credentials_is_config_error(monkeypatch):
    monkeypatch.delenv("GSPREAD_CREDENTIALS", raising=False)

    with pytest.raises(config_mod.ShardPlannerConfigError):
        core.get_client()


def test_credentials_may_be_a_file_path(monkeypatch, tmp_path):
    path = tmp_path / "sa.json"
    path.write_text('{"type": "service_account"}', encoding="utf-8")
    monkeypatch.setenv("GSPREAD_CREDENTIALS", str(path))
    seen = {}
    monkeypatch.setattr(
        core.gspread, "service_account_from_dict", lambda creds: seen.setdefault("creds", creds)
    )

    core.get_client()

    assert seen["creds"] == {"type": "service_account"}


def test_missing_tab_is_created_with_headers(monkeypatch):
    created = SimpleNamespace(rows=[])
    created.append_row = lambda values, value_input_option=None: created.rows.append(values)

    class _Spreadsheet:
        def worksheet(self, name):
            raise WorksheetNotFound(name)

        def add_worksheet(self, title, rows, cols):
            created.title = title
            created.cols = cols
            return created

    client = SimpleNamespace(open_by_key=lambda sheet_id: _Spreadsheet())
    monkeypatch.setattr(core, "get_client", lambda: client)

    worksheet = core.get_worksheet("sheet-1", "ShardState", headers=["key", "value", "updated_iso"])

    assert worksheet is created
    assert created.title == "ShardState"
    assert created.cols == 3
    assert created.rows == [["key", "value", "updated_iso"]]
    assert core.get_worksheet("sheet-1", "ShardState") is created
