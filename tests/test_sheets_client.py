from __future__ import annotations

from typing import Any, Dict, List

import pytest
from googleapiclient.errors import HttpError

from core.errors import StoreUnavailable
from core.row_store import MemoryRowStore
from core.sheets_client import GoogleSheetsRowStore, a1_range, build_row_store
from settings import MEMORY_SPREADSHEET_ID, SheetSettings


class _FakeRequest:
    def __init__(self, callback):
        self._callback = callback

    def execute(self):
        return self._callback()


class _FakeResponse(dict):
    def __init__(self, status: int) -> None:
        super().__init__()
        self.status = status
        self.reason = "error"


class _FakeValues:
    def __init__(self, service: "_FakeService") -> None:
        self._service = service

    def get(self, spreadsheetId: str, range: str):  # noqa: N803 - API compatibility
        self._service.calls.append(("get", spreadsheetId, range))
        return _FakeRequest(self._service._handle_get)

    def append(self, spreadsheetId: str, range: str, valueInputOption: str, insertDataOption: str, body: Dict[str, Any]):  # noqa: N803
        self._service.calls.append(("append", spreadsheetId, range, valueInputOption, insertDataOption))
        return _FakeRequest(lambda: self._service._handle_append(body))


class _FakeSpreadsheets:
    def __init__(self, service: "_FakeService") -> None:
        self._service = service

    def values(self) -> _FakeValues:
        return _FakeValues(self._service)


class _FakeService:
    def __init__(self, rows: List[List[Any]] | None = None, *, fail_with: int | None = None) -> None:
        self.sheet_rows: List[List[Any]] = [list(row) for row in rows] if rows else []
        self.calls: List[tuple] = []
        self.fail_with = fail_with

    def spreadsheets(self) -> _FakeSpreadsheets:
        return _FakeSpreadsheets(self)

    def _raise_if_failing(self) -> None:
        if self.fail_with is not None:
            raise HttpError(_FakeResponse(self.fail_with), b"{}")

    def _handle_get(self) -> Dict[str, Any]:
        self._raise_if_failing()
        if not self.sheet_rows:
            return {"range": "'Sheet1'!A1:AZ1000"}
        return {"values": [list(row) for row in self.sheet_rows]}

    def _handle_append(self, body: Dict[str, Any]) -> Dict[str, Any]:
        self._raise_if_failing()
        self.sheet_rows.extend(list(row) for row in body["values"])
        return {"updates": {"updatedRange": f"'Sheet1'!A{len(self.sheet_rows)}"}}


def _settings(**overrides: Any) -> SheetSettings:
    values = {"spreadsheet_id": "SHEET", "worksheet_title": "Sheet1"}
    values.update(overrides)
    return SheetSettings(**values)


def test_a1_range_quotes_titles() -> None:
    assert a1_range("Sheet1") == "'Sheet1'!A:AZ"
    assert a1_range("Bob's log") == "'Bob''s log'!A:AZ"
    assert a1_range("") == "'Sheet1'!A:AZ"


def test_read_all_raw_stringifies_cells() -> None:
    service = _FakeService([["id", "capacity"], ["B1", 4000]])
    store = GoogleSheetsRowStore(_settings(), service=service)

    assert store.read_all_raw() == [["id", "capacity"], ["B1", "4000"]]
    assert service.calls == [("get", "SHEET", "'Sheet1'!A:AZ")]


def test_read_all_raw_on_empty_sheet() -> None:
    store = GoogleSheetsRowStore(_settings(), service=_FakeService())

    assert store.read_all_raw() == []
    assert store.read_header() == []
    assert store.read_all_as_objects() == []


def test_append_row_uses_raw_insert_rows() -> None:
    service = _FakeService([["id", "date"]])
    store = GoogleSheetsRowStore(_settings(worksheet_title="Logs"), service=service)

    store.append_row(["B1", "2025-01-01"])

    assert service.calls[-1] == ("append", "SHEET", "'Logs'!A:AZ", "RAW", "INSERT_ROWS")
    assert store.read_all_as_objects() == [{"id": "B1", "date": "2025-01-01"}]


def test_http_errors_become_store_unavailable() -> None:
    store = GoogleSheetsRowStore(_settings(), service=_FakeService(fail_with=403))

    with pytest.raises(StoreUnavailable):
        store.read_all_raw()
    with pytest.raises(StoreUnavailable):
        store.append_row(["B1"])


def test_missing_spreadsheet_id_is_reported() -> None:
    store = GoogleSheetsRowStore(_settings(spreadsheet_id=""), service=_FakeService())

    with pytest.raises(StoreUnavailable) as excinfo:
        store.read_all_raw()

    assert "SHEET_ID" in str(excinfo.value)


def test_missing_credentials_are_reported_on_first_use() -> None:
    store = GoogleSheetsRowStore(_settings(client_email="", private_key=""))

    with pytest.raises(StoreUnavailable) as excinfo:
        store.read_all_raw()

    assert "credentials" in str(excinfo.value)


def test_build_row_store_selects_backend() -> None:
    assert isinstance(build_row_store(_settings(spreadsheet_id=MEMORY_SPREADSHEET_ID)), MemoryRowStore)
    assert isinstance(build_row_store(_settings()), GoogleSheetsRowStore)
