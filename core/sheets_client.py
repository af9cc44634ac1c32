"""Google Sheets implementation of the battery log row store.

This module centralises all direct interactions with the Google Sheets API.
It provides the small surface the rest of the backend relies on
(:meth:`GoogleSheetsRowStore.read_all_raw` and
:meth:`GoogleSheetsRowStore.append_row`) without callers needing to know about
HTTP requests or googleapiclient internals.

* Worksheet titles are always quoted according to A1 notation rules and the
  readable window is fixed to columns ``A:AZ``.
* The API service is built lazily, so the HTTP server can start (and serve
  auth routes) while Sheets credentials are still missing.
* Every failure, whether configuration, credentials or transport, surfaces as
  :class:`~core.errors.StoreUnavailable`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from core.errors import StoreUnavailable
from core.google_credentials import (
    CredentialsFileInvalidError,
    credentials_from_values,
    load_service_account_data,
)
from core.row_store import MemoryRowStore, RowStore
from settings import DEFAULT_WORKSHEET_TITLE, SheetSettings

logger = logging.getLogger(__name__)

SCOPES: Sequence[str] = ("https://www.googleapis.com/auth/spreadsheets",)
COLUMN_WINDOW = "A:AZ"


def _normalise_title(title: str) -> str:
    """Return a worksheet title quoted according to A1 notation rules."""

    safe = (title or "").strip() or DEFAULT_WORKSHEET_TITLE
    safe = safe.replace("'", "''")
    return f"'{safe}'"


def a1_range(title: str, range_spec: str = COLUMN_WINDOW) -> str:
    return f"{_normalise_title(title)}!{range_spec}"


def _load_credentials(settings: SheetSettings):
    try:
        if settings.credentials_file:
            info = load_service_account_data(Path(settings.credentials_file))
        else:
            info = credentials_from_values(settings.client_email, settings.private_key)
    except CredentialsFileInvalidError as exc:
        raise StoreUnavailable(f"Google Sheets credentials are invalid: {exc}") from exc

    try:
        return service_account.Credentials.from_service_account_info(info, scopes=list(SCOPES))
    except (ValueError, GoogleAuthError) as exc:
        raise StoreUnavailable(f"Google Sheets credentials are invalid: {exc}") from exc


def _build_service(settings: SheetSettings):
    credentials = _load_credentials(settings)
    try:
        return build("sheets", "v4", credentials=credentials, cache_discovery=False)
    except (HttpError, GoogleAuthError, OSError) as exc:  # pragma: no cover - network guard
        raise StoreUnavailable(f"Google Sheets client could not be initialised: {exc}") from exc


class GoogleSheetsRowStore(RowStore):
    """Row store backed by one worksheet of a Google spreadsheet."""

    def __init__(self, settings: SheetSettings, *, service=None) -> None:
        self._settings = settings
        self._service = service

    @property
    def spreadsheet_id(self) -> str:
        return self._settings.spreadsheet_id

    @property
    def worksheet_title(self) -> str:
        return self._settings.worksheet_title or DEFAULT_WORKSHEET_TITLE

    def _ensure_config(self) -> None:
        if not self._settings.spreadsheet_id:
            raise StoreUnavailable("Server misconfigured: missing SHEET_ID / SPREADSHEET_ID")

    def _values_api(self):
        self._ensure_config()
        if self._service is None:
            self._service = _build_service(self._settings)
        return self._service.spreadsheets().values()

    # ------------------------------------------------------------------
    # RowStore API
    # ------------------------------------------------------------------
    def read_all_raw(self) -> List[List[str]]:
        """Return every row of the worksheet, header first."""

        values_api = self._values_api()
        try:
            response = values_api.get(
                spreadsheetId=self.spreadsheet_id,
                range=a1_range(self.worksheet_title),
            ).execute()
        except (HttpError, GoogleAuthError, OSError) as exc:
            logger.error("Reading worksheet %s failed: %s", self.worksheet_title, exc)
            raise StoreUnavailable(f"Failed to read worksheet: {exc}") from exc

        if not isinstance(response, dict):
            raise StoreUnavailable("Unexpected response shape from Google Sheets")
        return [
            ["" if cell is None else str(cell) for cell in row]
            for row in response.get("values", [])
        ]

    def append_row(self, values: Sequence[Any]) -> None:
        """Append ``values`` as one row after the worksheet's data range."""

        if not isinstance(values, (list, tuple)):
            raise TypeError("append_row expects a sequence of cell values")
        values_api = self._values_api()
        body = {"values": [list(values)]}
        try:
            response = values_api.append(
                spreadsheetId=self.spreadsheet_id,
                range=a1_range(self.worksheet_title),
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body=body,
            ).execute()
        except (HttpError, GoogleAuthError, OSError) as exc:
            logger.error("Appending to worksheet %s failed: %s", self.worksheet_title, exc)
            raise StoreUnavailable(f"Failed to append row: {exc}") from exc

        updated = (response or {}).get("updates", {}).get("updatedRange")
        logger.info("Appended row to %s (%s)", self.worksheet_title, updated or "range unknown")


def build_row_store(settings: SheetSettings, *, service=None) -> RowStore:
    """Factory used by the application to construct the configured store."""

    if settings.uses_memory_store:
        logger.warning("Using the in-memory row store; data will not be persisted")
        return MemoryRowStore()
    return GoogleSheetsRowStore(settings, service=service)


__all__ = [
    "COLUMN_WINDOW",
    "GoogleSheetsRowStore",
    "SCOPES",
    "a1_range",
    "build_row_store",
]
