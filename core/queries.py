"""Read-only queries and CSV export over stored battery log rows."""
from __future__ import annotations

import csv
import io
import logging
import re
from datetime import datetime, time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from core.errors import NotConfigured, ValidationError
from core.row_mapper import ID_KEY, LEGACY_COLUMNS, normalise_key, resolve_column
from core.row_store import RowStore, rows_from_values

logger = logging.getLogger(__name__)

# Range comparisons happen at a fixed time of day so that no boundary date can
# slip across midnight.
COMPARISON_TIME = time(12, 0)

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d-%m-%Y", "%d/%m/%Y", "%d.%m.%Y")
_ISO_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ]")


def parse_calendar_date(value: Any) -> Optional[datetime]:
    """Parse ``value`` as a local calendar date pinned to :data:`COMPARISON_TIME`."""

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    match = _ISO_PREFIX.match(text)
    if match:
        text = match.group(1)
    for fmt in _DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        return datetime.combine(parsed, COMPARISON_TIME)
    return None


def _header_keys(values: Sequence[Sequence[Any]]) -> List[str]:
    if not values:
        return []
    return [str(cell).strip() or f"col{index}" for index, cell in enumerate(values[0])]


def list_rows(store: RowStore) -> List[Dict[str, str]]:
    return store.read_all_as_objects()


def _id_key(rows: Sequence[Mapping[str, str]]) -> Optional[str]:
    if not rows:
        return None
    keys = list(rows[0].keys())
    index = resolve_column(keys, ID_KEY)
    return keys[index] if index is not None else None


def filter_by_battery_id(rows: Sequence[Dict[str, str]], battery_id: Any) -> List[Dict[str, str]]:
    """Return rows whose primary id column equals ``battery_id`` (trimmed)."""

    target = "" if battery_id is None else str(battery_id).strip()
    key = _id_key(rows)
    if key is None or not target:
        return []
    return [row for row in rows if str(row.get(key, "")).strip() == target]


def search_by_battery_id(store: RowStore, battery_id: Any) -> List[Dict[str, str]]:
    return filter_by_battery_id(store.read_all_as_objects(), battery_id)


def find_date_column(columns: Iterable[str]) -> Optional[str]:
    """Return the column named ``date`` or, failing that, the first containing it."""

    columns = list(columns)
    for column in columns:
        if normalise_key(column) == "date":
            return column
    for column in columns:
        if "date" in normalise_key(column):
            return column
    return None


def _parse_bound(value: Optional[str], name: str) -> Optional[datetime]:
    if value is None or not str(value).strip():
        return None
    parsed = parse_calendar_date(value)
    if parsed is None:
        raise ValidationError(f"{name} is not a valid date: {value}")
    return parsed


def filter_by_date(
    rows: Sequence[Dict[str, str]],
    *,
    header: Optional[Sequence[str]] = None,
    date: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> List[Dict[str, str]]:
    """Filter ``rows`` by a single date or by an inclusive date range.

    ``header`` supplies the column names when ``rows`` may be empty.
    """

    has_single = date is not None and str(date).strip() != ""
    lower = _parse_bound(date_from, "dateFrom")
    upper = _parse_bound(date_to, "dateTo")
    if not has_single and lower is None and upper is None:
        raise ValidationError("Provide date or dateFrom/dateTo query parameters")

    columns = list(header) if header is not None else (list(rows[0].keys()) if rows else [])
    column = find_date_column(columns)
    if column is None:
        if not columns:
            return []
        raise NotConfigured("Server misconfigured: no date column found in the worksheet header")

    if has_single:
        wanted_text = str(date).strip()
        wanted = parse_calendar_date(wanted_text)
        matched = []
        for row in rows:
            cell = str(row.get(column, "")).strip()
            parsed = parse_calendar_date(cell)
            if wanted is not None and parsed is not None:
                if parsed.date() == wanted.date():
                    matched.append(row)
            elif cell == wanted_text:
                matched.append(row)
        return matched

    matched = []
    for row in rows:
        parsed = parse_calendar_date(row.get(column))
        if parsed is None:
            continue
        if lower is not None and parsed < lower:
            continue
        if upper is not None and parsed > upper:
            continue
        matched.append(row)
    return matched


def rows_by_date(
    store: RowStore,
    *,
    date: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> List[Dict[str, str]]:
    values = store.read_all_raw()
    header = _header_keys(values)
    rows = rows_from_values(values)
    return filter_by_date(rows, header=header, date=date, date_from=date_from, date_to=date_to)


def export_rows(
    store: RowStore,
    *,
    battery_id: Optional[str] = None,
    date: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> List[Dict[str, str]]:
    """Apply the optional export filters (battery id, then date) to the stored rows."""

    values = store.read_all_raw()
    header = _header_keys(values)
    rows = rows_from_values(values)
    if battery_id is not None and str(battery_id).strip():
        rows = filter_by_battery_id(rows, battery_id)
    if any(value is not None and str(value).strip() for value in (date, date_from, date_to)):
        rows = filter_by_date(rows, header=header, date=date, date_from=date_from, date_to=date_to)
    return rows


def export_csv(rows: Sequence[Mapping[str, Any]]) -> str:
    """Serialise ``rows`` as CSV with a header line and fully quoted cells."""

    columns = list(rows[0].keys()) if rows else list(LEGACY_COLUMNS)
    buffer = io.StringIO()
    header_writer = csv.writer(buffer, lineterminator="\n")
    header_writer.writerow(columns)
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for row in rows:
        writer.writerow(["" if row.get(column) is None else str(row.get(column)) for column in columns])
    return buffer.getvalue()


def export_filename(
    battery_id: Optional[str] = None,
    date: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> str:
    def _safe(value: str) -> str:
        return re.sub(r"[^A-Za-z0-9._-]", "_", value.strip())

    if battery_id and battery_id.strip():
        return f"battery_{_safe(battery_id)}_export.csv"
    if date and date.strip():
        return f"battery_{_safe(date)}_export.csv"
    if (date_from and date_from.strip()) or (date_to and date_to.strip()):
        start = _safe(date_from or "start")
        end = _safe(date_to or "end")
        return f"battery_{start}_to_{end}_export.csv"
    return "battery_all_export.csv"


__all__ = [
    "COMPARISON_TIME",
    "export_csv",
    "export_filename",
    "export_rows",
    "filter_by_battery_id",
    "filter_by_date",
    "find_date_column",
    "list_rows",
    "parse_calendar_date",
    "rows_by_date",
    "search_by_battery_id",
]
