"""Validation and append pipeline for battery charge log submissions.

A submission describes one battery event and optionally a second one recorded
on the same row.  Secondary fields may arrive flat with a ``_2`` suffix
(``id_2``, ``date_2``...) or as a nested ``secondary`` object using the plain
field names.  :class:`SubmissionHandler` turns either shape into exactly one
appended worksheet row:

1. validate the primary battery (``id``, ``date`` and ``name`` are required);
2. build the full semantic row;
3. fill in ``chargingCycle`` from a worksheet scan when the caller left it out;
4. lay the row out against the live header (or the legacy order) and append;
5. re-scan and report the participation counts.

Steps 3 and 4 are a read followed by a write with nothing in between to stop
another request from doing the same; two simultaneous submissions for one
battery can therefore embed the same cycle number.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from core.cycles import count_in_values, count_participation
from core.errors import StoreUnavailable, ValidationError
from core.row_mapper import (
    CYCLE_KEY,
    ID_KEY,
    LEGACY_COLUMNS,
    PRIMARY_KEYS,
    SECONDARY_CYCLE_KEY,
    SECONDARY_ID_KEY,
    SECONDARY_SUFFIX,
    build_semantic_row,
    canonical_key,
    cell_text,
    legacy_row,
    map_row_to_header,
)
from core.row_store import RowStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    ("id", "Battery ID (id) is required"),
    ("date", "Date (date) is required"),
    ("name", "Responsible person's name (name) is required"),
)


@dataclass
class BatteryCycles:
    battery_id: str
    cycles: Optional[int]

    def to_json(self) -> Dict[str, Any]:
        return {"batteryId": self.battery_id, "cycles": self.cycles}


@dataclass
class SubmissionResult:
    row: Dict[str, str]
    cells: List[str]
    primary: BatteryCycles
    secondary: Optional[BatteryCycles] = None
    used_legacy_layout: bool = False

    def to_json(self) -> Dict[str, Any]:
        return {
            "message": "Submitted",
            "primary": self.primary.to_json(),
            "secondary": self.secondary.to_json() if self.secondary else None,
        }


def split_submission(payload: Any) -> tuple[Dict[str, Any], Dict[str, Any]]:
    """Return ``(primary, secondary)`` field mappings from a request body."""

    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")

    primary = {key: payload.get(key) for key in PRIMARY_KEYS}
    nested = payload.get("secondary")
    if isinstance(nested, Mapping):
        secondary = {key: nested.get(key) for key in PRIMARY_KEYS}
    else:
        secondary = {key: payload.get(key + SECONDARY_SUFFIX) for key in PRIMARY_KEYS}
    return primary, secondary


def validate_primary(primary: Mapping[str, Any]) -> None:
    for key, message in REQUIRED_FIELDS:
        if not cell_text(primary.get(key)).strip():
            raise ValidationError(message)


def _explicit_cycle(value: str) -> Optional[int]:
    try:
        return int(value.strip())
    except ValueError:
        return None


class SubmissionHandler:
    """Append validated submissions to ``store``."""

    def __init__(self, store: RowStore) -> None:
        self._store = store

    def submit(self, payload: Any) -> SubmissionResult:
        primary, secondary = split_submission(payload)
        validate_primary(primary)

        row = build_semantic_row(primary, secondary)
        primary_id = row[ID_KEY]
        secondary_id = row[SECONDARY_ID_KEY]

        estimates: Dict[str, int] = {}
        if row[CYCLE_KEY].strip():
            explicit = _explicit_cycle(row[CYCLE_KEY])
            if explicit is not None:
                estimates[ID_KEY] = explicit
        else:
            estimates[ID_KEY] = count_participation(self._store, primary_id) + 1
            row[CYCLE_KEY] = str(estimates[ID_KEY])
        if secondary_id:
            if row[SECONDARY_CYCLE_KEY].strip():
                explicit = _explicit_cycle(row[SECONDARY_CYCLE_KEY])
                if explicit is not None:
                    estimates[SECONDARY_ID_KEY] = explicit
            else:
                estimates[SECONDARY_ID_KEY] = count_participation(self._store, secondary_id) + 1
                row[SECONDARY_CYCLE_KEY] = str(estimates[SECONDARY_ID_KEY])

        header, store_is_empty = self._current_header()
        if header:
            cells = map_row_to_header(row, header)
        else:
            cells = legacy_row(row)
            if store_is_empty:
                # Name the legacy columns so later submissions map against them.
                self._store.append_row(list(LEGACY_COLUMNS))
                logger.info("Worksheet was empty; wrote the legacy header row")

        self._store.append_row(cells)
        logger.info(
            "Appended submission for battery %s%s",
            primary_id,
            f" and {secondary_id}" if secondary_id else "",
        )

        primary_cycles, secondary_cycles = self._report(primary_id, secondary_id, estimates)
        return SubmissionResult(
            row=row,
            cells=cells,
            primary=BatteryCycles(primary_id, primary_cycles),
            secondary=BatteryCycles(secondary_id, secondary_cycles) if secondary_id else None,
            used_legacy_layout=not header,
        )

    def _current_header(self) -> Tuple[List[str], bool]:
        """Return ``(header, store_is_empty)``; an empty header means legacy order."""

        try:
            values = self._store.read_all_raw()
        except StoreUnavailable as exc:
            logger.warning("Header row unavailable, using legacy column order: %s", exc)
            return [], False
        if not values:
            return [], True
        header = [str(cell) for cell in values[0]]
        if not any(canonical_key(cell) for cell in header):
            logger.warning("Header row names no known column, using legacy column order")
            return [], False
        return header, False

    def _report(
        self,
        primary_id: str,
        secondary_id: str,
        estimates: Mapping[str, int],
    ) -> tuple[Optional[int], Optional[int]]:
        try:
            values = self._store.read_all_raw()
        except StoreUnavailable as exc:
            # The row is already written; fall back to what was computed before the append.
            logger.warning("Could not re-read worksheet after append: %s", exc)
            return estimates.get(ID_KEY), estimates.get(SECONDARY_ID_KEY) if secondary_id else None
        primary_cycles = count_in_values(values, primary_id)
        secondary_cycles = count_in_values(values, secondary_id) if secondary_id else None
        return primary_cycles, secondary_cycles


__all__ = [
    "BatteryCycles",
    "REQUIRED_FIELDS",
    "SubmissionHandler",
    "SubmissionResult",
    "split_submission",
    "validate_primary",
]
