"""Charging cycle counter derived by scanning the worksheet."""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Tuple

from core.row_mapper import ID_KEY, SECONDARY_ID_KEY, legacy_index, resolve_column
from core.row_store import RowStore

logger = logging.getLogger(__name__)


def _id_columns(header: Sequence[Any]) -> Tuple[Optional[int], Optional[int]]:
    primary = resolve_column(header, ID_KEY)
    secondary = resolve_column(header, SECONDARY_ID_KEY)
    if primary is None and secondary is None:
        # Header carries no recognisable id column; assume the legacy layout.
        return legacy_index(ID_KEY), legacy_index(SECONDARY_ID_KEY)
    return primary, secondary


def _cell(row: Sequence[Any], index: Optional[int]) -> str:
    if index is None or index >= len(row):
        return ""
    value = row[index]
    return "" if value is None else str(value).strip()


def count_in_values(values: Sequence[Sequence[Any]], battery_id: Any) -> int:
    """Count data rows in ``values`` whose primary or secondary id is ``battery_id``."""

    target = "" if battery_id is None else str(battery_id).strip()
    if not target or not values:
        return 0
    primary, secondary = _id_columns(values[0])
    count = 0
    for row in values[1:]:
        if _cell(row, primary) == target or _cell(row, secondary) == target:
            count += 1
    return count


def count_participation(store: RowStore, battery_id: Any) -> int:
    """Return how many stored rows reference ``battery_id`` (exact, trimmed)."""

    target = "" if battery_id is None else str(battery_id).strip()
    if not target:
        return 0
    values: List[List[str]] = store.read_all_raw()
    count = count_in_values(values, target)
    logger.debug("Battery %s participates in %d row(s)", target, count)
    return count


__all__ = ["count_in_values", "count_participation"]
