from __future__ import annotations

from core.cycles import count_in_values, count_participation
from core.row_mapper import LEGACY_COLUMNS
from core.row_store import MemoryRowStore


def test_counts_primary_and_secondary_columns() -> None:
    store = MemoryRowStore(
        ["Battery ID", "date", "Battery ID 2"],
        [
            ["B1", "2025-01-01", ""],
            [" B2 ", "2025-01-02", "B1"],
            ["B3", "2025-01-03", "B2"],
        ],
    )

    assert count_participation(store, "B1") == 2
    assert count_participation(store, " B2") == 2
    assert count_participation(store, "B3") == 1
    assert count_participation(store, "B4") == 0


def test_match_is_case_sensitive() -> None:
    store = MemoryRowStore(["id"], [["b1"]])

    assert count_participation(store, "B1") == 0


def test_blank_id_counts_nothing() -> None:
    store = MemoryRowStore(["id"], [[""], [" "]])

    assert count_participation(store, "") == 0
    assert count_participation(store, None) == 0


def test_unrecognised_header_falls_back_to_legacy_positions() -> None:
    header = ["c"] * len(LEGACY_COLUMNS)
    row = [""] * len(LEGACY_COLUMNS)
    row[0] = "B7"
    other = [""] * len(LEGACY_COLUMNS)
    other[LEGACY_COLUMNS.index("id_2")] = "B7"

    assert count_in_values([header, row, other], "B7") == 2


def test_empty_store_counts_zero() -> None:
    assert count_participation(MemoryRowStore(), "B1") == 0
