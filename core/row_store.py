"""Row store abstraction over a header-driven two dimensional table.

Every backend exposes the same two primitives, :meth:`RowStore.read_all_raw`
and :meth:`RowStore.append_row`; the object view is derived from them.  There
is no transaction or locking primitive: a caller that reads, computes and then
appends can race with another caller doing the same.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence

from core.errors import StoreUnavailable

logger = logging.getLogger(__name__)


def rows_from_values(values: Sequence[Sequence[Any]]) -> List[Dict[str, str]]:
    """Key every data row in ``values`` by the header row (``values[0]``)."""

    if not values:
        return []
    header = [str(cell).strip() if cell is not None else "" for cell in values[0]]
    keys = [name or f"col{index}" for index, name in enumerate(header)]
    rows: List[Dict[str, str]] = []
    for raw in values[1:]:
        row: Dict[str, str] = {}
        for index, key in enumerate(keys):
            cell = raw[index] if index < len(raw) else ""
            row[key] = "" if cell is None else str(cell)
        rows.append(row)
    return rows


class RowStore:
    """Base class for worksheet-like stores."""

    def read_all_raw(self) -> List[List[str]]:
        raise NotImplementedError

    def append_row(self, values: Sequence[Any]) -> None:
        raise NotImplementedError

    def read_header(self) -> List[str]:
        values = self.read_all_raw()
        if not values:
            return []
        return [str(cell) for cell in values[0]]

    def read_all_as_objects(self) -> List[Dict[str, str]]:
        return rows_from_values(self.read_all_raw())


class MemoryRowStore(RowStore):
    """In-process store used for tests and local development.

    Each call is atomic on its own; nothing protects a read followed by an
    append, matching the behaviour of the hosted worksheet.
    """

    def __init__(
        self,
        header: Optional[Sequence[str]] = None,
        rows: Optional[Iterable[Sequence[Any]]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._values: List[List[str]] = []
        if header is not None:
            self._values.append([str(cell) for cell in header])
        for row in rows or []:
            self._values.append(["" if cell is None else str(cell) for cell in row])
        self.available = True

    def _check(self) -> None:
        if not self.available:
            raise StoreUnavailable("Row store is unavailable")

    def read_all_raw(self) -> List[List[str]]:
        self._check()
        with self._lock:
            return [list(row) for row in self._values]

    def append_row(self, values: Sequence[Any]) -> None:
        if not isinstance(values, (list, tuple)):
            raise TypeError("append_row expects a sequence of cell values")
        self._check()
        with self._lock:
            self._values.append(["" if cell is None else str(cell) for cell in values])
        logger.debug("Appended row with %d cells to memory store", len(values))

    def set_header(self, header: Sequence[str]) -> None:
        """Replace the header row, as a person editing the sheet would."""

        with self._lock:
            if self._values:
                self._values[0] = [str(cell) for cell in header]
            else:
                self._values.append([str(cell) for cell in header])


__all__ = ["MemoryRowStore", "RowStore", "rows_from_values"]
