"""Header-directed mapping between submissions and worksheet rows.

The worksheet's first row is edited by hand, so its column order and spelling
drift over time.  This module owns the versioned field schema used by the
backend and translates between it and whatever header row is currently live:

``build_semantic_row``
    Produce the full internal row (primary fields plus ``_2`` secondary
    fields), every value a string.

``map_row_to_header``
    Lay a semantic row out positionally in header order.  Header names and
    field keys are compared after :func:`normalise_key`, and each field also
    answers to a few known aliases.  Columns nobody recognises receive ``""``.

``legacy_row``
    The fixed positional layout used when no header is available.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

SCHEMA_VERSION = 2
SECONDARY_SUFFIX = "_2"

_NON_ALNUM = re.compile(r"[^a-z0-9]")


@dataclass(frozen=True)
class FieldSpec:
    """A semantic field and the header spellings it is known under."""

    key: str
    aliases: Tuple[str, ...] = ()

    def header_names(self) -> Tuple[str, ...]:
        return (self.key,) + self.aliases


PRIMARY_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("id", ("batteryid", "battery")),
    FieldSpec("date", ("chargedate",)),
    FieldSpec("chargingCycle", ("cycle", "cycles", "chargecycle")),
    FieldSpec("chargeCurrent", ("current",)),
    FieldSpec("battVoltInitial", ("batteryvoltageinitial", "initialvoltage")),
    FieldSpec("battVoltFinal", ("batteryvoltagefinal", "finalvoltage")),
    FieldSpec("chargeTimeInitial", ("starttime", "chargestarttime")),
    FieldSpec("chargeTimeFinal", ("endtime", "chargeendtime")),
    FieldSpec("duration", ("chargeduration",)),
    FieldSpec("capacity", ()),
    FieldSpec("temp", ("temperature",)),
    FieldSpec("deformation", ()),
    FieldSpec("others", ("other", "remarks", "notes")),
    FieldSpec("uin", ()),
    FieldSpec("name", ("responsiblename", "responsibleperson")),
    FieldSpec("photo", ("photourl", "image")),
)

PRIMARY_KEYS: Tuple[str, ...] = tuple(spec.key for spec in PRIMARY_FIELDS)
SECONDARY_KEYS: Tuple[str, ...] = tuple(key + SECONDARY_SUFFIX for key in PRIMARY_KEYS)
LEGACY_COLUMNS: Tuple[str, ...] = PRIMARY_KEYS + SECONDARY_KEYS

ID_KEY = "id"
SECONDARY_ID_KEY = ID_KEY + SECONDARY_SUFFIX
CYCLE_KEY = "chargingCycle"
SECONDARY_CYCLE_KEY = CYCLE_KEY + SECONDARY_SUFFIX


def normalise_key(name: Any) -> str:
    """Return ``name`` lower-cased with everything but ``a-z0-9`` removed."""

    if name is None:
        return ""
    return _NON_ALNUM.sub("", str(name).strip().lower())


def _build_alias_table() -> Dict[str, str]:
    table: Dict[str, str] = {}
    for spec in PRIMARY_FIELDS:
        for header in spec.header_names():
            table.setdefault(normalise_key(header), spec.key)
            table.setdefault(normalise_key(header) + "2", spec.key + SECONDARY_SUFFIX)
    return table


_ALIASES: Dict[str, str] = _build_alias_table()


def canonical_key(header: Any) -> Optional[str]:
    """Return the semantic key a header column stands for, if it is known."""

    return _ALIASES.get(normalise_key(header))


def cell_text(value: Any) -> str:
    """Coerce an incoming JSON value into the text stored in a cell."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


def build_semantic_row(
    primary: Mapping[str, Any],
    secondary: Optional[Mapping[str, Any]] = None,
) -> Dict[str, str]:
    """Return a row holding every schema key, defaulted to ``""``.

    ``primary`` is keyed by the unsuffixed field names and ``secondary`` (if
    any) by the same names; the secondary values land under ``<key>_2``.
    """

    secondary = secondary or {}
    row: Dict[str, str] = {}
    for key in PRIMARY_KEYS:
        row[key] = cell_text(primary.get(key))
    for key in PRIMARY_KEYS:
        row[key + SECONDARY_SUFFIX] = cell_text(secondary.get(key))
    row[ID_KEY] = row[ID_KEY].strip()
    row[SECONDARY_ID_KEY] = row[SECONDARY_ID_KEY].strip()
    return row


def _lookup_table(row: Mapping[str, Any]) -> Dict[str, str]:
    table: Dict[str, str] = {}
    for key, value in row.items():
        table[normalise_key(key)] = cell_text(value)
    for alias, key in _ALIASES.items():
        if alias not in table and key in row:
            table[alias] = cell_text(row[key])
    return table


def map_row_to_header(row: Mapping[str, Any], header: Sequence[Any]) -> List[str]:
    """Return one cell per ``header`` column taken from ``row``."""

    table = _lookup_table(row)
    return [table.get(normalise_key(column), "") for column in header]


def legacy_row(row: Mapping[str, Any]) -> List[str]:
    """Return ``row`` laid out in the fixed :data:`LEGACY_COLUMNS` order."""

    return [cell_text(row.get(key)) for key in LEGACY_COLUMNS]


def resolve_column(header: Iterable[Any], key: str) -> Optional[int]:
    """Return the index of the first header column matching semantic ``key``."""

    for index, column in enumerate(header):
        normalised = normalise_key(column)
        if not normalised:
            continue
        if normalised == normalise_key(key) or _ALIASES.get(normalised) == key:
            return index
    return None


def legacy_index(key: str) -> int:
    return LEGACY_COLUMNS.index(key)


__all__ = [
    "CYCLE_KEY",
    "FieldSpec",
    "ID_KEY",
    "LEGACY_COLUMNS",
    "PRIMARY_FIELDS",
    "PRIMARY_KEYS",
    "SCHEMA_VERSION",
    "SECONDARY_CYCLE_KEY",
    "SECONDARY_ID_KEY",
    "SECONDARY_KEYS",
    "SECONDARY_SUFFIX",
    "build_semantic_row",
    "canonical_key",
    "cell_text",
    "legacy_index",
    "legacy_row",
    "map_row_to_header",
    "normalise_key",
    "resolve_column",
]
