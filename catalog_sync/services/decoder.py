from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ..excel.reader import MissingColumnsError, SheetHeaderError
from ..models.catalog import (
    DEFAULT_NAMESPACE,
    METAFIELD_RULE_COLUMN,
    SORT_ORDERS,
    CatalogRecord,
    FieldDefinition,
    FieldIndex,
    RuleSet,
    SelectionRule,
)
from ..models.error_record import ErrorKind, RowError
from ..models.field_types import DEFAULT_FIELD_TYPE, is_collection_gid
from ..models.grid import Grid
from ..models.row_data import ImportRow, PendingField
from .conversion import cell_text, convert_value
from .encoder import (
    COL_DESCRIPTION,
    COL_ID,
    COL_RULE_MATCH,
    COL_SORT_ORDER,
    COL_TEMPLATE_SUFFIX,
    COL_TITLE,
    COL_TYPE,
    CORE_COLUMNS,
    REQUIRED_COLUMNS,
    rule_headers,
)

"""Tabular decoding: Grid + known fields -> ImportRows and RowErrors.

``decode_row`` is a pure function over one row. ``decode_grid`` folds it over
every data row; row-level problems become RowErrors and never abort the batch.
Only a sheet without a usable header raises.

Cell policy for field columns:
- empty cell: clear the field (booleans default to ``false``)
- non-empty cell that fails conversion: FIELD_CONVERSION error, and the field
  is cleared (``invalid_cells="clear"``) or left out (``invalid_cells="skip"``)
"""

__all__ = [
    "INVALID_CELLS_CLEAR",
    "INVALID_CELLS_SKIP",
    "SheetLayout",
    "DecodeResult",
    "build_layout",
    "decode_row",
    "decode_grid",
]

INVALID_CELLS_CLEAR = "clear"
INVALID_CELLS_SKIP = "skip"

_RULE_HEADER_RE = re.compile(r"^Rule \d+ - (Column|Relation|Condition)$")
_RULE_BASED_KINDS = frozenset({"smart", "rule-based"})
_METAFIELD_PREFIX = f"{METAFIELD_RULE_COLUMN}:"


@dataclass(frozen=True)
class SheetLayout:
    """Column positions resolved once per sheet."""
    columns: dict[str, int]
    rule_count: int  # number of complete Rule i triples in the header
    field_columns: tuple[tuple[int, str], ...]  # (column index, header)


@dataclass(frozen=True)
class DecodeResult:
    rows: tuple[ImportRow, ...] = ()
    errors: tuple[RowError, ...] = ()

    def fold(self, row: ImportRow | None, errors: Sequence[RowError]) -> DecodeResult:
        rows = self.rows + ((row,) if row is not None else ())
        return DecodeResult(rows=rows, errors=self.errors + tuple(errors))


def build_layout(header: Sequence[str]) -> SheetLayout:
    columns: dict[str, int] = {}
    for i, name in enumerate(header):
        if name and name not in columns:
            columns[name] = i

    rule_count = 0
    while all(h in columns for h in rule_headers(rule_count + 1)):
        rule_count += 1

    reserved = set(CORE_COLUMNS)
    field_columns = tuple(
        (i, name)
        for i, name in enumerate(header)
        if name
        and columns.get(name) == i
        and name not in reserved
        and not _RULE_HEADER_RE.match(name)
    )
    return SheetLayout(columns=columns, rule_count=rule_count, field_columns=field_columns)


def _cell(values: Sequence[Any], index: int | None) -> Any:
    if index is None or index >= len(values):
        return None
    return values[index]


def _text(values: Sequence[Any], layout: SheetLayout, name: str) -> str:
    return cell_text(_cell(values, layout.columns.get(name))).strip()


def _as_index(known_fields: Mapping[str, FieldDefinition]) -> FieldIndex:
    if isinstance(known_fields, FieldIndex):
        return known_fields
    return FieldIndex(known_fields.values())


def _resolve_field(header: str, index: FieldIndex) -> FieldDefinition:
    found = index.get(header)
    if found is not None:
        return found
    if "." in header:
        namespace, key = header.split(".", 1)
        return FieldDefinition(namespace=namespace, key=key, type=DEFAULT_FIELD_TYPE)
    # 未知キーは単一行テキストとして新規作成扱い
    return FieldDefinition(namespace=DEFAULT_NAMESPACE, key=header, type=DEFAULT_FIELD_TYPE)


def _decode_rules(
    row_number: int,
    values: Sequence[Any],
    layout: SheetLayout,
    index: FieldIndex,
) -> tuple[RuleSet | None, list[RowError]]:
    errors: list[RowError] = []
    rules: list[SelectionRule] = []
    for i in range(1, layout.rule_count + 1):
        column, relation, condition = (_text(values, layout, h) for h in rule_headers(i))
        if not (column or relation or condition):
            continue
        if not (column and relation and condition):
            errors.append(RowError(row_number, f"rule {i} incomplete: column, relation and condition are required"))
            continue
        if column.upper().startswith(_METAFIELD_PREFIX):
            definition = index.get(column[len(_METAFIELD_PREFIX):].strip())
            if definition is None or not definition.id:
                errors.append(RowError(row_number, f"rule {i}: unknown field {column!r}; rule dropped"))
                continue
            rules.append(SelectionRule(
                column=METAFIELD_RULE_COLUMN,
                relation=relation.upper(),
                condition=condition,
                field_ref=definition.ref,
                condition_object_id=definition.id,
            ))
            continue
        rules.append(SelectionRule(column=column.upper(), relation=relation.upper(), condition=condition))

    if not rules:
        errors.append(RowError(row_number, "rule-based collection has no valid rules; imported as manual"))
        return None, errors

    match = _text(values, layout, COL_RULE_MATCH).lower()
    return RuleSet(rules=tuple(rules), applied_disjunctively=match == "any"), errors


def decode_row(
    row_number: int,
    values: Sequence[Any],
    layout: SheetLayout,
    known_fields: Mapping[str, FieldDefinition],
    *,
    invalid_cells: str = INVALID_CELLS_CLEAR,
) -> tuple[ImportRow | None, list[RowError]]:
    """Decode one spreadsheet row. Returns (None, errors) when the row is skipped."""
    index = _as_index(known_fields)
    errors: list[RowError] = []

    record_id = _text(values, layout, COL_ID)
    title = _text(values, layout, COL_TITLE)
    if not record_id and not title:
        return None, [RowError(row_number, "title empty for new record and identifier missing", ErrorKind.ROW_SKIPPED)]
    if record_id and not is_collection_gid(record_id):
        return None, [RowError(
            row_number,
            f"invalid Collection ID {record_id!r}: expected gid://shopify/Collection/<digits>",
            ErrorKind.ROW_SKIPPED,
        )]

    description = None
    if COL_DESCRIPTION in layout.columns:
        description = cell_text(_cell(values, layout.columns[COL_DESCRIPTION]))

    sort_order = None
    raw_sort = _text(values, layout, COL_SORT_ORDER)
    if raw_sort:
        if raw_sort.upper() in SORT_ORDERS:
            sort_order = raw_sort.upper()
        else:
            errors.append(RowError(row_number, f"invalid sort order {raw_sort!r}; left unchanged"))

    rule_set = None
    kind = _text(values, layout, COL_TYPE).lower().replace("_", "-")
    if kind in _RULE_BASED_KINDS:
        rule_set, rule_errors = _decode_rules(row_number, values, layout, index)
        errors.extend(rule_errors)

    record = CatalogRecord(
        id=record_id or None,
        title=title or None,
        description_html=description,
        sort_order=sort_order,
        template_suffix=_text(values, layout, COL_TEMPLATE_SUFFIX) or None,
        rule_set=rule_set,
    )

    fields: dict[tuple[str, str], PendingField] = {}
    for position, header in layout.field_columns:
        definition = _resolve_field(header, index)
        if definition.ref in fields:
            continue
        converted = convert_value(definition.type, _cell(values, position))
        if converted.problem is not None:
            errors.append(RowError(row_number, f"{header}: {converted.problem}", ErrorKind.FIELD_CONVERSION))
            if invalid_cells == INVALID_CELLS_SKIP:
                continue
        fields[definition.ref] = PendingField(definition=definition, value=converted.value)

    return ImportRow(row_number=row_number, record=record, fields=fields), errors


def decode_grid(
    grid: Grid,
    known_fields: Mapping[str, FieldDefinition],
    *,
    invalid_cells: str = INVALID_CELLS_CLEAR,
) -> DecodeResult:
    if not any(grid.header):
        raise SheetHeaderError(f"sheet '{grid.sheet_name}' has no header row")
    missing = [c for c in REQUIRED_COLUMNS if c not in grid.header]
    if missing:
        raise MissingColumnsError(f"sheet '{grid.sheet_name}' missing columns: {missing}")

    layout = build_layout(grid.header)
    index = _as_index(known_fields)
    result = DecodeResult()
    for row_number, values in grid.iter_rows():
        row, errors = decode_row(row_number, values, layout, index, invalid_cells=invalid_cells)
        result = result.fold(row, errors)
    return result
