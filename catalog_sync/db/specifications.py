from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

import psycopg2

from ..excel.reader import MissingColumnsError
from ..models.error_record import ErrorKind, RowError
from ..models.grid import Grid
from ..models.processing_result import ImportReport, RowOutcome
from ..services.conversion import cell_text
from .batch_insert import BatchInsertError, batch_insert

"""Specification import: wide SKU sheet -> ``specifications`` rows.

Sheet layout: one SKU column plus one column per specification key. Each
non-empty cell becomes a ``(sku, spec_key, spec_value)`` row. An existing row
is matched by SKU and normalized key (trimmed, lower-cased, whitespace
collapsed) and updated in place; otherwise a new row is inserted.

Each sheet row runs inside its own SAVEPOINT so a failing row rolls back
alone. The caller owns the surrounding transaction.
"""

__all__ = [
    "SPEC_COLUMNS",
    "SpecificationRow",
    "normalize_key",
    "decode_specifications",
    "import_specifications",
]

logger = logging.getLogger(__name__)

SPEC_COLUMNS = ("sku", "spec_key", "spec_value")
_SAVEPOINT = "spec_row"
_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class SpecificationRow:
    row_number: int
    sku: str
    values: tuple[tuple[str, str], ...]  # (spec_key, spec_value) in header order


def normalize_key(key: str) -> str:
    return " ".join((key or "").split()).lower()


def decode_specifications(grid: Grid, sku_column: str = "SKU") -> tuple[list[SpecificationRow], list[RowError]]:
    if sku_column not in grid.header:
        raise MissingColumnsError(f"sheet '{grid.sheet_name}' missing columns: ['{sku_column}']")
    index = grid.column_index()
    sku_idx = index[sku_column]
    key_columns = [(i, h) for h, i in index.items() if h != sku_column]

    rows: list[SpecificationRow] = []
    errors: list[RowError] = []
    for row_number, values in grid.iter_rows():
        sku = cell_text(values[sku_idx] if sku_idx < len(values) else None).strip()
        if not sku:
            errors.append(RowError(row_number, "SKU empty; row skipped", ErrorKind.ROW_SKIPPED))
            continue
        pairs = []
        for i, header in key_columns:
            text = cell_text(values[i] if i < len(values) else None).strip()
            if text:
                pairs.append((header.strip(), text))
        rows.append(SpecificationRow(row_number=row_number, sku=sku, values=tuple(pairs)))
    return rows, errors


def _apply_row(cursor: Any, table: str, row: SpecificationRow, on_batch: Callable | None) -> tuple[int, int]:
    cursor.execute(f'SELECT spec_key FROM "{table}" WHERE sku = %s', (row.sku,))
    stored: dict[str, str] = {}
    for (spec_key,) in cursor.fetchall():
        stored.setdefault(normalize_key(spec_key), spec_key)

    updated = 0
    new_rows: list[tuple[str, str, str]] = []
    seen: set[str] = set()
    for key, value in row.values:
        norm = normalize_key(key)
        if norm in seen:
            continue  # 同じ正規化キーの重複列は先頭のみ
        seen.add(norm)
        if norm in stored:
            cursor.execute(
                f'UPDATE "{table}" SET spec_value = %s WHERE sku = %s AND spec_key = %s',
                (value, row.sku, stored[norm]),
            )
            updated += 1
        else:
            new_rows.append((row.sku, key, value))

    inserted = batch_insert(cursor, table, SPEC_COLUMNS, new_rows, metrics_callback=on_batch).inserted_rows
    return inserted, updated


def import_specifications(
    cursor: Any,
    grid: Grid,
    table: str = "specifications",
    sku_column: str = "SKU",
) -> ImportReport:
    """Upsert every non-empty specification cell of ``grid``.

    ``created_count`` / ``updated_count`` count specification values, not
    sheet rows.
    """
    if not _IDENT_RE.match(table):
        raise ValueError(f"invalid table name: {table!r}")

    rows, decode_errors = decode_specifications(grid, sku_column)

    def _log_batch(metrics) -> None:
        logger.debug(f"{metrics.table}: inserted {metrics.batch_size} rows in {metrics.elapsed_seconds:.3f}s")

    report = ImportReport().with_errors(decode_errors)
    created = 0
    updated = 0
    for row in rows:
        cursor.execute(f"SAVEPOINT {_SAVEPOINT}")
        try:
            inserted, changed = _apply_row(cursor, table, row, _log_batch)
        except (psycopg2.Error, BatchInsertError) as e:
            cursor.execute(f"ROLLBACK TO SAVEPOINT {_SAVEPOINT}")
            err = RowError(row.row_number, f"SKU {row.sku}: {e}", ErrorKind.STORE_ERROR)
            logger.warning(str(err))
            report = report.with_outcome(RowOutcome(row.row_number, errors=(err,)))
            continue
        cursor.execute(f"RELEASE SAVEPOINT {_SAVEPOINT}")
        created += inserted
        updated += changed
        report = report.with_outcome(RowOutcome(row.row_number, fields_set=inserted + changed))

    return replace(report, created_count=created, updated_count=updated)
