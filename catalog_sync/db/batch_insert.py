from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2.extras import execute_values

"""DB batch insert helper.

psycopg2.extras.execute_values でまとめて INSERT する。
Table and column names are quoted here but must already be validated by the
caller; values always travel as parameters.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
]


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing for a single execute_values call."""
    table: str
    batch_size: int
    elapsed_seconds: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: bool = False,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: 対象テーブル名 (検証済み想定)
    columns: 挿入列
    rows: 行シーケンス
    returning: True の場合 RETURNING * を付与し結果を返す
    page_size: execute_values の page_size
    metrics_callback: receives BatchMetrics after the call. Not invoked when
        ``rows`` is empty (the function returns early).
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    base_sql = f'INSERT INTO "{table}" ({cols_sql}) VALUES %s'
    if returning:
        base_sql += " RETURNING *"

    started = time.perf_counter()
    try:
        returned = execute_values(cursor, base_sql, rows_list, page_size=page_size, fetch=returning)
    except psycopg2.Error as e:
        raise BatchInsertError(str(e)) from e
    finally:
        if metrics_callback is not None:
            metrics_callback(BatchMetrics(table, len(rows_list), time.perf_counter() - started))

    return InsertResult(inserted_rows=len(rows_list), returned_values=returned if returning else None)
