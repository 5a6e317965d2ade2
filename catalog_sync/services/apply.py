from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

from ..models.error_record import ErrorKind, RowError
from ..models.processing_result import (
    ACTION_CREATED,
    ACTION_UPDATED,
    ImportReport,
    RowOutcome,
)
from ..models.row_data import ImportRow
from ..shopify.client import GraphQLError, TransportError

"""Reconciliation & apply: ImportRows -> remote mutations -> ImportReport.

Per row, strictly in this order:
1. create (no identifier) or update the record; a create yields the new id
2. write the row's fields against that id (sets and clears)

A failure in step 1 skips step 2 for that row only. Field failures never
roll back step 1, and nothing is retried at this level.
"""

__all__ = [
    "apply_row",
    "apply_rows",
]

logger = logging.getLogger(__name__)


def _transport_error(row_number: int, step: str, e: Exception) -> RowError:
    return RowError(row_number, f"{step} failed: {e}", ErrorKind.REMOTE_TRANSPORT)


def apply_row(gateway: Any, row: ImportRow) -> RowOutcome:
    if row.is_create:
        action, step, write = ACTION_CREATED, "collection create", gateway.create_collection
    else:
        action, step, write = ACTION_UPDATED, "collection update", gateway.update_collection
    try:
        result = write(row.record)
    except (TransportError, GraphQLError) as e:
        return RowOutcome(row.row_number, errors=(_transport_error(row.row_number, step, e),))

    if result.user_errors:
        message = "; ".join(result.user_errors)
        return RowOutcome(
            row.row_number,
            errors=(RowError(row.row_number, f"collection rejected: {message}", ErrorKind.REMOTE_USER_ERROR),),
        )

    record_id = result.record_id or row.record.id
    if not record_id:
        return RowOutcome(
            row.row_number,
            errors=(RowError(row.row_number, "create returned no identifier", ErrorKind.REMOTE_USER_ERROR),),
        )
    logger.debug(f"row {row.row_number}: {action} {record_id}")

    if not row.fields:
        return RowOutcome(row.row_number, action=action, record_id=record_id)

    try:
        written = gateway.set_field_values(record_id, row.fields.values())
    except (TransportError, GraphQLError) as e:
        return RowOutcome(
            row.row_number,
            action=action,
            record_id=record_id,
            errors=(_transport_error(row.row_number, "field write", e),),
        )

    errors = tuple(RowError(row.row_number, msg, ErrorKind.REMOTE_USER_ERROR) for msg in written.user_errors)
    return RowOutcome(
        row.row_number,
        action=action,
        record_id=record_id,
        fields_set=written.set_count + written.cleared_count,
        fields_cleared=written.cleared_count,
        errors=errors,
    )


def apply_rows(
    gateway: Any,
    rows: Iterable[ImportRow],
    on_row: Callable[[RowOutcome], None] | None = None,
) -> ImportReport:
    """Apply rows sequentially and fold each outcome into one report."""
    start = time.perf_counter()
    report = ImportReport()
    for row in rows:
        outcome = apply_row(gateway, row)
        for err in outcome.errors:
            logger.warning(str(err))
        report = report.with_outcome(outcome)
        if on_row is not None:
            on_row(outcome)
    return replace(report, elapsed_seconds=time.perf_counter() - start)
