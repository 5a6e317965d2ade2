from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from .error_record import RowError

"""Result models for import and export runs.

Reports are immutable and built by folding: each row produces a RowOutcome
which is merged into the running ImportReport with ``with_outcome``. Decode
diagnostics (rows that never reached apply) join through ``with_errors``.
"""

__all__ = [
    "ACTION_CREATED",
    "ACTION_UPDATED",
    "RowOutcome",
    "ImportReport",
    "ExportResult",
    "ImportRun",
]

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"


@dataclass(frozen=True)
class RowOutcome:
    """Fate of one row in the apply stage."""
    row_number: int
    action: str | None = None  # created / updated / None when the record step failed
    record_id: str | None = None
    fields_set: int = 0
    fields_cleared: int = 0
    errors: tuple[RowError, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class ImportReport:
    """Aggregated import result.

    ``fields_set_count`` counts every field written, cleared fields included;
    ``fields_cleared_count`` is the subset that was cleared.
    """
    created_count: int = 0
    updated_count: int = 0
    fields_set_count: int = 0
    fields_cleared_count: int = 0
    outcomes: tuple[RowOutcome, ...] = ()
    errors: tuple[RowError, ...] = ()
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def rows_processed(self) -> int:
        return len(self.outcomes)

    @property
    def failed_rows(self) -> list[int]:
        return sorted({e.row for e in self.errors})

    def with_outcome(self, outcome: RowOutcome) -> ImportReport:
        return replace(
            self,
            created_count=self.created_count + int(outcome.action == ACTION_CREATED),
            updated_count=self.updated_count + int(outcome.action == ACTION_UPDATED),
            fields_set_count=self.fields_set_count + outcome.fields_set,
            fields_cleared_count=self.fields_cleared_count + outcome.fields_cleared,
            outcomes=self.outcomes + (outcome,),
            errors=self.errors + outcome.errors,
        )

    def with_errors(self, errors: list[RowError] | tuple[RowError, ...]) -> ImportReport:
        return replace(self, errors=self.errors + tuple(errors))

    def merge(self, other: ImportReport) -> ImportReport:
        return ImportReport(
            created_count=self.created_count + other.created_count,
            updated_count=self.updated_count + other.updated_count,
            fields_set_count=self.fields_set_count + other.fields_set_count,
            fields_cleared_count=self.fields_cleared_count + other.fields_cleared_count,
            outcomes=self.outcomes + other.outcomes,
            errors=self.errors + other.errors,
            elapsed_seconds=self.elapsed_seconds + other.elapsed_seconds,
        )

    def errors_by_row(self) -> dict[int, list[RowError]]:
        grouped: dict[int, list[RowError]] = {}
        for err in sorted(self.errors, key=lambda e: e.row):
            grouped.setdefault(err.row, []).append(err)
        return grouped


@dataclass(frozen=True)
class ExportResult:
    path: Path
    records: int  # data rows written
    field_columns: int
    rule_columns: int
    elapsed_seconds: float = 0.0


@dataclass(frozen=True)
class ImportRun:
    """One import invocation: where the rows came from plus the report."""
    source: Path
    sheet: str
    rows_read: int  # data rows in the sheet, skipped rows included
    report: ImportReport
    error_log: Path | None = None  # None when no error was written
    dry_run: bool = False
