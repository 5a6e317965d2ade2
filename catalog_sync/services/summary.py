from __future__ import annotations

from ..models.processing_result import ExportResult, ImportReport

"""SUMMARY line rendering.

Import:
SUMMARY rows=<n> created=<c> updated=<u> fields_set=<s> fields_cleared=<x> errors=<e> elapsed_sec=<t>

Export:
SUMMARY records=<n> field_columns=<f> rule_columns=<r> elapsed_sec=<t>
"""

__all__ = [
    "format_elapsed",
    "render_summary_line",
    "render_export_summary_line",
]


def format_elapsed(seconds: float) -> str:
    """Render seconds without scientific notation; integral values drop the fraction."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(report: ImportReport, rows: int | None = None) -> str:
    """Render the import SUMMARY line.

    ``rows`` defaults to the rows that reached apply; callers pass the sheet's
    data row count so skipped rows are included.

    Examples:
        >>> render_summary_line(ImportReport(created_count=1, fields_set_count=3, elapsed_seconds=2.0), rows=2)
        'SUMMARY rows=2 created=1 updated=0 fields_set=3 fields_cleared=0 errors=0 elapsed_sec=2'
    """
    total = report.rows_processed if rows is None else rows
    return (
        f"SUMMARY rows={total} "
        f"created={report.created_count} "
        f"updated={report.updated_count} "
        f"fields_set={report.fields_set_count} "
        f"fields_cleared={report.fields_cleared_count} "
        f"errors={len(report.errors)} "
        f"elapsed_sec={format_elapsed(report.elapsed_seconds)}"
    )


def render_export_summary_line(result: ExportResult) -> str:
    return (
        f"SUMMARY records={result.records} "
        f"field_columns={result.field_columns} "
        f"rule_columns={result.rule_columns} "
        f"elapsed_sec={format_elapsed(result.elapsed_seconds)}"
    )
