from __future__ import annotations

import re
from pathlib import Path

from catalog_sync.models.processing_result import ExportResult, ImportReport
from catalog_sync.services.summary import render_export_summary_line, render_summary_line

"""SUMMARY line contract: fixed key order, integers, non-scientific elapsed."""

IMPORT_RE = re.compile(
    r"^SUMMARY rows=\d+ created=\d+ updated=\d+ fields_set=\d+ fields_cleared=\d+ "
    r"errors=\d+ elapsed_sec=\d+(\.\d+)?$"
)
EXPORT_RE = re.compile(r"^SUMMARY records=\d+ field_columns=\d+ rule_columns=\d+ elapsed_sec=\d+(\.\d+)?$")


def test_import_summary_format():
    for elapsed in (0.0, 0.0000042, 3.0, 12.3456):
        line = render_summary_line(ImportReport(created_count=1, elapsed_seconds=elapsed), rows=5)
        assert IMPORT_RE.match(line), line


def test_export_summary_format():
    line = render_export_summary_line(ExportResult(Path("x.xlsx"), 3, 2, 6, 0.5))
    assert EXPORT_RE.match(line), line
