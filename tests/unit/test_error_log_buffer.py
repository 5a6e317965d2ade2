from __future__ import annotations

import json
import re
from pathlib import Path

from catalog_sync.logging.error_log import ErrorLogBuffer
from catalog_sync.models.error_record import FILE_LEVEL_ROW, ErrorKind, ErrorRecord, RowError


def test_flush_empty_writes_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_flush_writes_json_lines(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path / "logs")
    buf.extend_row_errors("collections.xlsx", "Collections", [
        RowError(3, "invalid Collection ID 'x'", ErrorKind.ROW_SKIPPED),
        RowError(5, "priority: invalid number_integer value 'abc'", ErrorKind.FIELD_CONVERSION),
    ])
    buf.append(ErrorRecord.create("collections.xlsx", "", FILE_LEVEL_ROW, "FILE_LEVEL", "boom"))
    path = buf.flush()
    assert path is not None
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = [json.loads(x) for x in path.read_text(encoding="utf-8").splitlines()]
    assert [x["row"] for x in lines] == [3, 5, -1]
    assert lines[0]["error_type"] == "ROW_SKIPPED"
    assert lines[1]["sheet"] == "Collections"
    assert lines[0]["timestamp"].endswith("Z")


def test_second_flush_appends_to_same_file(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path)
    buf.extend_row_errors("a.xlsx", "S", [RowError(2, "one")])
    first = buf.flush()
    buf.extend_row_errors("a.xlsx", "S", [RowError(3, "two")])
    second = buf.flush()
    assert first == second
    assert len(first.read_text(encoding="utf-8").splitlines()) == 2


def test_row_error_defaults_and_str():
    err = RowError(4, "sort order ignored")
    assert err.kind is ErrorKind.ROW_DEGRADED
    assert str(err) == "row 4: sort order ignored"


def test_error_record_keeps_non_ascii(tmp_path: Path):
    rec = ErrorRecord.create("コレクション.xlsx", "シート1", 2, "ROW_DEGRADED", "無効な値")
    line = rec.to_json_line()
    assert "コレクション.xlsx" in line
    assert json.loads(line)["message"] == "無効な値"
