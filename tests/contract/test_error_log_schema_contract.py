from __future__ import annotations

import json
import re

from catalog_sync.logging.error_log import ErrorLogBuffer
from catalog_sync.models.error_record import FILE_LEVEL_ROW, ErrorKind, ErrorRecord, RowError

"""Error log line contract: fixed keys, UTC timestamp, UPPER_SNAKE error types."""

EXPECTED_KEYS = {"timestamp", "file", "sheet", "row", "error_type", "message"}
TS_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$")


def test_keys_are_fixed(tmp_path):
    buf = ErrorLogBuffer(logs_dir=tmp_path)
    buf.extend_row_errors("c.xlsx", "Collections", [RowError(2, "x", kind) for kind in ErrorKind])
    path = buf.flush()
    for line in path.read_text(encoding="utf-8").splitlines():
        obj = json.loads(line)
        assert set(obj) == EXPECTED_KEYS
        assert TS_RE.match(obj["timestamp"])
        assert re.fullmatch(r"[A-Z_]+", obj["error_type"])
        assert isinstance(obj["row"], int)


def test_file_level_row_sentinel():
    rec = ErrorRecord.create("c.xlsx", "", FILE_LEVEL_ROW, ErrorKind.FILE_LEVEL.value, "unreadable")
    assert json.loads(rec.to_json_line())["row"] == -1
