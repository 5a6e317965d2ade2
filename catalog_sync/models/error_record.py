from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from enum import Enum

"""Row diagnostics and their JSON Lines log form.

``RowError`` is what decode and apply produce: a row number, an error kind and
a human readable message. ``ErrorRecord`` is the fixed-schema line written to
the error log file for each RowError (no extra keys).

Row number -1 is the sentinel for file-level errors where no row applies.
"""

__all__ = [
    "FILE_LEVEL_ROW",
    "ErrorKind",
    "RowError",
    "ErrorRecord",
]

FILE_LEVEL_ROW = -1


class ErrorKind(Enum):
    ROW_SKIPPED = "ROW_SKIPPED"
    ROW_DEGRADED = "ROW_DEGRADED"
    FIELD_CONVERSION = "FIELD_CONVERSION"
    REMOTE_USER_ERROR = "REMOTE_USER_ERROR"
    REMOTE_TRANSPORT = "REMOTE_TRANSPORT"
    STORE_ERROR = "STORE_ERROR"
    FILE_LEVEL = "FILE_LEVEL"


@dataclass(frozen=True)
class RowError:
    row: int
    message: str
    kind: ErrorKind = ErrorKind.ROW_DEGRADED

    def __str__(self) -> str:
        return f"row {self.row}: {self.message}"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: spreadsheet filename being processed
        sheet: sheet name within the file
        row: row number (1-based). -1 for file-level errors
        error_type: ErrorKind value (UPPER_SNAKE_CASE)
        message: diagnostic text
    """
    timestamp: str
    file: str
    sheet: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    @staticmethod
    def from_row_error(file: str, sheet: str, error: RowError) -> ErrorRecord:
        return ErrorRecord.create(
            file=file,
            sheet=sheet,
            row=error.row,
            error_type=error.kind.value,
            message=error.message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
