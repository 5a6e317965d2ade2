from __future__ import annotations

import math
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.grid import HEADER_ROW_NUMBER, Grid

"""Excel reader: workbook -> Grid.

1行目をヘッダ行として扱い、2行目以降をデータ行とする。
Fully blank rows are dropped, but every kept row remembers its original
spreadsheet row number so diagnostics point at the line the user sees.

Cells are read with ``keep_default_na=False`` so text such as ``NA`` or
``null`` survives as text; only genuinely empty cells become ``None``.
"""

__all__ = [
    "SheetHeaderError",
    "MissingColumnsError",
    "read_workbook",
    "normalize_sheet",
    "read_sheet",
    "is_blank",
]


class SheetHeaderError(Exception):
    """Raised when the worksheet is missing, empty or has no header row."""

class MissingColumnsError(Exception):
    """Raised when expected columns are missing in sheet header."""


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def read_workbook(path: Path, sheet: str | None = None) -> tuple[str, pd.DataFrame]:
    """Read one worksheet raw (no header applied).

    Parameters
    ----------
    path: Excel ファイルパス
    sheet: 対象シート名 (None なら先頭シート)
    """
    try:
        xls = pd.ExcelFile(path)
    except FileNotFoundError:
        raise
    except Exception as e:
        raise SheetHeaderError(f"cannot open workbook {path}: {e}") from e

    names = [str(n) for n in xls.sheet_names]
    if not names:
        raise SheetHeaderError(f"workbook {path} has no worksheets")
    if sheet is None:
        name = names[0]
    elif sheet in names:
        name = sheet
    else:
        raise SheetHeaderError(f"worksheet '{sheet}' not found in {path.name} (sheets: {names})")

    df = xls.parse(name, header=None, keep_default_na=False, na_values=[])
    return name, df


def _clean_cell(value: Any) -> Any:
    if is_blank(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    # numpy scalar -> python scalar
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        try:
            return value.item()
        except (AttributeError, ValueError):
            return value
    return value


def normalize_sheet(
    df: pd.DataFrame,
    sheet_name: str,
    expected_columns: Iterable[str] | None = None,
) -> Grid:
    """Normalize a raw DataFrame using the first row as header.

    Steps:
    1. Validate a header row exists
    2. Extract header from first row (index=0), trimmed
    3. Remaining rows become data rows; fully blank rows are skipped
    4. Validate expected columns subset
    """
    if df.shape[0] < 1 or all(is_blank(v) for v in df.iloc[0].tolist()):
        raise SheetHeaderError(f"sheet '{sheet_name}' has no header row")

    header = ["" if is_blank(c) else str(c).strip() for c in df.iloc[0].tolist()]

    if expected_columns is not None:
        missing = set(expected_columns) - set(header)
        if missing:
            raise MissingColumnsError(f"sheet '{sheet_name}' missing columns: {sorted(missing)}")

    rows: list[list[Any]] = []
    row_numbers: list[int] = []
    for offset, raw in enumerate(df.iloc[1:].itertuples(index=False, name=None), start=1):
        values = [_clean_cell(v) for v in raw]
        if all(v is None for v in values):
            continue
        # 列数をヘッダに揃える
        if len(values) < len(header):
            values.extend([None] * (len(header) - len(values)))
        rows.append(values[: len(header)])
        row_numbers.append(HEADER_ROW_NUMBER + offset)

    return Grid(header=header, rows=rows, row_numbers=row_numbers, sheet_name=sheet_name)


def read_sheet(
    path: Path,
    sheet: str | None = None,
    expected_columns: Iterable[str] | None = None,
) -> Grid:
    name, df = read_workbook(path, sheet)
    return normalize_sheet(df, name, expected_columns=expected_columns)
