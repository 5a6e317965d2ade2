from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Grid: the in-memory two-dimensional form of a single worksheet.

Row 1 of the worksheet is the header; data rows follow. ``row_numbers`` keeps
the original spreadsheet row number of every data row so diagnostics still
point at the right line after blank rows have been dropped.
"""

__all__ = [
    "HEADER_ROW_NUMBER",
    "Grid",
]

HEADER_ROW_NUMBER = 1


@dataclass
class Grid:
    header: list[str]
    rows: list[list[Any]] = field(default_factory=list)
    row_numbers: list[int] | None = None
    sheet_name: str = ""

    def __post_init__(self) -> None:
        if self.row_numbers is None:
            self.row_numbers = [HEADER_ROW_NUMBER + 1 + i for i in range(len(self.rows))]
        if len(self.row_numbers) != len(self.rows):
            raise ValueError("row_numbers must match rows")

    def column_index(self) -> dict[str, int]:
        """Header name -> column index. The first occurrence of a repeated name wins."""
        index: dict[str, int] = {}
        for i, name in enumerate(self.header):
            if name and name not in index:
                index[name] = i
        return index

    def iter_rows(self):
        yield from zip(self.row_numbers, self.rows)
