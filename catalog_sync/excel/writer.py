from __future__ import annotations

from pathlib import Path

import pandas as pd

from ..models.grid import Grid

"""Excel writer: Grid -> single-sheet workbook (openpyxl engine)."""

__all__ = [
    "write_grid",
]


def write_grid(grid: Grid, path: Path, sheet_name: str = "Collections") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(grid.rows, columns=grid.header, dtype=object)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return path
