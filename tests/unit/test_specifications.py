from __future__ import annotations

from unittest.mock import MagicMock

import psycopg2
import pytest

from catalog_sync.db import batch_insert as bi
from catalog_sync.db.specifications import (
    decode_specifications,
    import_specifications,
    normalize_key,
)
from catalog_sync.excel.reader import MissingColumnsError
from catalog_sync.models.error_record import ErrorKind
from catalog_sync.models.grid import Grid


@pytest.fixture()
def execute_values(monkeypatch):
    ev = MagicMock(return_value=None)
    monkeypatch.setattr(bi, "execute_values", ev)
    return ev


def _grid(rows):
    return Grid(header=["SKU", "Color", "Weight (kg)", "Notes"], rows=rows, sheet_name="Specs")


def _statements(cursor):
    return [c[0][0] for c in cursor.execute.call_args_list]


def test_normalize_key():
    assert normalize_key("  Weight   (KG) ") == "weight (kg)"
    assert normalize_key(None) == ""


def test_decode_specifications():
    rows, errors = decode_specifications(_grid([
        ["A-1", "Red", 1.5, None],
        [None, "Blue", None, None],
        [101, None, 2.0, "  "],
    ]))
    assert [r.sku for r in rows] == ["A-1", "101"]
    assert rows[0].values == (("Color", "Red"), ("Weight (kg)", "1.5"))
    assert rows[1].values == (("Weight (kg)", "2"),)
    assert len(errors) == 1
    assert errors[0].row == 3
    assert errors[0].kind is ErrorKind.ROW_SKIPPED


def test_decode_requires_sku_column():
    with pytest.raises(MissingColumnsError):
        decode_specifications(Grid(header=["Color"], rows=[]), "SKU")


def test_updates_existing_and_inserts_new(execute_values):
    cur = MagicMock()
    cur.fetchall.return_value = [("color",)]
    report = import_specifications(cur, _grid([["A-1", "Red", 1.5, None]]))
    statements = _statements(cur)
    assert statements[0] == "SAVEPOINT spec_row"
    assert statements[1] == 'SELECT spec_key FROM "specifications" WHERE sku = %s'
    assert statements[2] == 'UPDATE "specifications" SET spec_value = %s WHERE sku = %s AND spec_key = %s'
    # 既存キー "color" はそのまま使う
    assert cur.execute.call_args_list[2][0][1] == ("Red", "A-1", "color")
    assert statements[-1] == "RELEASE SAVEPOINT spec_row"
    assert execute_values.call_args[0][2] == [("A-1", "Weight (kg)", "1.5")]
    assert report.created_count == 1
    assert report.updated_count == 1
    assert report.fields_set_count == 2
    assert report.success


def test_failing_row_rolls_back_to_savepoint(execute_values):
    cur = MagicMock()
    cur.fetchall.return_value = []
    execute_values.side_effect = [psycopg2.Error("value too long"), None]
    report = import_specifications(cur, _grid([
        ["A-1", "Red", None, None],
        ["B-2", "Blue", None, None],
    ]))
    statements = _statements(cur)
    assert "ROLLBACK TO SAVEPOINT spec_row" in statements
    assert statements.count("RELEASE SAVEPOINT spec_row") == 1
    assert report.created_count == 1
    assert report.failed_rows == [2]
    assert report.errors[0].kind is ErrorKind.STORE_ERROR
    assert "A-1" in report.errors[0].message


def test_duplicate_normalized_keys_keep_first(execute_values):
    cur = MagicMock()
    cur.fetchall.return_value = []
    grid = Grid(header=["SKU", "Color", "color "], rows=[["A-1", "Red", "Blue"]])
    import_specifications(cur, grid)
    assert execute_values.call_args[0][2] == [("A-1", "Color", "Red")]


def test_invalid_table_name_rejected():
    with pytest.raises(ValueError):
        import_specifications(MagicMock(), _grid([]), table="specs; DROP TABLE x")
