from __future__ import annotations

import json
import math
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import urlsplit

import pandas as pd

from ..excel.reader import is_blank
from ..models.catalog import NULL, FieldValue, ListValue, Scalar
from ..models.field_types import (
    JSON_ENCODED_TYPES,
    REFERENCE_PREFIXES,
    FieldType,
    ValueType,
)

"""Type-directed cell conversion (spreadsheet cell -> wire value).

Every value type has exactly one converter. A converter returns either a
``FieldValue`` or ``None`` ("no value"); ``convert_value`` turns "no value"
into a ``NullValue`` plus a problem message when the cell was not empty, so
the decoder can report it.

Empty cells always clear, except booleans which default to ``false``.

Spreadsheet date serials use the 1900 date system: serial 25569 is
1970-01-01, so ``44562`` -> ``2022-01-01``.
"""

__all__ = [
    "EXCEL_EPOCH_OFFSET_DAYS",
    "Converted",
    "convert_value",
    "cell_text",
    "excel_serial_to_datetime",
]

EXCEL_EPOCH_OFFSET_DAYS = 25569
_UNIX_EPOCH = datetime(1970, 1, 1)

_INT_RE = re.compile(r"^[+-]?\d+(?:\.0*)?$")
# 数字5桁のテキストはシリアル値として扱う (1927-2173 年)
_SERIAL_TEXT_RE = re.compile(r"^\d{5}(?:\.\d+)?$")
_TRUE_WORDS = frozenset({"true", "1", "yes", "any"})

_URL_SCHEMES_WITH_HOST = frozenset({"http", "https"})
_URL_SCHEMES_WITH_TARGET = frozenset({"mailto", "sms", "tel"})


@dataclass(frozen=True)
class Converted:
    value: FieldValue
    problem: str | None = None  # set when a non-empty cell could not be converted


def excel_serial_to_datetime(serial: float) -> datetime:
    return _UNIX_EPOCH + timedelta(days=float(serial) - EXCEL_EPOCH_OFFSET_DAYS)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _canonical_decimal(d: Decimal) -> str:
    if d == 0:
        return "0"
    return format(d.normalize(), "f")


def cell_text(cell: Any) -> str:
    """Render a raw cell as text, the way a user reading the sheet sees it."""
    if is_blank(cell):
        return ""
    if isinstance(cell, str):
        return cell
    if isinstance(cell, bool):
        return "true" if cell else "false"
    if isinstance(cell, int):
        return str(cell)
    if isinstance(cell, float):
        if math.isfinite(cell) and cell == int(cell):
            return str(int(cell))
        return _canonical_decimal(Decimal(repr(cell))) if math.isfinite(cell) else str(cell)
    if isinstance(cell, (datetime, date)):
        return cell.isoformat()
    return str(cell)


# --- scalar converters -------------------------------------------------------

def _to_text(cell: Any) -> FieldValue | None:
    text = cell_text(cell).strip()
    return Scalar(text) if text else None


def _to_integer(cell: Any) -> FieldValue | None:
    if _is_number(cell):
        if isinstance(cell, float) and (not math.isfinite(cell) or cell != int(cell)):
            return None
        return Scalar(str(int(cell)))
    text = cell_text(cell).strip()
    if not _INT_RE.match(text):
        return None
    return Scalar(str(int(Decimal(text))))


def _to_decimal(cell: Any) -> FieldValue | None:
    if _is_number(cell):
        if isinstance(cell, float) and not math.isfinite(cell):
            return None
        raw = repr(cell) if isinstance(cell, float) else str(cell)
    else:
        raw = cell_text(cell).strip()
    try:
        d = Decimal(raw)
    except InvalidOperation:
        return None
    if not d.is_finite():
        return None
    return Scalar(_canonical_decimal(d))


def _to_boolean(cell: Any) -> FieldValue | None:
    if isinstance(cell, bool):
        flag = cell
    elif _is_number(cell):
        flag = cell == 1
    else:
        flag = cell_text(cell).strip().lower() in _TRUE_WORDS
    return Scalar("true" if flag else "false")


def _to_json_text(cell: Any) -> FieldValue | None:
    text = cell_text(cell)
    try:
        json.loads(text)
    except (TypeError, ValueError):
        return None
    return Scalar(text)


def _rich_text_document(text: str) -> str:
    doc = {
        "type": "root",
        "children": [
            {"type": "paragraph", "children": [{"type": "text", "value": text}]},
        ],
    }
    return json.dumps(doc, ensure_ascii=False)


def _to_rich_text(cell: Any) -> FieldValue | None:
    text = cell_text(cell)
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError):
        parsed = None
    if isinstance(parsed, dict):
        return Scalar(text)  # 既にエクスポート済みの文書
    stripped = text.strip()
    return Scalar(_rich_text_document(stripped)) if stripped else None


def _parse_temporal(cell: Any) -> datetime | None:
    if isinstance(cell, datetime):
        return cell
    if isinstance(cell, date):
        return datetime(cell.year, cell.month, cell.day)
    if _is_number(cell):
        if not math.isfinite(cell):
            return None
        return excel_serial_to_datetime(cell)
    text = cell_text(cell).strip()
    if not text:
        return None
    if _SERIAL_TEXT_RE.match(text):
        return excel_serial_to_datetime(float(text))
    try:
        ts = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _to_date(cell: Any) -> FieldValue | None:
    try:
        moment = _parse_temporal(cell)
    except OverflowError:
        return None
    return Scalar(moment.date().isoformat()) if moment is not None else None


def _to_date_time(cell: Any) -> FieldValue | None:
    try:
        moment = _parse_temporal(cell)
    except OverflowError:
        return None
    return Scalar(moment.isoformat()) if moment is not None else None


def _to_url(cell: Any) -> FieldValue | None:
    text = cell_text(cell).strip()
    if not text or any(ch.isspace() for ch in text):
        return None
    try:
        parts = urlsplit(text)
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    if scheme in _URL_SCHEMES_WITH_HOST and parts.hostname:
        return Scalar(text)
    if scheme in _URL_SCHEMES_WITH_TARGET and parts.path:
        return Scalar(text)
    return None


def _reference_converter(field_type: FieldType) -> Callable[[Any], FieldValue | None]:
    def convert(cell: Any) -> FieldValue | None:
        text = cell_text(cell).strip()
        return Scalar(text) if field_type.accepts_id(text) else None
    return convert


_SCALAR_CONVERTERS: dict[ValueType, Callable[[Any], FieldValue | None]] = {
    ValueType.SINGLE_LINE_TEXT: _to_text,
    ValueType.MULTI_LINE_TEXT: _to_text,
    ValueType.COLOR: _to_text,
    ValueType.RICH_TEXT: _to_rich_text,
    ValueType.NUMBER_INTEGER: _to_integer,
    ValueType.NUMBER_DECIMAL: _to_decimal,
    ValueType.BOOLEAN: _to_boolean,
    ValueType.DATE: _to_date,
    ValueType.DATE_TIME: _to_date_time,
    ValueType.URL: _to_url,
    **{t: _to_json_text for t in JSON_ENCODED_TYPES},
    **{t: _reference_converter(FieldType(t)) for t in REFERENCE_PREFIXES},
}


# --- list converters ---------------------------------------------------------

def _json_array(text: str) -> list[Any] | None:
    stripped = text.strip()
    if not stripped.startswith("["):
        return None
    try:
        parsed = json.loads(stripped)
    except ValueError:
        return None
    return parsed if isinstance(parsed, list) else None


def _to_reference_list(field_type: FieldType, cell: Any) -> FieldValue | None:
    text = cell_text(cell).strip()
    items = _json_array(text)
    if items is None:
        # 単一IDは1要素配列に包む
        return ListValue((text,)) if field_type.accepts_id(text) else None
    if all(field_type.accepts_id(item) for item in items):
        return ListValue(tuple(items))
    return None


_MISSING = object()


def _list_element(base: ValueType, item: Any, raw: bool) -> Any:
    """One list element in its JSON form, or ``_MISSING`` when invalid.

    ``raw`` elements come from a JSON array (the exported wire form); valid
    strings among them are kept verbatim so the array re-imports unchanged.
    """
    if base in JSON_ENCODED_TYPES:
        if isinstance(item, str):
            try:
                item = json.loads(item)
            except ValueError:
                return _MISSING
        return item if isinstance(item, dict) else _MISSING
    if item is None or isinstance(item, (list, dict)):
        return _MISSING
    if base is ValueType.BOOLEAN:
        if isinstance(item, bool):
            return item
        word = cell_text(item).strip().lower()
        return word == "true" if word in ("true", "false") else _MISSING
    converted = _SCALAR_CONVERTERS[base](item)
    if not isinstance(converted, Scalar):
        return _MISSING
    if base is ValueType.NUMBER_INTEGER:
        return int(converted.text)
    if raw and isinstance(item, str):
        return item.strip()
    if base is ValueType.NUMBER_DECIMAL and raw:
        return item
    return converted.text


def _to_plain_list(field_type: FieldType, cell: Any) -> FieldValue | None:
    items = _json_array(cell_text(cell))
    raw = items is not None
    if not raw:
        # 単一値は1要素配列に包む
        items = [cell]
    elements = [_list_element(field_type.base, item, raw) for item in items]
    if any(e is _MISSING for e in elements):
        return None
    return ListValue(tuple(elements))


def convert_value(field_type: FieldType, cell: Any) -> Converted:
    """Convert one spreadsheet cell for a field of ``field_type``."""
    if is_blank(cell):
        if field_type.base is ValueType.BOOLEAN and not field_type.is_list:
            return Converted(Scalar("false"))
        return Converted(NULL)

    if field_type.is_list:
        if field_type.is_reference:
            value = _to_reference_list(field_type, cell)
        else:
            value = _to_plain_list(field_type, cell)
    else:
        value = _SCALAR_CONVERTERS[field_type.base](cell)

    if value is None:
        return Converted(NULL, problem=f"invalid {field_type.name} value {cell_text(cell)!r}")
    return Converted(value)
