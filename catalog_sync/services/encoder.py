from __future__ import annotations

from collections.abc import Iterable

from ..models.catalog import (
    DEFAULT_NAMESPACE,
    RECORD_KIND_RULE_BASED,
    CatalogRecord,
    RecordField,
)
from ..models.field_types import FieldType, UnknownFieldTypeError
from ..models.grid import Grid

"""Tabular encoding: catalog records -> Grid (export direction).

Header layout: fixed core columns, then ``Rule i - Column/Relation/Condition``
triples up to the longest rule list, then one column per field seen across
the records, sorted by header text.
"""

__all__ = [
    "COL_ID",
    "COL_TITLE",
    "COL_DESCRIPTION",
    "COL_SORT_ORDER",
    "COL_TEMPLATE_SUFFIX",
    "COL_TYPE",
    "COL_RULE_MATCH",
    "CORE_COLUMNS",
    "REQUIRED_COLUMNS",
    "RULE_MATCH_ANY",
    "RULE_MATCH_ALL",
    "rule_headers",
    "field_header",
    "export_value",
    "encode_records",
]

COL_ID = "Collection ID"
COL_TITLE = "Title"
COL_DESCRIPTION = "Description"
COL_SORT_ORDER = "Sort Order"
COL_TEMPLATE_SUFFIX = "Template Suffix"
COL_TYPE = "Collection Type"
COL_RULE_MATCH = "Rule Match"

CORE_COLUMNS = (
    COL_ID,
    COL_TITLE,
    COL_DESCRIPTION,
    COL_SORT_ORDER,
    COL_TEMPLATE_SUFFIX,
    COL_TYPE,
    COL_RULE_MATCH,
)
REQUIRED_COLUMNS = (COL_ID, COL_TITLE)

RULE_MATCH_ANY = "Any"
RULE_MATCH_ALL = "All"


def rule_headers(index: int) -> tuple[str, str, str]:
    return (
        f"Rule {index} - Column",
        f"Rule {index} - Relation",
        f"Rule {index} - Condition",
    )


def field_header(namespace: str, key: str) -> str:
    return key if namespace == DEFAULT_NAMESPACE else f"{namespace}.{key}"


def export_value(field: RecordField) -> str:
    """Raw value for reference/list types, display value otherwise."""
    raw = field.value if field.value is not None else ""
    try:
        exports_raw = FieldType.parse(field.type).exports_raw
    except UnknownFieldTypeError:
        exports_raw = True
    if exports_raw:
        return raw
    return field.display_value if field.display_value is not None else raw


def encode_records(records: Iterable[CatalogRecord]) -> Grid:
    records = list(records)

    field_columns = sorted(
        {field_header(f.namespace, f.key) for r in records for f in r.fields}
    )
    max_rules = max(
        (len(r.rule_set.rules) for r in records if r.rule_set is not None),
        default=0,
    )

    header = list(CORE_COLUMNS)
    for i in range(1, max_rules + 1):
        header.extend(rule_headers(i))
    header.extend(field_columns)

    rows: list[list[str]] = []
    for record in records:
        rule_based = record.kind == RECORD_KIND_RULE_BASED
        if rule_based:
            match = RULE_MATCH_ANY if record.rule_set.applied_disjunctively else RULE_MATCH_ALL
        else:
            match = ""
        row = [
            record.id or "",
            record.title or "",
            record.description_html or "",
            record.sort_order or "",
            record.template_suffix or "",
            record.kind,
            match,
        ]
        rules = record.rule_set.rules if rule_based else ()
        for i in range(max_rules):
            if i < len(rules):
                rule = rules[i]
                row.extend([rule.column_label, rule.relation, rule.condition])
            else:
                row.extend(["", "", ""])

        values = {field_header(f.namespace, f.key): export_value(f) for f in record.fields}
        row.extend(values.get(col, "") for col in field_columns)
        rows.append(row)

    return Grid(header=header, rows=rows)
