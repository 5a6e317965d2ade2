"""Domain models for the catalog sync tool."""

from .catalog import (
    CatalogRecord,
    FieldDefinition,
    FieldIndex,
    ListValue,
    NullValue,
    RecordField,
    RuleSet,
    Scalar,
    SelectionRule,
)
from .error_record import ErrorKind, ErrorRecord, RowError
from .field_types import FieldType, ValueType
from .grid import Grid
from .processing_result import ExportResult, ImportReport, ImportRun, RowOutcome
from .row_data import ImportRow, PendingField

__all__ = [
    # Catalog
    "CatalogRecord",
    "FieldDefinition",
    "FieldIndex",
    "RecordField",
    "RuleSet",
    "SelectionRule",
    # Values
    "FieldType",
    "ValueType",
    "Scalar",
    "ListValue",
    "NullValue",
    # Rows & results
    "Grid",
    "ImportRow",
    "PendingField",
    "RowOutcome",
    "ImportReport",
    "ImportRun",
    "ExportResult",
    # Diagnostics
    "ErrorKind",
    "RowError",
    "ErrorRecord",
]
