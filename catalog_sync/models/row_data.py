from __future__ import annotations

from dataclasses import dataclass, field

from .catalog import CatalogRecord, FieldDefinition, FieldValue, NullValue

"""ImportRow model: the decoded form of one spreadsheet data row.

An ImportRow only lives between decoding and apply. The ``row_number`` is the
1-based spreadsheet row (the header is row 1, so the first data row is 2) and
is carried through to every diagnostic about the row.
"""

__all__ = [
    "PendingField",
    "ImportRow",
]


@dataclass(frozen=True)
class PendingField:
    definition: FieldDefinition
    value: FieldValue

    @property
    def clears(self) -> bool:
        return isinstance(self.value, NullValue)


@dataclass(frozen=True)
class ImportRow:
    """Record input plus pending field values for one spreadsheet row."""
    row_number: int
    record: CatalogRecord
    # (namespace, key) -> pending value, in header order
    fields: dict[tuple[str, str], PendingField] = field(default_factory=dict)

    @property
    def is_create(self) -> bool:
        return self.record.is_new
