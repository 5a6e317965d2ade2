from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from .field_types import FieldType

"""Catalog domain models: collections, selection rules, field definitions and values.

``FieldValue`` is a small tagged union. A decoded cell is exactly one of:

- ``Scalar``: a single wire string (numbers, booleans and JSON documents are
  already rendered as text)
- ``ListValue``: elements of a ``list.*`` field, JSON-encoded on the wire
- ``NullValue``: clear the field on the owning record
"""

__all__ = [
    "DEFAULT_NAMESPACE",
    "SORT_ORDERS",
    "RECORD_KIND_MANUAL",
    "RECORD_KIND_RULE_BASED",
    "METAFIELD_RULE_COLUMN",
    "FieldDefinition",
    "FieldIndex",
    "Scalar",
    "ListValue",
    "NullValue",
    "NULL",
    "FieldValue",
    "SelectionRule",
    "RuleSet",
    "RecordField",
    "CatalogRecord",
]

DEFAULT_NAMESPACE = "custom"

SORT_ORDERS = (
    "ALPHA_ASC",
    "ALPHA_DESC",
    "BEST_SELLING",
    "CREATED",
    "CREATED_DESC",
    "MANUAL",
    "PRICE_ASC",
    "PRICE_DESC",
)

RECORD_KIND_MANUAL = "manual"
RECORD_KIND_RULE_BASED = "rule-based"

# Rule column that matches on a custom field instead of a fixed attribute
METAFIELD_RULE_COLUMN = "METAFIELD"


@dataclass(frozen=True)
class FieldDefinition:
    """Schema of one custom field attachable to an owner kind."""
    namespace: str
    key: str
    type: FieldType
    name: str = ""
    id: str | None = None  # remote definition GID
    owner_type: str = "COLLECTION"

    @property
    def ref(self) -> tuple[str, str]:
        return (self.namespace, self.key)


class FieldIndex(Mapping[str, FieldDefinition]):
    """Header -> definition lookup over every discovered definition.

    ``namespace.key`` addresses one exact definition. A bare key resolves to
    the default-namespace definition when there is one, otherwise to the first
    definition seen for that key.
    """

    def __init__(self, definitions: Iterable[FieldDefinition]) -> None:
        self.definitions = tuple(definitions)
        self._by_ref: dict[tuple[str, str], FieldDefinition] = {}
        self._by_key: dict[str, FieldDefinition] = {}
        for d in self.definitions:
            self._by_ref.setdefault(d.ref, d)
            if d.namespace == DEFAULT_NAMESPACE:
                # 素のキー列はデフォルト namespace として書き出される
                current = self._by_key.get(d.key)
                if current is None or current.namespace != DEFAULT_NAMESPACE:
                    self._by_key[d.key] = d
            else:
                self._by_key.setdefault(d.key, d)

    def __getitem__(self, header: str) -> FieldDefinition:
        if "." in header:
            namespace, key = header.split(".", 1)
            return self._by_ref[(namespace, key)]
        return self._by_key[header]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_key)

    def __len__(self) -> int:
        return len(self._by_key)


@dataclass(frozen=True)
class Scalar:
    text: str

    def to_wire(self) -> str:
        return self.text


@dataclass(frozen=True)
class ListValue:
    items: tuple[Any, ...]

    def to_wire(self) -> str:
        return json.dumps(list(self.items), ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True)
class NullValue:
    def to_wire(self) -> None:
        return None


NULL = NullValue()

FieldValue = Union[Scalar, ListValue, NullValue]


@dataclass(frozen=True)
class SelectionRule:
    column: str
    relation: str
    condition: str
    # (namespace, key) when column == METAFIELD
    field_ref: tuple[str, str] | None = None
    condition_object_id: str | None = None  # definition GID the API needs for METAFIELD rules

    @property
    def column_label(self) -> str:
        """Spreadsheet form of the column: ``METAFIELD:namespace.key`` for field rules."""
        if self.column == METAFIELD_RULE_COLUMN and self.field_ref:
            namespace, key = self.field_ref
            return f"{METAFIELD_RULE_COLUMN}:{namespace}.{key}"
        return self.column


@dataclass(frozen=True)
class RuleSet:
    rules: tuple[SelectionRule, ...]
    applied_disjunctively: bool = False  # True = match ANY rule


@dataclass(frozen=True)
class RecordField:
    """A stored field value as read back from the store (export side)."""
    namespace: str
    key: str
    type: str  # remote type name, parsed lazily so unknown types still export
    value: str | None
    display_value: str | None = None

    @property
    def ref(self) -> tuple[str, str]:
        return (self.namespace, self.key)


@dataclass(frozen=True)
class CatalogRecord:
    """A collection, either read from the store or decoded from a sheet row.

    ``None`` for an optional attribute means "not supplied": the attribute is
    left untouched on update.
    """
    id: str | None
    title: str | None
    description_html: str | None = None
    sort_order: str | None = None
    template_suffix: str | None = None
    rule_set: RuleSet | None = None
    fields: tuple[RecordField, ...] = field(default_factory=tuple)

    @property
    def kind(self) -> str:
        return RECORD_KIND_RULE_BASED if self.rule_set is not None else RECORD_KIND_MANUAL

    @property
    def is_new(self) -> bool:
        return not self.id
