from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

"""Closed set of custom field value types.

Type names arrive from the Admin API as plain strings (``number_integer``,
``list.collection_reference``...). They are parsed once into a ``FieldType``
so the rest of the pipeline dispatches on enum members instead of comparing
strings at every use site.
"""

__all__ = [
    "ValueType",
    "FieldType",
    "UnknownFieldTypeError",
    "DEFAULT_FIELD_TYPE",
    "LIST_PREFIX",
    "COLLECTION_GID_PREFIX",
    "is_collection_gid",
]

LIST_PREFIX = "list."
COLLECTION_GID_PREFIX = "gid://shopify/Collection/"

_GID_RE = re.compile(r"^gid://shopify/[A-Za-z]+/\d+$")


class UnknownFieldTypeError(ValueError):
    """Raised when a type name is outside the supported set."""


class ValueType(Enum):
    SINGLE_LINE_TEXT = "single_line_text_field"
    MULTI_LINE_TEXT = "multi_line_text_field"
    RICH_TEXT = "rich_text_field"
    NUMBER_INTEGER = "number_integer"
    NUMBER_DECIMAL = "number_decimal"
    BOOLEAN = "boolean"
    JSON = "json"
    DATE = "date"
    DATE_TIME = "date_time"
    MONEY = "money"
    URL = "url"
    COLOR = "color"
    RATING = "rating"
    DIMENSION = "dimension"
    VOLUME = "volume"
    WEIGHT = "weight"
    PRODUCT_REFERENCE = "product_reference"
    VARIANT_REFERENCE = "variant_reference"
    COLLECTION_REFERENCE = "collection_reference"
    FILE_REFERENCE = "file_reference"
    PAGE_REFERENCE = "page_reference"
    CUSTOMER_REFERENCE = "customer_reference"
    COMPANY_REFERENCE = "company_reference"
    METAOBJECT_REFERENCE = "metaobject_reference"
    MIXED_REFERENCE = "mixed_reference"


# Resource prefixes a reference value must carry
REFERENCE_PREFIXES: dict[ValueType, tuple[str, ...]] = {
    ValueType.PRODUCT_REFERENCE: ("gid://shopify/Product/",),
    ValueType.VARIANT_REFERENCE: ("gid://shopify/ProductVariant/",),
    ValueType.COLLECTION_REFERENCE: (COLLECTION_GID_PREFIX,),
    ValueType.FILE_REFERENCE: (
        "gid://shopify/MediaImage/",
        "gid://shopify/GenericFile/",
        "gid://shopify/Video/",
    ),
    ValueType.PAGE_REFERENCE: ("gid://shopify/Page/",),
    ValueType.CUSTOMER_REFERENCE: ("gid://shopify/Customer/",),
    ValueType.COMPANY_REFERENCE: ("gid://shopify/Company/",),
    ValueType.METAOBJECT_REFERENCE: ("gid://shopify/Metaobject/",),
    ValueType.MIXED_REFERENCE: ("gid://shopify/Metaobject/",),
}

# Scalar types whose stored value is itself a JSON document
JSON_ENCODED_TYPES = frozenset({
    ValueType.JSON,
    ValueType.MONEY,
    ValueType.RATING,
    ValueType.DIMENSION,
    ValueType.VOLUME,
    ValueType.WEIGHT,
})

_NOT_LISTABLE = frozenset({ValueType.RICH_TEXT, ValueType.JSON})


@dataclass(frozen=True)
class FieldType:
    """A value type, optionally wrapped as ``list.<type>``."""
    base: ValueType
    is_list: bool = False

    @classmethod
    def parse(cls, name: str) -> FieldType:
        raw = (name or "").strip()
        is_list = raw.startswith(LIST_PREFIX)
        base_name = raw[len(LIST_PREFIX):] if is_list else raw
        try:
            base = ValueType(base_name)
        except ValueError as e:
            raise UnknownFieldTypeError(f"unsupported field type: {name!r}") from e
        if is_list and base in _NOT_LISTABLE:
            raise UnknownFieldTypeError(f"unsupported field type: {name!r}")
        return cls(base=base, is_list=is_list)

    @property
    def name(self) -> str:
        return f"{LIST_PREFIX}{self.base.value}" if self.is_list else self.base.value

    @property
    def is_reference(self) -> bool:
        return self.base in REFERENCE_PREFIXES

    @property
    def exports_raw(self) -> bool:
        """Reference and list values are exported verbatim so they re-import losslessly."""
        return self.is_reference or self.is_list

    def accepts_id(self, value: str) -> bool:
        prefixes = REFERENCE_PREFIXES.get(self.base)
        if not prefixes or not isinstance(value, str):
            return False
        return value.startswith(prefixes) and _GID_RE.match(value) is not None

    def __str__(self) -> str:
        return self.name


DEFAULT_FIELD_TYPE = FieldType(ValueType.SINGLE_LINE_TEXT)


def is_collection_gid(value: str) -> bool:
    return (
        isinstance(value, str)
        and value.startswith(COLLECTION_GID_PREFIX)
        and _GID_RE.match(value) is not None
    )
