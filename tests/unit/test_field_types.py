from __future__ import annotations

import pytest

from catalog_sync.models.field_types import (
    FieldType,
    UnknownFieldTypeError,
    ValueType,
    is_collection_gid,
)


def test_parse_scalar_and_list():
    t = FieldType.parse("number_integer")
    assert t.base is ValueType.NUMBER_INTEGER and not t.is_list
    lt = FieldType.parse("list.collection_reference")
    assert lt.base is ValueType.COLLECTION_REFERENCE and lt.is_list
    assert lt.name == "list.collection_reference"
    assert str(lt) == "list.collection_reference"


@pytest.mark.parametrize("name", ["", "list.", "string", "list.rich_text_field", "list.json", "metaobject"])
def test_parse_rejects_unknown(name):
    with pytest.raises(UnknownFieldTypeError):
        FieldType.parse(name)


def test_exports_raw_for_references_and_lists():
    assert FieldType.parse("product_reference").exports_raw
    assert FieldType.parse("list.single_line_text_field").exports_raw
    assert not FieldType.parse("number_decimal").exports_raw


def test_accepts_id_checks_resource_and_digits():
    t = FieldType.parse("variant_reference")
    assert t.accepts_id("gid://shopify/ProductVariant/42")
    assert not t.accepts_id("gid://shopify/ProductVariant/abc")
    assert not t.accepts_id("gid://shopify/Product/42")
    assert not FieldType.parse("json").accepts_id("gid://shopify/Product/42")


def test_is_collection_gid():
    assert is_collection_gid("gid://shopify/Collection/123")
    assert not is_collection_gid("gid://shopify/Collection/")
    assert not is_collection_gid("123")
    assert not is_collection_gid("gid://shopify/Product/123")
