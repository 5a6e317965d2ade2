# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from catalog_sync.logging.init import reset_logging
from catalog_sync.models.catalog import FieldDefinition
from catalog_sync.models.field_types import FieldType
from catalog_sync.shopify.gateway import DefinitionPage, FieldWriteResult, RecordWriteResult


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "SHOPIFY_STORE_DOMAIN",
        "SHOPIFY_ACCESS_TOKEN",
        "DATABASE_URL",
        "PGDSN",
        "PGHOST",
        "PGPORT",
        "PGUSER",
        "PGPASSWORD",
        "PGDATABASE",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """shop:
  domain: example.myshopify.com
  api_version: "2024-07"
  access_token: shpat_test
owner_type: COLLECTION
default_namespace: custom
import:
  source_file: ./data/collections.xlsx
  sheet: null
  invalid_cells: clear
export:
  target_file: ./data/collections_export.xlsx
  sheet: Collections
specifications:
  source_file: ./data/specifications.xlsx
  table: specifications
  sku_column: SKU
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: catalog
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "sync.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def write_xlsx(path: Path, header: list[str], rows: list[list[Any]], sheet: str = "Collections") -> Path:
    """Write a single-sheet workbook with ``header`` as row 1."""
    df = pd.DataFrame(rows, columns=header, dtype=object)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet, index=False)
    return path


@pytest.fixture()
def xlsx_writer():
    return write_xlsx


def make_definition(key: str, type_name: str, namespace: str = "custom", def_id: str | None = None) -> FieldDefinition:
    return FieldDefinition(
        namespace=namespace,
        key=key,
        type=FieldType.parse(type_name),
        name=key.replace("_", " ").title(),
        id=def_id or f"gid://shopify/MetafieldDefinition/{abs(hash((namespace, key))) % 10**6}",
    )


@pytest.fixture()
def known_fields() -> dict[str, FieldDefinition]:
    defs = [
        make_definition("subtitle", "single_line_text_field", def_id="gid://shopify/MetafieldDefinition/1"),
        make_definition("priority", "number_integer", def_id="gid://shopify/MetafieldDefinition/2"),
        make_definition("ratio", "number_decimal", def_id="gid://shopify/MetafieldDefinition/3"),
        make_definition("featured", "boolean", def_id="gid://shopify/MetafieldDefinition/4"),
        make_definition("settings", "json", def_id="gid://shopify/MetafieldDefinition/5"),
        make_definition("launch", "date", def_id="gid://shopify/MetafieldDefinition/6"),
        make_definition("related", "list.collection_reference", def_id="gid://shopify/MetafieldDefinition/7"),
        make_definition("hero", "product_reference", def_id="gid://shopify/MetafieldDefinition/8"),
        make_definition("season", "single_line_text_field", namespace="filters", def_id="gid://shopify/MetafieldDefinition/9"),
    ]
    return {d.key: d for d in defs}


class FakeGateway:
    """In-memory stand-in for CatalogGateway.

    Records every call; collection ids are handed out sequentially on create.
    """

    def __init__(
        self,
        definition_pages: list[list[dict[str, Any]]] | None = None,
        collections: list[Any] | None = None,
    ) -> None:
        self.definition_pages = definition_pages or [[]]
        self.collections = collections or []
        self.created: list[Any] = []
        self.updated: list[Any] = []
        self.field_writes: list[tuple[str, list[Any]]] = []
        self.definition_calls: list[str | None] = []
        self.stored: dict[str, dict[tuple[str, str], str | None]] = {}
        self.record_errors: dict[str, tuple[str, ...]] = {}  # title -> user errors
        self.field_errors: tuple[str, ...] = ()
        self._next_id = 1000

    def list_field_definitions(self, owner_type: str | None = None, after: str | None = None) -> DefinitionPage:
        self.definition_calls.append(after)
        index = 0 if after is None else int(after)
        has_next = index + 1 < len(self.definition_pages)
        return DefinitionPage(
            nodes=self.definition_pages[index],
            has_next_page=has_next,
            end_cursor=str(index + 1) if has_next else None,
        )

    def iter_collections(self, page_size: int = 50):
        yield from self.collections

    def create_collection(self, record) -> RecordWriteResult:
        errors = self.record_errors.get(record.title or "", ())
        if errors:
            return RecordWriteResult(record_id=None, user_errors=errors)
        self._next_id += 1
        new_id = f"gid://shopify/Collection/{self._next_id}"
        self.created.append(record)
        return RecordWriteResult(record_id=new_id)

    def update_collection(self, record) -> RecordWriteResult:
        errors = self.record_errors.get(record.title or "", ())
        if errors:
            return RecordWriteResult(record_id=None, user_errors=errors)
        self.updated.append(record)
        return RecordWriteResult(record_id=record.id)

    def set_field_values(self, owner_id: str, fields) -> FieldWriteResult:
        fields = list(fields)
        self.field_writes.append((owner_id, fields))
        store = self.stored.setdefault(owner_id, {})
        set_count = 0
        cleared = 0
        for pending in fields:
            store[pending.definition.ref] = pending.value.to_wire()
            if pending.clears:
                cleared += 1
            else:
                set_count += 1
        if self.field_errors:
            return FieldWriteResult(set_count=0, cleared_count=0, user_errors=self.field_errors)
        return FieldWriteResult(set_count=set_count, cleared_count=cleared)


@pytest.fixture()
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def definition_factory():
    return make_definition


def definition_node(definition: FieldDefinition) -> dict[str, Any]:
    """Admin API shaped node for a FieldDefinition."""
    return {
        "id": definition.id,
        "namespace": definition.namespace,
        "key": definition.key,
        "name": definition.name,
        "type": {"name": definition.type.name},
    }


@pytest.fixture()
def catalog_gateway(fake_gateway: FakeGateway, known_fields) -> FakeGateway:
    """FakeGateway whose schema discovery returns ``known_fields``."""
    fake_gateway.definition_pages = [[definition_node(d) for d in known_fields.values()]]
    return fake_gateway
