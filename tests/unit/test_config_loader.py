from __future__ import annotations

from pathlib import Path

import pytest

from catalog_sync.config.loader import ConfigError, load_config, require_shop


def test_load_full_config(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.shop.domain == "example.myshopify.com"
    assert cfg.shop.api_version == "2024-07"
    assert cfg.shop.access_token == "shpat_test"
    assert cfg.owner_type == "COLLECTION"
    assert cfg.import_.source_file == "./data/collections.xlsx"
    assert cfg.import_.sheet is None
    assert cfg.import_.invalid_cells == "clear"
    assert cfg.export.sheet == "Collections"
    assert cfg.specifications.table == "specifications"
    assert cfg.specifications.sku_column == "SKU"
    assert cfg.database.port == 5432
    assert cfg.database.dsn is None


def test_defaults_for_minimal_config(temp_workdir: Path):
    p = temp_workdir / "config" / "sync.yml"
    p.write_text("shop:\n  domain: s.myshopify.com\n", encoding="utf-8")
    cfg = load_config(p)
    assert cfg.shop.api_version == "2024-07"
    assert cfg.shop.access_token is None
    assert cfg.default_namespace == "custom"
    assert cfg.import_.invalid_cells == "clear"
    assert cfg.export.target_file == "./data/collections_export.xlsx"
    assert cfg.specifications.sheet is None
    assert cfg.database.host is None


def test_env_overrides_shop(write_config: Path, monkeypatch):
    monkeypatch.setenv("SHOPIFY_STORE_DOMAIN", "other.myshopify.com")
    monkeypatch.setenv("SHOPIFY_ACCESS_TOKEN", "shpat_env")
    cfg = load_config(write_config)
    assert cfg.shop.domain == "other.myshopify.com"
    assert cfg.shop.access_token == "shpat_env"


def test_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(temp_workdir / "config" / "missing.yml")


def test_invalid_yaml(temp_workdir: Path):
    p = temp_workdir / "config" / "sync.yml"
    p.write_text("shop: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(p)


def test_root_must_be_mapping(temp_workdir: Path):
    p = temp_workdir / "config" / "sync.yml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(p)


@pytest.mark.parametrize("body,location", [
    ("import:\n  invalid_cells: ignore\n", "import.invalid_cells"),
    ("specifications:\n  table: 'specs; drop'\n", "specifications.table"),
    ("owner_type: PRODUCT\n", "owner_type"),
    ("surprise: 1\n", ""),
])
def test_schema_violations(temp_workdir: Path, body: str, location: str):
    p = temp_workdir / "config" / "sync.yml"
    p.write_text("shop:\n  domain: s.myshopify.com\n" + body, encoding="utf-8")
    with pytest.raises(ConfigError, match="config validation failed") as exc:
        load_config(p)
    assert location in str(exc.value)


def test_shop_section_required(temp_workdir: Path):
    p = temp_workdir / "config" / "sync.yml"
    p.write_text("owner_type: COLLECTION\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(p)


def test_require_shop(temp_workdir: Path):
    p = temp_workdir / "config" / "sync.yml"
    p.write_text("shop:\n  domain: null\n", encoding="utf-8")
    cfg = load_config(p)
    with pytest.raises(ConfigError) as exc:
        require_shop(cfg)
    assert "shop.domain" in str(exc.value)
    assert "shop.access_token" in str(exc.value)


def test_require_shop_ok(write_config: Path):
    shop = require_shop(load_config(write_config))
    assert shop.domain == "example.myshopify.com"
