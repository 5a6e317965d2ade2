from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML config/sync.yml
- Validate against the bundled JSON schema (schema.json next to this module)
- Apply defaults for optional sections
- Environment overrides: SHOPIFY_STORE_DOMAIN / SHOPIFY_ACCESS_TOKEN win over
  the ``shop`` section (DB 接続の環境変数は cli 側で解決)
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ConfigError",
    "ShopConfig",
    "ImportSettings",
    "ExportSettings",
    "SpecificationSettings",
    "DatabaseConfig",
    "SyncConfig",
    "load_config",
    "require_shop",
]

DEFAULT_CONFIG_PATH = Path("config/sync.yml")
SCHEMA_PATH = Path(__file__).with_name("schema.json")

DEFAULT_API_VERSION = "2024-07"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class ShopConfig:
    domain: str | None
    api_version: str
    access_token: str | None


@dataclass(frozen=True)
class ImportSettings:
    source_file: str
    sheet: str | None  # None -> 先頭シート
    invalid_cells: str  # clear | skip


@dataclass(frozen=True)
class ExportSettings:
    target_file: str
    sheet: str


@dataclass(frozen=True)
class SpecificationSettings:
    source_file: str
    sheet: str | None
    table: str
    sku_column: str


@dataclass(frozen=True)
class DatabaseConfig:
    """Fallback connection settings; DATABASE_URL / PG* environment variables win."""
    host: str | None
    port: int | None
    user: str | None
    password: str | None
    database: str | None
    dsn: str | None


@dataclass(frozen=True)
class SyncConfig:
    shop: ShopConfig
    owner_type: str
    default_namespace: str
    import_: ImportSettings
    export: ExportSettings
    specifications: SpecificationSettings
    database: DatabaseConfig


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path)
        prefix = f"{location}: " if location else ""
        raise ConfigError(f"config validation failed: {prefix}{e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> SyncConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    shop_raw = data["shop"]
    shop = ShopConfig(
        domain=os.getenv("SHOPIFY_STORE_DOMAIN") or shop_raw.get("domain"),
        api_version=shop_raw.get("api_version") or DEFAULT_API_VERSION,
        access_token=os.getenv("SHOPIFY_ACCESS_TOKEN") or shop_raw.get("access_token"),
    )
    imp = data.get("import") or {}
    exp = data.get("export") or {}
    spec = data.get("specifications") or {}
    db_raw = data.get("database") or {}

    return SyncConfig(
        shop=shop,
        owner_type=data.get("owner_type", "COLLECTION"),
        default_namespace=data.get("default_namespace", "custom"),
        import_=ImportSettings(
            source_file=imp.get("source_file", "./data/collections.xlsx"),
            sheet=imp.get("sheet"),
            invalid_cells=imp.get("invalid_cells", "clear"),
        ),
        export=ExportSettings(
            target_file=exp.get("target_file", "./data/collections_export.xlsx"),
            sheet=exp.get("sheet", "Collections"),
        ),
        specifications=SpecificationSettings(
            source_file=spec.get("source_file", "./data/specifications.xlsx"),
            sheet=spec.get("sheet"),
            table=spec.get("table", "specifications"),
            sku_column=spec.get("sku_column", "SKU"),
        ),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
    )


def require_shop(cfg: SyncConfig) -> ShopConfig:
    """Shop settings needed to talk to the Admin API; raises when incomplete."""
    missing = []
    if not cfg.shop.domain:
        missing.append("shop.domain (or SHOPIFY_STORE_DOMAIN)")
    if not cfg.shop.access_token:
        missing.append("shop.access_token (or SHOPIFY_ACCESS_TOKEN)")
    if missing:
        raise ConfigError(f"missing shop settings: {', '.join(missing)}")
    return cfg.shop
