from __future__ import annotations

import logging
from typing import Any

from ..models.catalog import DEFAULT_NAMESPACE, FieldDefinition, FieldIndex
from ..models.field_types import FieldType, UnknownFieldTypeError
from ..shopify.client import GraphQLError, TransportError

"""Schema discovery: enumerate every field definition for an owner kind.

All pages are fetched; a failure on any page is fatal for the operation
because no cell can be converted without the schema. Every namespace keeps
its own definition; only an exact ``namespace.key`` repeat is dropped. Bare-key
precedence is decided by ``index_fields``.
"""

__all__ = [
    "DiscoveryError",
    "discover_fields",
    "index_fields",
]

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Raised when field definitions cannot be listed."""


def _parse_definition(node: dict[str, Any], owner_type: str) -> FieldDefinition | None:
    type_info = node.get("type")
    type_name = type_info.get("name") if isinstance(type_info, dict) else type_info
    key = node.get("key") or ""
    namespace = node.get("namespace") or DEFAULT_NAMESPACE
    try:
        field_type = FieldType.parse(type_name or "")
    except UnknownFieldTypeError:
        logger.warning(f"skipping field {namespace}.{key}: unsupported type {type_name!r}")
        return None
    return FieldDefinition(
        namespace=namespace,
        key=key,
        type=field_type,
        name=node.get("name") or key,
        id=node.get("id"),
        owner_type=owner_type,
    )


def discover_fields(gateway: Any, owner_type: str = "COLLECTION") -> list[FieldDefinition]:
    definitions: list[FieldDefinition] = []
    seen: set[tuple[str, str]] = set()
    after: str | None = None
    pages = 0
    while True:
        try:
            page = gateway.list_field_definitions(owner_type, after=after)
        except (TransportError, GraphQLError) as e:
            raise DiscoveryError(f"listing {owner_type} field definitions failed: {e}") from e
        pages += 1
        for node in page.nodes:
            definition = _parse_definition(node, owner_type)
            if definition is None or not definition.key:
                continue
            if definition.ref in seen:
                logger.debug(f"duplicate field {definition.namespace}.{definition.key} ignored")
                continue
            seen.add(definition.ref)
            definitions.append(definition)
        if not page.has_next_page:
            break
        after = page.end_cursor

    logger.info(f"discovered {len(definitions)} {owner_type} field definitions ({pages} pages)")
    return definitions


def index_fields(definitions: list[FieldDefinition]) -> FieldIndex:
    """Header lookup: bare key (first seen, default namespace preferred) or ``namespace.key``."""
    return FieldIndex(definitions)
