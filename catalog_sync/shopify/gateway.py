from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from ..models.catalog import (
    METAFIELD_RULE_COLUMN,
    CatalogRecord,
    RecordField,
    RuleSet,
    SelectionRule,
)
from ..models.row_data import PendingField
from . import queries
from .client import ShopifyAdminClient

"""Catalog gateway: typed access to the Admin API operations.

The gateway owns the query documents and the response unpacking. User errors
returned by mutations come back as plain messages; transport and GraphQL
failures propagate as ``TransportError`` / ``GraphQLError`` from the client.
"""

__all__ = [
    "METAFIELDS_BATCH_LIMIT",
    "DefinitionPage",
    "RecordWriteResult",
    "FieldWriteResult",
    "CatalogGateway",
    "collection_input",
    "chunked",
]

logger = logging.getLogger(__name__)

# metafieldsSet は 1 リクエスト 25 件まで
METAFIELDS_BATCH_LIMIT = 25
DEFINITIONS_PAGE_SIZE = 100
COLLECTIONS_PAGE_SIZE = 50


@dataclass(frozen=True)
class DefinitionPage:
    nodes: list[dict[str, Any]]
    has_next_page: bool
    end_cursor: str | None


@dataclass(frozen=True)
class RecordWriteResult:
    record_id: str | None
    user_errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class FieldWriteResult:
    set_count: int = 0
    cleared_count: int = 0
    user_errors: tuple[str, ...] = ()


def chunked(items: Sequence[Any], size: int) -> Iterator[list[Any]]:
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def _format_user_error(err: dict[str, Any], entries: Sequence[dict[str, Any]] | None = None) -> str:
    message = str(err.get("message") or "unknown error")
    path = [str(p) for p in (err.get("field") or [])]
    # ["metafields", "3", "value"] -> namespace.key of the 4th entry
    if entries is not None and len(path) >= 2 and path[1].isdigit():
        idx = int(path[1])
        if 0 <= idx < len(entries):
            entry = entries[idx]
            return f"{entry['namespace']}.{entry['key']}: {message}"
    if path:
        return f"{'.'.join(path)}: {message}"
    return message


def _rule_input(rule: SelectionRule) -> dict[str, Any]:
    data: dict[str, Any] = {
        "column": rule.column,
        "relation": rule.relation,
        "condition": rule.condition,
    }
    if rule.column == METAFIELD_RULE_COLUMN and rule.condition_object_id:
        data["conditionObjectId"] = rule.condition_object_id
    return data


def collection_input(record: CatalogRecord) -> dict[str, Any]:
    """CollectionInput for create/update. Attributes left as None are omitted."""
    data: dict[str, Any] = {}
    if record.id:
        data["id"] = record.id
    if record.title is not None:
        data["title"] = record.title
    if record.description_html is not None:
        data["descriptionHtml"] = record.description_html
    if record.sort_order is not None:
        data["sortOrder"] = record.sort_order
    if record.template_suffix is not None:
        data["templateSuffix"] = record.template_suffix
    if record.rule_set is not None:
        data["ruleSet"] = {
            "appliedDisjunctively": record.rule_set.applied_disjunctively,
            "rules": [_rule_input(r) for r in record.rule_set.rules],
        }
    return data


def _parse_rule(node: dict[str, Any]) -> SelectionRule:
    column = node.get("column") or ""
    field_ref = None
    condition_object_id = None
    definition = ((node.get("conditionObject") or {}).get("metafieldDefinition")) or None
    if column == METAFIELD_RULE_COLUMN and definition:
        field_ref = (definition.get("namespace") or "", definition.get("key") or "")
        condition_object_id = definition.get("id")
    return SelectionRule(
        column=column,
        relation=node.get("relation") or "",
        condition=node.get("condition") or "",
        field_ref=field_ref,
        condition_object_id=condition_object_id,
    )


def _parse_collection(node: dict[str, Any]) -> CatalogRecord:
    rule_set = None
    raw_rules = node.get("ruleSet")
    if raw_rules:
        rule_set = RuleSet(
            rules=tuple(_parse_rule(r) for r in raw_rules.get("rules") or []),
            applied_disjunctively=bool(raw_rules.get("appliedDisjunctively")),
        )
    fields = tuple(
        RecordField(
            namespace=mf.get("namespace") or "",
            key=mf.get("key") or "",
            type=mf.get("type") or "",
            value=mf.get("value"),
        )
        for mf in ((node.get("metafields") or {}).get("nodes") or [])
    )
    return CatalogRecord(
        id=node.get("id"),
        title=node.get("title") or "",
        description_html=node.get("descriptionHtml") or "",
        sort_order=node.get("sortOrder"),
        template_suffix=node.get("templateSuffix"),
        rule_set=rule_set,
        fields=fields,
    )


class CatalogGateway:
    def __init__(self, client: ShopifyAdminClient, owner_type: str = "COLLECTION") -> None:
        self.client = client
        self.owner_type = owner_type

    # --- reads ---------------------------------------------------------------

    def list_field_definitions(self, owner_type: str | None = None, after: str | None = None) -> DefinitionPage:
        data = self.client.execute(
            queries.FIELD_DEFINITIONS_QUERY,
            {
                "ownerType": owner_type or self.owner_type,
                "first": DEFINITIONS_PAGE_SIZE,
                "after": after,
            },
        )
        conn = data.get("metafieldDefinitions") or {}
        page_info = conn.get("pageInfo") or {}
        return DefinitionPage(
            nodes=list(conn.get("nodes") or []),
            has_next_page=bool(page_info.get("hasNextPage")),
            end_cursor=page_info.get("endCursor"),
        )

    def iter_collections(self, page_size: int = COLLECTIONS_PAGE_SIZE) -> Iterator[CatalogRecord]:
        """All collections with rule sets and field values, page by page."""
        after: str | None = None
        while True:
            data = self.client.execute(queries.COLLECTIONS_QUERY, {"first": page_size, "after": after})
            conn = data.get("collections") or {}
            for node in conn.get("nodes") or []:
                yield _parse_collection(node)
            page_info = conn.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            after = page_info.get("endCursor")
            logger.debug(f"collections: next page after={after}")

    # --- writes --------------------------------------------------------------

    def _write_collection(self, mutation: str, root: str, record: CatalogRecord) -> RecordWriteResult:
        data = self.client.execute(mutation, {"input": collection_input(record)})
        payload = data.get(root) or {}
        errors = tuple(_format_user_error(e) for e in payload.get("userErrors") or [])
        collection = payload.get("collection") or {}
        return RecordWriteResult(record_id=collection.get("id"), user_errors=errors)

    def create_collection(self, record: CatalogRecord) -> RecordWriteResult:
        return self._write_collection(queries.COLLECTION_CREATE_MUTATION, "collectionCreate", record)

    def update_collection(self, record: CatalogRecord) -> RecordWriteResult:
        return self._write_collection(queries.COLLECTION_UPDATE_MUTATION, "collectionUpdate", record)

    def set_field_values(self, owner_id: str, fields: Iterable[PendingField]) -> FieldWriteResult:
        """Write one row's fields: set entries via metafieldsSet, clears via metafieldsDelete."""
        to_set: list[dict[str, Any]] = []
        to_clear: list[dict[str, Any]] = []
        for pending in fields:
            definition = pending.definition
            if pending.clears:
                to_clear.append({"ownerId": owner_id, "namespace": definition.namespace, "key": definition.key})
            else:
                to_set.append({
                    "ownerId": owner_id,
                    "namespace": definition.namespace,
                    "key": definition.key,
                    "type": definition.type.name,
                    "value": pending.value.to_wire(),
                })

        set_count = 0
        cleared_count = 0
        errors: list[str] = []
        for chunk in chunked(to_set, METAFIELDS_BATCH_LIMIT):
            data = self.client.execute(queries.METAFIELDS_SET_MUTATION, {"metafields": chunk})
            payload = data.get("metafieldsSet") or {}
            user_errors = payload.get("userErrors") or []
            errors.extend(_format_user_error(e, chunk) for e in user_errors)
            set_count += len(payload.get("metafields") or [])
        for chunk in chunked(to_clear, METAFIELDS_BATCH_LIMIT):
            data = self.client.execute(queries.METAFIELDS_DELETE_MUTATION, {"metafields": chunk})
            payload = data.get("metafieldsDelete") or {}
            user_errors = payload.get("userErrors") or []
            errors.extend(_format_user_error(e, chunk) for e in user_errors)
            cleared_count += max(len(chunk) - len(user_errors), 0)
        return FieldWriteResult(set_count=set_count, cleared_count=cleared_count, user_errors=tuple(errors))
