from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import requests
from tenacity import wait_none

from catalog_sync.shopify.client import (
    GraphQLError,
    ShopifyAdminClient,
    TransportError,
)


def _resp(status=200, body=None, text=""):
    r = MagicMock()
    r.status_code = status
    r.ok = 200 <= status < 400
    r.text = text or json.dumps(body or {})
    if body is None:
        r.json.side_effect = ValueError("no json")
    else:
        r.json.return_value = body
    return r


def _client(*responses, max_attempts=3):
    session = MagicMock()
    session.post.side_effect = list(responses)
    client = ShopifyAdminClient(
        "example.myshopify.com", "shpat_x", "2024-07",
        session=session, max_attempts=max_attempts, wait=wait_none(),
    )
    return client, session


def test_endpoint_and_headers():
    client, session = _client(_resp(body={"data": {"shop": {"name": "x"}}}))
    data = client.execute("{ shop { name } }", {"a": 1})
    assert data == {"shop": {"name": "x"}}
    args, kwargs = session.post.call_args
    assert args[0] == "https://example.myshopify.com/admin/api/2024-07/graphql.json"
    assert kwargs["headers"]["X-Shopify-Access-Token"] == "shpat_x"
    assert json.loads(kwargs["data"]) == {"query": "{ shop { name } }", "variables": {"a": 1}}


def test_rate_limit_is_retried():
    client, session = _client(_resp(429, text="slow down"), _resp(body={"data": {"ok": True}}))
    assert client.execute("q") == {"ok": True}
    assert session.post.call_count == 2


def test_throttled_graphql_error_is_retried():
    throttled = {"errors": [{"message": "Throttled", "extensions": {"code": "THROTTLED"}}]}
    client, session = _client(_resp(body=throttled), _resp(body={"data": {"ok": 1}}))
    assert client.execute("q") == {"ok": 1}
    assert session.post.call_count == 2


def test_server_errors_exhaust_retries():
    client, session = _client(_resp(502, text="bad"), _resp(503, text="bad"), _resp(500, text="bad"))
    with pytest.raises(TransportError):
        client.execute("q")
    assert session.post.call_count == 3


def test_connection_error_is_wrapped():
    client, session = _client(
        requests.ConnectionError("boom"), requests.ConnectionError("boom"), requests.ConnectionError("boom"),
    )
    with pytest.raises(TransportError, match="boom"):
        client.execute("q")
    assert session.post.call_count == 3


def test_client_error_is_not_retried():
    client, session = _client(_resp(401, text="unauthorized"))
    with pytest.raises(TransportError, match="HTTP 401"):
        client.execute("q")
    assert session.post.call_count == 1


def test_graphql_errors_surface():
    body = {"errors": [{"message": "Field 'x' doesn't exist"}]}
    client, session = _client(_resp(body=body))
    with pytest.raises(GraphQLError) as exc:
        client.execute("q")
    assert exc.value.errors == body["errors"]
    assert session.post.call_count == 1


def test_string_errors_are_normalized():
    client, _ = _client(_resp(body={"errors": "Invalid API key"}))
    with pytest.raises(GraphQLError, match="Invalid API key"):
        client.execute("q")


def test_invalid_json_is_transport_error():
    client, _ = _client(_resp(200, body=None, text="<html>"))
    with pytest.raises(TransportError, match="invalid JSON"):
        client.execute("q")
