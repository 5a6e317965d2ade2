from __future__ import annotations

import json
import logging
from typing import Any

import requests
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

"""Admin API GraphQL client.

One POST per operation to ``https://<domain>/admin/api/<version>/graphql.json``.
Throttling (HTTP 429, GraphQL ``THROTTLED``), 5xx responses and connection
failures are retried with exponential backoff; anything else surfaces on the
first attempt.
"""

__all__ = [
    "DEFAULT_API_VERSION",
    "TransportError",
    "RetryableError",
    "GraphQLError",
    "ShopifyAdminClient",
]

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-07"
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_TIMEOUT = 30


class TransportError(Exception):
    """HTTP level failure talking to the Admin API."""

class RetryableError(TransportError):
    """Throttled or transient failure; retried before surfacing."""

class GraphQLError(Exception):
    """Top-level ``errors`` in a GraphQL response."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def _is_throttled(errors: list[dict[str, Any]]) -> bool:
    for err in errors:
        code = (err.get("extensions") or {}).get("code")
        if code == "THROTTLED":
            return True
    return False


class ShopifyAdminClient:
    def __init__(
        self,
        domain: str,
        access_token: str,
        api_version: str = DEFAULT_API_VERSION,
        *,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        wait: Any = None,
    ) -> None:
        self.domain = domain
        self.api_version = api_version
        self.timeout = timeout
        self.max_attempts = max_attempts
        self._wait = wait if wait is not None else wait_exponential(multiplier=1, min=1, max=20)
        self._session = session or requests.Session()
        self._headers = {
            "X-Shopify-Access-Token": access_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @property
    def endpoint(self) -> str:
        return f"https://{self.domain}/admin/api/{self.api_version}/graphql.json"

    def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run one GraphQL operation and return its ``data`` object.

        Raises:
            TransportError: HTTP failure, or retries exhausted
            GraphQLError: the response carried top-level errors
        """
        retryer = Retrying(
            reraise=True,
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type((requests.RequestException, RetryableError)),
        )
        try:
            return retryer(self._post, query, variables or {})
        except requests.RequestException as e:
            raise TransportError(f"request to {self.endpoint} failed: {e}") from e

    def _post(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        resp = self._session.post(
            self.endpoint,
            headers=self._headers,
            data=json.dumps({"query": query, "variables": variables}),
            timeout=self.timeout,
        )
        if resp.status_code == 429:
            logger.debug("rate limited (429), backing off")
            raise RetryableError("rate limited (429)")
        if resp.status_code >= 500:
            raise RetryableError(f"server error {resp.status_code}: {resp.text[:500]}")
        if not resp.ok:
            raise TransportError(f"HTTP {resp.status_code}: {resp.text[:500]}")
        try:
            body = resp.json()
        except ValueError as e:
            raise TransportError(f"invalid JSON response: {e}") from e

        errors = body.get("errors") or []
        if isinstance(errors, str):
            errors = [{"message": errors}]
        if errors:
            if _is_throttled(errors):
                logger.debug("query throttled, backing off")
                raise RetryableError("throttled")
            messages = "; ".join(str(err.get("message", "")) for err in errors)[:500]
            raise GraphQLError(f"GraphQL errors: {messages}", errors)
        return body.get("data") or {}
