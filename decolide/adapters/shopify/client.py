"""
Shopify Admin GraphQL adapter.

Reads orders with their stage-proof metafields, resolves order names to
GIDs, registers uploaded files and attaches them to orders as metafields.

Every call is a single POST to /admin/api/{version}/graphql.json. Errors
are never retried here; they surface as UpstreamError so the caller can
report status and message.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from decolide.adapters.shopify.parser import parse_orders_response
from decolide.engine.models import RawOrder
from decolide.engine.stages import PROOF_NAMESPACE, MetafieldKey
from decolide.errors import ConfigurationError, NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-04"

# ---------------------------------------------------------------------------
# GraphQL
# ---------------------------------------------------------------------------

LIST_ORDERS_QUERY = """
query getOrders($first: Int!, $namespace: String!) {
  orders(first: $first, sortKey: CREATED_AT, reverse: true) {
    edges {
      node {
        id
        name
        createdAt
        customer {
          firstName
          lastName
        }
        lineItems(first: 1) {
          edges {
            node {
              title
            }
          }
        }
        metafields(first: 10, namespace: $namespace) {
          edges {
            node {
              key
              namespace
              value
              updatedAt
              reference {
                ... on MediaImage {
                  image {
                    url
                  }
                }
              }
            }
          }
        }
      }
    }
  }
}
"""

FIND_ORDER_GID_QUERY = """
query findOrder($query: String!) {
  orders(first: 1, query: $query) {
    edges {
      node {
        id
      }
    }
  }
}
"""

FILE_CREATE_MUTATION = """
mutation fileCreate($files: [FileCreateInput!]!) {
  fileCreate(files: $files) {
    files {
      ... on MediaImage {
        id
        image {
          url
        }
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""

METAFIELDS_SET_MUTATION = """
mutation MetafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields {
      key
      namespace
      value
    }
    userErrors {
      field
      message
    }
  }
}
"""


@dataclass(frozen=True)
class ShopifyConfig:
    store_name: str
    access_token: str
    api_version: str = DEFAULT_API_VERSION

    @classmethod
    def from_settings(cls, settings: Any) -> "ShopifyConfig":
        return cls(
            store_name=settings.shopify_store_name,
            access_token=settings.shopify_access_token,
            api_version=settings.shopify_api_version or DEFAULT_API_VERSION,
        )

    def missing(self) -> list[str]:
        return [
            k for k, v in {
                "SHOPIFY_STORE_NAME": self.store_name,
                "SHOPIFY_ADMIN_API_ACCESS_TOKEN": self.access_token,
            }.items() if not v
        ]

    @property
    def graphql_url(self) -> str:
        return f"https://{self.store_name}.myshopify.com/admin/api/{self.api_version}/graphql.json"


def _user_error_messages(user_errors: Any) -> list[str]:
    if not isinstance(user_errors, list):
        return []
    messages = []
    for err in user_errors:
        if isinstance(err, dict) and err.get("message"):
            messages.append(str(err["message"]))
    return messages


class ShopifyClient:
    def __init__(
        self,
        config: ShopifyConfig,
        *,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        missing = config.missing()
        if missing:
            raise ConfigurationError(f"Missing Shopify env vars: {', '.join(missing)}")
        self.config = config
        self.timeout = timeout
        self._transport = transport

    async def _graphql(
        self,
        operation: str,
        query: str,
        variables: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """POST one GraphQL document and return its `data` block."""
        headers = {
            "X-Shopify-Access-Token": self.config.access_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        body = {"query": query, "variables": variables or {}}

        logger.info(json.dumps({
            "event": "shopify_graphql_request",
            "operation": operation,
            "store": self.config.store_name,
        }))

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.config.graphql_url, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(json.dumps({
                "event": "shopify_graphql_transport_error",
                "operation": operation,
                "error": str(e)[:300],
            }))
            raise UpstreamError(f"Shopify {operation} request failed", detail=str(e)[:200]) from e

        if resp.status_code != 200:
            logger.error(json.dumps({
                "event": "shopify_graphql_failed",
                "operation": operation,
                "status": resp.status_code,
                "body": resp.text[:500],
            }))
            raise UpstreamError(
                f"Shopify {operation} failed",
                status=resp.status_code,
                detail=resp.text[:200],
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise UpstreamError(
                f"Shopify {operation} returned invalid JSON",
                status=resp.status_code,
                detail=resp.text[:200],
            ) from e

        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            logger.error(json.dumps({
                "event": "shopify_graphql_errors",
                "operation": operation,
                "errors": errors,
            }, default=str))
            messages = _user_error_messages(errors) or [str(errors)[:200]]
            raise UpstreamError(
                f"Shopify {operation} returned GraphQL errors",
                status=resp.status_code,
                detail="; ".join(messages),
            )

        data = payload.get("data") if isinstance(payload, dict) else None
        return data if isinstance(data, dict) else {}

    # -----------------------------------------------------------------------
    # Order source
    # -----------------------------------------------------------------------

    async def list_orders(self, limit: int = 50) -> list[RawOrder]:
        """Newest orders first, with their proof metafields."""
        data = await self._graphql(
            "list_orders",
            LIST_ORDERS_QUERY,
            {"first": max(1, min(limit, 250)), "namespace": PROOF_NAMESPACE},
        )
        orders = parse_orders_response(data)
        logger.info(json.dumps({
            "event": "shopify_orders_fetched",
            "count": len(orders),
        }))
        return orders

    async def find_order_gid(self, name: str) -> str:
        """Resolve a human-readable order name (e.g. "#1021") to its GID."""
        data = await self._graphql(
            "find_order_gid",
            FIND_ORDER_GID_QUERY,
            {"query": f"name:{name}"},
        )
        edges = (data.get("orders") or {}).get("edges") or []
        gid = None
        if edges and isinstance(edges[0], dict):
            gid = (edges[0].get("node") or {}).get("id")
        if not gid:
            raise NotFoundError(f"Could not find Shopify order GID for order name {name}")
        return gid

    # -----------------------------------------------------------------------
    # Files + metafields
    # -----------------------------------------------------------------------

    async def file_create(self, source_url: str, alt: Optional[str] = None) -> tuple[str, Optional[str]]:
        """
        Register an image with Shopify from a fetchable URL.

        Returns (file_gid, image_url). image_url is None while Shopify is
        still processing the file.
        """
        file_input: dict[str, Any] = {"contentType": "IMAGE", "originalSource": source_url}
        if alt:
            file_input["alt"] = alt

        data = await self._graphql("file_create", FILE_CREATE_MUTATION, {"files": [file_input]})
        result = data.get("fileCreate") or {}

        messages = _user_error_messages(result.get("userErrors"))
        if messages:
            raise UpstreamError("Failed to upload image to Shopify", detail="; ".join(messages))

        files = result.get("files") or []
        first = files[0] if files and isinstance(files[0], dict) else {}
        file_gid = first.get("id")
        if not file_gid:
            raise UpstreamError("Shopify fileCreate returned no file id")

        image_url = (first.get("image") or {}).get("url")
        return file_gid, image_url

    async def metafields_set(self, owner_id: str, key: MetafieldKey, file_gid: str) -> None:
        data = await self._graphql(
            "metafields_set",
            METAFIELDS_SET_MUTATION,
            {
                "metafields": [{
                    "ownerId": owner_id,
                    "namespace": key.namespace,
                    "key": key.key,
                    "type": "file_reference",
                    "value": file_gid,
                }],
            },
        )
        result = data.get("metafieldsSet") or {}
        messages = _user_error_messages(result.get("userErrors"))
        if messages:
            raise UpstreamError("Failed to set metafield in Shopify", detail="; ".join(messages))

        logger.info(json.dumps({
            "event": "shopify_metafield_set",
            "owner_id": owner_id,
            "metafield": str(key),
            "file_gid": file_gid,
        }))
