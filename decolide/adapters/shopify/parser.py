from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from decolide.engine.models import RawMetafield, RawOrder

logger = logging.getLogger(__name__)


def _deep_get(data: Any, *path: str) -> Any:
    cur: Any = data
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _str_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _edges(connection: Any) -> list[dict[str, Any]]:
    """Nodes of a GraphQL connection ({"edges": [{"node": ...}]})."""
    edges = _deep_get(connection, "edges")
    if not isinstance(edges, list):
        return []
    nodes = []
    for edge in edges:
        node = edge.get("node") if isinstance(edge, dict) else None
        if isinstance(node, dict):
            nodes.append(node)
    return nodes


def parse_dt(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value.strip():
        txt = value.strip()
        if txt.endswith("Z"):
            txt = txt[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(txt)
        except ValueError:
            return None
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt
    return None


def parse_metafield(node: dict[str, Any]) -> Optional[RawMetafield]:
    namespace = _str_or_none(node.get("namespace"))
    key = _str_or_none(node.get("key"))
    if not namespace or not key:
        return None
    return RawMetafield(
        namespace=namespace,
        key=key,
        value=node.get("value") if isinstance(node.get("value"), str) else None,
        image_url=_str_or_none(_deep_get(node, "reference", "image", "url")),
        updated_at=parse_dt(node.get("updatedAt")),
    )


def parse_order_node(node: dict[str, Any]) -> RawOrder:
    """
    Parse a Shopify Admin GraphQL order node into a RawOrder.

    Missing customers, line items or image references are tolerated.
    An order without an id or name is rejected with ValueError.
    """
    gid = _str_or_none(node.get("id"))
    name = _str_or_none(node.get("name"))
    if not gid or not name:
        raise ValueError("Missing order id or name in Shopify order node")

    created_at = parse_dt(node.get("createdAt")) or datetime.now(tz=timezone.utc)

    customer = node.get("customer") if isinstance(node.get("customer"), dict) else {}
    line_items = _edges(node.get("lineItems"))

    metafields = []
    for mf_node in _edges(node.get("metafields")):
        mf = parse_metafield(mf_node)
        if mf is not None:
            metafields.append(mf)

    return RawOrder(
        gid=gid,
        name=name,
        created_at=created_at,
        customer_first_name=_str_or_none(customer.get("firstName")),
        customer_last_name=_str_or_none(customer.get("lastName")),
        first_line_item_title=_str_or_none(line_items[0].get("title")) if line_items else None,
        metafields=metafields,
    )


def parse_orders_response(data: dict[str, Any]) -> list[RawOrder]:
    """Parse the `data` block of the orders query; unparseable nodes are skipped."""
    orders = []
    for node in _edges(_deep_get(data, "orders")):
        try:
            orders.append(parse_order_node(node))
        except ValueError as e:
            logger.warning(json.dumps({
                "event": "shopify_order_skipped",
                "order_gid": node.get("id"),
                "reason": str(e),
            }))
    return orders
