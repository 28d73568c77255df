from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from decolide.engine.models import Order, RawOrder
from decolide.engine.resolver import DELIVERY_GRACE, PLACEHOLDER_IMAGE_URL, resolve_order
from decolide.errors import DecolideError

logger = logging.getLogger(__name__)


class OrderSource(Protocol):
    async def list_orders(self, limit: int = 50) -> list[RawOrder]: ...

    async def find_order_gid(self, name: str) -> str: ...


@dataclass
class OrdersResult:
    success: bool
    orders: list[Order] = field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[str] = None


class OrderRepository:
    """Fetches orders from the source and derives their pipeline position."""

    def __init__(
        self,
        source: OrderSource,
        *,
        limit: int = 50,
        placeholder_url: str = PLACEHOLDER_IMAGE_URL,
        delivery_grace: timedelta = DELIVERY_GRACE,
    ):
        self.source = source
        self.limit = limit
        self.placeholder_url = placeholder_url
        self.delivery_grace = delivery_grace

    async def load_orders(self, now: Optional[datetime] = None) -> OrdersResult:
        now = now or datetime.now(timezone.utc)
        try:
            raw_orders = await self.source.list_orders(limit=self.limit)
        except DecolideError as e:
            logger.error(json.dumps({
                "event": "orders_load_failed",
                "error_kind": e.kind,
                "error": str(e),
            }))
            return OrdersResult(success=False, error=str(e), error_kind=e.kind)

        orders = [
            resolve_order(
                raw,
                now=now,
                placeholder_url=self.placeholder_url,
                delivery_grace=self.delivery_grace,
            )
            for raw in raw_orders
        ]
        return OrdersResult(success=True, orders=orders)
