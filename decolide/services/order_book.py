"""
In-memory order collection backing the dashboard.

Only two writers: replace() after a refresh from Shopify and apply()
after a successful stage transition. Stages never go backwards here even
when a refresh re-derives a lower stage (advances out of Order Received
or Order Placed are not persisted upstream).
"""
from __future__ import annotations

from dataclasses import replace as dc_replace
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from decolide.engine.models import Order
from decolide.engine.stages import PIPELINE_ORDER
from decolide.engine.stall import STALL_THRESHOLD, days_in_stage, is_stalled, stalled_orders


class TransitionPending(Exception):
    """A stage advance for this order is already in flight."""


class OrderBook:
    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._pending: set[str] = set()

    def _merge(self, fresh: Order) -> Order:
        local = self._orders.get(fresh.id)
        if local is None or local.current_stage_index <= fresh.current_stage_index:
            return fresh
        return dc_replace(
            fresh,
            current_stage_index=local.current_stage_index,
            stage_entered_at=local.stage_entered_at,
            image_url=local.image_url or fresh.image_url,
        )

    def replace(self, orders: Iterable[Order]) -> list[Order]:
        merged = {}
        for order in orders:
            merged[order.id] = self._merge(order)
        # orders missing from a refresh are kept; archival is Shopify's concern
        for order_id, order in self._orders.items():
            merged.setdefault(order_id, order)
        self._orders = merged
        return self.all()

    def apply(self, order: Order) -> Order:
        local = self._orders.get(order.id)
        if local is not None and local.current_stage_index > order.current_stage_index:
            return local
        self._orders[order.id] = order
        return order

    def get(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def all(self) -> list[Order]:
        return sorted(self._orders.values(), key=lambda o: o.order_date, reverse=True)

    # -----------------------------------------------------------------------
    # One in-flight transition per order
    # -----------------------------------------------------------------------

    def begin(self, order_id: str) -> None:
        if order_id in self._pending:
            raise TransitionPending(order_id)
        self._pending.add(order_id)

    def end(self, order_id: str) -> None:
        self._pending.discard(order_id)

    def is_pending(self, order_id: str) -> bool:
        return order_id in self._pending

    # -----------------------------------------------------------------------
    # Dashboard views
    # -----------------------------------------------------------------------

    def stalled(self, now: datetime, threshold: timedelta = STALL_THRESHOLD) -> list[Order]:
        return stalled_orders(self.all(), now, threshold)

    def board(self, now: datetime, threshold: timedelta = STALL_THRESHOLD) -> dict[str, Any]:
        """Stalled tab plus one tab per stage, each with its count and cards."""
        def card(order: Order) -> dict[str, Any]:
            return {
                **order.to_dict(),
                "stalled": is_stalled(order, now, threshold),
                "days_in_stage": days_in_stage(order, now),
                "pending": self.is_pending(order.id),
            }

        orders = self.all()
        stalled = [card(o) for o in orders if is_stalled(o, now, threshold)]
        stages = []
        for index, stage in enumerate(PIPELINE_ORDER):
            in_stage = [card(o) for o in orders if o.current_stage_index == index]
            stages.append({"stage": stage, "index": index, "count": len(in_stage), "orders": in_stage})

        return {
            "stalled": {"count": len(stalled), "orders": stalled},
            "stages": stages,
        }
