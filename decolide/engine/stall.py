"""
Stall classification.

An order is stalled when it has sat in a non-terminal stage for longer
than STALL_THRESHOLD. Every view that shows "stalled" goes through here.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable

from decolide.engine.models import Order
from decolide.engine.stages import TERMINAL_INDEX

STALL_THRESHOLD = timedelta(days=3)


def _elapsed(order: Order, now: datetime) -> timedelta:
    entered = order.stage_entered_at
    if entered.tzinfo is None:
        entered = entered.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now - entered


def is_stalled(order: Order, now: datetime, threshold: timedelta = STALL_THRESHOLD) -> bool:
    if order.current_stage_index >= TERMINAL_INDEX:
        return False
    return _elapsed(order, now) > threshold


def days_in_stage(order: Order, now: datetime) -> int:
    """Whole days since the order entered its current stage."""
    return max(_elapsed(order, now).days, 0)


def stalled_orders(
    orders: Iterable[Order],
    now: datetime,
    threshold: timedelta = STALL_THRESHOLD,
) -> list[Order]:
    return [o for o in orders if is_stalled(o, now, threshold)]
