"""
Stage resolution: proof metafields -> pipeline position.

Pure functions, no I/O and no environment lookups. Malformed input falls
back to defaults; nothing here raises.

Convention: a ProofRecord is stamped with the stage the order moved *into*
when the proof was recorded, so the current stage is simply the highest
proved stage.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from decolide.engine.models import Order, ProofRecord, RawOrder
from decolide.engine.stages import (
    DEFAULT_INDEX,
    DISPATCHED_INDEX,
    TERMINAL_INDEX,
    is_valid_index,
    stage_for_metafield,
)

PLACEHOLDER_IMAGE_URL = "https://placehold.co/600x400.png"

# Dispatched orders count as delivered once this much time has passed
DELIVERY_GRACE = timedelta(days=2)


@dataclass(frozen=True)
class StageResolution:
    current_stage_index: int
    stage_entered_at: datetime
    image_url: str
    auto_delivered: bool = False


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _winning_record(records: Iterable[ProofRecord]) -> Optional[ProofRecord]:
    """Highest-stage record; on ties the first one seen wins."""
    best: Optional[ProofRecord] = None
    for rec in records:
        if not isinstance(rec, ProofRecord) or not is_valid_index(rec.stage_index):
            continue
        if best is None or rec.stage_index > best.stage_index:
            best = rec
    return best


def resolve_stage(
    records: Iterable[ProofRecord],
    *,
    order_date: datetime,
    now: datetime,
    previous_image_url: Optional[str] = None,
    placeholder_url: str = PLACEHOLDER_IMAGE_URL,
    delivery_grace: timedelta = DELIVERY_GRACE,
) -> StageResolution:
    now = _as_utc(now)
    # A missing order date counts as "entered now"
    order_date = _as_utc(order_date) if order_date else now
    fallback_image = previous_image_url or placeholder_url

    best = _winning_record(records or [])
    if best is None:
        return StageResolution(
            current_stage_index=DEFAULT_INDEX,
            stage_entered_at=order_date,
            image_url=fallback_image,
        )

    index = max(best.stage_index, DEFAULT_INDEX)
    image_url = best.image_url or fallback_image

    entered_at = _as_utc(best.recorded_at) if best.recorded_at else order_date
    if entered_at < order_date:
        entered_at = order_date

    # Derived only: recomputed on every resolve, never written back
    if index == DISPATCHED_INDEX and now - entered_at > delivery_grace:
        return StageResolution(
            current_stage_index=TERMINAL_INDEX,
            stage_entered_at=entered_at + delivery_grace,
            image_url=image_url,
            auto_delivered=True,
        )

    return StageResolution(
        current_stage_index=index,
        stage_entered_at=entered_at,
        image_url=image_url,
    )


def proof_records(raw: RawOrder) -> list[ProofRecord]:
    """Proof records for the known stage metafields; other metafields are ignored."""
    records: list[ProofRecord] = []
    for mf in raw.metafields:
        stage_index = stage_for_metafield(mf.namespace, mf.key)
        if stage_index is None:
            continue
        records.append(ProofRecord(
            stage_index=stage_index,
            image_url=mf.image_url,
            recorded_at=mf.updated_at,
        ))
    return records


def customer_display_name(first: Optional[str], last: Optional[str]) -> str:
    return f"{first or ''} {last or 'N/A'}".strip()


def resolve_order(
    raw: RawOrder,
    *,
    now: datetime,
    previous_image_url: Optional[str] = None,
    placeholder_url: str = PLACEHOLDER_IMAGE_URL,
    delivery_grace: timedelta = DELIVERY_GRACE,
) -> Order:
    resolution = resolve_stage(
        proof_records(raw),
        order_date=raw.created_at,
        now=now,
        previous_image_url=previous_image_url,
        placeholder_url=placeholder_url,
        delivery_grace=delivery_grace,
    )
    return Order(
        id=raw.name,
        customer_name=customer_display_name(raw.customer_first_name, raw.customer_last_name),
        product_name=raw.first_line_item_title or "Unknown Product",
        order_date=_as_utc(raw.created_at) if raw.created_at else _as_utc(now),
        current_stage_index=resolution.current_stage_index,
        stage_entered_at=resolution.stage_entered_at,
        image_url=resolution.image_url,
        gid=raw.gid,
    )
