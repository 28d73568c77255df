from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from decolide.engine.stages import TERMINAL_INDEX, stage_label


@dataclass(frozen=True)
class RawMetafield:
    namespace: str
    key: str
    value: Optional[str] = None
    image_url: Optional[str] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class RawOrder:
    """Provider-agnostic view of one order as fetched from the source."""
    gid: str
    name: str
    created_at: Optional[datetime]
    customer_first_name: Optional[str] = None
    customer_last_name: Optional[str] = None
    first_line_item_title: Optional[str] = None
    metafields: list[RawMetafield] = field(default_factory=list)


@dataclass(frozen=True)
class ProofRecord:
    # Stage the order moved into when this proof was recorded
    stage_index: int
    image_url: Optional[str] = None
    recorded_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProofImage:
    content: bytes
    content_type: str = "image/jpeg"
    filename: str = "proof.jpg"


@dataclass(frozen=True)
class Order:
    id: str
    customer_name: str
    product_name: str
    order_date: datetime
    current_stage_index: int
    stage_entered_at: datetime
    image_url: Optional[str] = None
    gid: Optional[str] = None

    @property
    def current_stage(self) -> str:
        return stage_label(self.current_stage_index)

    @property
    def is_delivered(self) -> bool:
        return self.current_stage_index >= TERMINAL_INDEX

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "product_name": self.product_name,
            "order_date": self.order_date.isoformat(),
            "current_stage_index": self.current_stage_index,
            "current_stage": self.current_stage,
            "stage_entered_at": self.stage_entered_at.isoformat(),
            "image_url": self.image_url,
        }
