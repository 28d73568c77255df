"""
Canonical production stages and ordering.

Stages are plain string constants; an order's position is its index in
PIPELINE_ORDER. Proof photos are stored on the Shopify order as
file_reference metafields in the "custom" namespace.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Canonical stages in pipeline order
ORDER_RECEIVED = "Order Received"
ORDER_PLACED = "Order Placed"
FRAME_READY = "Frame Ready"
FOAMING_FABRIC_DONE = "Foaming/Fabric Done"
DISPATCHED = "Dispatched"
DELIVERED = "Delivered"

PIPELINE_ORDER: list[str] = [
    ORDER_RECEIVED,
    ORDER_PLACED,
    FRAME_READY,
    FOAMING_FABRIC_DONE,
    DISPATCHED,
    DELIVERED,
]

# stage -> position (0-indexed)
STAGE_INDEX: dict[str, int] = {s: i for i, s in enumerate(PIPELINE_ORDER)}

TERMINAL_INDEX = STAGE_INDEX[DELIVERED]
DISPATCHED_INDEX = STAGE_INDEX[DISPATCHED]

# Stage of an order seen in Shopify with no proof metafields
DEFAULT_INDEX = STAGE_INDEX[ORDER_PLACED]

PROOF_NAMESPACE = "custom"


@dataclass(frozen=True)
class MetafieldKey:
    namespace: str
    key: str

    def __str__(self) -> str:
        return f"{self.namespace}.{self.key}"


# Completed stage -> metafield holding its proof photo.
# Leaving one of these stages requires a photo.
PROOF_METAFIELDS: dict[int, MetafieldKey] = {
    STAGE_INDEX[FRAME_READY]: MetafieldKey(PROOF_NAMESPACE, "stage_1_photo"),
    STAGE_INDEX[FOAMING_FABRIC_DONE]: MetafieldKey(PROOF_NAMESPACE, "stage_2_photo"),
    STAGE_INDEX[DISPATCHED]: MetafieldKey(PROOF_NAMESPACE, "stage_3_photo"),
}

PROOF_REQUIRED: frozenset[int] = frozenset(PROOF_METAFIELDS)

# metafield -> stage the order moves into once that proof exists
_METAFIELD_TARGET: dict[MetafieldKey, int] = {
    mf: completed + 1 for completed, mf in PROOF_METAFIELDS.items()
}


def is_valid_index(index: object) -> bool:
    return isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(PIPELINE_ORDER)


def stage_label(index: int) -> str:
    if not is_valid_index(index):
        return "Unknown"
    return PIPELINE_ORDER[index]


def next_stage_label(index: int) -> Optional[str]:
    if not is_valid_index(index) or index >= TERMINAL_INDEX:
        return None
    return PIPELINE_ORDER[index + 1]


def proof_required(index: int) -> bool:
    return index in PROOF_REQUIRED


def proof_metafield(index: int) -> Optional[MetafieldKey]:
    """Metafield that records completion of stage `index`, if it needs proof."""
    return PROOF_METAFIELDS.get(index)


def stage_for_metafield(namespace: str, key: str) -> Optional[int]:
    """
    Stage an order is in once this proof metafield exists.

    A proof for "Frame Ready" (custom.stage_1_photo) means the order has
    moved into "Foaming/Fabric Done". Unknown keys return None.
    """
    return _METAFIELD_TARGET.get(MetafieldKey(namespace, key))
