"""
In-memory stand-in for the Shopify order source and proof store.

Enabled with ORDER_SOURCE_STUB=1 for local development without store
credentials. Orders are built as Shopify-shaped GraphQL nodes relative to
"now" and go through the same parser as live data.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from decolide.adapters.proof_store import UploadedFile
from decolide.adapters.shopify.parser import parse_order_node
from decolide.engine.models import RawOrder
from decolide.engine.stages import PROOF_METAFIELDS, MetafieldKey
from decolide.errors import NotFoundError

STUB_IMAGE_URL = "https://placehold.co/600x400.png"

# (name, first, last, product, created days ago, completed proof stages, days since last proof)
MOCK_ORDERS: list[tuple[str, str, str, str, int, list[int], int]] = [
    ("DF-1021", "Elena", "Velez", "Velvet Dream Sofa", 2, [], 0),
    ("DF-1022", "Marcus", "Holloway", "Oakwood Dining Table", 20, [], 0),
    ("DF-1023", "Anya", "Sharma", "Modernist Bookshelf", 8, [2], 1),
    ("DF-1024", "Leo", "Gallagher", "Leather Armchair", 30, [2, 3], 4),
    ("DF-1025", "Sofia", "Rossi", "Minimalist Coffee Table", 12, [2, 3, 4], 1),
    ("DF-1026", "Chen", "Wei", "Canopy Bed Frame", 4, [], 0),
    ("DF-1027", "Isabella", "Costa", "Floating Wall Shelves", 1, [], 0),
    ("DF-1028", "David", "Kim", "Ergonomic Office Chair", 25, [2], 6),
    ("DF-1029", "John", "Doe", "New Fancy Chair", 1, [], 0),
]


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def build_mock_nodes(now: datetime) -> list[dict[str, Any]]:
    nodes = []
    for i, (name, first, last, product, created_days, proved, last_days) in enumerate(MOCK_ORDERS):
        created_at = now - timedelta(days=created_days)
        metafields = []
        for completed in proved:
            mf = PROOF_METAFIELDS[completed]
            metafields.append({"node": {
                "key": mf.key,
                "namespace": mf.namespace,
                "value": f"gid://shopify/MediaImage/{9000 + i * 10 + completed}",
                "updatedAt": _iso(now - timedelta(days=last_days)),
                "reference": {"image": {"url": STUB_IMAGE_URL}},
            }})
        nodes.append({
            "id": f"gid://shopify/Order/{5000 + i}",
            "name": name,
            "createdAt": _iso(created_at),
            "customer": {"firstName": first, "lastName": last},
            "lineItems": {"edges": [{"node": {"title": product}}]},
            "metafields": {"edges": metafields},
        })
    return nodes


class StubOrderSource:
    """Order source and proof store backed by the mock order list."""

    def __init__(self, now: Optional[datetime] = None):
        self._nodes = build_mock_nodes(now or datetime.now(timezone.utc))
        self.uploads: dict[str, UploadedFile] = {}
        self.metafields: list[tuple[str, MetafieldKey, str]] = []

    async def list_orders(self, limit: int = 50) -> list[RawOrder]:
        return [parse_order_node(n) for n in self._nodes[:limit]]

    async def find_order_gid(self, name: str) -> str:
        for node in self._nodes:
            if node["name"] == name:
                return node["id"]
        raise NotFoundError(f"Could not find Shopify order GID for order name {name}")

    async def upload_image(self, content: bytes, content_type: str, filename: str = "proof.jpg") -> UploadedFile:
        file_ref = f"gid://shopify/MediaImage/{uuid.uuid4().int % 10**8}"
        uploaded = UploadedFile(file_ref=file_ref, url=STUB_IMAGE_URL)
        self.uploads[file_ref] = uploaded
        return uploaded

    async def set_metadata(self, owner_id: str, key: MetafieldKey, file_ref: str) -> None:
        self.metafields.append((owner_id, key, file_ref))
        uploaded = self.uploads.get(file_ref)
        image_url = uploaded.url if uploaded else STUB_IMAGE_URL
        for node in self._nodes:
            if node["id"] != owner_id:
                continue
            node["metafields"]["edges"].append({"node": {
                "key": key.key,
                "namespace": key.namespace,
                "value": file_ref,
                "updatedAt": _iso(datetime.now(timezone.utc)),
                "reference": {"image": {"url": image_url}},
            }})
            return
        raise NotFoundError(f"No stub order with id {owner_id}")
