"""
Shared fixtures: a fixed clock, an order factory and in-memory collaborators.
"""
from datetime import datetime, timedelta, timezone

import pytest

from decolide.adapters.proof_store import UploadedFile
from decolide.engine.models import Order
from decolide.errors import NotFoundError

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_order():
    def _make(
        stage: int = 1,
        entered_days_ago: float = 1,
        order_days_ago: float = 20,
        order_id: str = "#1021",
        image_url=None,
        gid=None,
    ) -> Order:
        return Order(
            id=order_id,
            customer_name="Elena Velez",
            product_name="Velvet Dream Sofa",
            order_date=days_ago(order_days_ago),
            current_stage_index=stage,
            stage_entered_at=days_ago(entered_days_ago),
            image_url=image_url,
            gid=gid,
        )
    return _make


class FakeSource:
    def __init__(self, gids=None, raw_orders=None, error=None):
        self.gids = gids or {}
        self.raw_orders = raw_orders or []
        self.error = error
        self.lookups = []

    async def list_orders(self, limit: int = 50):
        if self.error:
            raise self.error
        return self.raw_orders[:limit]

    async def find_order_gid(self, name: str) -> str:
        self.lookups.append(name)
        if name not in self.gids:
            raise NotFoundError(f"Could not find Shopify order GID for order name {name}")
        return self.gids[name]


class FakeProofStore:
    def __init__(self, url="https://cdn.shopify.com/proof.jpg", upload_error=None, metadata_error=None):
        self.url = url
        self.upload_error = upload_error
        self.metadata_error = metadata_error
        self.uploads = []
        self.metadata = []

    async def upload_image(self, content, content_type, filename="proof.jpg"):
        if self.upload_error:
            raise self.upload_error
        self.uploads.append((content, content_type, filename))
        return UploadedFile(file_ref="gid://shopify/MediaImage/1", url=self.url)

    async def set_metadata(self, owner_id, key, file_ref):
        if self.metadata_error:
            raise self.metadata_error
        self.metadata.append((owner_id, key, file_ref))


@pytest.fixture
def fake_source():
    return FakeSource(gids={"#1021": "gid://shopify/Order/1021"})


@pytest.fixture
def fake_store():
    return FakeProofStore()
