import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from decolide.adapters.proof_store import ShopifyProofStore
from decolide.adapters.storage import SpacesConfig, SpacesStorage
from decolide.engine.stages import MetafieldKey
from decolide.errors import ConfigurationError, UpstreamError

SPACES = SpacesConfig(region="ams3", bucket="decolide-proofs", key="k", secret="s")


def test_missing_spaces_config():
    with pytest.raises(ConfigurationError) as exc:
        SpacesStorage(SpacesConfig(region="ams3", bucket="", key="", secret=""))
    assert "SPACES_BUCKET" in str(exc.value)
    assert "SPACES_REGION" not in str(exc.value)


def test_put_public_returns_virtual_hosted_url():
    s3 = MagicMock()
    storage = SpacesStorage(SPACES, s3=s3)

    url = storage.put_public("proofs/abc.jpg", b"bytes", "image/jpeg")

    assert url == "https://decolide-proofs.ams3.digitaloceanspaces.com/proofs/abc.jpg"
    s3.put_object.assert_called_once_with(
        Bucket="decolide-proofs",
        Key="proofs/abc.jpg",
        Body=b"bytes",
        ContentType="image/jpeg",
        ACL="public-read",
    )


def test_put_public_client_error():
    s3 = MagicMock()
    s3.put_object.side_effect = ClientError({"Error": {"Code": "AccessDenied"}}, "PutObject")
    with pytest.raises(UpstreamError) as exc:
        SpacesStorage(SPACES, s3=s3).put_public("k", b"x", "image/png")
    assert "AccessDenied" in str(exc.value)


def _store(image_url="https://cdn.shopify.com/p.jpg"):
    client = MagicMock()
    client.file_create = AsyncMock(return_value=("gid://shopify/MediaImage/5", image_url))
    client.metafields_set = AsyncMock()
    storage = MagicMock()
    storage.put_public.side_effect = lambda key, content, ct: f"https://staging/{key}"
    return ShopifyProofStore(client, SPACES, storage=storage), client, storage


def test_upload_image_stages_then_registers():
    store, client, storage = _store()

    uploaded = asyncio.run(store.upload_image(b"jpeg", "image/jpeg", "frame.jpg"))

    assert uploaded.file_ref == "gid://shopify/MediaImage/5"
    assert uploaded.url == "https://cdn.shopify.com/p.jpg"
    key = storage.put_public.call_args.args[0]
    assert key.startswith("proofs/")
    client.file_create.assert_awaited_once_with(f"https://staging/{key}", alt="frame.jpg")


def test_upload_image_falls_back_to_staged_url():
    store, client, storage = _store(image_url=None)
    uploaded = asyncio.run(store.upload_image(b"png", "image/png", "foam.png"))
    assert uploaded.url.startswith("https://staging/proofs/")


def test_set_metadata_delegates():
    store, client, _ = _store()
    key = MetafieldKey("custom", "stage_1_photo")
    asyncio.run(store.set_metadata("gid://shopify/Order/1", key, "gid://shopify/MediaImage/5"))
    client.metafields_set.assert_awaited_once_with("gid://shopify/Order/1", key, "gid://shopify/MediaImage/5")


def test_storage_built_lazily_from_config():
    client = MagicMock()
    store = ShopifyProofStore(client, SpacesConfig(region="", bucket="", key="", secret=""))
    with pytest.raises(ConfigurationError):
        asyncio.run(store.upload_image(b"x", "image/jpeg"))
