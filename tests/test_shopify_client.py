import asyncio
import json

import httpx
import pytest

from decolide.adapters.shopify.client import ShopifyClient, ShopifyConfig
from decolide.config import Settings
from decolide.engine.stages import MetafieldKey
from decolide.errors import ConfigurationError, NotFoundError, UpstreamError

CONFIG = ShopifyConfig(store_name="decolide", access_token="shpat_test")

ORDER_NODE = {
    "id": "gid://shopify/Order/1021",
    "name": "#1021",
    "createdAt": "2026-02-18T09:30:00Z",
    "customer": {"firstName": "Elena", "lastName": "Velez"},
    "lineItems": {"edges": [{"node": {"title": "Velvet Dream Sofa"}}]},
    "metafields": {"edges": [{"node": {
        "key": "stage_1_photo",
        "namespace": "custom",
        "value": "gid://shopify/MediaImage/55",
        "updatedAt": "2026-03-01T10:00:00Z",
        "reference": {"image": {"url": "https://cdn.shopify.com/frame.jpg"}},
    }}]},
}


def _client(handler, requests=None):
    def _record(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request)
    return ShopifyClient(CONFIG, transport=httpx.MockTransport(_record))


def _ok(data):
    return lambda request: httpx.Response(200, json={"data": data})


def test_missing_credentials_is_configuration_error():
    with pytest.raises(ConfigurationError) as exc:
        ShopifyClient(ShopifyConfig(store_name="", access_token=""))
    assert "SHOPIFY_STORE_NAME" in str(exc.value)
    assert "SHOPIFY_ADMIN_API_ACCESS_TOKEN" in str(exc.value)


def test_config_from_settings():
    cfg = ShopifyConfig.from_settings(Settings(shopify_store_name="decolide", shopify_access_token="t", shopify_api_version="2025-01"))
    assert cfg.graphql_url == "https://decolide.myshopify.com/admin/api/2025-01/graphql.json"
    assert cfg.missing() == []


def test_list_orders_sends_token_and_parses():
    requests = []
    client = _client(_ok({"orders": {"edges": [{"node": ORDER_NODE}]}}), requests)

    orders = asyncio.run(client.list_orders(limit=10))

    assert len(orders) == 1
    assert orders[0].name == "#1021"
    assert orders[0].metafields[0].image_url == "https://cdn.shopify.com/frame.jpg"
    req = requests[0]
    assert req.url == httpx.URL(CONFIG.graphql_url)
    assert req.headers["X-Shopify-Access-Token"] == "shpat_test"
    body = json.loads(req.content)
    assert body["variables"] == {"first": 10, "namespace": "custom"}


def test_non_200_is_upstream_error():
    client = _client(lambda request: httpx.Response(401, text="[API] Invalid API key"))
    with pytest.raises(UpstreamError) as exc:
        asyncio.run(client.list_orders())
    assert exc.value.status == 401
    assert "Invalid API key" in str(exc.value)


def test_graphql_errors_are_upstream_error():
    client = _client(lambda request: httpx.Response(200, json={"errors": [{"message": "Throttled"}]}))
    with pytest.raises(UpstreamError) as exc:
        asyncio.run(client.list_orders())
    assert "Throttled" in str(exc.value)


def test_transport_failure_is_upstream_error():
    def _boom(request):
        raise httpx.ConnectError("connection refused", request=request)
    with pytest.raises(UpstreamError):
        asyncio.run(_client(_boom).list_orders())


def test_find_order_gid():
    requests = []
    client = _client(_ok({"orders": {"edges": [{"node": {"id": "gid://shopify/Order/1021"}}]}}), requests)
    assert asyncio.run(client.find_order_gid("#1021")) == "gid://shopify/Order/1021"
    assert json.loads(requests[0].content)["variables"] == {"query": "name:#1021"}


def test_find_order_gid_not_found():
    client = _client(_ok({"orders": {"edges": []}}))
    with pytest.raises(NotFoundError):
        asyncio.run(client.find_order_gid("#404"))


def test_file_create_returns_gid_and_url():
    client = _client(_ok({"fileCreate": {
        "files": [{"id": "gid://shopify/MediaImage/9", "image": {"url": "https://cdn.shopify.com/9.jpg"}}],
        "userErrors": [],
    }}))
    assert asyncio.run(client.file_create("https://staging/9.jpg")) == (
        "gid://shopify/MediaImage/9",
        "https://cdn.shopify.com/9.jpg",
    )


def test_file_create_while_processing_has_no_url():
    client = _client(_ok({"fileCreate": {"files": [{"id": "gid://shopify/MediaImage/9", "image": None}], "userErrors": []}}))
    assert asyncio.run(client.file_create("https://staging/9.jpg")) == ("gid://shopify/MediaImage/9", None)


def test_file_create_user_errors():
    client = _client(_ok({"fileCreate": {"files": [], "userErrors": [{"field": ["files"], "message": "Invalid URL"}]}}))
    with pytest.raises(UpstreamError) as exc:
        asyncio.run(client.file_create("nope"))
    assert "Invalid URL" in str(exc.value)


def test_metafields_set_payload():
    requests = []
    client = _client(_ok({"metafieldsSet": {"metafields": [], "userErrors": []}}), requests)

    asyncio.run(client.metafields_set(
        "gid://shopify/Order/1021",
        MetafieldKey("custom", "stage_2_photo"),
        "gid://shopify/MediaImage/9",
    ))

    metafield = json.loads(requests[0].content)["variables"]["metafields"][0]
    assert metafield == {
        "ownerId": "gid://shopify/Order/1021",
        "namespace": "custom",
        "key": "stage_2_photo",
        "type": "file_reference",
        "value": "gid://shopify/MediaImage/9",
    }


def test_metafields_set_user_errors():
    client = _client(_ok({"metafieldsSet": {"userErrors": [{"message": "Owner does not exist"}]}}))
    with pytest.raises(UpstreamError):
        asyncio.run(client.metafields_set("gid://x", MetafieldKey("custom", "stage_1_photo"), "gid://f"))
