import json

import httpx
import pytest

from storefront import dependencies
from storefront.config import settings
from storefront.errors import CartNotFoundError, NotConfiguredError, ShopifyUserError, UpstreamError
from storefront.shopify import ShopifyStorefrontClient
from tests.test_cart_api import FakeShopify

ENDPOINT = "/functions/shopify-storefront"


@pytest.fixture
def shopify(app):
    fake = FakeShopify()
    app.dependency_overrides[dependencies.get_storefront_client] = lambda: fake
    return fake


def test_create_and_get_cart(client, shopify):
    created = client.post(ENDPOINT, params={"action": "cart-create"},
                          json={"lines": [{"merchandiseId": "V1", "quantity": 2}]})
    assert created.status_code == 200
    cart_id = created.json()["cart"]["id"]

    fetched = client.get(ENDPOINT, params={"action": "cart-get", "cartId": cart_id})
    assert fetched.status_code == 200
    assert fetched.json()["cart"]["totalQuantity"] == 2


def test_get_unknown_cart_is_null(client, shopify):
    response = client.get(ENDPOINT, params={"action": "cart-get", "cartId": "C-gone"})

    assert response.status_code == 200
    assert response.json() == {"cart": None}


@pytest.mark.parametrize("action, body, error", [
    ("cart-create", {}, "lines are required"),
    ("cart-add", {"lines": [{"merchandiseId": "V1", "quantity": 1}]}, "cartId is required"),
    ("cart-update", {"cartId": "C1"}, "lines are required"),
    ("cart-remove", {"cartId": "C1"}, "lineIds are required"),
    ("cart-explode", {}, "Unknown action: cart-explode"),
])
def test_invalid_mutations_are_rejected(client, shopify, action, body, error):
    response = client.post(ENDPOINT, params={"action": action}, json=body)

    assert response.status_code == 400
    assert response.json() == {"error": error}


def test_missing_cart_id_on_get(client, shopify):
    response = client.get(ENDPOINT, params={"action": "cart-get"})

    assert response.status_code == 400


def test_add_to_missing_cart_is_404(client, shopify):
    response = client.post(ENDPOINT, params={"action": "cart-add"},
                           json={"cartId": "C-gone", "lines": [{"merchandiseId": "V1", "quantity": 1}]})

    assert response.status_code == 404
    assert response.json() == {"error": "Cart not found"}


def test_service_key_enforced_when_configured(client, shopify, monkeypatch):
    monkeypatch.setattr(settings, "storefront_service_key", "svc-key")
    params = {"action": "cart-get", "cartId": "C1"}

    assert client.get(ENDPOINT, params=params).status_code == 401
    assert client.get(ENDPOINT, params=params, headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.get(ENDPOINT, params=params, headers={"Authorization": "Bearer svc-key"}).status_code == 200


def graphql_client(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ShopifyStorefrontClient(http, "https://shop.test/", "sf-token", "2024-01")


async def test_storefront_client_sends_token_and_variables():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["token"] = request.headers["X-Shopify-Storefront-Access-Token"]
        seen["variables"] = json.loads(request.content)["variables"]
        return httpx.Response(200, json={"data": {"cartLinesAdd": {"cart": {"id": "C1"}, "userErrors": []}}})

    cart = await graphql_client(handler).add_lines("C1", [{"merchandiseId": "V1", "quantity": 1}])

    assert cart == {"id": "C1"}
    assert seen["url"] == "https://shop.test/api/2024-01/graphql.json"
    assert seen["token"] == "sf-token"
    assert seen["variables"] == {"cartId": "C1", "lines": [{"merchandiseId": "V1", "quantity": 1}]}


async def test_user_errors_raise_shopify_user_error():
    payload = {"data": {"cartLinesUpdate": {"cart": None, "userErrors": [
        {"field": ["lines"], "message": "Requested quantity exceeds available stock"},
    ]}}}
    client = graphql_client(lambda request: httpx.Response(200, json=payload))

    with pytest.raises(ShopifyUserError) as exc_info:
        await client.update_lines("C1", [{"id": "L1", "quantity": 99}])

    assert exc_info.value.status_code == 422
    assert exc_info.value.message == "Requested quantity exceeds available stock"


async def test_mutation_without_cart_raises_not_found():
    payload = {"data": {"cartLinesRemove": {"cart": None, "userErrors": []}}}

    with pytest.raises(CartNotFoundError):
        await graphql_client(lambda request: httpx.Response(200, json=payload)).remove_lines("C1", ["L1"])


async def test_graphql_errors_raise_upstream_error():
    payload = {"errors": [{"message": "Throttled"}]}

    with pytest.raises(UpstreamError) as exc_info:
        await graphql_client(lambda request: httpx.Response(200, json=payload)).get_cart("C1")

    assert exc_info.value.message == "Throttled"


def test_unconfigured_storefront_client():
    with pytest.raises(NotConfiguredError):
        ShopifyStorefrontClient(httpx.AsyncClient(), "", "")
