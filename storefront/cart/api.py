"""Client for the remote cart API exposed by the storefront function."""
import logging
from typing import Any, Dict, List, Optional, Protocol
import httpx
from pydantic import ValidationError
from storefront.cart.models import Cart, CartLineInput, CartLineUpdate
from storefront.errors import CartAPIError, CartNotFoundError

logger = logging.getLogger(__name__)


class CartAPI(Protocol):
    """The five logical cart operations; transport-agnostic."""

    async def create(self, lines: List[CartLineInput]) -> Cart: ...

    async def get(self, cart_id: str) -> Optional[Cart]: ...

    async def add(self, cart_id: str, lines: List[CartLineInput]) -> Cart: ...

    async def update(self, cart_id: str, lines: List[CartLineUpdate]) -> Cart: ...

    async def remove(self, cart_id: str, line_ids: List[str]) -> Cart: ...


class StorefrontCartAPI:
    """
    CartAPI over HTTP against ``/functions/shopify-storefront``.

    Every call carries the static service key as a bearer token; no per-user
    identity is involved.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str, service_key: str = ""):
        """
        Args:
            client: Shared async HTTP client
            base_url: Storefront service root, e.g. http://localhost:8000
            service_key: Static bearer credential
        """
        self.client = client
        self.endpoint = f"{base_url.rstrip('/')}/functions/shopify-storefront"
        self.headers = {"Content-Type": "application/json"}
        if service_key:
            self.headers["Authorization"] = f"Bearer {service_key}"

    async def _call(self, action: str, body: Optional[Dict[str, Any]] = None, **params) -> Dict[str, Any]:
        try:
            if body is None:
                response = await self.client.get(
                    self.endpoint, params={"action": action, **params}, headers=self.headers
                )
            else:
                response = await self.client.post(
                    self.endpoint, params={"action": action}, json=body, headers=self.headers
                )
        except httpx.HTTPError as e:
            raise CartAPIError(f"Cart service unreachable: {e}") from e

        if response.status_code == 404:
            raise CartNotFoundError()
        if not response.is_success:
            try:
                message = response.json().get("error") or "Cart operation failed"
            except ValueError:
                message = "Cart operation failed"
            raise CartAPIError(message, status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise CartAPIError("Malformed cart response") from e
        if not isinstance(data, dict):
            raise CartAPIError("Malformed cart response")
        return data

    @staticmethod
    def _parse(payload: Any) -> Cart:
        try:
            return Cart.model_validate(payload)
        except ValidationError as e:
            logger.warning("Unparseable cart payload: %s", e)
            raise CartAPIError("Malformed cart response") from e

    def _cart(self, data: Dict[str, Any]) -> Cart:
        if not data.get("cart"):
            raise CartNotFoundError()
        return self._parse(data["cart"])

    async def create(self, lines: List[CartLineInput]) -> Cart:
        data = await self._call("cart-create", {"lines": [line.model_dump(by_alias=True) for line in lines]})
        return self._cart(data)

    async def get(self, cart_id: str) -> Optional[Cart]:
        try:
            data = await self._call("cart-get", cartId=cart_id)
        except CartNotFoundError:
            return None
        cart = data.get("cart")
        return self._parse(cart) if cart else None

    async def add(self, cart_id: str, lines: List[CartLineInput]) -> Cart:
        data = await self._call("cart-add", {
            "cartId": cart_id,
            "lines": [line.model_dump(by_alias=True) for line in lines],
        })
        return self._cart(data)

    async def update(self, cart_id: str, lines: List[CartLineUpdate]) -> Cart:
        data = await self._call("cart-update", {
            "cartId": cart_id,
            "lines": [line.model_dump(by_alias=True) for line in lines],
        })
        return self._cart(data)

    async def remove(self, cart_id: str, line_ids: List[str]) -> Cart:
        data = await self._call("cart-remove", {"cartId": cart_id, "lineIds": line_ids})
        return self._cart(data)
