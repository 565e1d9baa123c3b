"""Shopify Storefront and Admin GraphQL clients."""
import logging
from typing import Any, Dict, List, Optional
import httpx
from storefront.errors import CartNotFoundError, NotConfiguredError, ShopifyUserError, UpstreamError
from storefront.shopify import queries

logger = logging.getLogger(__name__)

# Products never used as recipe features
EXCLUDED_RECIPE_TERMS = ("gift", "membership", "subscription")


def clean_domain(domain: str) -> str:
    """Strip scheme and trailing slash from a shop domain."""
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix):]
    return domain.rstrip("/")


class _GraphQLClient:
    """POST a GraphQL document and unwrap ``data``."""

    label = "Shopify"

    def __init__(self, client: httpx.AsyncClient, url: str, headers: Dict[str, str]):
        self.client = client
        self.url = url
        self.headers = {"Content-Type": "application/json", **headers}

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run a GraphQL document.

        Raises:
            UpstreamError: On transport failure, non-2xx status or top-level GraphQL errors
        """
        try:
            response = await self.client.post(
                self.url,
                json={"query": query, "variables": variables or {}},
                headers=self.headers,
            )
        except httpx.HTTPError as e:
            logger.error("%s API unreachable: %s", self.label, e)
            raise UpstreamError(f"{self.label} API unreachable") from e

        if not response.is_success:
            logger.error("%s API error %s: %s", self.label, response.status_code, response.text[:500])
            raise UpstreamError(f"{self.label} API error: {response.status_code}")

        payload = response.json()
        if payload.get("errors"):
            logger.error("%s GraphQL errors: %s", self.label, payload["errors"])
            raise UpstreamError(payload["errors"][0].get("message") or "GraphQL error")
        return payload.get("data") or {}


class ShopifyStorefrontClient(_GraphQLClient):
    """Storefront API: carts and the public product list."""

    label = "Shopify Storefront"

    def __init__(self, client: httpx.AsyncClient, domain: str, token: str, api_version: str = "2024-01"):
        if not domain or not token:
            raise NotConfiguredError("Shopify storefront credentials not configured")
        super().__init__(
            client,
            f"https://{clean_domain(domain)}/api/{api_version}/graphql.json",
            {"X-Shopify-Storefront-Access-Token": token},
        )

    @staticmethod
    def _mutation_cart(data: Dict[str, Any], field: str) -> Dict[str, Any]:
        result = data.get(field) or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise ShopifyUserError(user_errors[0].get("message") or "Cart mutation rejected")
        if not result.get("cart"):
            raise CartNotFoundError()
        return result["cart"]

    async def create_cart(self, lines: List[Dict[str, Any]]) -> Dict[str, Any]:
        logger.info("Creating cart with %d line(s)", len(lines))
        data = await self.execute(queries.CREATE_CART_MUTATION, {"input": {"lines": lines}})
        return self._mutation_cart(data, "cartCreate")

    async def get_cart(self, cart_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a cart; None when Shopify no longer knows the id."""
        data = await self.execute(queries.GET_CART_QUERY, {"cartId": cart_id})
        return data.get("cart")

    async def add_lines(self, cart_id: str, lines: List[Dict[str, Any]]) -> Dict[str, Any]:
        logger.info("Adding %d line(s) to cart %s", len(lines), cart_id)
        data = await self.execute(queries.ADD_TO_CART_MUTATION, {"cartId": cart_id, "lines": lines})
        return self._mutation_cart(data, "cartLinesAdd")

    async def update_lines(self, cart_id: str, lines: List[Dict[str, Any]]) -> Dict[str, Any]:
        logger.info("Updating %d line(s) in cart %s", len(lines), cart_id)
        data = await self.execute(queries.UPDATE_CART_MUTATION, {"cartId": cart_id, "lines": lines})
        return self._mutation_cart(data, "cartLinesUpdate")

    async def remove_lines(self, cart_id: str, line_ids: List[str]) -> Dict[str, Any]:
        logger.info("Removing %d line(s) from cart %s", len(line_ids), cart_id)
        data = await self.execute(queries.REMOVE_FROM_CART_MUTATION, {"cartId": cart_id, "lineIds": line_ids})
        return self._mutation_cart(data, "cartLinesRemove")

    async def list_recipe_products(self) -> List[Dict[str, str]]:
        """
        Products eligible for recipe generation.

        Only products with an available first variant, excluding gift cards,
        memberships and subscriptions.

        Returns:
            List of {"handle", "name", "category", "description"}
        """
        data = await self.execute(queries.RECIPE_PRODUCTS_QUERY)
        products = []
        for edge in (data.get("products") or {}).get("edges", []):
            node = edge["node"]
            variants = (node.get("variants") or {}).get("edges", [])
            if not any(v["node"].get("availableForSale") for v in variants):
                continue
            name = node["title"]
            if any(term in name.lower() for term in EXCLUDED_RECIPE_TERMS):
                continue
            products.append({
                "handle": node["handle"],
                "name": name,
                "category": node.get("productType") or "Beverage",
                "description": (node.get("description") or "")[:200],
            })
        return products


class ShopifyAdminClient(_GraphQLClient):
    """Admin API: B2B companies."""

    label = "Shopify Admin"

    def __init__(self, client: httpx.AsyncClient, domain: str, token: str, api_version: str = "2024-10"):
        if not domain or not token:
            raise NotConfiguredError("Shopify Admin credentials not configured")
        super().__init__(
            client,
            f"https://{clean_domain(domain)}/admin/api/{api_version}/graphql.json",
            {"X-Shopify-Access-Token": token},
        )

    async def create_company(self, company_input: Dict[str, Any]) -> str:
        """
        Create a B2B company with contact and location.

        Returns:
            The new company id

        Raises:
            ShopifyUserError: If Shopify rejects the input
        """
        data = await self.execute(queries.COMPANY_CREATE_MUTATION, {"input": company_input})
        result = data.get("companyCreate") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise ShopifyUserError("Shopify error: " + ", ".join(e.get("message", "") for e in user_errors))
        company = result.get("company") or {}
        return company.get("id")
