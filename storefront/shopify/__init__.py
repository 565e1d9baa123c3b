"""Shopify GraphQL access."""
from .client import ShopifyAdminClient, ShopifyStorefrontClient

__all__ = ["ShopifyAdminClient", "ShopifyStorefrontClient"]
