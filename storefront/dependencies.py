"""FastAPI dependencies for shared clients and authorization checks."""
import hmac
import logging
from typing import Optional
import httpx
from fastapi import Depends, Header, Request
from langfuse.openai import AsyncOpenAI
from sqlalchemy.orm import sessionmaker
from storefront.config import settings
from storefront.data.database.connection import SessionLocal
from storefront.errors import NotConfiguredError, StorefrontError
from storefront.services.auth import AdminCheck, SupabaseTokenResolver, TokenResolver, verify_admin
from storefront.services.blog import FirecrawlClient
from storefront.services.newsletter import MailchimpClient
from storefront.services.object_storage import LocalObjectStorage, ObjectStorage, SupabaseObjectStorage
from storefront.shopify import ShopifyAdminClient, ShopifyStorefrontClient
from storefront.utils.llm import build_gateway_client

logger = logging.getLogger(__name__)


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_gateway_client(request: Request) -> AsyncOpenAI:
    """AI gateway client, created on first use and kept in app state."""
    client = getattr(request.app.state, "gateway_client", None)
    if client is None:
        client = build_gateway_client()
        request.app.state.gateway_client = client
    return client


def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_object_storage(http: httpx.AsyncClient = Depends(get_http_client)) -> ObjectStorage:
    """Supabase Storage when configured, local files otherwise."""
    if settings.supabase_url and settings.supabase_service_role_key:
        return SupabaseObjectStorage(http, settings.supabase_url, settings.supabase_service_role_key)
    return LocalObjectStorage(settings.local_storage_dir, settings.local_storage_base_url)


def get_token_resolver(http: httpx.AsyncClient = Depends(get_http_client)) -> Optional[TokenResolver]:
    """Supabase token resolver, or None when no auth backend is configured."""
    if not settings.supabase_url:
        return None
    return SupabaseTokenResolver(http, settings.supabase_url, settings.supabase_anon_key)


def get_storefront_client(http: httpx.AsyncClient = Depends(get_http_client)) -> ShopifyStorefrontClient:
    return ShopifyStorefrontClient(
        http, settings.shopify_store_domain, settings.shopify_storefront_token, settings.shopify_api_version
    )


def get_admin_client(http: httpx.AsyncClient = Depends(get_http_client)) -> ShopifyAdminClient:
    return ShopifyAdminClient(
        http, settings.shopify_admin_domain, settings.shopify_admin_access_token, settings.shopify_admin_api_version
    )


def get_mailchimp_client(http: httpx.AsyncClient = Depends(get_http_client)) -> MailchimpClient:
    return MailchimpClient(
        http, settings.mailchimp_api_key, settings.mailchimp_list_id, settings.mailchimp_server_prefix
    )


def get_firecrawl_client(http: httpx.AsyncClient = Depends(get_http_client)) -> FirecrawlClient:
    return FirecrawlClient(http, settings.firecrawl_api_key)


async def ensure_admin(
    authorization: Optional[str],
    resolver: Optional[TokenResolver],
    session_factory: sessionmaker,
) -> AdminCheck:
    """
    Raise a 401 StorefrontError unless the bearer token belongs to an admin.

    Raises:
        NotConfiguredError: If no auth backend is configured
        StorefrontError: 401 with the rejection reason
    """
    if resolver is None:
        raise NotConfiguredError("Authentication backend not configured")
    check = await verify_admin(authorization, resolver, session_factory)
    if not check.is_admin:
        logger.warning("Admin check failed: %s", check.reason)
        raise StorefrontError(check.reason, status_code=401)
    return check


async def require_admin(
    authorization: Optional[str] = Header(None),
    resolver: Optional[TokenResolver] = Depends(get_token_resolver),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> AdminCheck:
    return await ensure_admin(authorization, resolver, session_factory)


def require_service_key(authorization: Optional[str] = Header(None)) -> None:
    """Enforce the static storefront credential when one is configured."""
    expected = settings.storefront_service_key
    if not expected:
        return
    supplied = (authorization or "").removeprefix("Bearer ").strip()
    if not hmac.compare_digest(supplied, expected):
        raise StorefrontError("Unauthorized", status_code=401)


def is_cron_request(x_cron_secret: Optional[str] = Header(None)) -> bool:
    """True when the request carries the configured scheduler secret."""
    if not settings.cron_secret or not x_cron_secret:
        return False
    return hmac.compare_digest(x_cron_secret, settings.cron_secret)
