"""Public storefront functions: newsletter, chat, image processing and recipes."""
import logging
import re
from typing import Any, Dict, List, Optional
import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from langfuse.openai import AsyncOpenAI
from pydantic import BaseModel, Field
from sqlalchemy.orm import sessionmaker
from storefront.dependencies import (
    get_gateway_client,
    get_http_client,
    get_mailchimp_client,
    get_object_storage,
    get_session_factory,
)
from storefront.errors import StorefrontError
from storefront.proxy import CacheStatus, FetchOrGenerate, ResolveStatus, SQLCacheStore
from storefront.services.chat import build_expert_prompt, build_wholesale_prompt, open_chat_stream, relay_sse
from storefront.services.images import PROCESSED_IMAGE_NAMESPACE, BackgroundRemover
from storefront.services.object_storage import ObjectStorage
from storefront.services.recipes import RECIPE_NAMESPACE
from storefront.utils.llm import run_db_operation_with_timeout

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["public"])

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


class NewsletterRequest(BaseModel):
    """Validated in the handler so malformed input gets a field-level message."""
    email: Optional[Any] = None


class ChatMessage(BaseModel):
    role: str = Field(..., pattern="^(user|assistant)$")
    content: str


class ChatProduct(BaseModel):
    handle: str
    name: str
    category: str = "Beverage"


class ExpertChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)
    products: List[ChatProduct] = Field(default_factory=list)


class WholesaleChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)


class RemoveBackgroundRequest(BaseModel):
    image_url: str = Field(..., alias="imageUrl", min_length=1, description="Source product image URL")


@router.post("/newsletter-subscribe", summary="Subscribe an email to the newsletter")
async def newsletter_subscribe(
    request: NewsletterRequest,
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Add an email address to the mailing list.

    Malformed input is rejected before Mailchimp is contacted. An address that
    is already subscribed is reported as success.
    """
    email = request.email
    if not email or not isinstance(email, str):
        raise StorefrontError("Email is required", status_code=400)
    email = email.strip()
    if not EMAIL_PATTERN.match(email):
        raise StorefrontError("Invalid email format", status_code=400)

    result = await get_mailchimp_client(http).subscribe(email)
    return {"success": True, **result}


@router.post("/na-expert-chat", summary="Chat with the NA beverage expert")
async def na_expert_chat(
    request: ExpertChatRequest,
    client: AsyncOpenAI = Depends(get_gateway_client),
):
    """Stream an answer grounded in the supplied product list as server-sent events."""
    products = [product.model_dump() for product in request.products]
    stream = await open_chat_stream(
        client,
        build_expert_prompt(products),
        [message.model_dump() for message in request.messages],
    )
    return StreamingResponse(relay_sse(stream), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/wholesale-chat", summary="Chat with the wholesale consultant")
async def wholesale_chat(
    request: WholesaleChatRequest,
    client: AsyncOpenAI = Depends(get_gateway_client),
):
    """Stream a wholesale consultant answer as server-sent events."""
    stream = await open_chat_stream(
        client,
        build_wholesale_prompt(),
        [message.model_dump() for message in request.messages],
    )
    return StreamingResponse(relay_sse(stream), media_type="text/event-stream", headers=SSE_HEADERS)


def _image_store(session_factory: sessionmaker) -> SQLCacheStore:
    return SQLCacheStore(session_factory, PROCESSED_IMAGE_NAMESPACE)


@router.post("/remove-background", summary="Get a transparent-background version of a product image")
async def remove_background(
    request: RemoveBackgroundRequest,
    client: AsyncOpenAI = Depends(get_gateway_client),
    http: httpx.AsyncClient = Depends(get_http_client),
    storage: ObjectStorage = Depends(get_object_storage),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Return the processed image for a source URL, generating it on first request.

    While another request is generating the same image the caller gets
    ``{"status": "processing"}`` and should poll the status endpoint.
    """
    proxy = FetchOrGenerate(_image_store(session_factory), BackgroundRemover(client, http, storage))
    outcome = await proxy.resolve(request.image_url)

    if outcome.status == ResolveStatus.PROCESSING:
        return {"status": "processing", "message": "Image is being processed"}
    return {"processedUrl": outcome.result["processed_url"], "cached": outcome.cached}


@router.get("/remove-background/status", summary="Poll background removal status")
async def remove_background_status(
    image_url: str = Query(..., alias="imageUrl"),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Current state of a background removal request."""
    entry = await run_db_operation_with_timeout(_image_store(session_factory).get, image_url)
    if entry is None:
        raise StorefrontError("Image has not been requested", status_code=404)

    response: Dict[str, Any] = {"status": entry.status.value}
    if entry.status == CacheStatus.COMPLETED:
        response["processedUrl"] = entry.result["processed_url"]
    return response


@router.get("/recipes", summary="List generated recipes")
async def list_recipes(
    product: Optional[str] = Query(None, description="Only recipes featuring this product handle"),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Completed, approved recipes, newest first."""
    store = SQLCacheStore(session_factory, RECIPE_NAMESPACE)
    entries = await run_db_operation_with_timeout(store.list, CacheStatus.COMPLETED)

    recipes = [entry.result for entry in entries if entry.result.get("is_approved", True)]
    if product:
        recipes = [r for r in recipes if product in (r.get("product_handles") or [r.get("featured_product_handle")])]
    return {"recipes": recipes, "total": len(recipes)}
