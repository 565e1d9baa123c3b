"""Streaming chat assistants proxied to the AI gateway."""
import logging
from typing import Any, AsyncIterator, Dict, List, Sequence
from langfuse.openai import AsyncOpenAI
from storefront.config import settings
from storefront.errors import QuotaExceededError
from storefront.utils.llm import create_chat_completion_with_timeout

logger = logging.getLogger(__name__)

CHAT_QUOTA_MESSAGES = {
    QuotaExceededError.RATE_LIMITED: "We're getting a lot of questions right now! Please try again in a moment.",
    QuotaExceededError.PAYMENT_REQUIRED: "Chat is temporarily unavailable. Please try again later.",
}


def build_expert_prompt(products: Sequence[Dict[str, str]], store_name: str = None) -> str:
    """System prompt for the shopper-facing NA beverage expert."""
    store_name = store_name or settings.store_name
    product_list = "\n".join(
        f"- {p['name']} (handle: {p['handle']}, category: {p.get('category', 'Beverage')})"
        for p in products
    )
    return (
        f"You are a friendly expert on non-alcoholic (NA) beverages working for {store_name}, "
        "a premium NA beverage store.\n\n"
        "You help with NA beers, wines, spirits and ready-to-drink cocktails, mocktail recipes, "
        "food pairings and finding the right drink for an occasion. Keep answers warm, casual "
        "and short (2-4 sentences). Never be preachy about alcohol.\n\n"
        "Only recommend products from this inventory:\n"
        f"{product_list or '- (inventory unavailable)'}\n\n"
        "When recommending a product use exactly this format with its handle:\n"
        "[[PRODUCT:product-handle|Product Name]]\n"
        "If we don't carry something, say so and suggest the closest item from the list."
    )


def build_wholesale_prompt(store_name: str = None) -> str:
    """System prompt for the wholesale sales consultant."""
    store_name = store_name or settings.store_name
    return (
        f"You are a wholesale sales consultant for {store_name}, a premium non-alcoholic "
        "beverage company. You help bars, restaurants and retailers evaluate carrying our NA "
        "products: pricing and partnership options, NA market trends, menu programming, staff "
        "training and margins.\n\n"
        "Be professional, warm and concise (2-4 sentences). Call our drinks alcohol-free "
        "cocktails, not mocktails. Invite interested venues to submit a wholesale application."
    )


async def open_chat_stream(
    client: AsyncOpenAI,
    system_prompt: str,
    messages: List[Dict[str, str]],
    model: str = None,
) -> Any:
    """
    Start a streamed completion.

    Gateway errors surface here, before any bytes are sent to the caller.

    Raises:
        QuotaExceededError: With chat-specific wording on 429/402
        UpstreamError: On other gateway failures
    """
    return await create_chat_completion_with_timeout(
        client=client,
        model=model or settings.chat_model,
        messages=[{"role": "system", "content": system_prompt}, *messages],
        quota_messages=CHAT_QUOTA_MESSAGES,
        stream=True,
    )


async def relay_sse(stream: Any) -> AsyncIterator[str]:
    """Re-emit completion chunks as server-sent events."""
    try:
        async for chunk in stream:
            yield f"data: {chunk.model_dump_json()}\n\n"
    except Exception as e:
        # Headers are already sent; end the stream with an error event
        logger.error("Chat stream interrupted: %s", e)
        yield 'data: {"error": "Something went wrong. Please try again."}\n\n'
    yield "data: [DONE]\n\n"
