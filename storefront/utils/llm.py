"""Utility functions for LLM and blocking database operations."""
import asyncio
import logging
from typing import Any, Callable, Dict, Optional
import openai
from langfuse.openai import AsyncOpenAI
from storefront.config import settings
from storefront.errors import NotConfiguredError, QuotaExceededError, UpstreamError

logger = logging.getLogger(__name__)

# User-facing messages for gateway quota failures, per feature
DEFAULT_QUOTA_MESSAGES = {
    QuotaExceededError.RATE_LIMITED: "Rate limit exceeded. Please try again later.",
    QuotaExceededError.PAYMENT_REQUIRED: "AI credits required. Please add funds.",
}


def build_gateway_client() -> AsyncOpenAI:
    """
    Create the AI gateway client from settings.

    Raises:
        NotConfiguredError: If no gateway API key is configured
    """
    if not settings.ai_gateway_api_key:
        raise NotConfiguredError("AI_GATEWAY_API_KEY is not configured")

    client_kwargs = {
        "api_key": settings.ai_gateway_api_key,
        "timeout": settings.llm_timeout,
    }
    if settings.ai_gateway_base_url:
        client_kwargs["base_url"] = settings.ai_gateway_base_url
    return AsyncOpenAI(**client_kwargs)


def translate_gateway_error(
    error: Exception,
    quota_messages: Optional[Dict[str, str]] = None,
) -> Exception:
    """
    Map an OpenAI SDK error onto the application error taxonomy.

    429 and 402 become QuotaExceededError with a feature-specific message so the
    caller can tell "try again shortly" from "temporarily unavailable".

    Args:
        error: Exception raised by the OpenAI client
        quota_messages: Optional overrides keyed by QuotaExceededError kind

    Returns:
        The exception to raise in its place
    """
    messages = {**DEFAULT_QUOTA_MESSAGES, **(quota_messages or {})}

    if isinstance(error, openai.RateLimitError):
        kind = QuotaExceededError.RATE_LIMITED
        return QuotaExceededError(kind, messages[kind])
    if isinstance(error, openai.APIStatusError):
        if error.status_code == 429:
            kind = QuotaExceededError.RATE_LIMITED
            return QuotaExceededError(kind, messages[kind])
        if error.status_code == 402:
            kind = QuotaExceededError.PAYMENT_REQUIRED
            return QuotaExceededError(kind, messages[kind])
        return UpstreamError(f"AI API error: {error.status_code}")
    if isinstance(error, (openai.APIConnectionError, asyncio.TimeoutError)):
        return UpstreamError("AI gateway unreachable. Please try again.")
    return error


async def create_chat_completion_with_timeout(
    client: AsyncOpenAI,
    model: str,
    messages: list,
    timeout: Optional[float] = None,
    quota_messages: Optional[Dict[str, str]] = None,
    **kwargs
) -> Any:
    """
    Create a chat completion with timeout handling.

    Args:
        client: AsyncOpenAI client instance
        model: Model name to use
        messages: List of messages for the chat completion
        timeout: Timeout in seconds (defaults to settings.llm_timeout)
        quota_messages: Optional user-facing messages for 429/402 responses
        **kwargs: Additional arguments to pass to chat.completions.create

    Returns:
        Chat completion response (or an async stream when stream=True)

    Raises:
        QuotaExceededError: If the gateway rate-limits or requires payment
        UpstreamError: On any other gateway failure or timeout
    """
    if timeout is None:
        timeout = settings.llm_timeout

    try:
        return await asyncio.wait_for(
            client.chat.completions.create(
                model=model,
                messages=messages,
                **kwargs
            ),
            timeout=timeout
        )
    except (openai.OpenAIError, asyncio.TimeoutError) as e:
        logger.error("AI gateway call failed: %s", e)
        raise translate_gateway_error(e, quota_messages) from e


async def run_db_operation_with_timeout(
    func: Callable,
    *args,
    timeout: Optional[float] = None,
    **kwargs
) -> Any:
    """
    Run a blocking database operation in a thread pool with timeout.

    Args:
        func: The blocking function to execute
        *args: Positional arguments to pass to func
        timeout: Timeout in seconds (defaults to settings.db_timeout)
        **kwargs: Keyword arguments to pass to func

    Returns:
        Result from func

    Raises:
        asyncio.TimeoutError: If the operation exceeds the timeout
    """
    if timeout is None:
        timeout = settings.db_timeout

    try:
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args, **kwargs),
            timeout=timeout
        )
    except asyncio.TimeoutError:
        # Create a new TimeoutError with a readable message
        error = asyncio.TimeoutError()
        error.args = ("Database operation timed out. Please try again.",)
        raise error
