"""HTTP helpers for remote downloads."""
import asyncio
import logging
from typing import Optional
import httpx
from storefront.config import settings
from storefront.errors import UpstreamError

logger = logging.getLogger(__name__)

DOWNLOAD_HEADERS = {"User-Agent": "Mozilla/5.0 (compatible; StorefrontImageFetcher/1.0)"}


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    attempts: Optional[int] = None,
    backoff: Optional[float] = None,
) -> httpx.Response:
    """
    GET a remote resource, retrying transient failures with linear backoff.

    Attempt n (1-based) that fails waits ``backoff * n`` seconds before the next
    one, so the defaults give 3 attempts separated by 1s and 2s.

    Args:
        client: Shared async HTTP client
        url: Resource URL
        attempts: Maximum number of attempts (defaults to settings.image_download_attempts)
        backoff: Base delay in seconds (defaults to settings.image_download_backoff)

    Returns:
        The successful (2xx) response

    Raises:
        UpstreamError: If every attempt fails
    """
    attempts = attempts or settings.image_download_attempts
    backoff = settings.image_download_backoff if backoff is None else backoff
    last_error = ""

    for attempt in range(1, attempts + 1):
        try:
            response = await client.get(url, headers=DOWNLOAD_HEADERS, follow_redirects=True)
            if response.is_success:
                return response
            last_error = f"HTTP {response.status_code}"
        except httpx.HTTPError as e:
            last_error = str(e) or e.__class__.__name__

        if attempt < attempts:
            delay = backoff * attempt
            logger.warning(
                "Download attempt %d/%d for %s failed (%s), retrying in %.1fs",
                attempt, attempts, url, last_error, delay,
            )
            await asyncio.sleep(delay)

    logger.error("Giving up on %s after %d attempts: %s", url, attempts, last_error)
    raise UpstreamError(f"Failed to download image: {last_error}")
