"""Blog import through the Firecrawl scraping API."""
import logging
import re
from typing import Any, Dict, List, Optional
import httpx
from storefront.config import settings
from storefront.errors import GenerationError, NotConfiguredError, StorefrontError, UpstreamError
from storefront.proxy import FetchOrGenerate, ResolveStatus, SQLCacheStore

logger = logging.getLogger(__name__)

BLOG_POST_NAMESPACE = "blog_post"
MAX_MAPPED_LINKS = 100
MAX_POSTS_PER_IMPORT = 50
EXCERPT_LENGTH = 300

_H1 = re.compile(r"^#\s+(.+)$", re.MULTILINE)
_MARKDOWN_IMAGE = re.compile(r"!\[.*?\]\((https?://[^)]+)\)")


class FirecrawlClient:
    """Minimal client for the map and scrape endpoints."""

    def __init__(self, client: httpx.AsyncClient, api_key: str, base_url: Optional[str] = None):
        if not api_key:
            raise NotConfiguredError("Firecrawl connector not configured")
        self.client = client
        self.base_url = (base_url or settings.firecrawl_base_url).rstrip("/")
        self.headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.client.post(f"{self.base_url}{path}", json=body, headers=self.headers)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Firecrawl unreachable: {e}") from e
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not response.is_success:
            logger.error("Firecrawl %s error %s: %s", path, response.status_code, data)
            raise UpstreamError(data.get("error") or f"Firecrawl error: {response.status_code}",
                                status_code=response.status_code)
        return data

    async def map(self, url: str) -> List[str]:
        data = await self._post("/map", {"url": url, "limit": MAX_MAPPED_LINKS, "includeSubdomains": False})
        return data.get("links") or []

    async def scrape(self, url: str) -> Dict[str, Any]:
        data = await self._post("/scrape", {"url": url, "formats": ["markdown", "html"], "onlyMainContent": True})
        if not data.get("success"):
            raise UpstreamError(f"Scrape failed for {url}")
        return data.get("data") or data


def is_blog_post_url(url: str) -> bool:
    """Post pages live under /blog/, excluding the index and taxonomy pages."""
    return (
        "/blog/" in url
        and not url.endswith("/blog")
        and not url.endswith("/blog/")
        and "/category/" not in url
        and "/tag/" not in url
    )


def extract_post(post_url: str, data: Dict[str, Any], site_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Build a blog post record from a scrape result.

    Raises:
        GenerationError: If neither a title nor a slug can be derived
    """
    metadata = data.get("metadata") or {}
    markdown = data.get("markdown") or ""

    slug = post_url.split("/blog/", 1)[1] if "/blog/" in post_url else ""
    slug = re.sub(r"[^a-z0-9-]", "-", slug.rstrip("/").lower())

    title = metadata.get("title") or ""
    if not title and markdown:
        match = _H1.search(markdown)
        if match:
            title = match.group(1)
    site_name = site_name or settings.store_name
    if site_name:
        title = re.sub(rf"\s*[|—-]\s*{re.escape(site_name)}.*$", "", title, flags=re.IGNORECASE)
    title = title.strip()

    excerpt = metadata.get("description") or ""
    if not excerpt and markdown:
        paragraphs = [
            p for p in markdown.split("\n\n")
            if p.strip() and not p.startswith("#") and not p.startswith("!")
        ]
        if paragraphs:
            excerpt = paragraphs[0][:EXCERPT_LENGTH].replace("\n", " ").strip()
            if len(excerpt) == EXCERPT_LENGTH:
                excerpt += "..."

    featured_image = metadata.get("ogImage")
    if not featured_image and markdown:
        match = _MARKDOWN_IMAGE.search(markdown)
        if match:
            featured_image = match.group(1)

    if not title or not slug:
        raise GenerationError(f"Could not extract a post from {post_url}")

    return {
        "title": title,
        "slug": slug,
        "content": markdown,
        "excerpt": excerpt,
        "featured_image": featured_image,
        "published_at": metadata.get("publishedTime"),
    }


class BlogImporter:
    """Maps a blog, then scrapes each post through the blog_post cache."""

    def __init__(self, firecrawl: FirecrawlClient, store: SQLCacheStore):
        self.firecrawl = firecrawl
        self.proxy = FetchOrGenerate(store, self._scrape_post)

    async def _scrape_post(self, post_url: str) -> Dict[str, Any]:
        logger.info("Scraping: %s", post_url)
        data = await self.firecrawl.scrape(post_url)
        return extract_post(post_url, data)

    async def import_blog(self, blog_url: str) -> Dict[str, Any]:
        """
        Import every post reachable from ``blog_url``.

        Posts already scraped are served from the cache. Individual post
        failures are logged and skipped.

        Returns:
            {"posts", "total_found", "scraped"}
        """
        logger.info("Mapping blog %s to find post URLs", blog_url)
        post_urls = [url for url in await self.firecrawl.map(blog_url) if is_blog_post_url(url)]
        logger.info("Found %d blog post URLs", len(post_urls))

        posts = []
        for post_url in post_urls[:MAX_POSTS_PER_IMPORT]:
            try:
                outcome = await self.proxy.resolve(post_url)
            except StorefrontError as e:
                logger.error("Error scraping %s: %s", post_url, e)
                continue
            if outcome.status in (ResolveStatus.HIT, ResolveStatus.GENERATED):
                posts.append(outcome.result)

        logger.info("Imported %d posts", len(posts))
        return {"posts": posts, "total_found": len(post_urls), "scraped": len(posts)}
