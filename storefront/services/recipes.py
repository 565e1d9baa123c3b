"""AI recipe generation for featured products."""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence
from langfuse.openai import AsyncOpenAI
from storefront.config import settings
from storefront.errors import GenerationError
from storefront.proxy import CachePolicy, FetchOrGenerate, ResolveStatus, SQLCacheStore
from storefront.utils.llm import create_chat_completion_with_timeout
from storefront.utils.text import extract_json, slugify

logger = logging.getLogger(__name__)

RECIPE_NAMESPACE = "recipe"
OCCASIONS = ["breakfast", "dinner", "relaxing", "beach", "celebration"]
DEFAULT_OCCASION = "celebration"

SYSTEM_PROMPT = (
    "You are a professional mixologist creating non-alcoholic drink recipes.\n\n"
    "RULES:\n"
    "1. Use the featured product name exactly as provided. Never shorten it or add flavor words.\n"
    "2. List the featured product first in the ingredients as \"[measurement] [exact product name]\".\n"
    "3. Never invent product variants or flavors that were not provided.\n"
    "4. Only use common mixers (club soda, lime juice, simple syrup...) next to the featured product.\n"
    "5. Keep the recipe realistic, tasty and suited to the occasion.\n\n"
    "Provide a creative title, a one-sentence tagline, a 2-3 sentence description, prep time, "
    "servings, difficulty (Easy, Medium or Advanced), ingredients and 3-6 instruction steps.\n\n"
    "Respond ONLY with valid JSON."
)


def recipe_key(product_handle: str, occasion: str) -> str:
    """Cache identity of a (product, occasion) pair."""
    return f"{product_handle}:{occasion}"


def build_recipe_prompt(product: Dict[str, str], occasion: str) -> str:
    name = product["name"]
    lines = [
        f"Create a {occasion} drink recipe featuring this NA product:",
        "",
        f"FEATURED PRODUCT (use this EXACT name in ingredients): \"{name}\"",
        f"Category: {product.get('category') or 'Beverage'}",
        f"Product Handle: {product['handle']}",
    ]
    if product.get("description"):
        lines.append(f"Description: {product['description']}")
    lines += [
        "",
        f"The recipe should suit a {occasion} setting.",
        "",
        "Respond with JSON in this exact format:",
        "{",
        '  "title": "Creative Recipe Name",',
        '  "tagline": "One catchy sentence about the drink",',
        '  "description": "2-3 sentences describing the drink",',
        '  "prep_time": "5 mins",',
        '  "servings": 1,',
        '  "difficulty": "Easy",',
        f'  "ingredients": ["4 oz {name}", "2 oz fresh lime juice", "Club soda to top"],',
        '  "instructions": ["Step 1...", "Step 2..."]',
        "}",
    ]
    return "\n".join(lines)


def parse_recipe(content: Optional[str], product: Dict[str, str], occasion: str) -> Dict[str, Any]:
    """
    Turn a model reply into a recipe record.

    Raises:
        GenerationError: If the reply is empty, not JSON, or misses required fields
    """
    if not content:
        raise GenerationError("No content in AI response")
    try:
        parsed = extract_json(content)
    except ValueError as e:
        raise GenerationError(f"Recipe response was not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise GenerationError("Recipe response was not a JSON object")
    missing = [f for f in ("title", "ingredients", "instructions") if not parsed.get(f)]
    if missing:
        raise GenerationError(f"Recipe response missing fields: {', '.join(missing)}")
    if not isinstance(parsed["title"], str):
        raise GenerationError("Recipe title must be a string")
    for field in ("ingredients", "instructions"):
        if not isinstance(parsed[field], list):
            raise GenerationError(f"Recipe {field} must be a list")

    handle = product["handle"]
    return {
        "title": parsed["title"],
        "slug": f"{slugify(parsed['title'])}-{handle}",
        "description": parsed.get("description", ""),
        "tagline": parsed.get("tagline", ""),
        "occasion": occasion,
        "prep_time": parsed.get("prep_time") or "5 mins",
        "servings": parsed.get("servings") or 1,
        "difficulty": parsed.get("difficulty") or "Easy",
        "ingredients": parsed["ingredients"],
        "instructions": parsed["instructions"],
        "featured_product_handle": handle,
        "featured_product_name": product["name"],
        "product_handles": [handle],
        "is_approved": True,
    }


class RecipeGenerator:
    """Generates and caches one recipe per (product, occasion)."""

    def __init__(
        self,
        client: AsyncOpenAI,
        store: SQLCacheStore,
        model: Optional[str] = None,
        request_delay: Optional[float] = None,
        retry_failed: Optional[bool] = None,
    ):
        """
        Args:
            client: AI gateway client
            store: Cache store for the recipe namespace
            model: Chat model (defaults to settings.recipe_model)
            request_delay: Seconds between generator calls in a batch
            retry_failed: Regenerate failed pairs instead of skipping every existing row
        """
        self.client = client
        self.model = model or settings.recipe_model
        self.request_delay = settings.recipe_request_delay if request_delay is None else request_delay
        retry_failed = settings.recipe_retry_failed if retry_failed is None else retry_failed
        policy = CachePolicy.REUSE if retry_failed else CachePolicy.SKIP_EXISTING
        self.proxy = FetchOrGenerate(store, self._generate, policy=policy)

    async def _generate(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        product, occasion = inputs["product"], inputs["occasion"]
        logger.info("Generating recipe for %s (%s)", product["name"], occasion)
        completion = await create_chat_completion_with_timeout(
            client=self.client,
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_recipe_prompt(product, occasion)},
            ],
        )
        content = completion.choices[0].message.content if completion.choices else None
        return parse_recipe(content, product, occasion)

    async def _pause(self) -> None:
        # Spread gateway calls to stay under rate limits
        if self.request_delay > 0:
            await asyncio.sleep(self.request_delay)

    async def generate_batch(
        self,
        products: Sequence[Dict[str, str]],
        occasions: Sequence[str],
    ) -> Dict[str, List[str]]:
        """
        Generate recipes for every product/occasion pair.

        Returns:
            {"success": [...], "failed": [...], "skipped": [...]} of "Name (occasion)" labels
        """
        results = {"success": [], "failed": [], "skipped": []}

        for product in products:
            for occasion in occasions:
                label = f"{product['name']} ({occasion})"
                key = recipe_key(product["handle"], occasion)

                try:
                    outcome = await self.proxy.resolve(key, {"product": product, "occasion": occasion})
                except Exception as e:
                    # A failed pair is reported and the batch carries on
                    logger.error("Failed to generate recipe for %s: %s", label, e)
                    results["failed"].append(label)
                    await self._pause()
                    continue

                if outcome.status == ResolveStatus.GENERATED:
                    logger.info("Created recipe: %s", outcome.result["title"])
                    results["success"].append(label)
                    await self._pause()
                else:
                    results["skipped"].append(label)

        logger.info(
            "Generation complete: %d created, %d skipped, %d failed",
            len(results["success"]), len(results["skipped"]), len(results["failed"]),
        )
        return results
