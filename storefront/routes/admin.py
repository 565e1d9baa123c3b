"""Admin functions: recipe generation, blog import and wholesale sync."""
import logging
from typing import List, Optional
import httpx
from fastapi import APIRouter, Depends, Header, Query
from langfuse.openai import AsyncOpenAI
from pydantic import BaseModel, Field
from sqlalchemy.orm import sessionmaker
from storefront.dependencies import (
    ensure_admin,
    get_admin_client,
    get_firecrawl_client,
    get_gateway_client,
    get_http_client,
    get_object_storage,
    get_session_factory,
    get_storefront_client,
    get_token_resolver,
    is_cron_request,
    require_admin,
)
from storefront.errors import StorefrontError
from storefront.proxy import FetchOrGenerate, SQLCacheStore
from storefront.services.auth import TokenResolver
from storefront.services.blog import BLOG_POST_NAMESPACE, BlogImporter, FirecrawlClient
from storefront.services.images import BLOG_IMAGE_NAMESPACE, PROCESSED_IMAGE_NAMESPACE, BlogImageDownloader
from storefront.services.object_storage import ObjectStorage
from storefront.services.recipes import DEFAULT_OCCASION, OCCASIONS, RECIPE_NAMESPACE, RecipeGenerator
from storefront.services.wholesale import sync_application
from storefront.shopify import ShopifyAdminClient
from storefront.utils.llm import run_db_operation_with_timeout

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["admin"])

CACHE_NAMESPACES = (RECIPE_NAMESPACE, BLOG_POST_NAMESPACE, BLOG_IMAGE_NAMESPACE, PROCESSED_IMAGE_NAMESPACE)


class RecipeProduct(BaseModel):
    handle: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    category: str = "Beverage"
    description: str = ""


class GenerateRecipesRequest(BaseModel):
    auto: bool = Field(False, description="Scheduled run over every available product and occasion")
    on_demand: bool = Field(False, alias="onDemand", description="Single product request from a product page")
    products: List[RecipeProduct] = Field(default_factory=list)
    occasion: Optional[str] = Field(None, description=f"One of {', '.join(OCCASIONS)}")


class ScrapeBlogRequest(BaseModel):
    blog_url: str = Field(..., alias="blogUrl", min_length=1)


class DownloadBlogImageRequest(BaseModel):
    image_url: str = Field(..., alias="imageUrl", min_length=1)
    slug: Optional[str] = None


class SyncWholesaleRequest(BaseModel):
    application_id: str = Field(..., alias="applicationId", min_length=1)


@router.post("/generate-recipes", summary="Generate AI recipes for products")
async def generate_recipes(
    request: GenerateRecipesRequest,
    authorization: Optional[str] = Header(None),
    cron: bool = Depends(is_cron_request),
    resolver: Optional[TokenResolver] = Depends(get_token_resolver),
    session_factory: sessionmaker = Depends(get_session_factory),
    client: AsyncOpenAI = Depends(get_gateway_client),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Generate one recipe per product and occasion, skipping pairs already stored.

    Modes:
    - auto: every available product across all occasions (scheduler secret or admin)
    - onDemand: exactly one product, open to storefront visitors
    - otherwise: admin batch over the given products for one occasion
    """
    on_demand = request.on_demand and not request.auto and len(request.products) == 1
    if not on_demand and not (request.auto and cron):
        await ensure_admin(authorization, resolver, session_factory)

    if request.occasion and request.occasion not in OCCASIONS:
        raise StorefrontError(f"Unknown occasion: {request.occasion}", status_code=400)

    if request.auto:
        logger.info("Running in auto mode")
        products = await get_storefront_client(http).list_recipe_products()
        occasions = OCCASIONS
    else:
        products = [product.model_dump() for product in request.products]
        occasions = [request.occasion or DEFAULT_OCCASION]

    if not products:
        raise StorefrontError("No products found", status_code=400)

    logger.info("Generating recipes for %d products across %d occasions", len(products), len(occasions))
    generator = RecipeGenerator(client, SQLCacheStore(session_factory, RECIPE_NAMESPACE))
    results = await generator.generate_batch(products, occasions)
    return {"message": "Recipe generation complete", "results": results}


@router.post("/scrape-blog", summary="Import blog posts from an external blog",
             dependencies=[Depends(require_admin)])
async def scrape_blog(
    request: ScrapeBlogRequest,
    firecrawl: FirecrawlClient = Depends(get_firecrawl_client),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    importer = BlogImporter(firecrawl, SQLCacheStore(session_factory, BLOG_POST_NAMESPACE))
    imported = await importer.import_blog(request.blog_url)

    if not imported["total_found"]:
        return {
            "success": True,
            "posts": [],
            "message": "No blog posts found. The blog might be empty or use a different URL structure.",
        }
    return {
        "success": True,
        "posts": imported["posts"],
        "totalFound": imported["total_found"],
        "scraped": imported["scraped"],
    }


@router.post("/download-blog-image", summary="Copy a blog image into our storage",
             dependencies=[Depends(require_admin)])
async def download_blog_image(
    request: DownloadBlogImageRequest,
    http: httpx.AsyncClient = Depends(get_http_client),
    storage: ObjectStorage = Depends(get_object_storage),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Download once per image URL; repeated requests return the stored copy."""
    proxy = FetchOrGenerate(SQLCacheStore(session_factory, BLOG_IMAGE_NAMESPACE), BlogImageDownloader(http, storage))
    outcome = await proxy.resolve(request.image_url, {"image_url": request.image_url, "slug": request.slug})

    if not outcome.ready:
        return {"success": False, "status": "processing", "message": "Image is being downloaded"}
    return {
        "success": True,
        "originalUrl": outcome.result["original_url"],
        "newUrl": outcome.result["new_url"],
        "path": outcome.result["path"],
        "cached": outcome.cached,
    }


@router.post("/sync-wholesale-shopify", summary="Create a Shopify company for a wholesale application",
             dependencies=[Depends(require_admin)])
async def sync_wholesale_shopify(
    request: SyncWholesaleRequest,
    admin_client: ShopifyAdminClient = Depends(get_admin_client),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    company_id = await sync_application(session_factory, admin_client, request.application_id)
    return {
        "success": True,
        "companyId": company_id,
        "message": "Successfully synced to Shopify Companies",
    }


@router.delete("/cache/{namespace}", summary="Delete a generated entry so it can be produced again",
               dependencies=[Depends(require_admin)])
async def delete_cache_entry(
    namespace: str,
    key: str = Query(..., description="Cache key, e.g. a source image URL or product:occasion"),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Drop one fetch-or-generate row.

    Batch recipe runs skip every key that already has a row, failed ones
    included, so deleting the row is how an admin asks for a retry.
    """
    if namespace not in CACHE_NAMESPACES:
        raise StorefrontError(f"Unknown cache namespace: {namespace}", status_code=400)

    store = SQLCacheStore(session_factory, namespace)
    if not await run_db_operation_with_timeout(store.delete, key):
        raise StorefrontError("Cache entry not found", status_code=404)
    return {"success": True, "namespace": namespace, "key": key}
