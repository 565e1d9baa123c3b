"""Image generators: AI background removal and blog image import."""
import base64
import binascii
import hashlib
import logging
import re
import time
from typing import Any, Dict, Optional
import httpx
from langfuse.openai import AsyncOpenAI
from storefront.config import settings
from storefront.errors import GenerationError
from storefront.services.object_storage import ObjectStorage
from storefront.utils.http import fetch_with_retry
from storefront.utils.llm import create_chat_completion_with_timeout

logger = logging.getLogger(__name__)

PROCESSED_IMAGE_NAMESPACE = "processed_image"
BLOG_IMAGE_NAMESPACE = "blog_image"
PROCESSED_IMAGES_BUCKET = "processed-images"
BLOG_IMAGES_BUCKET = "blog-images"

BACKGROUND_REMOVAL_PROMPT = (
    "Create a PNG image with a fully transparent background (alpha channel = 0). "
    "Extract only the product (bottle, can, or container) from this image. "
    "Keep clean, precise edges with no artifacts and show nothing but the product. "
    "Do not add any background color: no white, no gray, only transparency."
)

_DATA_URL_PREFIX = re.compile(r"^data:image/\w+;base64,")


def _first_image_url(message: Any) -> Optional[str]:
    """Image-capable models return images as an extra field on the message."""
    images = getattr(message, "images", None)
    if images is None and getattr(message, "model_extra", None):
        images = message.model_extra.get("images")
    if not images:
        return None
    first = images[0]
    if isinstance(first, dict):
        return (first.get("image_url") or {}).get("url")
    image_url = getattr(first, "image_url", None)
    if isinstance(image_url, dict):
        return image_url.get("url")
    return getattr(image_url, "url", None)


def _extension_for(content_type: str) -> str:
    if "png" in content_type:
        return "png"
    if "gif" in content_type:
        return "gif"
    if "webp" in content_type:
        return "webp"
    return "jpg"


class BackgroundRemover:
    """Generator for the processed-image proxy: source URL -> transparent PNG URL."""

    def __init__(
        self,
        client: AsyncOpenAI,
        http: httpx.AsyncClient,
        storage: ObjectStorage,
        model: Optional[str] = None,
    ):
        self.client = client
        self.http = http
        self.storage = storage
        self.model = model or settings.image_model

    async def __call__(self, image_url: str) -> Dict[str, Any]:
        logger.info("Processing image: %s", image_url)

        source = await fetch_with_retry(self.http, image_url)
        content_type = source.headers.get("content-type", "image/jpeg").split(";")[0]
        data_url = f"data:{content_type};base64,{base64.b64encode(source.content).decode('ascii')}"

        completion = await create_chat_completion_with_timeout(
            client=self.client,
            model=self.model,
            messages=[{
                "role": "user",
                "content": [
                    {"type": "text", "text": BACKGROUND_REMOVAL_PROMPT},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            }],
            extra_body={"modalities": ["image", "text"]},
        )

        generated = _first_image_url(completion.choices[0].message) if completion.choices else None
        if not generated:
            logger.error("No image in AI response for %s", image_url)
            raise GenerationError("Failed to generate processed image")

        try:
            image_bytes = base64.b64decode(_DATA_URL_PREFIX.sub("", generated), validate=True)
        except (binascii.Error, ValueError) as e:
            raise GenerationError("Failed to generate processed image") from e

        file_name = f"{hashlib.sha256(image_url.encode('utf-8')).hexdigest()[:16]}.png"
        logger.info("Uploading processed image as: %s", file_name)
        processed_url = await self.storage.upload(
            PROCESSED_IMAGES_BUCKET, file_name, image_bytes, "image/png", upsert=True
        )
        return {"processed_url": processed_url}


class BlogImageDownloader:
    """Generator for the blog-image proxy: remote image -> copy in our storage."""

    def __init__(self, http: httpx.AsyncClient, storage: ObjectStorage):
        self.http = http
        self.storage = storage

    async def __call__(self, inputs: Dict[str, str]) -> Dict[str, Any]:
        image_url = inputs["image_url"]
        slug = inputs.get("slug") or "imported"
        logger.info("Downloading image: %s", image_url)

        response = await fetch_with_retry(self.http, image_url)
        content_type = response.headers.get("content-type", "image/jpeg").split(";")[0]

        file_name = image_url.rstrip("/").split("/")[-1].split("?")[0] or "image"
        if "." not in file_name:
            file_name = f"{file_name}.{_extension_for(content_type)}"
        path = f"{slug}/{int(time.time() * 1000)}-{file_name}"

        new_url = await self.storage.upload(BLOG_IMAGES_BUCKET, path, response.content, content_type, upsert=False)
        logger.info("Upload successful: %s", new_url)
        return {"original_url": image_url, "new_url": new_url, "path": path}
