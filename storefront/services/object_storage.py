"""Public object storage for processed and imported images."""
import logging
from pathlib import Path
from typing import Protocol, Union
import httpx
from storefront.errors import UpstreamError

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    async def upload(self, bucket: str, path: str, data: bytes, content_type: str, upsert: bool = True) -> str:
        """Store bytes and return their public URL."""
        ...


class SupabaseObjectStorage:
    """Supabase Storage REST API using the service-role key."""

    def __init__(self, client: httpx.AsyncClient, supabase_url: str, service_key: str):
        self.client = client
        self.base_url = supabase_url.rstrip("/")
        self.service_key = service_key

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str, upsert: bool = True) -> str:
        try:
            response = await self.client.post(
                f"{self.base_url}/storage/v1/object/{bucket}/{path}",
                content=data,
                headers={
                    "Authorization": f"Bearer {self.service_key}",
                    "apikey": self.service_key,
                    "Content-Type": content_type,
                    "x-upsert": "true" if upsert else "false",
                },
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Storage upload failed: {e}") from e

        if not response.is_success:
            logger.error("Upload error for %s/%s: %s %s", bucket, path, response.status_code, response.text[:300])
            raise UpstreamError(f"Storage upload failed: {response.status_code}")
        return self.public_url(bucket, path)


class LocalObjectStorage:
    """Filesystem storage for development, served under a static base URL."""

    def __init__(self, root: Union[str, Path], base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str, upsert: bool = True) -> str:
        target = self.root / bucket / path
        if target.exists() and not upsert:
            raise UpstreamError(f"Object already exists: {bucket}/{path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return f"{self.base_url}/{bucket}/{path}"
