"""Supabase Storage client used as the blob store for image variants."""

import asyncio
from typing import Iterable, Optional
from supabase import create_client, Client
from supabase.client import ClientOptions

from src.models.image import ImageVariant
from src.utils.config import AppConfig
from src.utils.errors import BlobStoreError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


def create_supabase_client(url: Optional[str] = None, key: Optional[str] = None) -> Client:
    """Create a Supabase client from configuration."""
    url = url or AppConfig.SUPABASE_URL
    key = key or AppConfig.SUPABASE_SERVICE_ROLE_KEY

    if not url or not key:
        raise BlobStoreError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

    options = ClientOptions(
        auto_refresh_token=False,
        persist_session=False,
    )
    client = create_client(url, key, options)
    logger.info("Supabase client initialized", url=url)
    return client


class SupabaseBlobStore:
    """Key/object store backed by one Supabase Storage bucket."""

    def __init__(self, client: Client, bucket: Optional[str] = None):
        self.client = client
        self.bucket = bucket or AppConfig.STORAGE_BUCKET

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        """Upload (or overwrite) one object."""
        try:
            # storage3 is synchronous; keep the event loop free during uploads
            await asyncio.to_thread(
                self._bucket().upload,
                key,
                data,
                {"content-type": content_type, "upsert": "true"},
            )
        except Exception as e:
            raise BlobStoreError(f"Failed to upload {key}: {e}")

        logger.debug("Blob uploaded", key=key, size_bytes=len(data), content_type=content_type)

    async def put_many(self, variants: Iterable[ImageVariant]) -> list[str]:
        """
        Upload variants one after another.

        On failure the raised ``BlobStoreError`` lists the keys already
        uploaded under ``details["uploaded"]`` so the caller can clean up.
        """
        uploaded: list[str] = []
        for variant in variants:
            try:
                await self.put(variant.key, variant.data, variant.content_type)
            except BlobStoreError as e:
                raise BlobStoreError(e.message, details={"uploaded": uploaded, "failed": variant.key})
            uploaded.append(variant.key)
        return uploaded

    async def delete(self, *keys: str) -> None:
        """Remove objects by key."""
        keys = [key for key in keys if key]
        if not keys:
            return

        try:
            await asyncio.to_thread(self._bucket().remove, keys)
        except Exception as e:
            raise BlobStoreError(f"Failed to delete {len(keys)} blobs: {e}")

        logger.info("Blobs deleted", keys_count=len(keys))
