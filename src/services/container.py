"""Process-wide services, built once at startup."""

from dataclasses import dataclass
from typing import Optional

from src.services.avatar_service import AvatarService
from src.services.image_jobs import ImageJobQueue
from src.services.image_variants import ImageVariantPipeline
from src.services.listing_query import PropertySearch
from src.services.mongo_client import MongoStore
from src.services.property_service import PropertyService
from src.services.supabase_client import SupabaseBlobStore, create_supabase_client
from src.utils.config import AppConfig
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


@dataclass
class ServiceContainer:
    """Holds the shared stores and the services built on them."""
    store: MongoStore
    blob_store: SupabaseBlobStore
    pipeline: ImageVariantPipeline
    search: PropertySearch
    properties: PropertyService
    avatars: AvatarService
    job_queue: ImageJobQueue

    @classmethod
    def build(cls, store, blob_store, base_url: Optional[str] = None) -> "ServiceContainer":
        """Wire services around already constructed stores."""
        base_url = AppConfig.IMAGES_BASE_URL if base_url is None else base_url
        pipeline = ImageVariantPipeline(blob_store)
        properties = PropertyService(store, blob_store, pipeline, base_url=base_url)

        return cls(
            store=store,
            blob_store=blob_store,
            pipeline=pipeline,
            search=PropertySearch(store, base_url=base_url),
            properties=properties,
            avatars=AvatarService(store, blob_store, pipeline, base_url=base_url),
            job_queue=properties.job_queue,
        )

    @classmethod
    def create(cls) -> "ServiceContainer":
        """Build every service from environment configuration."""
        store = MongoStore.from_config()
        blob_store = SupabaseBlobStore(create_supabase_client())
        container = cls.build(store, blob_store)
        logger.info("Service container created", bucket=blob_store.bucket)
        return container

    async def aclose(self) -> None:
        """Drain pending image jobs, then release the store connection."""
        await self.job_queue.stop(drain=True)
        await self.store.close()


_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """Get or create the process container."""
    global _container
    if _container is None:
        _container = ServiceContainer.create()
    return _container


def set_container(container: Optional[ServiceContainer]) -> None:
    """Install a container (tests, custom startup); None resets it."""
    global _container
    _container = container
