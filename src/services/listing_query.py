"""Paginated property listing: count pass, then data pass over the same stages."""

from datetime import datetime, timezone
from typing import Optional

from src.models.search import ListingParams
from src.services.image_presentation import present_property
from src.services.mongo_client import ACCOUNTS_COLLECTION, PROPERTIES_COLLECTION
from src.services.pagination import calculate_pagination
from src.services.query_stages import (
    build_filter_stage,
    build_pipeline,
    build_search_stage,
    build_sort_stage,
    owner_lookup_stage,
)
from src.utils.logging import get_structured_logger, log_timing

logger = get_structured_logger(__name__)


class PropertySearch:
    """Runs listing queries against the document store."""

    def __init__(
        self,
        store,
        base_url: Optional[str] = None,
        search_index: Optional[str] = None,
        text_search_enabled: Optional[bool] = None,
    ):
        self.store = store
        self.base_url = base_url
        self.search_index = search_index
        self.text_search_enabled = text_search_enabled

    def build_pipeline(self, params: ListingParams, now: Optional[datetime] = None) -> list[dict]:
        """Stages shared by the count and the data pass."""
        return build_pipeline(
            build_search_stage(params.search, params.viewport, self.search_index, self.text_search_enabled),
            build_filter_stage(params.filters, now),
            build_sort_stage(params.sort_by),
        )

    async def count(self, pipeline: list[dict]) -> int:
        results = await self.store.aggregate(PROPERTIES_COLLECTION, build_pipeline(pipeline, {"$count": "total"}))
        return results[0]["total"] if results else 0

    async def fetch_properties(self, params: ListingParams, now: Optional[datetime] = None) -> dict:
        """
        Return ``{limit, page, pages, total, prevPage, nextPage, properties}``.

        Both passes use one pipeline built with one clock reading so the count
        describes exactly the records the data pass can return.
        """
        now = now or datetime.now(timezone.utc)
        pipeline = self.build_pipeline(params, now)

        with log_timing("fetch_properties", logger=logger, stages=len(pipeline)):
            total = await self.count(pipeline)
            pagination = calculate_pagination(total, params.page, params.limit)

            documents = await self.store.aggregate(
                PROPERTIES_COLLECTION,
                build_pipeline(
                    pipeline,
                    {"$skip": pagination.skip},
                    {"$limit": pagination.limit},
                    owner_lookup_stage(ACCOUNTS_COLLECTION),
                ),
            )

        logger.info(
            "Properties fetched",
            total=total,
            page=pagination.page,
            returned=len(documents),
            has_viewport=params.viewport.is_complete
        )

        return {
            **pagination.to_response(),
            "properties": [present_property(document, self.base_url) for document in documents],
        }
