"""Listing search request models."""

from typing import Any, Mapping, Optional
from pydantic import BaseModel, Field

from src.utils.parsing import is_coordinate_pair, parse_bounds


class Viewport(BaseModel):
    """Client map viewport given by two corners, each [lng, lat]."""
    north_east: Optional[list[Any]] = Field(None, description="Top right corner")
    south_west: Optional[list[Any]] = Field(None, description="Bottom left corner")

    @classmethod
    def from_headers(cls, headers: Mapping[str, Any]) -> "Viewport":
        """Read the ``north_east_bounds``/``south_west_bounds`` headers ("lng,lat")."""
        headers = {str(k).lower().replace("-", "_"): v for k, v in (headers or {}).items()}
        return cls(
            north_east=parse_bounds(headers.get("north_east_bounds")),
            south_west=parse_bounds(headers.get("south_west_bounds")),
        )

    @property
    def is_complete(self) -> bool:
        return is_coordinate_pair(self.north_east) and is_coordinate_pair(self.south_west)


class ListingParams(BaseModel):
    """Everything a listing query needs from the request."""
    search: Optional[str] = None
    sort_by: Optional[Any] = None
    page: Optional[Any] = None
    limit: Optional[Any] = None
    viewport: Viewport = Field(default_factory=Viewport)
    filters: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_request(cls, query: Mapping[str, Any], headers: Mapping[str, Any]) -> "ListingParams":
        query = dict(query or {})
        return cls(
            search=query.get("search"),
            sort_by=query.get("sortBy"),
            page=query.get("page"),
            limit=query.get("limit"),
            viewport=Viewport.from_headers(headers),
            filters=query,
        )
