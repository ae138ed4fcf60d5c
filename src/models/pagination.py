"""Pagination envelope model."""

from typing import Optional
from pydantic import Field

from src.models.base import CamelModel


class Pagination(CamelModel):
    """Paging descriptor for a listing response."""
    limit: int = Field(..., ge=1, le=200, description="Page size")
    page: int = Field(..., ge=1, description="Current page (1-based)")
    pages: int = Field(..., ge=0, description="Total number of pages")
    total: int = Field(..., ge=0, description="Total matching documents")
    prev_page: Optional[int] = Field(None, description="Previous page, null on the first page")
    next_page: Optional[int] = Field(None, description="Next page, null on the last page")
    skip: int = Field(0, ge=0, exclude=True, description="Offset into the result set")

    def to_response(self) -> dict:
        """Serialize for the client contract (skip stays internal)."""
        return self.model_dump(by_alias=True)
