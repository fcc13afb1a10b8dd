"""Paging and error-body schemas shared by every router."""

import math

from pydantic import BaseModel, Field


class PaginationParams(BaseModel):
    """``?page=&page_size=`` query parameters; pages are 1-based."""

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class PaginationMeta(BaseModel):
    total: int = Field(description="Rows matching the query across all pages")
    page: int
    page_size: int
    total_pages: int = Field(description="At least 1, even for an empty result")


class ErrorResponse(BaseModel):
    """Body of every domain error response."""

    detail: str
    code: str | None = Field(default=None, description="Stable machine-readable error code, e.g. duplicate_vote")


def build_pagination(total: int, page: int, page_size: int) -> PaginationMeta:
    return PaginationMeta(
        total=total,
        page=page,
        page_size=page_size,
        total_pages=max(1, math.ceil(total / page_size)),
    )
