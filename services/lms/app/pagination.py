"""Pagination helpers for list endpoints (page/limit, 1-based)."""

from __future__ import annotations

from fastapi import Query
from pydantic import BaseModel, Field


class PageParams(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(1, ge=1, description="1-based page number."),
    limit: int = Query(10, ge=1, le=100, description="Items per page."),
) -> PageParams:
    return PageParams(page=page, limit=limit)
