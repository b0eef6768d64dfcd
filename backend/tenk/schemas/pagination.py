"""Shared pagination query params for list endpoints."""

from pydantic import BaseModel, Field


class PaginationParams(BaseModel):
    limit: int = Field(default=50, ge=1, le=200, description="Max items per page")
    offset: int = Field(default=0, ge=0, description="Number of items to skip")
