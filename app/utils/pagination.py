from typing import Annotated, Generic, List, Optional, TypeVar

from fastapi import Query
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.base_schema import SortOrder

SORTABLE_REQUEST_FIELDS = (
    "created_at",
    "updated_at",
    "required_date",
    "units_needed",
    "urgency",
)


class PaginationParams(BaseModel):
    page: int = Field(default=1, ge=1, description="Page number (1-based)")
    page_size: int = Field(
        default=10, ge=1, le=100, description="Items per page (max 100)"
    )
    sort_by: Optional[str] = Field(default=None, description="Field to sort by")
    sort_order: SortOrder = Field(default=SortOrder.DESC, description="Sort order")

    @field_validator("sort_by")
    @classmethod
    def validate_sort_by(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in SORTABLE_REQUEST_FIELDS:
            raise ValueError(
                f'Sort field must be one of: {", ".join(SORTABLE_REQUEST_FIELDS)}'
            )
        return v

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: List[T]
    total_items: int
    total_pages: int
    current_page: int
    page_size: int
    has_next: bool
    has_prev: bool


def get_pagination_params(
    page: Annotated[int, Query(ge=1, description="Page number (1-based)")] = 1,
    page_size: Annotated[
        int, Query(ge=1, le=100, description="Items per page (max 100)")
    ] = 10,
) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)
