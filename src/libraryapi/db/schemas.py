"""Pydantic schemas for book data and paging.

These are plain data-transfer structures: they validate input at the
boundary and carry results out of the managers, with no business logic.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator

T = TypeVar("T")


# ============================================================================
# Paging
# ============================================================================


class PageRequest(BaseModel):
    """Zero-based page number and page size."""

    page: int = Field(default=0, ge=0, description="Zero-based page number")
    size: int = Field(default=20, ge=1, le=100, description="Items per page")

    @classmethod
    def of(cls, page: int, size: int) -> "PageRequest":
        """Shorthand constructor."""
        return cls(page=page, size=size)

    @property
    def offset(self) -> int:
        return self.page * self.size


@dataclass
class Page(Generic[T]):
    """A slice of query results plus the total number of matches."""

    content: list[T] = field(default_factory=list)
    page_request: PageRequest = field(default_factory=PageRequest)
    total_elements: int = 0

    @property
    def page_number(self) -> int:
        return self.page_request.page

    @property
    def page_size(self) -> int:
        return self.page_request.size

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_elements / self.page_size) if self.total_elements else 0

    @property
    def is_last(self) -> bool:
        return self.page_number + 1 >= self.total_pages

    def __len__(self) -> int:
        return len(self.content)

    def __iter__(self):
        return iter(self.content)


# ============================================================================
# Book Schemas
# ============================================================================


class BookBase(BaseModel):
    """Base book fields."""

    isbn: str = Field(..., min_length=1, max_length=20, description="Unique ISBN")
    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=500)

    @field_validator("isbn")
    @classmethod
    def isbn_not_blank(cls, v: str) -> str:
        """Strip whitespace and reject blank ISBNs."""
        v = v.strip()
        if not v:
            raise ValueError("isbn must not be blank")
        return v


class BookCreate(BookBase):
    """Schema for creating a book."""

    pass


class BookUpdate(BaseModel):
    """Schema for updating a book. The ISBN cannot be changed."""

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    author: Optional[str] = Field(None, min_length=1, max_length=500)


class BookFilter(BaseModel):
    """Exact-match filter template; unset fields are wildcards."""

    isbn: Optional[str] = None
    title: Optional[str] = None
    author: Optional[str] = None


class BookResponse(BookBase):
    """Schema for book responses."""

    id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
