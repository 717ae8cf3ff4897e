"""Pydantic schemas for book lending."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..db.schemas import BookResponse


class LoanCreate(BaseModel):
    """Schema for creating a loan."""

    isbn: str = Field(..., min_length=1, max_length=20)
    customer: str = Field(..., min_length=1, max_length=200)
    customer_email: Optional[str] = Field(None, max_length=200)

    @field_validator("isbn", "customer")
    @classmethod
    def not_blank(cls, v: str) -> str:
        """Strip whitespace and reject blank values."""
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class ReturnedLoan(BaseModel):
    """Schema for marking a loan returned (or not)."""

    returned: bool = True


class LoanFilter(BaseModel):
    """Substring search on book ISBN or customer. Unset fields are wildcards."""

    isbn: Optional[str] = None
    customer: Optional[str] = None


class LoanResponse(BaseModel):
    """Schema for loan responses with the book embedded."""

    id: str
    customer: str
    customer_email: Optional[str] = None
    loan_date: date
    returned: bool
    book: Optional[BookResponse] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class LateLoanSummary(BaseModel):
    """Summary of a late loan for listing and notices."""

    id: str
    isbn: Optional[str]
    title: Optional[str]
    customer: str
    contact: str
    loan_date: date
    days_late: int
