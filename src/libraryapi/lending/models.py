"""SQLAlchemy models for book lending.

Tables:
- loans: Individual loan records. A partial unique index allows at most
  one unreturned loan per book.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.models import Base, Book, generate_uuid


class Loan(Base):
    """Loan model - one book lent to one customer."""

    __tablename__ = "loans"
    __table_args__ = (
        Index(
            "uq_loans_active_book",
            "book_id",
            unique=True,
            sqlite_where=text("returned = 0"),
            postgresql_where=text("NOT returned"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Book being lent. Cleared if the book is deleted after the loan was returned.
    book_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("books.id", ondelete="SET NULL"),
        index=True,
    )

    # Customer name or email, plus an optional contact address for notices
    customer: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(200))

    loan_date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)  # ISO date
    returned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at: Mapped[str] = mapped_column(
        String(26), default=lambda: datetime.now(timezone.utc).isoformat()
    )
    updated_at: Mapped[str] = mapped_column(
        String(26),
        default=lambda: datetime.now(timezone.utc).isoformat(),
        onupdate=lambda: datetime.now(timezone.utc).isoformat(),
    )

    # Relationships
    book: Mapped[Optional["Book"]] = relationship("Book", lazy="joined")

    def __repr__(self) -> str:
        return f"<Loan(id={self.id}, book_id={self.book_id}, returned={self.returned})>"

    @property
    def loan_day(self) -> date:
        """Loan date as a date object."""
        return date.fromisoformat(self.loan_date)

    @property
    def contact(self) -> str:
        """Address used for late notices."""
        return self.customer_email or self.customer

    def is_late(self, today: date, grace_period_days: int) -> bool:
        """Check if the loan is unreturned past the grace period."""
        if self.returned:
            return False
        return self.loan_day < today - timedelta(days=grace_period_days)

    def days_late(self, today: date, grace_period_days: int) -> int:
        """Days past the grace period (0 if not late)."""
        if not self.is_late(today, grace_period_days):
            return 0
        return (today - timedelta(days=grace_period_days) - self.loan_day).days
