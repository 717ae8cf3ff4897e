"""Loan ledger storage operations."""

from datetime import date
from typing import Optional, Union

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db.models import Book
from ..db.schemas import Page, PageRequest
from ..db.sqlite import Database, get_db
from ..errors import AlreadyLoanedError, BookNotFoundError, NotFoundError
from .models import Loan


def _translate_integrity_error(error: IntegrityError, loan: Loan) -> Exception:
    """Map a constraint violation on the loans table to a domain error."""
    if "FOREIGN KEY" in str(error.orig).upper():
        return BookNotFoundError(f"Book not found: {loan.book_id}")
    return AlreadyLoanedError("Book already loaned")


def _detach(session: Session, loan: Loan) -> Loan:
    """Load the embedded book and detach the loan from its session."""
    loan.book  # noqa: B018
    session.expunge(loan)
    return loan


class LoanLedger:
    """Stores loan records.

    The ledger does not re-check business rules on insert. The partial
    unique index on ``loans.book_id`` rejects a second unreturned loan for
    the same book, which surfaces here as AlreadyLoanedError.
    """

    def __init__(self, db: Optional[Database] = None):
        """Initialize the ledger.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def exists_active_loan(self, book: Union[Book, str]) -> bool:
        """Check whether a book (or book id) has an unreturned loan."""
        book_id = book if isinstance(book, str) else book.id
        with self.db.get_session() as session:
            stmt = (
                select(Loan.id)
                .where(Loan.book_id == book_id, Loan.returned.is_(False))
                .limit(1)
            )
            return session.execute(stmt).first() is not None

    def count_active_loans(self, book: Union[Book, str]) -> int:
        """Count unreturned loans for a book. Never more than one."""
        book_id = book if isinstance(book, str) else book.id
        with self.db.get_session() as session:
            stmt = select(func.count()).select_from(Loan).where(
                Loan.book_id == book_id, Loan.returned.is_(False)
            )
            return session.execute(stmt).scalar() or 0

    def insert(self, loan: Loan) -> Loan:
        """Store a new loan and assign its id.

        Raises:
            AlreadyLoanedError: If the book already has an unreturned loan
            BookNotFoundError: If the referenced book does not exist
        """
        with self.db.get_session() as session:
            session.add(loan)
            try:
                session.flush()
            except IntegrityError as e:
                raise _translate_integrity_error(e, loan) from e

            session.commit()
            session.refresh(loan)
            return _detach(session, loan)

    def find_by_id(self, loan_id: str) -> Optional[Loan]:
        """Get a loan by ID."""
        with self.db.get_session() as session:
            loan = session.get(Loan, loan_id)
            if loan:
                _detach(session, loan)
            return loan

    def update(self, loan: Loan) -> Loan:
        """Persist changes to a stored loan.

        Raises:
            NotFoundError: If the loan has no id or is unknown
            AlreadyLoanedError: If reopening the loan would give its book
                a second unreturned loan
        """
        if not loan.id:
            raise NotFoundError("Loan has no id")

        with self.db.get_session() as session:
            stored = session.get(Loan, loan.id)
            if not stored:
                raise NotFoundError(f"Loan not found: {loan.id}")

            stored.customer = loan.customer
            stored.customer_email = loan.customer_email
            stored.loan_date = loan.loan_date
            stored.returned = bool(loan.returned)

            try:
                session.flush()
            except IntegrityError as e:
                raise _translate_integrity_error(e, stored) from e

            session.commit()
            session.refresh(stored)
            return _detach(session, stored)

    def find_by_book_isbn_or_customer(
        self,
        isbn: str,
        customer: str,
        page: PageRequest,
    ) -> Page[Loan]:
        """Find loans whose book ISBN or customer contains the given text.

        Matching is case-insensitive. Empty terms are ignored; with no
        terms at all every loan matches.

        Args:
            isbn: Text to look for in the book ISBN
            customer: Text to look for in the customer field
            page: Page to return

        Returns:
            Page of loans, newest first
        """
        terms = []
        if isbn:
            terms.append(Loan.book.has(Book.isbn.icontains(isbn, autoescape=True)))
        if customer:
            terms.append(Loan.customer.icontains(customer, autoescape=True))
        conditions = [or_(*terms)] if terms else []

        with self.db.get_session() as session:
            total = session.execute(
                select(func.count()).select_from(Loan).where(*conditions)
            ).scalar() or 0

            stmt = (
                select(Loan)
                .where(*conditions)
                .order_by(Loan.loan_date.desc(), Loan.id)
                .offset(page.offset)
                .limit(page.size)
            )
            loans = [_detach(session, loan) for loan in session.execute(stmt).scalars().all()]

        return Page(content=loans, page_request=page, total_elements=total)

    def find_late(self, threshold: date) -> list[Loan]:
        """Get unreturned loans dated before the threshold, oldest first."""
        with self.db.get_session() as session:
            stmt = (
                select(Loan)
                .where(
                    Loan.returned.is_(False),
                    Loan.loan_date < threshold.isoformat(),
                )
                .order_by(Loan.loan_date, Loan.id)
            )
            return [_detach(session, loan) for loan in session.execute(stmt).scalars().all()]

    def find_by_book(self, book: Book, page: PageRequest) -> Page[Loan]:
        """Get the loan history of a book, newest first."""
        with self.db.get_session() as session:
            total = session.execute(
                select(func.count()).select_from(Loan).where(Loan.book_id == book.id)
            ).scalar() or 0

            stmt = (
                select(Loan)
                .where(Loan.book_id == book.id)
                .order_by(Loan.loan_date.desc(), Loan.id)
                .offset(page.offset)
                .limit(page.size)
            )
            loans = [_detach(session, loan) for loan in session.execute(stmt).scalars().all()]

        return Page(content=loans, page_request=page, total_elements=total)
