"""Loan lifecycle manager for lending operations."""

import threading
from contextlib import contextmanager
from datetime import date, timedelta
from typing import Callable, Generator, Optional

from ..catalog.catalog import BookCatalog
from ..config import get_config
from ..db.models import Book
from ..db.schemas import Page, PageRequest
from ..db.sqlite import Database, get_db
from ..errors import AlreadyLoanedError, BookNotFoundError, InvalidArgumentError, NotFoundError
from ..logger import get_logger
from .ledger import LoanLedger
from .models import Loan
from .schemas import LateLoanSummary, LoanFilter

log = get_logger(__name__)


class LoanLifecycleManager:
    """Manages loan creation, return and queries.

    At most one unreturned loan may exist per book. Within a process the
    existence check and the insert run under a per-book lock; across
    processes the ledger's unique index rejects the losing writer.
    """

    def __init__(
        self,
        db: Optional[Database] = None,
        catalog: Optional[BookCatalog] = None,
        ledger: Optional[LoanLedger] = None,
        clock: Callable[[], date] = date.today,
        grace_period_days: Optional[int] = None,
    ):
        """Initialize loan manager.

        Args:
            db: Database instance, used when catalog or ledger are not given
            catalog: Book storage
            ledger: Loan storage
            clock: Returns today's date
            grace_period_days: Days before an unreturned loan is late
                (default from config)
        """
        if catalog is None or ledger is None:
            db = db or get_db()
        self.catalog = catalog or BookCatalog(db)
        self.ledger = ledger or LoanLedger(db)
        self.clock = clock
        if grace_period_days is None:
            grace_period_days = get_config().grace_period_days
        if grace_period_days < 0:
            raise ValueError("grace_period_days must not be negative")
        self.grace_period_days = grace_period_days

        # book id -> [lock, number of threads holding or waiting for it]
        self._locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    def today(self) -> date:
        return self.clock()

    @contextmanager
    def _book_lock(self, book_id: str) -> Generator[None, None, None]:
        """Hold the write lock for one book.

        The lock entry is dropped once no thread holds or waits for it.
        """
        with self._locks_guard:
            entry = self._locks.setdefault(book_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[book_id]

    # -------------------------------------------------------------------------
    # Loan Creation
    # -------------------------------------------------------------------------

    def save(self, loan: Loan) -> Loan:
        """Store a new loan if its book has no active loan.

        Args:
            loan: Unsaved loan referencing a stored book

        Returns:
            Stored loan

        Raises:
            InvalidArgumentError: If the loan references no book
            AlreadyLoanedError: If the book already has an active loan
        """
        if not loan.book_id:
            raise InvalidArgumentError("Loan must reference a book")

        with self._book_lock(loan.book_id):
            if self.ledger.exists_active_loan(loan.book_id):
                log.warning("Rejected loan: book %s already loaned", loan.book_id)
                raise AlreadyLoanedError("Book already loaned")
            saved = self.ledger.insert(loan)

        log.info("Created loan %s of book %s to %s", saved.id, saved.book_id, saved.customer)
        return saved

    def create_loan(
        self,
        isbn: str,
        customer: str,
        customer_email: Optional[str] = None,
    ) -> Loan:
        """Lend the book with this ISBN to a customer, dated today.

        Args:
            isbn: ISBN of the book to lend
            customer: Customer name or email
            customer_email: Optional contact address for late notices

        Returns:
            Created loan

        Raises:
            BookNotFoundError: If no book has this ISBN
            AlreadyLoanedError: If the book already has an active loan
        """
        book = self.catalog.find_by_isbn(isbn)
        if not book:
            raise BookNotFoundError(f"Book not found for passed isbn: {isbn}")

        loan = Loan(
            book_id=book.id,
            customer=customer,
            customer_email=customer_email,
            loan_date=self.today().isoformat(),
            returned=False,
        )
        return self.save(loan)

    # -------------------------------------------------------------------------
    # Loan Updates
    # -------------------------------------------------------------------------

    def return_loan(self, loan_id: str, returned: bool = True) -> Loan:
        """Set the returned flag of a loan.

        Returning an already returned loan is a no-op overwrite. Setting the
        flag back to False reopens the loan, which fails if the book has
        been lent again in the meantime.

        Raises:
            NotFoundError: If the loan does not exist
            AlreadyLoanedError: If reopening would give the book two
                active loans
        """
        loan = self.get_by_id(loan_id)
        if not loan:
            raise NotFoundError(f"Loan not found: {loan_id}")

        if returned or not loan.returned or not loan.book_id:
            loan.returned = returned
            return self.update(loan)

        with self._book_lock(loan.book_id):
            if self.ledger.exists_active_loan(loan.book_id):
                raise AlreadyLoanedError("Book already loaned")
            loan.returned = False
            return self.update(loan)

    def update(self, loan: Loan) -> Loan:
        """Persist changes to a stored loan.

        Raises:
            InvalidArgumentError: If the loan has no id
        """
        if not loan or not loan.id:
            raise InvalidArgumentError("Loan id can't be null")
        updated = self.ledger.update(loan)
        log.info("Updated loan %s (returned=%s)", updated.id, updated.returned)
        return updated

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_by_id(self, loan_id: str) -> Optional[Loan]:
        """Get a loan by ID."""
        return self.ledger.find_by_id(loan_id)

    def find(self, loan_filter: LoanFilter, page: PageRequest) -> Page[Loan]:
        """Search loans by book ISBN or customer."""
        return self.ledger.find_by_book_isbn_or_customer(
            loan_filter.isbn or "",
            loan_filter.customer or "",
            page,
        )

    def get_loans_by_book(self, book: Book, page: PageRequest) -> Page[Loan]:
        """Get the loan history for a book."""
        return self.ledger.find_by_book(book, page)

    def late_threshold(self) -> date:
        """Loans dated before this day and not returned are late."""
        return self.today() - timedelta(days=self.grace_period_days)

    def get_all_late_loans(self) -> list[Loan]:
        """Get all unreturned loans past the grace period, oldest first."""
        return self.ledger.find_late(self.late_threshold())

    def summarize_late_loans(self, loans: Optional[list[Loan]] = None) -> list[LateLoanSummary]:
        """Build listing rows for late loans.

        Args:
            loans: Late loans to summarize (default: all current late loans)
        """
        if loans is None:
            loans = self.get_all_late_loans()
        today = self.today()
        return [
            LateLoanSummary(
                id=loan.id,
                isbn=loan.book.isbn if loan.book else None,
                title=loan.book.title if loan.book else None,
                customer=loan.customer,
                contact=loan.contact,
                loan_date=loan.loan_day,
                days_late=loan.days_late(today, self.grace_period_days),
            )
            for loan in loans
        ]
