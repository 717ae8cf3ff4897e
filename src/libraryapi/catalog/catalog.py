"""Book catalog storage operations."""

from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db.models import Book
from ..db.schemas import BookFilter, Page, PageRequest
from ..db.sqlite import Database, get_db
from ..errors import BookOnLoanError, DuplicateIsbnError, InvalidArgumentError, NotFoundError


class BookCatalog:
    """Stores book records and enforces ISBN uniqueness."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize the catalog.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def _isbn_taken(self, session: Session, isbn: str) -> bool:
        stmt = select(func.count()).select_from(Book).where(Book.isbn == isbn)
        return (session.execute(stmt).scalar() or 0) > 0

    def exists(self, isbn: str) -> bool:
        """Check whether a book with this ISBN is stored."""
        with self.db.get_session() as session:
            return self._isbn_taken(session, isbn)

    def find_by_isbn(self, isbn: str) -> Optional[Book]:
        """Get a book by ISBN."""
        with self.db.get_session() as session:
            book = session.execute(
                select(Book).where(Book.isbn == isbn)
            ).scalar_one_or_none()
            if book:
                session.expunge(book)
            return book

    def find_by_id(self, book_id: str) -> Optional[Book]:
        """Get a book by ID."""
        with self.db.get_session() as session:
            book = session.get(Book, book_id)
            if book:
                session.expunge(book)
            return book

    def insert(self, book: Book) -> Book:
        """Store a new book.

        Args:
            book: Unsaved book

        Returns:
            The stored book with its id assigned

        Raises:
            DuplicateIsbnError: If the ISBN is already in the catalog
        """
        with self.db.get_session() as session:
            if self._isbn_taken(session, book.isbn):
                raise DuplicateIsbnError(f"ISBN already registered: {book.isbn}")

            session.add(book)
            try:
                session.flush()
            except IntegrityError as e:
                # Another writer stored the same ISBN after our check
                raise DuplicateIsbnError(f"ISBN already registered: {book.isbn}") from e

            session.commit()
            session.refresh(book)
            session.expunge(book)
            return book

    def update(self, book: Book) -> Book:
        """Persist the title and author of an existing book.

        Raises:
            NotFoundError: If no book with that id exists
        """
        with self.db.get_session() as session:
            stored = session.get(Book, book.id) if book.id else None
            if not stored:
                raise NotFoundError(f"Book not found: {book.id}")

            stored.title = book.title
            stored.author = book.author

            session.commit()
            session.refresh(stored)
            session.expunge(stored)
            return stored

    def delete(self, book: Book) -> None:
        """Remove a book record that has no active loan.

        The active-loan check and the delete run as one statement.

        Raises:
            InvalidArgumentError: If the book was never persisted
            NotFoundError: If the book no longer exists
            BookOnLoanError: If the book has an unreturned loan
        """
        if not book.id:
            raise InvalidArgumentError("Book id can't be null")

        from ..lending.models import Loan

        active_loan = (
            select(Loan.id)
            .where(Loan.book_id == Book.id, Loan.returned.is_(False))
            .exists()
        )
        stmt = (
            delete(Book)
            .where(Book.id == book.id, ~active_loan)
            .execution_options(synchronize_session=False)
        )

        with self.db.get_session() as session:
            if session.execute(stmt).rowcount:
                return
            if session.get(Book, book.id) is None:
                raise NotFoundError(f"Book not found: {book.id}")
            raise BookOnLoanError(f"Book {book.isbn} is on loan and can't be deleted")

    def query(self, book_filter: BookFilter, page: PageRequest) -> Page[Book]:
        """Find books matching every field set on the filter.

        Args:
            book_filter: Exact-match template; unset fields match anything
            page: Page to return

        Returns:
            Page of books ordered by title
        """
        conditions = [
            getattr(Book, field) == value
            for field, value in book_filter.model_dump(exclude_none=True).items()
        ]

        with self.db.get_session() as session:
            total = session.execute(
                select(func.count()).select_from(Book).where(*conditions)
            ).scalar() or 0

            stmt = (
                select(Book)
                .where(*conditions)
                .order_by(Book.title, Book.id)
                .offset(page.offset)
                .limit(page.size)
            )
            books = list(session.execute(stmt).scalars().all())
            for book in books:
                session.expunge(book)

        return Page(content=books, page_request=page, total_elements=total)
