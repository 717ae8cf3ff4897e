"""Book manager for catalog operations."""

from typing import Optional

from ..db.models import Book
from ..db.schemas import BookCreate, BookFilter, BookUpdate, Page, PageRequest
from ..db.sqlite import Database, get_db
from ..errors import BookNotFoundError, DuplicateIsbnError, InvalidArgumentError
from ..logger import get_logger
from .catalog import BookCatalog

log = get_logger(__name__)


class BookManager:
    """Manages book records on top of the catalog."""

    def __init__(self, db: Optional[Database] = None, catalog: Optional[BookCatalog] = None):
        """Initialize book manager.

        Args:
            db: Database instance, used when no catalog is given
            catalog: Book storage
        """
        self.catalog = catalog or BookCatalog(db or get_db())

    def save(self, data: BookCreate) -> Book:
        """Add a book to the catalog.

        Args:
            data: Book creation data

        Returns:
            Created book

        Raises:
            DuplicateIsbnError: If the ISBN is already registered
        """
        if self.catalog.exists(data.isbn):
            log.warning("Rejected book with duplicate isbn %s", data.isbn)
            raise DuplicateIsbnError(f"ISBN already registered: {data.isbn}")

        book = self.catalog.insert(
            Book(isbn=data.isbn, title=data.title, author=data.author)
        )
        log.info("Created book %s for isbn %s", book.id, book.isbn)
        return book

    def get_by_id(self, book_id: str) -> Optional[Book]:
        """Get a book by ID."""
        return self.catalog.find_by_id(book_id)

    def get_by_isbn(self, isbn: str) -> Optional[Book]:
        """Get a book by ISBN."""
        return self.catalog.find_by_isbn(isbn)

    def update(self, book: Book) -> Book:
        """Persist changes to a stored book.

        Raises:
            InvalidArgumentError: If the book has no id
        """
        if not book or not book.id:
            raise InvalidArgumentError("Book id can't be null")
        return self.catalog.update(book)

    def update_book(self, book_id: str, data: BookUpdate) -> Book:
        """Apply a partial update to a book's title and author.

        Raises:
            BookNotFoundError: If no book with that id exists
        """
        book = self.get_by_id(book_id)
        if not book:
            raise BookNotFoundError(f"Book not found: {book_id}")

        for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(book, field, value)

        log.info("Updating book %s", book_id)
        return self.update(book)

    def delete(self, book: Book) -> None:
        """Delete a book that is not currently on loan.

        Raises:
            InvalidArgumentError: If the book has no id
            BookOnLoanError: If the book has an active loan
        """
        if not book or not book.id:
            raise InvalidArgumentError("Book id can't be null")

        self.catalog.delete(book)
        log.info("Deleted book %s", book.id)

    def find(self, book_filter: BookFilter, page: PageRequest) -> Page[Book]:
        """Find books matching a filter template."""
        return self.catalog.query(book_filter, page)
