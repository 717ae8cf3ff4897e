"""Pytest configuration and shared fixtures.

This module provides fixtures for testing libraryapi, including a
temporary database, a fixed clock, managers and sample data.
"""

import os
import tempfile
from datetime import date, timedelta
from pathlib import Path
from typing import Generator

import pytest

from libraryapi.catalog import BookCatalog, BookManager
from libraryapi.config import reset_config
from libraryapi.db.models import Book
from libraryapi.db.schemas import BookCreate
from libraryapi.db.sqlite import Database, reset_db
from libraryapi.lending import Loan, LoanLedger, LoanLifecycleManager

TODAY = date(2024, 6, 15)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a test database instance."""
    # Reset any global state
    reset_db()
    reset_config()

    # Set environment variable for test database
    os.environ["LIBRARYAPI_DB_PATH"] = str(temp_db_path)

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    # Cleanup
    database.dispose()
    reset_db()
    reset_config()
    if "LIBRARYAPI_DB_PATH" in os.environ:
        del os.environ["LIBRARYAPI_DB_PATH"]


# ============================================================================
# Component Fixtures
# ============================================================================


@pytest.fixture
def today() -> date:
    """The fixed date returned by the test clock."""
    return TODAY


@pytest.fixture
def catalog(db: Database) -> BookCatalog:
    return BookCatalog(db)


@pytest.fixture
def ledger(db: Database) -> LoanLedger:
    return LoanLedger(db)


@pytest.fixture
def book_manager(catalog: BookCatalog) -> BookManager:
    return BookManager(catalog=catalog)


@pytest.fixture
def loan_manager(catalog: BookCatalog, ledger: LoanLedger, today: date) -> LoanLifecycleManager:
    """Loan manager with a 4 day grace period and a fixed clock."""
    return LoanLifecycleManager(
        catalog=catalog,
        ledger=ledger,
        clock=lambda: today,
        grace_period_days=4,
    )


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_book_data() -> BookCreate:
    """Create sample book data for testing."""
    return BookCreate(isbn="123", title="As aventuras", author="Fulano")


@pytest.fixture
def sample_book(book_manager: BookManager, sample_book_data: BookCreate) -> Book:
    """Create and return a book in the database."""
    return book_manager.save(sample_book_data)


@pytest.fixture
def multiple_books(book_manager: BookManager) -> list[Book]:
    """Create multiple books in the database."""
    books_data = [
        BookCreate(isbn="1001", title="Book One", author="Author A"),
        BookCreate(isbn="1002", title="Book Two", author="Author B"),
        BookCreate(isbn="1003", title="Book Three", author="Author A"),
        BookCreate(isbn="2001", title="Another Book", author="Author C"),
    ]
    return [book_manager.save(data) for data in books_data]


@pytest.fixture
def make_loan(ledger: LoanLedger, today: date):
    """Factory storing a loan directly in the ledger, dated days before today."""

    def _make_loan(
        book: Book,
        days_ago: int = 0,
        customer: str = "Fulano",
        returned: bool = False,
    ) -> Loan:
        return ledger.insert(
            Loan(
                book_id=book.id,
                customer=customer,
                loan_date=(today - timedelta(days=days_ago)).isoformat(),
                returned=returned,
            )
        )

    return _make_loan
