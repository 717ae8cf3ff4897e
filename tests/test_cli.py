"""Tests for the CLI interface."""

import logging
import os
import tempfile
from datetime import date, timedelta
from pathlib import Path

import pytest
from typer.testing import CliRunner

from libraryapi.cli import app
from libraryapi.config import reset_config
from libraryapi.db.schemas import BookCreate
from libraryapi.db.sqlite import get_db, reset_db
from libraryapi.catalog import BookManager
from libraryapi.lending import Loan, LoanLedger

ENV_VARS = (
    "LIBRARYAPI_MAIL_HOST",
    "LIBRARYAPI_MAIL_FROM",
    "LIBRARYAPI_WEBHOOK_URL",
    "LIBRARYAPI_GRACE_PERIOD_DAYS",
    "LIBRARYAPI_LOG_FILE",
)


@pytest.fixture(autouse=True)
def setup_test_db(monkeypatch):
    """Set up a test database for each test."""
    reset_db()
    reset_config()
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    os.environ["LIBRARYAPI_DB_PATH"] = db_path

    yield db_path

    # Cleanup
    logging.getLogger("libraryapi").handlers.clear()
    reset_db()
    reset_config()
    if "LIBRARYAPI_DB_PATH" in os.environ:
        del os.environ["LIBRARYAPI_DB_PATH"]
    if Path(db_path).exists():
        Path(db_path).unlink()


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def book(setup_test_db):
    """A stored book."""
    return BookManager(get_db(setup_test_db)).save(
        BookCreate(isbn="123", title="As aventuras", author="Fulano")
    )


@pytest.fixture
def late_loan(setup_test_db, book):
    """A loan of the stored book dated ten days ago."""
    return LoanLedger(get_db(setup_test_db)).insert(
        Loan(
            book_id=book.id,
            customer="Fulano",
            loan_date=(date.today() - timedelta(days=10)).isoformat(),
        )
    )


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        """Test that help command works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Lend books" in result.stdout

    def test_version(self, runner: CliRunner):
        """Test version command."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout


class TestBookCommands:
    """Tests for book commands."""

    def test_add_book(self, runner: CliRunner):
        result = runner.invoke(
            app, ["book", "add", "--isbn", "123", "--title", "As aventuras", "--author", "Fulano"]
        )
        assert result.exit_code == 0
        assert "Added:" in result.stdout
        assert "As aventuras" in result.stdout

    def test_add_duplicate_isbn(self, runner: CliRunner, book):
        result = runner.invoke(
            app, ["book", "add", "--isbn", "123", "--title", "Outro", "--author", "Ciclano"]
        )
        assert result.exit_code == 1
        assert "ISBN already registered" in result.stdout

    def test_add_blank_isbn(self, runner: CliRunner):
        result = runner.invoke(
            app, ["book", "add", "--isbn", " ", "--title", "As aventuras", "--author", "Fulano"]
        )
        assert result.exit_code == 1
        assert "Error:" in result.stdout

    def test_add_missing_title(self, runner: CliRunner):
        result = runner.invoke(app, ["book", "add", "--isbn", "123", "--author", "Fulano"])
        assert result.exit_code != 0

    def test_show_book(self, runner: CliRunner, book):
        result = runner.invoke(app, ["book", "show", book.id])
        assert result.exit_code == 0
        assert "As aventuras" in result.stdout
        assert "ISBN: 123" in result.stdout

    def test_show_unknown_book(self, runner: CliRunner):
        result = runner.invoke(app, ["book", "show", "non-existent-id"])
        assert result.exit_code == 1
        assert "Book not found" in result.stdout

    def test_update_book(self, runner: CliRunner, book):
        result = runner.invoke(app, ["book", "update", book.id, "--title", "Novas"])
        assert result.exit_code == 0
        assert "Updated: Novas by Fulano" in result.stdout

    def test_delete_book(self, runner: CliRunner, book):
        result = runner.invoke(app, ["book", "delete", book.id])
        assert result.exit_code == 0
        assert "Deleted" in result.stdout

    def test_delete_book_on_loan(self, runner: CliRunner, book, late_loan):
        result = runner.invoke(app, ["book", "delete", book.id])
        assert result.exit_code == 1
        assert "on loan" in result.stdout

    def test_find_books(self, runner: CliRunner, book):
        result = runner.invoke(app, ["book", "find", "--author", "Fulano"])
        assert result.exit_code == 0
        assert "123" in result.stdout

    def test_find_no_books(self, runner: CliRunner):
        result = runner.invoke(app, ["book", "find", "--isbn", "999"])
        assert result.exit_code == 0
        assert "No books found" in result.stdout

    def test_find_invalid_page_size(self, runner: CliRunner):
        result = runner.invoke(app, ["book", "find", "--size", "0"])
        assert result.exit_code == 1

    def test_book_loans(self, runner: CliRunner, book, late_loan):
        result = runner.invoke(app, ["book", "loans", book.id])
        assert result.exit_code == 0
        assert "Fulano" in result.stdout


class TestLoanCommands:
    """Tests for loan commands."""

    def test_create_loan(self, runner: CliRunner, book):
        result = runner.invoke(app, ["loan", "create", "123", "Fulano"])
        assert result.exit_code == 0
        assert "Book 123 lent to Fulano" in result.stdout
        assert "Loan ID:" in result.stdout

    def test_create_loan_unknown_isbn(self, runner: CliRunner):
        result = runner.invoke(app, ["loan", "create", "999", "Fulano"])
        assert result.exit_code == 1
        assert "Book not found for passed isbn: 999" in result.stdout

    def test_create_loan_blank_customer(self, runner: CliRunner, book):
        result = runner.invoke(app, ["loan", "create", "123", ""])
        assert result.exit_code == 1
        assert "Error:" in result.stdout

        result = runner.invoke(app, ["loan", "create", "123", "   "])
        assert result.exit_code == 1
        assert "Error:" in result.stdout

        result = runner.invoke(app, ["loan", "find", "--isbn", "123"])
        assert "No loans found" in result.stdout

    def test_create_loan_already_loaned(self, runner: CliRunner, book):
        runner.invoke(app, ["loan", "create", "123", "Fulano"])

        result = runner.invoke(app, ["loan", "create", "123", "Ciclano"])

        assert result.exit_code == 1
        assert "Book already loaned" in result.stdout

    def test_return_loan(self, runner: CliRunner, late_loan):
        result = runner.invoke(app, ["loan", "return", late_loan.id])
        assert result.exit_code == 0
        assert "Loan marked as returned" in result.stdout

    def test_undo_return(self, runner: CliRunner, late_loan):
        runner.invoke(app, ["loan", "return", late_loan.id])

        result = runner.invoke(app, ["loan", "return", late_loan.id, "--undo"])

        assert result.exit_code == 0
        assert "Loan reopened" in result.stdout

    def test_return_unknown_loan(self, runner: CliRunner):
        result = runner.invoke(app, ["loan", "return", "non-existent-id"])
        assert result.exit_code == 1
        assert "Loan not found" in result.stdout

    def test_show_loan(self, runner: CliRunner, late_loan):
        result = runner.invoke(app, ["loan", "show", late_loan.id])
        assert result.exit_code == 0
        assert "As aventuras" in result.stdout
        assert "Returned: no" in result.stdout

    def test_find_loans(self, runner: CliRunner, late_loan):
        result = runner.invoke(app, ["loan", "find", "--customer", "fulano"])
        assert result.exit_code == 0
        assert "Fulano" in result.stdout

    def test_find_no_loans(self, runner: CliRunner, late_loan):
        result = runner.invoke(app, ["loan", "find", "--isbn", "999"])
        assert result.exit_code == 0
        assert "No loans found" in result.stdout

    def test_late_loans(self, runner: CliRunner, late_loan):
        result = runner.invoke(app, ["loan", "late"])
        assert result.exit_code == 0
        assert "Late Loans: 1" in result.stdout

    def test_no_late_loans(self, runner: CliRunner, book):
        runner.invoke(app, ["loan", "create", "123", "Fulano"])

        result = runner.invoke(app, ["loan", "late"])

        assert result.exit_code == 0
        assert "No late loans!" in result.stdout


class TestScanCommands:
    """Tests for the overdue scan commands."""

    def test_scan_nothing_late(self, runner: CliRunner, book):
        result = runner.invoke(app, ["scan", "run"])
        assert result.exit_code == 0
        assert "No late loans!" in result.stdout

    def test_scan_prints_notices(self, runner: CliRunner, late_loan):
        result = runner.invoke(app, ["scan", "run"])
        assert result.exit_code == 0
        assert "LATE" in result.stdout
        assert "Notified 1 of 1 late loans" in result.stdout

    def test_scan_mail_failure(self, runner: CliRunner, late_loan, monkeypatch):
        """Test a customer without an email address is reported."""
        monkeypatch.setenv("LIBRARYAPI_MAIL_HOST", "smtp.example.com")
        monkeypatch.setenv("LIBRARYAPI_MAIL_FROM", "library@example.com")
        reset_config()

        result = runner.invoke(app, ["scan", "run"])

        assert result.exit_code == 1
        assert "Notified 0 of 1 late loans" in result.stdout

    def test_serve_invalid_config(self, runner: CliRunner, monkeypatch):
        monkeypatch.setenv("LIBRARYAPI_SCAN_TIME", "25:99")
        reset_config()

        result = runner.invoke(app, ["scan", "serve"])

        assert result.exit_code == 1
        assert "Invalid scan time" in result.stdout


class TestConfigErrors:
    """Tests for malformed configuration."""

    def test_malformed_number(self, runner: CliRunner, monkeypatch):
        monkeypatch.setenv("LIBRARYAPI_GRACE_PERIOD_DAYS", "four")
        reset_config()

        result = runner.invoke(app, ["version"])

        assert result.exit_code == 1
        assert "LIBRARYAPI_GRACE_PERIOD_DAYS" in result.stdout
