"""Command-line interface for libraryapi.

Built with Typer for commands and Rich for output.
"""

import time
from datetime import timedelta
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import get_config, parse_scan_time
from .db import get_db
from .db.schemas import BookCreate, BookFilter, BookUpdate, Page, PageRequest
from .errors import LibraryError
from .logger import setup_logger

# Create the main app
app = typer.Typer(
    name="libraryapi",
    help="Lend books to customers and track late returns.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
book_app = typer.Typer(help="Manage the book catalog.")
app.add_typer(book_app, name="book")

loan_app = typer.Typer(help="Lend books and record returns.")
app.add_typer(loan_app, name="loan")

scan_app = typer.Typer(help="Find late loans and send notices.")
app.add_typer(scan_app, name="scan")

# Rich console for pretty output
console = Console()


@app.callback()
def setup() -> None:
    """Configure logging before any command runs."""
    try:
        config = get_config()
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)
    setup_logger(level=config.log_level, log_file=config.log_file)


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def _book_manager():
    from .catalog import BookManager

    return BookManager(get_db(str(get_config().db_path)))


def _loan_manager():
    from .lending import LoanLifecycleManager

    config = get_config()
    return LoanLifecycleManager(
        get_db(str(config.db_path)), grace_period_days=config.grace_period_days
    )


def format_book_table(page: Page, title: str = "Books") -> Table:
    """Create a rich table for a page of books."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("ISBN")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Author", style="green", max_width=25)

    for book in page:
        table.add_row(book.id[:8], book.isbn, book.title, book.author)

    table.caption = f"Page {page.page_number + 1} of {max(page.total_pages, 1)} ({page.total_elements} total)"
    return table


def format_loan_table(page: Page, title: str = "Loans") -> Table:
    """Create a rich table for a page of loans."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("ISBN")
    table.add_column("Book", style="cyan", max_width=30)
    table.add_column("Customer")
    table.add_column("Date")
    table.add_column("Status")

    for loan in page:
        status_str = "[dim]returned[/dim]" if loan.returned else "[green]active[/green]"
        table.add_row(
            loan.id[:8],
            loan.book.isbn if loan.book else "-",
            loan.book.title if loan.book else "Unknown",
            loan.customer,
            loan.loan_date,
            status_str,
        )

    table.caption = f"Page {page.page_number + 1} of {max(page.total_pages, 1)} ({page.total_elements} total)"
    return table


# ============================================================================
# Book Commands
# ============================================================================


@book_app.command("add")
def book_add(
    isbn: str = typer.Option(..., "--isbn", "-i", help="Book ISBN"),
    title: str = typer.Option(..., "--title", "-t", help="Book title"),
    author: str = typer.Option(..., "--author", "-a", help="Book author"),
) -> None:
    """Add a book to the catalog."""
    try:
        book = _book_manager().save(BookCreate(isbn=isbn, title=title, author=author))
    except (LibraryError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Added: {book.title} ({book.isbn})")
    console.print(f"[dim]ID: {book.id}[/dim]")


@book_app.command("show")
def book_show(book_id: str = typer.Argument(..., help="Book ID")) -> None:
    """Show a book's details."""
    book = _book_manager().get_by_id(book_id)
    if not book:
        print_error(f"Book not found: {book_id}")
        raise typer.Exit(1)

    console.print(Panel(
        f"[bold cyan]{book.title}[/bold cyan]\n"
        f"Author: {book.author}\n"
        f"ISBN: {book.isbn}\n"
        f"[dim]ID: {book.id}[/dim]",
        title="Book",
    ))


@book_app.command("update")
def book_update(
    book_id: str = typer.Argument(..., help="Book ID"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="New author"),
) -> None:
    """Change a book's title or author."""
    try:
        book = _book_manager().update_book(book_id, BookUpdate(title=title, author=author))
    except (LibraryError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Updated: {book.title} by {book.author}")


@book_app.command("delete")
def book_delete(book_id: str = typer.Argument(..., help="Book ID")) -> None:
    """Delete a book that is not on loan."""
    manager = _book_manager()
    book = manager.get_by_id(book_id)
    if not book:
        print_error(f"Book not found: {book_id}")
        raise typer.Exit(1)

    try:
        manager.delete(book)
    except LibraryError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Deleted: {book.title}")


@book_app.command("find")
def book_find(
    isbn: Optional[str] = typer.Option(None, "--isbn", "-i", help="Exact ISBN"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Exact title"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Exact author"),
    page: int = typer.Option(0, "--page", "-p", help="Page number (from 0)"),
    size: int = typer.Option(20, "--size", "-s", help="Page size"),
) -> None:
    """Find books by exact field values."""
    try:
        result = _book_manager().find(
            BookFilter(isbn=isbn, title=title, author=author), PageRequest.of(page, size)
        )
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not result.content:
        console.print("[dim]No books found[/dim]")
        return
    console.print(format_book_table(result))


@book_app.command("loans")
def book_loans(
    book_id: str = typer.Argument(..., help="Book ID"),
    page: int = typer.Option(0, "--page", "-p", help="Page number (from 0)"),
    size: int = typer.Option(20, "--size", "-s", help="Page size"),
) -> None:
    """Show the loan history of a book."""
    book = _book_manager().get_by_id(book_id)
    if not book:
        print_error(f"Book not found: {book_id}")
        raise typer.Exit(1)

    result = _loan_manager().get_loans_by_book(book, PageRequest.of(page, size))
    if not result.content:
        console.print("[dim]No loans found[/dim]")
        return
    console.print(format_loan_table(result, title=f"Loans of {book.title}"))


# ============================================================================
# Loan Commands
# ============================================================================


@loan_app.command("create")
def loan_create(
    isbn: str = typer.Argument(..., help="ISBN of the book to lend"),
    customer: str = typer.Argument(..., help="Customer name or email"),
    email: Optional[str] = typer.Option(None, "--email", "-e", help="Email for late notices"),
) -> None:
    """Lend a book to a customer."""
    from .lending import LoanCreate

    try:
        data = LoanCreate(isbn=isbn, customer=customer, customer_email=email)
        loan = _loan_manager().create_loan(
            data.isbn, data.customer, customer_email=data.customer_email
        )
    except (LibraryError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Book {data.isbn} lent to {data.customer}")
    console.print(f"[dim]Loan ID: {loan.id}[/dim]")


@loan_app.command("return")
def loan_return(
    loan_id: str = typer.Argument(..., help="Loan ID"),
    undo: bool = typer.Option(False, "--undo", help="Mark the loan as not returned"),
) -> None:
    """Mark a loan as returned."""
    from .lending import ReturnedLoan

    try:
        data = ReturnedLoan(returned=not undo)
        _loan_manager().return_loan(loan_id, returned=data.returned)
    except (LibraryError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success("Loan reopened" if undo else "Loan marked as returned")


@loan_app.command("show")
def loan_show(loan_id: str = typer.Argument(..., help="Loan ID")) -> None:
    """Show a loan's details."""
    loan = _loan_manager().get_by_id(loan_id)
    if not loan:
        print_error(f"Loan not found: {loan_id}")
        raise typer.Exit(1)

    book = f"{loan.book.title} ({loan.book.isbn})" if loan.book else "Unknown"
    console.print(Panel(
        f"Book: [cyan]{book}[/cyan]\n"
        f"Customer: {loan.customer}\n"
        f"Contact: {loan.contact}\n"
        f"Date: {loan.loan_date}\n"
        f"Returned: {'yes' if loan.returned else 'no'}\n"
        f"[dim]ID: {loan.id}[/dim]",
        title="Loan",
    ))


@loan_app.command("find")
def loan_find(
    isbn: Optional[str] = typer.Option(None, "--isbn", "-i", help="Text in the book ISBN"),
    customer: Optional[str] = typer.Option(None, "--customer", "-c", help="Text in the customer"),
    page: int = typer.Option(0, "--page", "-p", help="Page number (from 0)"),
    size: int = typer.Option(20, "--size", "-s", help="Page size"),
) -> None:
    """Search loans by ISBN or customer."""
    from .lending import LoanFilter

    try:
        result = _loan_manager().find(
            LoanFilter(isbn=isbn, customer=customer), PageRequest.of(page, size)
        )
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not result.content:
        console.print("[dim]No loans found[/dim]")
        return
    console.print(format_loan_table(result))


@loan_app.command("late")
def loan_late() -> None:
    """Show loans past the grace period."""
    manager = _loan_manager()
    summaries = manager.summarize_late_loans()

    if not summaries:
        print_success("No late loans!")
        return

    console.print(Panel(
        f"[bold red]Late Loans: {len(summaries)}[/bold red]\n"
        f"Grace period: {manager.grace_period_days} days",
        style="red",
    ))

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("Book", style="cyan", max_width=30)
    table.add_column("Customer")
    table.add_column("Date")
    table.add_column("Late", justify="right")

    for summary in summaries:
        table.add_row(
            summary.id[:8],
            summary.title or "Unknown",
            summary.contact,
            summary.loan_date.isoformat(),
            f"[bold red]{summary.days_late}d[/bold red]",
        )

    console.print(table)


# ============================================================================
# Scan Commands
# ============================================================================


def _scanner():
    from .notifications import OverdueScanner, dispatcher_from_config

    return OverdueScanner(_loan_manager(), dispatcher_from_config(get_config(), console))


@scan_app.command("run")
def scan_run() -> None:
    """Send late notices once."""
    result = _scanner().run()

    if result.late == 0:
        print_success("No late loans!")
        return

    console.print(f"Notified {result.notified} of {result.late} late loans")
    for loan_id, error in result.errors:
        print_error(f"{loan_id[:8]}: {error}")
    if not result.success:
        raise typer.Exit(1)


@scan_app.command("serve")
def scan_serve(
    now: bool = typer.Option(False, "--now", help="Also scan once at startup"),
) -> None:
    """Run the late-notice scan on its schedule until interrupted."""
    from .notifications import ScanScheduler

    config = get_config()
    errors = config.validate()
    if errors:
        for error in errors:
            print_error(error)
        raise typer.Exit(1)

    scheduler = ScanScheduler(
        _scanner(),
        run_at=parse_scan_time(config.scan_time),
        interval=timedelta(hours=config.scan_interval_hours),
        run_immediately=now,
    )
    scheduler.start()
    console.print(
        f"[dim]Scanning at {config.scan_time}, every {config.scan_interval_hours}h. "
        f"Press Ctrl+C to stop.[/dim]"
    )
    try:
        while scheduler.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()


# ============================================================================
# Version Command
# ============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"libraryapi version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
