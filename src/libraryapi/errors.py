"""Domain-level exceptions.

Business rule violations are subclasses of LibraryError so the CLI layer
can catch them uniformly and display user-friendly messages.
"""


class LibraryError(Exception):
    """Base class for all library errors."""


class NotFoundError(LibraryError):
    """A requested entity does not exist."""


class BookNotFoundError(NotFoundError):
    """No book is stored for the requested ISBN or id."""


class DuplicateIsbnError(LibraryError):
    """A book with the same ISBN is already in the catalog."""


class AlreadyLoanedError(LibraryError):
    """The book already has an active (unreturned) loan."""


class BookOnLoanError(LibraryError):
    """The book cannot be deleted while it has an active loan."""


class InvalidArgumentError(LibraryError, ValueError):
    """The caller passed an unpersisted or malformed entity."""


class DispatchError(LibraryError):
    """A late-loan notification could not be delivered."""
