"""Book catalog module.

Provides functionality for:
- Storing books with unique ISBNs
- Looking books up by id or ISBN
- Filtered, paged book queries
"""

from .catalog import BookCatalog
from .manager import BookManager

__all__ = [
    "BookCatalog",
    "BookManager",
]
