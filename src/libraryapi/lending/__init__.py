"""Book lending module.

Provides functionality for:
- Lending books to customers, one active loan per book
- Tracking returns
- Searching loans by ISBN or customer
- Finding late loans past the grace period
"""

from .models import Loan
from .ledger import LoanLedger
from .manager import LoanLifecycleManager
from .schemas import (
    LateLoanSummary,
    LoanCreate,
    LoanFilter,
    LoanResponse,
    ReturnedLoan,
)

__all__ = [
    "LoanLifecycleManager",
    "LoanLedger",
    "Loan",
    "LoanCreate",
    "LoanFilter",
    "LoanResponse",
    "ReturnedLoan",
    "LateLoanSummary",
]
