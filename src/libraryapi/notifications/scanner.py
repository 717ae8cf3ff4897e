"""Overdue loan scan."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from ..errors import DispatchError
from ..lending.manager import LoanLifecycleManager
from ..logger import get_logger
from .dispatcher import NotificationDispatcher

log = get_logger(__name__)


@dataclass
class ScanResult:
    """Result of one overdue scan."""

    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    late: int = 0
    notified: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


class OverdueScanner:
    """Finds late loans and sends a notice for each.

    A failed notice is logged and recorded in the result; the remaining
    loans are still notified.
    """

    def __init__(
        self,
        manager: LoanLifecycleManager,
        dispatcher: NotificationDispatcher,
    ):
        """Initialize scanner.

        Args:
            manager: Source of late loans
            dispatcher: Transport for late notices
        """
        self.manager = manager
        self.dispatcher = dispatcher
        self.last_result: Optional[ScanResult] = None

    def run(self) -> ScanResult:
        """Run one scan over a snapshot of the current late loans."""
        result = ScanResult()
        loans = self.manager.get_all_late_loans()
        result.late = len(loans)

        for loan in loans:
            try:
                self.dispatcher.notify_late(loan)
                result.notified += 1
            except DispatchError as e:
                log.warning("Late notice for loan %s failed: %s", loan.id, e)
                result.errors.append((loan.id, str(e)))
            except Exception as e:
                log.exception("Unexpected error notifying loan %s", loan.id)
                result.errors.append((loan.id, str(e)))

        log.info(
            "Overdue scan: %d late, %d notified, %d failed",
            result.late,
            result.notified,
            result.failed,
        )
        self.last_result = result
        return result
