"""Background schedule for the overdue scan."""

import threading
from datetime import datetime, time, timedelta
from typing import Callable, Optional

from ..logger import get_logger
from .scanner import OverdueScanner, ScanResult

log = get_logger(__name__)


class ScanScheduler:
    """Runs an OverdueScanner on a fixed wall-clock schedule.

    Runs happen at ``run_at`` local time and every ``interval`` after it
    (daily at midnight by default). The schedule owns one daemon thread,
    started by ``start()`` and stopped by ``stop()``. A failing run is
    logged and the next run still happens.
    """

    def __init__(
        self,
        scanner: OverdueScanner,
        run_at: time = time(0, 0),
        interval: timedelta = timedelta(days=1),
        run_immediately: bool = False,
        now: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the schedule.

        Args:
            scanner: Scan to run
            run_at: Local time anchoring the schedule
            interval: Time between runs
            run_immediately: Also run once as soon as the thread starts
            now: Returns the current local time
        """
        if interval <= timedelta(0):
            raise ValueError("interval must be positive")

        self.scanner = scanner
        self.run_at = run_at
        self.interval = interval
        self.run_immediately = run_immediately
        self.now = now

        self.next_run: Optional[datetime] = None
        self.last_result: Optional[ScanResult] = None
        self.runs = 0

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def next_run_after(self, moment: datetime) -> datetime:
        """First scheduled run strictly after ``moment``."""
        candidate = datetime.combine(moment.date(), self.run_at)
        if candidate <= moment:
            steps = (moment - candidate) // self.interval + 1
            candidate += steps * self.interval
        return candidate

    def start(self) -> None:
        """Start the background thread."""
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="overdue-scan", daemon=True
        )
        self._thread.start()
        log.info("Overdue scan scheduled every %s from %s", self.interval, self.run_at)

    def stop(self, timeout: Optional[float] = 10.0) -> None:
        """Stop the background thread and wait for it to finish.

        A scan in progress is allowed to complete.
        """
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                log.warning("Overdue scan thread did not stop within %ss", timeout)
            self._thread = None
        log.info("Overdue scan stopped")

    def __enter__(self) -> "ScanScheduler":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def run_once(self) -> Optional[ScanResult]:
        """Run the scan now, logging any failure."""
        self.runs += 1
        try:
            self.last_result = self.scanner.run()
        except Exception:
            log.exception("Overdue scan failed")
            return None
        return self.last_result

    def _loop(self) -> None:
        if self.run_immediately:
            self.run_once()

        while not self._stop.is_set():
            self.next_run = self.next_run_after(self.now())
            delay = max(0.0, (self.next_run - self.now()).total_seconds())
            if self._stop.wait(delay):
                break
            self.run_once()
