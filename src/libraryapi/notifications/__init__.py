"""Overdue notification module.

Provides functionality for:
- Scanning for late loans
- Sending late notices by console, email or webhook
- Running the scan on a daily schedule
"""

from .dispatcher import (
    ConsoleDispatcher,
    EmailDispatcher,
    NotificationDispatcher,
    WebhookDispatcher,
    dispatcher_from_config,
)
from .scanner import OverdueScanner, ScanResult
from .scheduler import ScanScheduler

__all__ = [
    "NotificationDispatcher",
    "ConsoleDispatcher",
    "EmailDispatcher",
    "WebhookDispatcher",
    "dispatcher_from_config",
    "OverdueScanner",
    "ScanResult",
    "ScanScheduler",
]
