"""Configuration management for libraryapi.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from datetime import time
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

DEFAULT_LATE_MESSAGE = "Attention! You have a late loan. Please return the book."


def parse_scan_time(value: str) -> time:
    """Parse an ``HH:MM`` string into a time of day.

    Raises:
        ValueError: If the value is not a valid HH:MM time
    """
    try:
        hours, minutes = value.strip().split(":")
        return time(hour=int(hours), minute=int(minutes))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid scan time {value!r}, expected HH:MM") from e


def _env_number(name: str, default: str, cast):
    """Read a numeric environment variable.

    Raises:
        ValueError: If the value is not a number, naming the variable
    """
    value = os.environ.get(name, default)
    try:
        return cast(value)
    except ValueError as e:
        raise ValueError(f"Invalid {name} value {value!r}, expected a number") from e


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Loans
    grace_period_days: int

    # Overdue scan
    scan_time: str  # HH:MM local time
    scan_interval_hours: float
    late_message: str

    # Mail transport
    mail_host: Optional[str]
    mail_port: int
    mail_user: Optional[str]
    mail_password: Optional[str]
    mail_from: Optional[str]

    # Webhook transport
    webhook_url: Optional[str]

    # Logging
    log_level: str
    log_file: Optional[Path]

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Raises:
            ValueError: If a numeric variable is malformed
        """
        db_path_str = os.environ.get(
            "LIBRARYAPI_DB_PATH",
            str(Path.home() / ".libraryapi" / "library.db"),
        )
        db_path = Path(db_path_str).expanduser()
        log_file = os.environ.get("LIBRARYAPI_LOG_FILE")

        return cls(
            db_path=db_path,
            grace_period_days=_env_number("LIBRARYAPI_GRACE_PERIOD_DAYS", "4", int),
            scan_time=os.environ.get("LIBRARYAPI_SCAN_TIME", "00:00"),
            scan_interval_hours=_env_number("LIBRARYAPI_SCAN_INTERVAL_HOURS", "24", float),
            late_message=os.environ.get("LIBRARYAPI_LATE_MESSAGE", DEFAULT_LATE_MESSAGE),
            mail_host=os.environ.get("LIBRARYAPI_MAIL_HOST"),
            mail_port=_env_number("LIBRARYAPI_MAIL_PORT", "587", int),
            mail_user=os.environ.get("LIBRARYAPI_MAIL_USER"),
            mail_password=os.environ.get("LIBRARYAPI_MAIL_PASSWORD"),
            mail_from=os.environ.get("LIBRARYAPI_MAIL_FROM"),
            webhook_url=os.environ.get("LIBRARYAPI_WEBHOOK_URL"),
            log_level=os.environ.get("LIBRARYAPI_LOG_LEVEL", "INFO").upper(),
            log_file=Path(log_file).expanduser() if log_file else None,
        )

    @property
    def is_memory_db(self) -> bool:
        return str(self.db_path) == ":memory:"

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.grace_period_days < 0:
            errors.append("Grace period must not be negative")

        if self.scan_interval_hours <= 0:
            errors.append("Scan interval must be positive")

        try:
            parse_scan_time(self.scan_time)
        except ValueError as e:
            errors.append(str(e))

        # Check database directory is writable
        if not self.is_memory_db and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        return errors

    def has_mail_config(self) -> bool:
        """Check if SMTP configuration is present."""
        return bool(self.mail_host and self.mail_from)

    def has_webhook_config(self) -> bool:
        """Check if a webhook URL is configured."""
        return bool(self.webhook_url)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
