"""Late-loan notification transports.

Every dispatcher raises DispatchError when a notice can't be delivered,
so the overdue scanner can record the failure and move on.
"""

import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional

import requests
from rich.console import Console

from ..config import DEFAULT_LATE_MESSAGE, Config
from ..errors import DispatchError
from ..lending.models import Loan


class NotificationDispatcher(ABC):
    """Sends a late notice for one loan."""

    @abstractmethod
    def notify_late(self, loan: Loan) -> None:
        """Deliver a late notice.

        Raises:
            DispatchError: If delivery failed
        """


class ConsoleDispatcher(NotificationDispatcher):
    """Prints late notices to the terminal."""

    def __init__(self, console: Optional[Console] = None, message: str = DEFAULT_LATE_MESSAGE):
        self.console = console or Console()
        self.message = message

    def notify_late(self, loan: Loan) -> None:
        title = loan.book.title if loan.book else "unknown book"
        self.console.print(
            f"[bold red]LATE[/bold red] {loan.contact}: {title} "
            f"(lent {loan.loan_date}) - {self.message}"
        )


class EmailDispatcher(NotificationDispatcher):
    """Sends late notices by SMTP."""

    def __init__(
        self,
        host: str,
        sender: str,
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        subject: str = "Late book loan",
        message: str = DEFAULT_LATE_MESSAGE,
        use_tls: bool = True,
        timeout: int = 10,
    ):
        """Initialize the mail transport.

        Args:
            host: SMTP server
            sender: From address
            port: SMTP port
            user: Login user (skips login if None)
            password: Login password
            subject: Mail subject
            message: Mail body
            use_tls: Upgrade the connection with STARTTLS
            timeout: Connection timeout in seconds
        """
        self.host = host
        self.sender = sender
        self.port = port
        self.user = user
        self.password = password
        self.subject = subject
        self.message = message
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(self, loan: Loan) -> EmailMessage:
        """Compose the notice for a loan."""
        mail = EmailMessage()
        mail["From"] = self.sender
        mail["To"] = loan.contact
        mail["Subject"] = self.subject
        body = self.message
        if loan.book:
            body += f"\n\n{loan.book.title} ({loan.book.isbn}), lent on {loan.loan_date}."
        mail.set_content(body)
        return mail

    def notify_late(self, loan: Loan) -> None:
        if "@" not in loan.contact:
            raise DispatchError(f"No email address for loan {loan.id}: {loan.contact!r}")

        mail = self.build_message(loan)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.user:
                    smtp.login(self.user, self.password or "")
                smtp.send_message(mail)
        except (smtplib.SMTPException, OSError) as e:
            raise DispatchError(f"Mail to {loan.contact} failed: {e}") from e


class WebhookDispatcher(NotificationDispatcher):
    """Posts late notices as JSON to a webhook."""

    def __init__(
        self,
        url: str,
        timeout: int = 10,
        message: str = DEFAULT_LATE_MESSAGE,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the webhook transport.

        Args:
            url: Endpoint receiving the notices
            timeout: Request timeout in seconds
            message: Text included in each notice
            session: HTTP session (created if not provided)
        """
        self.url = url
        self.timeout = timeout
        self.message = message
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": "libraryapi/0.1"})

    def build_payload(self, loan: Loan) -> dict:
        """JSON body describing the late loan."""
        return {
            "loan_id": loan.id,
            "customer": loan.customer,
            "contact": loan.contact,
            "loan_date": loan.loan_date,
            "isbn": loan.book.isbn if loan.book else None,
            "title": loan.book.title if loan.book else None,
            "message": self.message,
        }

    def notify_late(self, loan: Loan) -> None:
        try:
            response = self._session.post(
                self.url, json=self.build_payload(loan), timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise DispatchError(f"Webhook timed out for loan {loan.id}") from e
        except requests.exceptions.HTTPError as e:
            raise DispatchError(
                f"Webhook returned HTTP {e.response.status_code} for loan {loan.id}"
            ) from e
        except requests.exceptions.RequestException as e:
            raise DispatchError(f"Webhook request failed for loan {loan.id}: {e}") from e


def dispatcher_from_config(config: Config, console: Optional[Console] = None) -> NotificationDispatcher:
    """Pick the transport configured in the environment.

    Mail wins over webhook; with neither configured notices go to the console.
    """
    if config.has_mail_config():
        return EmailDispatcher(
            host=config.mail_host,
            sender=config.mail_from,
            port=config.mail_port,
            user=config.mail_user,
            password=config.mail_password,
            message=config.late_message,
        )
    if config.has_webhook_config():
        return WebhookDispatcher(config.webhook_url, message=config.late_message)
    return ConsoleDispatcher(console=console, message=config.late_message)
