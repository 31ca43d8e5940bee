"""
MFA code delivery.

Dispatchers implement send(recipient_email, code). Any exception they
raise is treated by the authentication service as a failed dispatch.
"""

import logging
import smtplib
import threading
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Dict, List, Optional, Tuple

from ..integration.event_logger import get_user_hash_short
from ..models import OTP_TTL_SECONDS


logger = logging.getLogger(__name__)

MFA_SUBJECT = "Your MFA Code"


def render_mfa_body(code: str, ttl_seconds: int = OTP_TTL_SECONDS) -> str:
    """Plain-text body of the MFA email."""
    minutes = max(1, ttl_seconds // 60)
    return (
        f"Your verification code is {code}\n\n"
        f"This code will expire in {minutes} minutes."
    )


class EmailDispatcher(ABC):
    """Delivers one-time codes to an email address."""

    @abstractmethod
    def send(self, recipient_email: str, code: str) -> None:
        """
        Deliver a code.

        Raises:
            Exception: Any failure to deliver
        """


class SMTPDispatcher(EmailDispatcher):
    """
    Sends codes through an SMTP relay.

    A new connection is opened per message; STARTTLS and login are used
    when credentials are configured.
    """

    def __init__(self, host: str, port: int = 587, username: str = '',
                 password: str = '', from_email: str = '',
                 timeout: float = 10.0, use_tls: bool = True):
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._from_email = from_email or username
        self._timeout = timeout
        self._use_tls = use_tls

    def _new_connection(self) -> smtplib.SMTP:
        return smtplib.SMTP(host=self._host, port=self._port, timeout=self._timeout)

    def build_message(self, recipient_email: str, code: str) -> EmailMessage:
        message = EmailMessage()
        message['From'] = self._from_email
        message['To'] = recipient_email
        message['Subject'] = MFA_SUBJECT
        message.set_content(render_mfa_body(code))
        return message

    def send(self, recipient_email: str, code: str) -> None:
        message = self.build_message(recipient_email, code)
        with self._new_connection() as conn:
            if self._use_tls:
                conn.starttls()
            if self._username:
                conn.login(self._username, self._password)
            conn.send_message(message)
        logger.info("MFA email sent via %s:%s", self._host, self._port)


class ConsoleDispatcher(EmailDispatcher):
    """
    Development dispatcher: writes the email to the log instead of sending.

    The recipient is logged as a short hash at INFO. The body, which holds
    the code, is only written at DEBUG.
    """

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger

    def send(self, recipient_email: str, code: str) -> None:
        user = get_user_hash_short(recipient_email)
        self._log.info("MFA email for user %s written to log", user)
        self._log.debug("MFA email for user %s:\n%s", user, render_mfa_body(code))


class MemoryDispatcher(EmailDispatcher):
    """
    Records codes instead of sending them.

    Example:
        >>> outbox = MemoryDispatcher()
        >>> outbox.send("alice@example.com", "123456")
        >>> outbox.last_code("alice@example.com")
        '123456'
    """

    def __init__(self, fail: bool = False):
        """
        Args:
            fail: If True, every send raises ConnectionError
        """
        self.fail = fail
        self._lock = threading.Lock()
        self._sent: List[Tuple[str, str]] = []
        self._latest: Dict[str, str] = {}

    def send(self, recipient_email: str, code: str) -> None:
        if self.fail:
            raise ConnectionError("Mail relay unavailable")
        with self._lock:
            self._sent.append((recipient_email, code))
            self._latest[recipient_email] = code

    def last_code(self, recipient_email: str) -> Optional[str]:
        with self._lock:
            return self._latest.get(recipient_email)

    @property
    def sent(self) -> List[Tuple[str, str]]:
        with self._lock:
            return list(self._sent)
