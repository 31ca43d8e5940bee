"""
Event Logger Module

Security audit trail for the authentication pipeline.

Features:
- Registration, login, MFA and federated sign-in events
- Token rejection events
- Privacy-preserving user hashes (SHA-256 of the normalized email)
- Compact JSON records forwarded to the "keygate.audit" logger

Codes, passwords and tokens are never recorded.
"""

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Callable

from ..models import normalize_email


audit_logger = logging.getLogger("keygate.audit")
logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

EVENT_VERSION = "1.0"
SYSTEM_USER = "system"


# ============================================================================
# Privacy Functions
# ============================================================================

def get_user_hash(email: str) -> str:
    """
    Compute privacy-preserving hash of an email.

    Uses SHA-256 so emails are never written to the audit trail in
    plaintext, while still allowing correlation of events for the
    same user.

    Args:
        email: The plaintext email (normalized before hashing)

    Returns:
        Hex-encoded SHA-256 hash
    """
    return hashlib.sha256(normalize_email(email).encode()).hexdigest()


def get_user_hash_short(email: str) -> str:
    """First 16 characters of the user hash, for log lines."""
    return get_user_hash(email)[:16]


# ============================================================================
# Event Types
# ============================================================================

class EventType(Enum):
    """Types of security events that can be logged."""

    # Account events
    REGISTERED = "registered"
    ACCOUNT_LINKED = "account_linked"

    # Authentication events
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    MFA_CODE_SENT = "mfa_code_sent"
    MFA_DISPATCH_FAILED = "mfa_dispatch_failed"
    OTP_VERIFIED = "otp_verified"
    OTP_FAILED = "otp_failed"
    OTP_EXPIRED = "otp_expired"
    FEDERATED_LOGIN = "federated_login"

    # Token events
    TOKEN_REJECTED = "token_rejected"

    # System events
    SYSTEM_START = "system_start"


# ============================================================================
# Event Structure
# ============================================================================

@dataclass
class SecurityEvent:
    """
    Represents a security event to be logged.

    All user-identifying information is hashed for privacy.
    """
    event_type: EventType
    user_hash: str  # SHA-256 hash of the email
    timestamp: int  # Unix timestamp
    details: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        """Serialize the event as a compact JSON record."""
        return json.dumps({
            'version': EVENT_VERSION,
            'type': self.event_type.value,
            'user': self.user_hash[:16],  # Short hash for readability
            'time': self.timestamp,
            'iso_time': datetime.fromtimestamp(self.timestamp, tz=timezone.utc).isoformat(),
            'details': self.details,
        }, separators=(',', ':'))

    @classmethod
    def from_json(cls, record: str) -> 'SecurityEvent':
        """Parse an event from its JSON record."""
        data = json.loads(record)
        return cls(
            event_type=EventType(data['type']),
            user_hash=data['user'],
            timestamp=data['time'],
            details=data.get('details', {}),
        )

    def __str__(self) -> str:
        dt = datetime.fromtimestamp(self.timestamp, tz=timezone.utc)
        return (
            f"[{dt.strftime('%Y-%m-%d %H:%M:%S')}] "
            f"{self.event_type.value} | "
            f"user:{self.user_hash[:8]}..."
        )


# ============================================================================
# Event Logger
# ============================================================================

class EventLogger:
    """
    In-memory security audit trail.

    Every event is kept for querying, written to the "keygate.audit"
    logger as JSON, and passed to registered callbacks.

    Example:
        >>> events = EventLogger()
        >>> events.log(EventType.LOGIN_FAILED, "alice@example.com")
        >>> len(events.get_events(EventType.LOGIN_FAILED))
        1
    """

    def __init__(self, clock: Callable[[], float] = time.time,
                 max_events: Optional[int] = 10000):
        """
        Initialize the event logger.

        Args:
            clock: Source of Unix timestamps
            max_events: Oldest events are dropped past this count
                (None keeps everything)
        """
        self._clock = clock
        self._max_events = max_events
        self._events: List[SecurityEvent] = []
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[SecurityEvent], None]] = []

        self._add_event(SecurityEvent(
            event_type=EventType.SYSTEM_START,
            user_hash=SYSTEM_USER,
            timestamp=int(self._clock()),
            details={'node': 'keygate'},
        ))

    def log(self, event_type: EventType, email: Optional[str] = None,
            **details: Any) -> SecurityEvent:
        """
        Record an event.

        Args:
            event_type: What happened
            email: The user's email (will be hashed); None for system events
            **details: Extra non-sensitive fields

        Returns:
            The logged event
        """
        event = SecurityEvent(
            event_type=event_type,
            user_hash=get_user_hash(email) if email else SYSTEM_USER,
            timestamp=int(self._clock()),
            details=details,
        )
        self._add_event(event)
        return event

    def _add_event(self, event: SecurityEvent) -> None:
        with self._lock:
            self._events.append(event)
            if self._max_events is not None and len(self._events) > self._max_events:
                del self._events[:len(self._events) - self._max_events]
            callbacks = list(self._callbacks)

        audit_logger.info(event.to_json())

        # Notify callbacks
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception("Audit callback failed for %s", event.event_type.value)

    def add_callback(self, callback: Callable[[SecurityEvent], None]) -> None:
        """Add a callback to be notified of new events."""
        with self._lock:
            self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[SecurityEvent], None]) -> None:
        """Remove a callback."""
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    # ========================================================================
    # Retrieval
    # ========================================================================

    def get_events(self, event_type: Optional[EventType] = None,
                   email: Optional[str] = None) -> List[SecurityEvent]:
        """
        Query recorded events.

        Args:
            event_type: Only events of this type
            email: Only events for this user

        Returns:
            Matching events, oldest first
        """
        user_hash = get_user_hash(email) if email else None
        with self._lock:
            events = list(self._events)
        return [
            e for e in events
            if (event_type is None or e.event_type == event_type)
            and (user_hash is None or e.user_hash == user_hash)
        ]

    def get_recent_events(self, count: int = 10) -> List[SecurityEvent]:
        """Get the most recent events."""
        with self._lock:
            return list(self._events[-count:])

    def get_stats(self) -> Dict[str, int]:
        """Count of events per type."""
        stats: Dict[str, int] = {}
        for event in self.get_events():
            stats[event.event_type.value] = stats.get(event.event_type.value, 0) + 1
        return stats

    def export_log(self) -> str:
        """Export the audit trail as newline-delimited JSON."""
        return '\n'.join(e.to_json() for e in self.get_events())
