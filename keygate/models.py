"""
Data model for accounts, one-time codes and session claims.

Timestamps are Unix timestamps (float seconds), as returned by time.time().
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any


OTP_TTL_SECONDS = 300          # One-time codes live 5 minutes
SESSION_TTL_SECONDS = 86400    # Session tokens live 24 hours


class Role(str, Enum):
    """Account roles."""
    ADMIN = "admin"
    USER = "user"

    @classmethod
    def parse(cls, value: Optional[str]) -> 'Role':
        """
        Parse a role name, defaulting to USER.

        Raises:
            ValueError: If value is not a known role
        """
        if value is None or value == '':
            return cls.USER
        if isinstance(value, cls):
            return value
        return cls(value)


def normalize_email(email: str) -> str:
    """Case-normalize an email address for storage and lookup."""
    return email.strip().lower()


@dataclass
class PublicProfile:
    """Account fields that are safe to return to callers."""
    id: str
    username: str
    email: str
    role: Role

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'role': self.role.value,
        }


@dataclass
class Account:
    """A user account as held by the credential store."""
    username: str
    email: str
    password_hash: Optional[str] = None
    role: Role = Role.USER
    federated_id: Optional[str] = None
    account_id: Optional[str] = None
    created_at: float = 0.0
    updated_at: float = 0.0

    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def has_role(self, role: Role) -> bool:
        return self.role == role

    @property
    def has_password(self) -> bool:
        """False for accounts created purely via federated sign-in."""
        return self.password_hash is not None

    def to_public(self) -> PublicProfile:
        """Public view of the account (never includes the password hash)."""
        return PublicProfile(
            id=self.account_id,
            username=self.username,
            email=self.email,
            role=self.role,
        )


@dataclass(frozen=True)
class OneTimeCode:
    """A second-factor code bound to an email. Never mutated."""
    email: str
    code: str
    expires_at: float
    created_at: float

    def is_expired(self, now: float = None) -> bool:
        """Check if the code's validity window has passed."""
        if now is None:
            now = time.time()
        return now > self.expires_at


@dataclass(frozen=True)
class SessionClaims:
    """Claims carried by a session token."""
    account_id: str
    email: str
    role: Role
    issued_at: int
    expires_at: int


@dataclass
class FederatedProfile:
    """Identity returned by the external provider."""
    id: str
    email: str
    name: str = ''


@dataclass
class AuthResult:
    """Successful outcome of a use case."""
    token: Optional[str] = None
    user: Optional[PublicProfile] = None
    requires_mfa: bool = False
    message: str = ''

    def to_dict(self) -> Dict[str, Any]:
        """Response body for the transport layer."""
        result = {'success': True, 'requires_mfa': self.requires_mfa}
        if self.token is not None:
            result['token'] = self.token
        if self.user is not None:
            result['user'] = self.user.to_dict()
        if self.message:
            result['message'] = self.message
        return result
