"""
Authentication Error Types

Every failure in keygate is a typed exception rooted at AuthError.

Two layers are kept on purpose:
- Internal variants (e.g. CodeExpired vs InvalidCode, TokenExpired vs
  TokenSignatureInvalid) so callers and tests can see the precise cause
- A coarse public ErrorKind used by describe_error() at the transport
  boundary, which never reveals internal detail such as whether an
  email is registered
"""

from enum import Enum
from typing import Dict, Any


class ErrorKind(Enum):
    """Public error categories exposed to transport layers."""
    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    MFA_DISPATCH_FAILED = "mfa_dispatch_failed"
    FEDERATED_AUTH_FAILED = "federated_auth_failed"
    NOT_FOUND = "not_found"


# Status code and user-visible message per public kind
_PUBLIC_RESPONSES = {
    ErrorKind.INVALID_INPUT: (400, 'Invalid request'),
    ErrorKind.CONFLICT: (409, 'Account already exists'),
    ErrorKind.UNAUTHORIZED: (401, 'Authentication failed'),
    ErrorKind.MFA_DISPATCH_FAILED: (502, 'Failed to send MFA code'),
    ErrorKind.FEDERATED_AUTH_FAILED: (502, 'Federated sign-in failed'),
    ErrorKind.NOT_FOUND: (404, 'Not found'),
}


class AuthError(Exception):
    """Base class for all keygate errors."""

    kind = ErrorKind.UNAUTHORIZED
    default_message = 'Authentication error'

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return self.args[0]


class InvalidInput(AuthError):
    """A request field is malformed or out of range."""
    kind = ErrorKind.INVALID_INPUT
    default_message = 'Invalid input'


class Conflict(AuthError):
    """A uniqueness constraint would be violated."""
    kind = ErrorKind.CONFLICT
    default_message = 'Conflict'


class DuplicateEmail(Conflict):
    default_message = 'Email already exists'


class DuplicateUsername(Conflict):
    default_message = 'Username already exists'


class InvalidCredentials(AuthError):
    """
    Login failed.

    Raised identically for an unknown email and a wrong password.
    """
    default_message = 'Invalid credentials'


class OneTimeCodeError(AuthError):
    """Base for one-time code verification outcomes."""
    default_message = 'Invalid one-time code'


class InvalidOrExpiredCode(OneTimeCodeError):
    """No active code exists for the email."""
    default_message = 'Invalid or expired MFA code'


class CodeExpired(OneTimeCodeError):
    default_message = 'MFA code expired'


class InvalidCode(OneTimeCodeError):
    default_message = 'Invalid MFA code'


class MFADispatchFailed(AuthError):
    kind = ErrorKind.MFA_DISPATCH_FAILED
    default_message = 'Failed to send MFA code'


class FederatedAuthFailed(AuthError):
    kind = ErrorKind.FEDERATED_AUTH_FAILED
    default_message = 'Federated authentication failed'


class TokenInvalid(AuthError):
    """Session token rejected. Subclasses carry the diagnostic reason."""
    default_message = 'Invalid token'


class TokenMalformed(TokenInvalid):
    default_message = 'Malformed token'


class TokenSignatureInvalid(TokenInvalid):
    default_message = 'Token signature invalid'


class TokenExpired(TokenInvalid):
    default_message = 'Token expired'


class NotFound(AuthError):
    kind = ErrorKind.NOT_FOUND
    default_message = 'Not found'


def describe_error(error: AuthError) -> Dict[str, Any]:
    """
    Collapse an error into a transport-safe response body.

    Only the public kind is used, so two errors of the same kind
    produce identical responses regardless of their internal cause.

    Args:
        error: Any AuthError raised by keygate

    Returns:
        Dict with 'success', 'status', 'code' and 'message'
    """
    status, message = _PUBLIC_RESPONSES[error.kind]
    return {
        'success': False,
        'status': status,
        'code': error.kind.value,
        'message': message,
    }
