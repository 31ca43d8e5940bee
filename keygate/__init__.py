# keygate
"""
Credential issuance and verification with emailed second factor and
federated sign-in.
"""

from .errors import AuthError, ErrorKind, describe_error
from .models import Account, AuthResult, OneTimeCode, PublicProfile, Role, SessionClaims
from .auth.service import AuthService

__version__ = "0.1.0"

__all__ = [
    'AuthError',
    'ErrorKind',
    'describe_error',
    'Account',
    'AuthResult',
    'OneTimeCode',
    'PublicProfile',
    'Role',
    'SessionClaims',
    'AuthService',
]
