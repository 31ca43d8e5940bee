"""
Session Token Module

Stateless session tokens as HMAC-signed JWTs.

Security considerations:
- The signing secret is injected at construction, never read from globals
- The codec fixes the algorithm; the token's own "alg" header is never
  trusted, so "none" or algorithm-swapped tokens are rejected
- Signature is verified before any claim is read
- Expiry is checked against the codec's clock
"""

import time
from typing import Callable, Dict, Any

import jwt

from ..errors import TokenMalformed, TokenSignatureInvalid, TokenExpired
from ..models import Account, Role, SessionClaims, SESSION_TTL_SECONDS


SUPPORTED_ALGORITHMS = ('HS256', 'HS384', 'HS512')
REQUIRED_CLAIMS = ['sub', 'email', 'role', 'iat', 'exp']


class TokenCodec:
    """
    Mints and parses session tokens.

    Example:
        >>> codec = TokenCodec(secret="a-32-byte-or-longer-signing-secret!!")
        >>> token = codec.mint(account)
        >>> codec.parse(token).account_id == account.account_id
        True
    """

    def __init__(self, secret: str, algorithm: str = 'HS256',
                 ttl_seconds: int = SESSION_TTL_SECONDS,
                 clock: Callable[[], float] = time.time):
        """
        Args:
            secret: Symmetric signing secret
            algorithm: One of HS256, HS384, HS512
            ttl_seconds: Token lifetime
            clock: Source of Unix timestamps

        Raises:
            ValueError: If the secret is empty or the algorithm unsupported
        """
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported token algorithm: {algorithm}")

        self._secret = secret
        self._algorithm = algorithm
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def mint(self, account: Account, now: float = None) -> str:
        """
        Mint a token for an account.

        Args:
            account: Stored account (must have an id)
            now: Issue time (uses the clock if None)

        Returns:
            Compact signed token string
        """
        issued_at = int(self._clock() if now is None else now)
        claims = SessionClaims(
            account_id=account.account_id,
            email=account.email,
            role=account.role,
            issued_at=issued_at,
            expires_at=issued_at + self._ttl_seconds,
        )
        return self.mint_claims(claims)

    def mint_claims(self, claims: SessionClaims) -> str:
        """Sign an explicit set of claims."""
        payload: Dict[str, Any] = {
            'sub': claims.account_id,
            'user_id': claims.account_id,
            'email': claims.email,
            'role': Role(claims.role).value,
            'iat': claims.issued_at,
            'exp': claims.expires_at,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def parse(self, token: str) -> SessionClaims:
        """
        Verify a token and return its claims.

        Args:
            token: Token string as produced by mint()

        Returns:
            SessionClaims

        Raises:
            TokenMalformed: Not a decodable token or claims missing/invalid
            TokenSignatureInvalid: Wrong secret or wrong algorithm
            TokenExpired: Signature valid but expiry has passed
        """
        if not token or not isinstance(token, str):
            raise TokenMalformed()

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={
                    'require': REQUIRED_CLAIMS,
                    'verify_exp': False,
                    'verify_iat': False,
                    'verify_nbf': False,
                },
            )
        except jwt.InvalidSignatureError as e:
            raise TokenSignatureInvalid() from e
        except jwt.InvalidAlgorithmError as e:
            raise TokenSignatureInvalid('Token algorithm not accepted') from e
        except jwt.InvalidTokenError as e:
            raise TokenMalformed() from e

        try:
            issued_at = int(payload['iat'])
            expires_at = int(payload['exp'])
            role = Role(payload['role'])
        except (TypeError, ValueError) as e:
            raise TokenMalformed('Token claims invalid') from e

        if expires_at <= self._clock():
            raise TokenExpired()

        return SessionClaims(
            account_id=str(payload['sub']),
            email=str(payload['email']),
            role=role,
            issued_at=issued_at,
            expires_at=expires_at,
        )
