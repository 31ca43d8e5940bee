"""
One-Time Code Module

Emailed one-time codes used as the second authentication factor.

Features:
- 6-digit numeric codes, leading zeros permitted
- Every digit drawn independently from the OS CSPRNG (secrets module)
- Fixed 5-minute validity window
- Constant-time comparison on verification

Unlike TOTP there is no shared secret: the code is random, stored
server-side and delivered out-of-band.
"""

import hmac
import secrets
import time
from typing import Callable

from ..models import OneTimeCode, OTP_TTL_SECONDS, normalize_email


OTP_DIGITS = 6   # Number of digits in a code


def generate_code(digits: int = OTP_DIGITS) -> str:
    """
    Generate a random numeric code.

    Each digit is drawn uniformly from 0-9 with secrets.randbelow, so
    there is no modulo bias and no general-purpose PRNG involved.

    Args:
        digits: Number of digits

    Returns:
        String of exactly `digits` ASCII digits
    """
    return ''.join(str(secrets.randbelow(10)) for _ in range(digits))


def codes_match(submitted: str, stored: str) -> bool:
    """
    Compare a submitted code with the stored one in constant time.

    Args:
        submitted: Code entered by the user
        stored: Code held by the credential store

    Returns:
        True if codes are equal
    """
    submitted = str(submitted).strip()

    # Reject obviously malformed input before comparing
    if len(submitted) != len(stored) or not submitted.isdigit() or not submitted.isascii():
        return False

    return hmac.compare_digest(submitted.encode(), stored.encode())


class OTPGenerator:
    """
    Issues OneTimeCode records.

    Example:
        >>> gen = OTPGenerator()
        >>> record = gen.issue("alice@example.com")
        >>> len(record.code)
        6
    """

    def __init__(self, digits: int = OTP_DIGITS,
                 ttl_seconds: int = OTP_TTL_SECONDS,
                 clock: Callable[[], float] = time.time):
        """
        Args:
            digits: Number of digits per code
            ttl_seconds: Validity window of each code
            clock: Source of Unix timestamps
        """
        self._digits = digits
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, email: str, now: float = None) -> OneTimeCode:
        """
        Create a fresh code for an email.

        Args:
            email: Owning email
            now: Creation timestamp (uses the clock if None)

        Returns:
            Immutable OneTimeCode expiring ttl_seconds after creation
        """
        if now is None:
            now = self._clock()
        return OneTimeCode(
            email=normalize_email(email),
            code=generate_code(self._digits),
            expires_at=now + self._ttl_seconds,
            created_at=now,
        )
