"""
Password Hashing Module

Implements one-way password hashing using the Argon2id algorithm.

Features:
- Argon2id password hashing (winner of Password Hashing Competition)
- Per-hash random salt embedded in the PHC-format output
- Timing-safe verification that never raises on mismatch
- Password strength validation

Security considerations:
- Never store plaintext passwords
- A malformed stored hash is a failed verification, not a fatal error
- Salt is automatically handled by argon2-cffi
"""

import re
import secrets
import threading
from typing import Dict, Optional

from argon2 import PasswordHasher, Type
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError


# Argon2id configuration
# - time_cost: number of iterations
# - memory_cost: memory usage in KiB
# - parallelism: number of parallel threads
# - hash_len: length of the hash output
# - salt_len: length of the random salt
ARGON2_CONFIG = {
    'time_cost': 3,          # Number of iterations
    'memory_cost': 65536,    # 64 MiB memory
    'parallelism': 4,        # 4 parallel threads
    'hash_len': 32,          # 256-bit hash
    'salt_len': 16,          # 128-bit salt
    'type': Type.ID          # Argon2id (hybrid)
}


# Password strength requirements
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
PASSWORD_REQUIREMENTS = {
    'min_length': PASSWORD_MIN_LENGTH,
    'max_length': PASSWORD_MAX_LENGTH,
    'require_uppercase': True,
    'require_lowercase': True,
    'require_digit': True,
    'require_special': True,
}


class Argon2PasswordHasher:
    """
    Secure password hasher using Argon2id.

    Argon2id is the recommended variant for password hashing as it
    provides resistance against both side-channel and GPU attacks.

    Example:
        >>> hasher = Argon2PasswordHasher()
        >>> digest = hasher.hash_password("SecurePass123!")
        >>> hasher.verify_password("SecurePass123!", digest)
        True
    """

    def __init__(self, **kwargs):
        """
        Initialize the password hasher with Argon2id.

        Args:
            **kwargs: Override default Argon2 parameters
        """
        config = ARGON2_CONFIG.copy()
        config.update(kwargs)

        self._hasher = PasswordHasher(
            time_cost=config['time_cost'],
            memory_cost=config['memory_cost'],
            parallelism=config['parallelism'],
            hash_len=config['hash_len'],
            salt_len=config['salt_len'],
            type=config['type']
        )
        self._dummy_hash: Optional[str] = None
        self._dummy_lock = threading.Lock()

    def hash_password(self, password: str) -> str:
        """
        Hash a password using Argon2id.

        The resulting hash contains the algorithm parameters and salt,
        so hashing the same password twice gives different output.

        Args:
            password: Plaintext password to hash

        Returns:
            Argon2id hash string (includes salt and parameters)
        """
        return self._hasher.hash(password)

    def verify_password(self, password: str, hash_str: Optional[str]) -> bool:
        """
        Verify a password against an Argon2id hash.

        Args:
            password: Plaintext password to verify
            hash_str: Argon2id hash string to verify against

        Returns:
            True if password matches, False on mismatch or malformed hash
        """
        if not hash_str:
            return False
        try:
            return self._hasher.verify(hash_str, password)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError):
            return False

    def dummy_verify(self, password: str) -> bool:
        """
        Run a verification that always fails.

        Used when no account exists so that an unknown email costs
        the same time as a wrong password.
        """
        with self._dummy_lock:
            if self._dummy_hash is None:
                self._dummy_hash = self._hasher.hash(secrets.token_hex(16))
        self.verify_password(password, self._dummy_hash)
        return False

    def needs_rehash(self, hash_str: str) -> bool:
        """
        Check if a hash needs to be rehashed with updated parameters.

        Args:
            hash_str: Existing hash to check

        Returns:
            True if hash should be regenerated with new parameters
        """
        return self._hasher.check_needs_rehash(hash_str)


def validate_password_strength(password: str) -> Dict:
    """
    Validate password against strength requirements.

    Args:
        password: Password to validate

    Returns:
        Dict with 'valid' bool and 'errors' list
    """
    errors = []

    # Length checks
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Must be at least {PASSWORD_MIN_LENGTH} characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        errors.append(f"Must be at most {PASSWORD_MAX_LENGTH} characters")

    # Character class checks
    if PASSWORD_REQUIREMENTS['require_uppercase'] and not re.search(r'[A-Z]', password):
        errors.append("Must contain at least one uppercase letter")

    if PASSWORD_REQUIREMENTS['require_lowercase'] and not re.search(r'[a-z]', password):
        errors.append("Must contain at least one lowercase letter")

    if PASSWORD_REQUIREMENTS['require_digit'] and not re.search(r'\d', password):
        errors.append("Must contain at least one digit")

    if PASSWORD_REQUIREMENTS['require_special'] and not re.search(r'[!@#$%^&*(),.?":{}|<>]', password):
        errors.append("Must contain at least one special character")

    return {
        'valid': len(errors) == 0,
        'errors': errors,
    }
