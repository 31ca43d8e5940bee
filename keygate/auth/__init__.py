# Authentication Module
"""
Authentication implementations including:
- Password hashing (Argon2id) - passwords.py
- Emailed one-time codes (second factor) - otp.py
- HMAC-signed JWT session tokens - tokens.py
- OAuth2 federated sign-in - federated.py
- Register / login / verify / federated / validate use cases - service.py

Security features:
- Argon2id for password hashing (PHC winner)
- Constant-time comparison for codes and hashes
- Cryptographically secure random codes
- Fixed token algorithm (no algorithm confusion)
"""

from .passwords import (
    Argon2PasswordHasher,
    validate_password_strength,
)

from .otp import (
    OTPGenerator,
    generate_code,
    codes_match,
    OTP_DIGITS,
)

from .tokens import (
    TokenCodec,
    SUPPORTED_ALGORITHMS,
)

from .federated import (
    FederatedIdentityClient,
    GOOGLE_TOKEN_URL,
    GOOGLE_USERINFO_URL,
)

from .service import (
    AuthService,
    LoginState,
    derive_username,
)

__all__ = [
    # Passwords
    'Argon2PasswordHasher',
    'validate_password_strength',
    # One-time codes
    'OTPGenerator',
    'generate_code',
    'codes_match',
    'OTP_DIGITS',
    # Tokens
    'TokenCodec',
    'SUPPORTED_ALGORITHMS',
    # Federated
    'FederatedIdentityClient',
    'GOOGLE_TOKEN_URL',
    'GOOGLE_USERINFO_URL',
    # Service
    'AuthService',
    'LoginState',
    'derive_username',
]
