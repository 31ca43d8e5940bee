"""
Authentication Service

Composes the credential store, password hasher, one-time codes, token
codec, email dispatcher and federated client into the public use cases:

- register: create an account and return a session token
- login: check password, email a one-time code (step 1 of 2)
- verify_otp: consume the code and return a session token (step 2 of 2)
- federated_login: sign in through the external identity provider
- validate_token: verify a session token and return its claims

Each login attempt moves CredentialsPending -> MFAPending -> Authenticated,
or ends Rejected at any step. Failures are raised as typed AuthError
subclasses; the service performs no retries.

Security considerations:
- Unknown email and wrong password raise the same InvalidCredentials
  and cost the same Argon2 verification
- A code is deleted only on success or detected expiry. A wrong code
  leaves it in place until it expires, so the 5-minute window is the
  only bound on guessing
- Codes, passwords and tokens are never logged
"""

import logging
import re
import time
from enum import Enum
from typing import Callable, Optional, Tuple

from ..errors import (
    Conflict, DuplicateEmail, DuplicateUsername, FederatedAuthFailed,
    InvalidCode, InvalidCredentials, InvalidInput, InvalidOrExpiredCode,
    CodeExpired, MFADispatchFailed, NotFound, TokenInvalid,
)
from ..integration.event_logger import EventLogger, EventType, get_user_hash_short
from ..mail.dispatchers import EmailDispatcher
from ..models import Account, AuthResult, FederatedProfile, Role, SessionClaims, normalize_email
from ..store.base import CredentialStore
from .federated import FederatedIdentityClient
from .otp import OTPGenerator, codes_match
from .passwords import Argon2PasswordHasher, validate_password_strength
from .tokens import TokenCodec


logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 64
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
USERNAME_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]')
MAX_USERNAME_SUFFIX = 1000


class LoginState(Enum):
    """States of a single login attempt."""
    CREDENTIALS_PENDING = "credentials_pending"
    MFA_PENDING = "mfa_pending"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


class AuthService:
    """
    Credential issuance and verification pipeline.

    Example:
        >>> service = AuthService(store, codec, dispatcher)
        >>> service.register("alice", "SecureP@ss123!", "alice@example.com")
        >>> result = service.login("alice@example.com", "SecureP@ss123!")
        >>> result.requires_mfa
        True
        >>> result = service.verify_otp("alice@example.com", emailed_code)
        >>> service.validate_token(result.token).role
        <Role.USER: 'user'>
    """

    def __init__(self, store: CredentialStore, codec: TokenCodec,
                 dispatcher: EmailDispatcher,
                 hasher: Optional[Argon2PasswordHasher] = None,
                 otp_generator: Optional[OTPGenerator] = None,
                 federated_client: Optional[FederatedIdentityClient] = None,
                 events: Optional[EventLogger] = None,
                 clock: Callable[[], float] = time.time):
        """
        Args:
            store: Credential store (sole owner of accounts and codes)
            codec: Session token codec holding the signing secret
            dispatcher: Delivers MFA codes
            hasher: Password hasher (Argon2id defaults if None)
            otp_generator: Code issuer (6 digits, 5 minutes if None)
            federated_client: Identity provider client; federated_login
                fails if None
            events: Audit trail (a private one is created if None)
            clock: Source of Unix timestamps for code expiry
        """
        self._store = store
        self._codec = codec
        self._dispatcher = dispatcher
        self._hasher = hasher or Argon2PasswordHasher()
        self._clock = clock
        self._otp = otp_generator or OTPGenerator(clock=clock)
        self._federated = federated_client
        self._events = events or EventLogger(clock=clock)

    @property
    def events(self) -> EventLogger:
        """Access audit trail."""
        return self._events

    # ========================================================================
    # Registration
    # ========================================================================

    def register(self, username: str, password: str, email: str,
                 role: Optional[str] = None) -> AuthResult:
        """
        Register a new account and sign it in.

        No MFA step is required on registration.

        Args:
            username: Unique username
            password: Plaintext password (will be hashed)
            email: Unique email address
            role: 'admin' or 'user' (defaults to 'user')

        Returns:
            AuthResult with token and public profile

        Raises:
            InvalidInput: Bad username, email, password or role
            DuplicateEmail: Email already registered
            DuplicateUsername: Username already taken
        """
        try:
            parsed_role = Role.parse(role)
        except ValueError:
            raise InvalidInput('Invalid role') from None

        username = (username or '').strip()
        if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
            raise InvalidInput(
                f'Username must be {USERNAME_MIN_LENGTH}-{USERNAME_MAX_LENGTH} characters'
            )

        email = normalize_email(email or '')
        if not EMAIL_PATTERN.match(email):
            raise InvalidInput('Invalid email address')

        validation = validate_password_strength(password or '')
        if not validation['valid']:
            raise InvalidInput(f"Password too weak: {', '.join(validation['errors'])}")

        account = Account(
            username=username,
            email=email,
            password_hash=self._hasher.hash_password(password),
            role=parsed_role,
        )
        account_id = self._store.create_account(account)
        account = self._store.get_by_id(account_id)

        self._events.log(EventType.REGISTERED, email, role=account.role.value)
        logger.info("Registered account %s (user %s)", account_id, get_user_hash_short(email))

        return AuthResult(
            token=self._codec.mint(account),
            user=account.to_public(),
            message='Registration successful',
        )

    # ========================================================================
    # Two-step login
    # ========================================================================

    def login(self, email: str, password: str) -> AuthResult:
        """
        Step 1: verify the password and email a one-time code.

        Args:
            email: Account email
            password: Plaintext password

        Returns:
            AuthResult with requires_mfa=True and no token

        Raises:
            InvalidCredentials: Unknown email or wrong password
            MFADispatchFailed: The code could not be delivered
        """
        email = normalize_email(email or '')
        password = password or ''

        try:
            account = self._store.get_by_email(email)
        except NotFound:
            account = None

        if account is None or not account.has_password:
            self._hasher.dummy_verify(password)
            self._reject_login(email)
        elif not self._hasher.verify_password(password, account.password_hash):
            self._reject_login(email)

        self._events.log(EventType.LOGIN_SUCCESS, email,
                         state=LoginState.MFA_PENDING.value)

        # Replaces any code issued by an earlier login
        code = self._otp.issue(email)
        self._store.put_one_time_code(code)

        try:
            self._dispatcher.send(email, code.code)
        except Exception as e:
            # The stored code is left to expire on its own
            self._events.log(EventType.MFA_DISPATCH_FAILED, email,
                             state=LoginState.CREDENTIALS_PENDING.value)
            logger.warning("MFA dispatch failed for user %s: %s",
                           get_user_hash_short(email), type(e).__name__)
            raise MFADispatchFailed() from e

        self._events.log(EventType.MFA_CODE_SENT, email,
                         state=LoginState.MFA_PENDING.value)
        logger.info("MFA code sent to user %s", get_user_hash_short(email))

        return AuthResult(
            requires_mfa=True,
            message='MFA code sent to your email',
        )

    def _reject_login(self, email: str) -> None:
        self._events.log(EventType.LOGIN_FAILED, email,
                         state=LoginState.REJECTED.value)
        logger.warning("Login rejected for user %s", get_user_hash_short(email))
        raise InvalidCredentials()

    def verify_otp(self, email: str, code: str) -> AuthResult:
        """
        Step 2: consume the emailed code and issue a session token.

        Args:
            email: Account email
            code: Code received by email

        Returns:
            AuthResult with token and public profile (including role)

        Raises:
            InvalidOrExpiredCode: No active code (never issued, already
                used, or consumed by a concurrent verification)
            CodeExpired: The code's window has passed; it is deleted
            InvalidCode: Wrong code; the stored code is kept
            NotFound: The account disappeared after the code was issued
        """
        email = normalize_email(email or '')

        try:
            stored = self._store.get_active_one_time_code(email)
        except NotFound:
            self._otp_failed(email, 'missing')
            raise InvalidOrExpiredCode()

        if stored.is_expired(self._clock()):
            self._store.delete_one_time_code(email, expected=stored)
            self._events.log(EventType.OTP_EXPIRED, email,
                             state=LoginState.REJECTED.value)
            raise CodeExpired()

        if not codes_match(code or '', stored.code):
            # TODO: add a per-code attempt counter; until then guessing is
            # bounded only by the code's expiry
            self._otp_failed(email, 'mismatch')
            raise InvalidCode()

        # Single use: only the caller that removes this exact record wins
        if not self._store.delete_one_time_code(email, expected=stored):
            self._otp_failed(email, 'consumed')
            raise InvalidOrExpiredCode()

        account = self._store.get_by_email(email)

        self._events.log(EventType.OTP_VERIFIED, email,
                         state=LoginState.AUTHENTICATED.value)
        logger.info("User %s authenticated", get_user_hash_short(email))

        return AuthResult(
            token=self._codec.mint(account),
            user=account.to_public(),
            message='Login successful',
        )

    def _otp_failed(self, email: str, reason: str) -> None:
        self._events.log(EventType.OTP_FAILED, email, reason=reason,
                         state=LoginState.REJECTED.value)
        logger.warning("OTP verification failed for user %s (%s)",
                       get_user_hash_short(email), reason)

    # ========================================================================
    # Federated sign-in
    # ========================================================================

    def federated_login(self, authorization_code: str) -> AuthResult:
        """
        Sign in through the external identity provider.

        Trust is delegated to the provider, so there is no MFA step.

        Args:
            authorization_code: Code returned by the provider's redirect

        Returns:
            AuthResult with token and public profile

        Raises:
            FederatedAuthFailed: Provider exchange or profile fetch failed
            Conflict: The email's account is linked to a different identity
        """
        if self._federated is None:
            raise FederatedAuthFailed('Federated sign-in not configured')

        # Network calls happen before any store lock is taken
        profile = self._federated.authenticate(authorization_code)

        account, outcome = self._resolve_federated_account(profile)

        if outcome == 'linked':
            self._events.log(EventType.ACCOUNT_LINKED, account.email)
            logger.info("Linked federated identity to account %s", account.account_id)
        self._events.log(EventType.FEDERATED_LOGIN, account.email, outcome=outcome)

        return AuthResult(
            token=self._codec.mint(account),
            user=account.to_public(),
            message='Login successful',
        )

    def _resolve_federated_account(self, profile: FederatedProfile) -> Tuple[Account, str]:
        """
        Find, link or create the account for a provider profile.

        Returns:
            Tuple of (account, outcome) where outcome is 'existing',
            'linked' or 'created'
        """
        email = normalize_email(profile.email)

        # A second pass settles races with a concurrent sign-in for the
        # same identity or email
        for attempt in range(2):
            last_attempt = attempt == 1

            try:
                return self._store.get_by_federated_id(profile.id), 'existing'
            except NotFound:
                pass

            try:
                existing = self._store.get_by_email(email)
            except NotFound:
                existing = None

            if existing is not None:
                try:
                    return self._store.link_federated_id(existing.account_id, profile.id), 'linked'
                except Conflict:
                    if last_attempt:
                        raise
                    continue

            try:
                account_id = self._create_federated_account(profile, email)
            except (DuplicateEmail, Conflict):
                if last_attempt:
                    raise
                continue
            return self._store.get_by_id(account_id), 'created'

        raise Conflict()

    def _create_federated_account(self, profile: FederatedProfile, email: str) -> str:
        base = derive_username(email)
        for n in range(1, MAX_USERNAME_SUFFIX + 1):
            username = base if n == 1 else f'{base}-{n}'
            try:
                return self._store.create_account(Account(
                    username=username,
                    email=email,
                    password_hash=None,
                    role=Role.USER,
                    federated_id=profile.id,
                ))
            except DuplicateUsername:
                continue
        raise DuplicateUsername('No free username for federated account')

    # ========================================================================
    # Token validation
    # ========================================================================

    def validate_token(self, token: str) -> SessionClaims:
        """
        Verify a session token.

        Args:
            token: Token from register, verify_otp or federated_login

        Returns:
            SessionClaims (role is for coarse authorization only)

        Raises:
            TokenInvalid: Malformed, bad signature or expired (the
                subclass names the reason)
        """
        try:
            return self._codec.parse(token)
        except TokenInvalid as e:
            self._events.log(EventType.TOKEN_REJECTED, reason=type(e).__name__)
            raise


def derive_username(email: str) -> str:
    """
    Username for a federated account: the email's local part with
    unsafe characters replaced.
    """
    local = normalize_email(email).split('@', 1)[0]
    username = USERNAME_UNSAFE_CHARS.sub('_', local)[:USERNAME_MAX_LENGTH - 5]
    if len(username) < USERNAME_MIN_LENGTH:
        username = (username + '_user')[:USERNAME_MAX_LENGTH]
    return username

