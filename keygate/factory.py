"""Builds a fully wired AuthService from Settings."""

import logging
from typing import Optional

from .auth.federated import FederatedIdentityClient
from .auth.otp import OTPGenerator
from .auth.service import AuthService
from .auth.tokens import TokenCodec
from .config import Settings
from .integration.event_logger import EventLogger
from .mail.dispatchers import ConsoleDispatcher, EmailDispatcher, SMTPDispatcher
from .store.base import CredentialStore
from .store.memory import MemoryCredentialStore


logger = logging.getLogger(__name__)


def create_dispatcher(settings: Settings) -> EmailDispatcher:
    """Pick the MFA email dispatcher named by EMAIL_MODE."""
    mode = settings.EMAIL_MODE.lower()
    if mode == "console":
        return ConsoleDispatcher()
    if mode == "smtp":
        return SMTPDispatcher(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            from_email=settings.FROM_EMAIL,
        )
    raise ValueError(f"Unknown EMAIL_MODE: {settings.EMAIL_MODE}")


def create_auth_service(settings: Optional[Settings] = None,
                        store: Optional[CredentialStore] = None,
                        dispatcher: Optional[EmailDispatcher] = None,
                        events: Optional[EventLogger] = None) -> AuthService:
    """
    Wire store, codec, dispatcher, federated client and audit trail.

    Args:
        settings: Configuration (loaded from the environment if None)
        store: Credential store (in-memory if None)
        dispatcher: Overrides the dispatcher chosen by EMAIL_MODE
        events: Shared audit trail

    Returns:
        Ready-to-use AuthService

    Raises:
        ValueError: If JWT_SECRET is not set
    """
    settings = settings or Settings()
    if not settings.JWT_SECRET:
        raise ValueError("JWT_SECRET must be configured")

    codec = TokenCodec(
        secret=settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        ttl_seconds=settings.jwt_ttl_seconds,
    )

    federated_client = None
    if settings.federated_enabled():
        federated_client = FederatedIdentityClient(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.GOOGLE_REDIRECT_URL,
            token_url=settings.GOOGLE_TOKEN_URL,
            userinfo_url=settings.GOOGLE_USERINFO_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
    else:
        logger.info("Google credentials not set; federated sign-in disabled")

    return AuthService(
        store=store or MemoryCredentialStore(),
        codec=codec,
        dispatcher=dispatcher or create_dispatcher(settings),
        otp_generator=OTPGenerator(
            digits=settings.OTP_DIGITS,
            ttl_seconds=settings.OTP_TTL_SECONDS,
        ),
        federated_client=federated_client,
        events=events,
    )
