"""Shared fixtures for the keygate test suite."""

import time
from typing import Dict

import pytest

from keygate.auth.passwords import Argon2PasswordHasher
from keygate.auth.service import AuthService
from keygate.auth.tokens import TokenCodec
from keygate.errors import FederatedAuthFailed
from keygate.mail.dispatchers import MemoryDispatcher
from keygate.models import FederatedProfile
from keygate.store.memory import MemoryCredentialStore


SECRET = "test-signing-secret-with-at-least-32-bytes!"
PASSWORD = "SecureP@ss123!"


class FakeClock:
    """Controllable clock, starting at the real current time."""

    def __init__(self, start: float = None):
        self.now = time.time() if start is None else start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubProvider:
    """Stands in for FederatedIdentityClient: maps codes to profiles."""

    def __init__(self, profiles: Dict[str, FederatedProfile] = None):
        self.profiles = dict(profiles or {})
        self.calls = []

    def authenticate(self, authorization_code: str) -> FederatedProfile:
        self.calls.append(authorization_code)
        profile = self.profiles.get(authorization_code)
        if profile is None:
            raise FederatedAuthFailed()
        return profile


def fast_hasher() -> Argon2PasswordHasher:
    """Argon2id with minimal cost so tests stay quick."""
    return Argon2PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hasher():
    return fast_hasher()


@pytest.fixture
def store(clock):
    return MemoryCredentialStore(clock=clock)


@pytest.fixture
def codec(clock):
    return TokenCodec(secret=SECRET, clock=clock)


@pytest.fixture
def outbox():
    return MemoryDispatcher()


@pytest.fixture
def provider():
    return StubProvider()


@pytest.fixture
def service(store, codec, outbox, hasher, provider, clock):
    return AuthService(
        store=store,
        codec=codec,
        dispatcher=outbox,
        hasher=hasher,
        federated_client=provider,
        clock=clock,
    )
