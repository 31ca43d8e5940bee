"""
Security property tests.

Tests:
- Unknown email and wrong password are indistinguishable to callers
- Public error bodies never reveal the internal cause
- Concurrent registration, login and verification
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from keygate.auth.passwords import Argon2PasswordHasher
from keygate.auth.service import AuthService
from keygate.errors import (
    AuthError, CodeExpired, DuplicateEmail, InvalidCode, InvalidCredentials,
    InvalidOrExpiredCode, TokenExpired, TokenMalformed, TokenSignatureInvalid,
    describe_error,
)
from keygate.models import Role
from tests.conftest import PASSWORD


class CountingHasher(Argon2PasswordHasher):
    """Fast hasher that counts verifications."""

    def __init__(self):
        super().__init__(time_cost=1, memory_cost=8, parallelism=1)
        self.verifications = 0

    def verify_password(self, password, hash_str):
        self.verifications += 1
        return super().verify_password(password, hash_str)


@pytest.fixture
def counting_service(store, codec, outbox, clock):
    hasher = CountingHasher()
    return AuthService(store, codec, outbox, hasher=hasher, clock=clock), hasher


class TestEnumerationResistance:
    """Unknown email vs wrong password."""

    def test_same_error_and_body(self, service):
        service.register('alice', PASSWORD, 'alice@example.com')

        with pytest.raises(InvalidCredentials) as unknown:
            service.login('nobody@example.com', PASSWORD)
        with pytest.raises(InvalidCredentials) as wrong:
            service.login('alice@example.com', 'Wrong#Pass999')

        assert type(unknown.value) is type(wrong.value)
        assert unknown.value.message == wrong.value.message
        assert describe_error(unknown.value) == describe_error(wrong.value)

    def test_unknown_email_still_runs_a_verification(self, counting_service):
        service, hasher = counting_service
        service.register('alice', PASSWORD, 'alice@example.com')

        hasher.verifications = 0
        with pytest.raises(InvalidCredentials):
            service.login('nobody@example.com', PASSWORD)
        unknown_cost = hasher.verifications

        hasher.verifications = 0
        with pytest.raises(InvalidCredentials):
            service.login('alice@example.com', 'Wrong#Pass999')
        wrong_cost = hasher.verifications

        assert unknown_cost == wrong_cost == 1

    def test_public_body(self):
        assert describe_error(InvalidCredentials()) == {
            'success': False,
            'status': 401,
            'code': 'unauthorized',
            'message': 'Authentication failed',
        }


class TestErrorCollapsing:
    """Internal causes collapse to one public response per kind."""

    @pytest.mark.parametrize("error", [
        InvalidOrExpiredCode(), CodeExpired(), InvalidCode(),
        TokenExpired(), TokenMalformed(), TokenSignatureInvalid(),
    ])
    def test_rejections_look_alike(self, error):
        assert describe_error(error) == describe_error(InvalidCredentials())

    def test_internal_messages_differ(self):
        assert CodeExpired().message != InvalidCode().message
        assert TokenExpired().message != TokenSignatureInvalid().message

    def test_conflict_body(self):
        body = describe_error(DuplicateEmail())
        assert body['status'] == 409
        assert 'email' not in body['message'].lower()

    def test_every_error_is_describable(self):
        def subclasses(cls):
            for sub in cls.__subclasses__():
                yield sub
                yield from subclasses(sub)

        for cls in subclasses(AuthError):
            body = describe_error(cls())
            assert body['success'] is False
            assert 400 <= body['status'] < 600


class TestConcurrency:
    """Races between concurrent callers."""

    def test_concurrent_registration(self, service, store):
        barrier = threading.Barrier(8)

        def register(i):
            barrier.wait()
            try:
                service.register(f'user{i}', PASSWORD, 'same@example.com')
                return 'ok'
            except DuplicateEmail:
                return 'dup'

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(register, range(8)))
        assert results.count('ok') == 1
        assert len(store) == 1

    def test_concurrent_logins_leave_one_valid_code(self, service, outbox):
        service.register('alice', PASSWORD, 'alice@example.com')
        barrier = threading.Barrier(6)

        def login(_):
            barrier.wait()
            return service.login('alice@example.com', PASSWORD).requires_mfa

        with ThreadPoolExecutor(max_workers=6) as pool:
            assert all(pool.map(login, range(6)))

        codes = {code for _, code in outbox.sent}
        successes = 0
        for code in codes:
            try:
                service.verify_otp('alice@example.com', code)
                successes += 1
            except (InvalidCode, InvalidOrExpiredCode):
                pass
        assert successes == 1

    def test_racing_verifications_have_one_winner(self, service, outbox):
        service.register('alice', PASSWORD, 'alice@example.com', role='admin')
        service.login('alice@example.com', PASSWORD)
        code = outbox.last_code('alice@example.com')
        barrier = threading.Barrier(16)

        def verify(_):
            barrier.wait()
            try:
                return service.verify_otp('alice@example.com', code)
            except InvalidOrExpiredCode:
                return None

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(verify, range(16)))

        winners = [r for r in results if r is not None]
        assert len(winners) == 1
        assert service.validate_token(winners[0].token).role == Role.ADMIN
