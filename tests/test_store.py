"""
Unit tests for the in-memory credential store and per-key locks.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from keygate.errors import Conflict, DuplicateEmail, DuplicateUsername, NotFound
from keygate.models import Account, OneTimeCode, Role
from keygate.store import KeyedLock, MemoryCredentialStore


def _code(email='alice@example.com', code='123456', created=1000.0):
    return OneTimeCode(email=email, code=code, expires_at=created + 300, created_at=created)


class TestAccounts:
    """Tests for account records."""

    def test_create_assigns_id_and_timestamps(self, clock):
        store = MemoryCredentialStore(clock=clock)
        account_id = store.create_account(Account('alice', 'alice@example.com', 'hash'))
        account = store.get_by_id(account_id)
        assert account.account_id == account_id
        assert account.created_at == account.updated_at == clock.now
        assert account.role == Role.USER

    def test_email_lookup_is_case_insensitive(self):
        store = MemoryCredentialStore()
        account_id = store.create_account(Account('alice', ' Alice@Example.COM ', 'hash'))
        assert store.get_by_email('alice@example.com').account_id == account_id
        assert store.get_by_email('ALICE@example.com').email == 'alice@example.com'

    def test_duplicate_email_rejected(self):
        store = MemoryCredentialStore()
        first = store.create_account(Account('alice', 'alice@example.com', 'hash1'))
        with pytest.raises(DuplicateEmail):
            store.create_account(Account('other', 'ALICE@example.com', 'hash2'))
        account = store.get_by_id(first)
        assert account.username == 'alice'
        assert account.password_hash == 'hash1'
        assert len(store) == 1

    def test_duplicate_username_rejected(self):
        store = MemoryCredentialStore()
        store.create_account(Account('alice', 'alice@example.com', 'hash'))
        with pytest.raises(DuplicateUsername):
            store.create_account(Account('alice', 'alice2@example.com', 'hash'))

    def test_conflicts_are_conflicts(self):
        assert issubclass(DuplicateEmail, Conflict)
        assert issubclass(DuplicateUsername, Conflict)

    def test_lookups_raise_not_found(self):
        store = MemoryCredentialStore()
        with pytest.raises(NotFound):
            store.get_by_email('nobody@example.com')
        with pytest.raises(NotFound):
            store.get_by_id('missing')
        with pytest.raises(NotFound):
            store.get_by_federated_id('g-1')

    def test_returned_accounts_are_copies(self):
        store = MemoryCredentialStore()
        account_id = store.create_account(Account('alice', 'alice@example.com', 'hash'))
        account = store.get_by_id(account_id)
        account.role = Role.ADMIN
        account.password_hash = None
        assert store.get_by_id(account_id).role == Role.USER
        assert store.get_by_id(account_id).password_hash == 'hash'


class TestFederatedLinking:
    """Tests for federated identity links."""

    def test_link_then_lookup(self, clock):
        store = MemoryCredentialStore(clock=clock)
        account_id = store.create_account(Account('alice', 'alice@example.com', 'hash'))
        clock.advance(10)
        linked = store.link_federated_id(account_id, 'g-1')
        assert linked.federated_id == 'g-1'
        assert linked.updated_at == clock.now
        assert store.get_by_federated_id('g-1').account_id == account_id

    def test_relinking_same_id_is_noop(self):
        store = MemoryCredentialStore()
        account_id = store.create_account(Account('alice', 'alice@example.com', 'hash'))
        store.link_federated_id(account_id, 'g-1')
        assert store.link_federated_id(account_id, 'g-1').federated_id == 'g-1'

    def test_federated_id_owned_by_other_account(self):
        store = MemoryCredentialStore()
        first = store.create_account(Account('alice', 'alice@example.com', 'hash'))
        second = store.create_account(Account('bob', 'bob@example.com', 'hash'))
        store.link_federated_id(first, 'g-1')
        with pytest.raises(Conflict):
            store.link_federated_id(second, 'g-1')

    def test_account_already_linked_elsewhere(self):
        store = MemoryCredentialStore()
        account_id = store.create_account(Account('alice', 'alice@example.com', 'hash'))
        store.link_federated_id(account_id, 'g-1')
        with pytest.raises(Conflict):
            store.link_federated_id(account_id, 'g-2')
        assert store.get_by_id(account_id).federated_id == 'g-1'

    def test_link_unknown_account(self):
        with pytest.raises(NotFound):
            MemoryCredentialStore().link_federated_id('missing', 'g-1')

    def test_create_with_federated_id(self):
        store = MemoryCredentialStore()
        account_id = store.create_account(
            Account('alice', 'alice@example.com', None, federated_id='g-1'))
        assert store.get_by_federated_id('g-1').account_id == account_id
        with pytest.raises(Conflict):
            store.create_account(Account('bob', 'bob@example.com', None, federated_id='g-1'))


class TestOneTimeCodes:
    """Tests for one-time code records."""

    def test_put_and_get(self):
        store = MemoryCredentialStore()
        store.put_one_time_code(_code())
        assert store.get_active_one_time_code('ALICE@example.com').code == '123456'

    def test_put_replaces_previous(self):
        store = MemoryCredentialStore()
        store.put_one_time_code(_code(code='111111'))
        store.put_one_time_code(_code(code='222222', created=1001.0))
        assert store.get_active_one_time_code('alice@example.com').code == '222222'

    def test_missing_code(self):
        with pytest.raises(NotFound):
            MemoryCredentialStore().get_active_one_time_code('alice@example.com')

    def test_expired_codes_are_returned(self):
        """Expiry is checked by the caller, not the store."""
        store = MemoryCredentialStore()
        store.put_one_time_code(_code(created=0.0))
        assert store.get_active_one_time_code('alice@example.com').is_expired(10_000)

    def test_delete_is_idempotent(self):
        store = MemoryCredentialStore()
        store.put_one_time_code(_code())
        assert store.delete_one_time_code('alice@example.com') is True
        assert store.delete_one_time_code('alice@example.com') is False

    def test_compare_and_delete(self):
        store = MemoryCredentialStore()
        stale = _code(code='111111')
        store.put_one_time_code(stale)
        store.put_one_time_code(_code(code='222222', created=1001.0))
        assert store.delete_one_time_code('alice@example.com', expected=stale) is False
        current = store.get_active_one_time_code('alice@example.com')
        assert current.code == '222222'
        assert store.delete_one_time_code('alice@example.com', expected=current) is True


class TestKeyedLock:
    """Tests for per-key locking."""

    def test_entries_released(self):
        locks = KeyedLock()
        with locks.hold('a', 'b'):
            assert len(locks) == 2
        assert len(locks) == 0

    def test_same_key_is_exclusive(self):
        locks = KeyedLock()
        inside = []
        peak = []

        def worker():
            with locks.hold('k'):
                inside.append(1)
                peak.append(len(inside))
                inside.pop()

        with ThreadPoolExecutor(max_workers=8) as pool:
            for _ in range(200):
                pool.submit(worker)
        assert max(peak) == 1

    def test_unrelated_keys_do_not_block(self):
        locks = KeyedLock()
        acquired = threading.Event()
        with locks.hold('a'):
            def other():
                with locks.hold('b'):
                    acquired.set()

            t = threading.Thread(target=other)
            t.start()
            assert acquired.wait(timeout=2)
            t.join()

    def test_overlapping_key_sets_do_not_deadlock(self):
        locks = KeyedLock()
        done = []

        def worker(keys):
            for _ in range(200):
                with locks.hold(*keys):
                    pass
            done.append(keys)

        threads = [threading.Thread(target=worker, args=(k,))
                   for k in (('a', 'b'), ('b', 'a'), ('b', 'c'), ('c', 'a'))]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)
        assert len(done) == 4
        assert len(locks) == 0


class TestConcurrentRegistration:
    """Concurrent creates with the same email."""

    def test_exactly_one_wins(self):
        store = MemoryCredentialStore()
        barrier = threading.Barrier(16)

        def create(i):
            barrier.wait()
            try:
                store.create_account(Account(f'user{i}', 'same@example.com', 'hash'))
                return 'ok'
            except DuplicateEmail:
                return 'dup'

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(create, range(16)))
        assert results.count('ok') == 1
        assert results.count('dup') == 15
        assert len(store) == 1
