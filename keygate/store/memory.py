"""
In-memory credential store.

Suitable for tests, development and single-process deployments.
Writes are serialized per key with KeyedLock; reads hand out copies so
callers can never mutate stored accounts.
"""

import logging
import time
import uuid
from dataclasses import replace
from typing import Callable, Dict, Optional

from ..errors import Conflict, DuplicateEmail, DuplicateUsername, NotFound
from ..models import Account, OneTimeCode, normalize_email
from .base import CredentialStore
from .locks import KeyedLock


logger = logging.getLogger(__name__)


class MemoryCredentialStore(CredentialStore):
    """
    Dict-backed CredentialStore.

    Example:
        >>> store = MemoryCredentialStore()
        >>> account_id = store.create_account(Account('alice', 'alice@example.com'))
        >>> store.get_by_id(account_id).username
        'alice'
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        """
        Args:
            clock: Source of Unix timestamps for created_at/updated_at
        """
        self._clock = clock
        self._locks = KeyedLock()
        self._accounts: Dict[str, Account] = {}
        self._by_email: Dict[str, str] = {}
        self._by_username: Dict[str, str] = {}
        self._by_federated_id: Dict[str, str] = {}
        self._codes: Dict[str, OneTimeCode] = {}

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> str:
        email = normalize_email(account.email)
        keys = ['email:' + email, 'username:' + account.username]
        if account.federated_id:
            keys.append('federated:' + account.federated_id)

        with self._locks.hold(*keys):
            if email in self._by_email:
                raise DuplicateEmail()
            if account.username in self._by_username:
                raise DuplicateUsername()
            if account.federated_id and account.federated_id in self._by_federated_id:
                raise Conflict('Federated identity already linked')

            now = self._clock()
            stored = replace(
                account,
                email=email,
                account_id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
            )
            self._accounts[stored.account_id] = stored
            self._by_email[email] = stored.account_id
            self._by_username[stored.username] = stored.account_id
            if stored.federated_id:
                self._by_federated_id[stored.federated_id] = stored.account_id

        logger.debug("Created account %s", stored.account_id)
        return stored.account_id

    def get_by_email(self, email: str) -> Account:
        account_id = self._by_email.get(normalize_email(email))
        return self._copy_of(account_id)

    def get_by_id(self, account_id: str) -> Account:
        return self._copy_of(account_id)

    def get_by_federated_id(self, federated_id: str) -> Account:
        return self._copy_of(self._by_federated_id.get(federated_id))

    def link_federated_id(self, account_id: str, federated_id: str) -> Account:
        with self._locks.hold('account:' + account_id, 'federated:' + federated_id):
            account = self._accounts.get(account_id)
            if account is None:
                raise NotFound('Account not found')

            owner = self._by_federated_id.get(federated_id)
            if owner is not None and owner != account_id:
                raise Conflict('Federated identity already linked')
            if account.federated_id == federated_id:
                return replace(account)
            if account.federated_id:
                raise Conflict('Account already linked to another identity')

            updated = replace(account, federated_id=federated_id,
                              updated_at=self._clock())
            self._accounts[account_id] = updated
            self._by_federated_id[federated_id] = account_id

        logger.debug("Linked federated identity to account %s", account_id)
        return replace(updated)

    def _copy_of(self, account_id: Optional[str]) -> Account:
        account = self._accounts.get(account_id) if account_id else None
        if account is None:
            raise NotFound('Account not found')
        return replace(account)

    # ------------------------------------------------------------------
    # One-time codes
    # ------------------------------------------------------------------

    def put_one_time_code(self, code: OneTimeCode) -> None:
        email = normalize_email(code.email)
        with self._locks.hold('otp:' + email):
            self._codes[email] = replace(code, email=email)

    def get_active_one_time_code(self, email: str) -> OneTimeCode:
        email = normalize_email(email)
        with self._locks.hold('otp:' + email):
            code = self._codes.get(email)
        if code is None:
            raise NotFound('No one-time code for email')
        return code

    def delete_one_time_code(self, email: str,
                             expected: Optional[OneTimeCode] = None) -> bool:
        email = normalize_email(email)
        with self._locks.hold('otp:' + email):
            current = self._codes.get(email)
            if current is None:
                return False
            if expected is not None and current != expected:
                return False
            del self._codes[email]
            return True

    def __len__(self) -> int:
        """Number of stored accounts."""
        return len(self._accounts)
