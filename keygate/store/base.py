"""
Credential store contract.

The store exclusively owns Account and OneTimeCode lifetimes. The
authentication service never mutates records except through these
operations. Implementations must be safe under concurrent use and must
serialize conflicting writes per key (email, username, account id,
federated id), not behind one global lock.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..models import Account, OneTimeCode


class CredentialStore(ABC):
    """Abstract repository for accounts and one-time codes."""

    @abstractmethod
    def create_account(self, account: Account) -> str:
        """
        Persist a new account.

        Assigns account_id, created_at and updated_at.

        Returns:
            The new account id

        Raises:
            DuplicateEmail: If the email is already registered
            DuplicateUsername: If the username is already taken
        """

    @abstractmethod
    def get_by_email(self, email: str) -> Account:
        """
        Raises:
            NotFound: If no account has this email
        """

    @abstractmethod
    def get_by_id(self, account_id: str) -> Account:
        """
        Raises:
            NotFound: If no account has this id
        """

    @abstractmethod
    def get_by_federated_id(self, federated_id: str) -> Account:
        """
        Raises:
            NotFound: If no account is linked to this federated id
        """

    @abstractmethod
    def link_federated_id(self, account_id: str, federated_id: str) -> Account:
        """
        Attach a federated identity to an existing account.

        Linking an account to the id it already holds is a no-op.

        Returns:
            The updated account

        Raises:
            NotFound: If the account does not exist
            Conflict: If the federated id belongs to another account, or
                the account is already linked to a different id
        """

    @abstractmethod
    def put_one_time_code(self, code: OneTimeCode) -> None:
        """Store a code, atomically replacing any code for the same email."""

    @abstractmethod
    def get_active_one_time_code(self, email: str) -> OneTimeCode:
        """
        Fetch the current code for an email.

        Expired codes are returned as-is; checking expiry is left to the
        caller so it can tell an expired code from a missing one.

        Raises:
            NotFound: If no code is stored for the email
        """

    @abstractmethod
    def delete_one_time_code(self, email: str,
                             expected: Optional[OneTimeCode] = None) -> bool:
        """
        Remove the code for an email. Idempotent.

        Args:
            email: Owning email
            expected: If given, delete only when the stored record is this
                exact record (compare-and-delete)

        Returns:
            True if this call removed a code
        """
