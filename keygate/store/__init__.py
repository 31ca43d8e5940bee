# Credential Store
"""
Account and one-time code persistence.

- CredentialStore: abstract contract (base.py)
- MemoryCredentialStore: in-memory implementation (memory.py)
- KeyedLock: per-key mutexes used to serialize conflicting writes (locks.py)
"""

from .base import CredentialStore
from .locks import KeyedLock
from .memory import MemoryCredentialStore

__all__ = [
    'CredentialStore',
    'KeyedLock',
    'MemoryCredentialStore',
]
