"""
Storage Package
===============

Abstract handles for the managed backends plus their implementations.

Example:
    from zonealert.storage import DocumentStore, MemoryDocumentStore
"""

from .base import (
    Document,
    DocumentStore,
    Filter,
    IdentityProvider,
    Messenger,
    RealtimeStore,
    SignInResult,
    UserRecord,
    WriteBatch,
)
from .memory import (
    MemoryDocumentStore,
    MemoryIdentityProvider,
    MemoryMessenger,
    MemoryRealtimeStore,
)

__all__ = [
    "Document",
    "DocumentStore",
    "Filter",
    "IdentityProvider",
    "Messenger",
    "RealtimeStore",
    "SignInResult",
    "UserRecord",
    "WriteBatch",
    "MemoryDocumentStore",
    "MemoryIdentityProvider",
    "MemoryMessenger",
    "MemoryRealtimeStore",
]
