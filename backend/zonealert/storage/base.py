"""
Storage Interfaces
==================

The backend never talks to Firebase directly from a service. Instead every
service receives handles implementing these interfaces:

- DocumentStore:    Firestore-style collections of JSON documents
- RealtimeStore:    Realtime-Database-style path tree (readings + live status)
- Messenger:        Push notifications (topics and device tokens)
- IdentityProvider: Credential issuance and verification

Two implementations ship with the app:
- storage.firebase  - firebase-admin backed, used in production
- storage.memory    - in-process dicts, used for local dev and tests

Implementations raise only zonealert.errors classes.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


# A query filter: (field, operator, value)
# Supported operators: ==, !=, <, <=, >, >=, in, array_contains
Filter = tuple[str, str, Any]

FILTER_OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in", "array_contains")


def new_document_id() -> str:
    """20-character id, the same length Firestore generates."""
    return uuid.uuid4().hex[:20]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Document:
    """A document read from a DocumentStore."""
    id: str
    data: dict[str, Any] = field(default_factory=dict)
    # Opaque write version, usable as a batch precondition
    update_time: Any = field(default=None, compare=False)

    def to_dict(self, id_field: str = "id") -> dict[str, Any]:
        """Flatten into one dict with the id under `id_field`."""
        return {id_field: self.id, **self.data}


@dataclass
class BatchOperation:
    """One staged write inside a WriteBatch."""
    op: str                     # create | set | update | delete | increment
    collection: str
    doc_id: str
    data: dict[str, Any] = field(default_factory=dict)
    merge: bool = False
    last_update_time: Any = None


class WriteBatch(ABC):
    """
    Collects writes and commits them atomically across documents.

    Backends subclass this and implement `commit()`. Staging methods
    return self so calls can be chained.

    update() and delete() accept `last_update_time`, the `update_time` of a
    Document read earlier: the commit then fails with ConflictError if the
    document was written since.
    """

    def __init__(self):
        self.operations: list[BatchOperation] = []

    def create(self, collection: str, doc_id: str, data: dict) -> "WriteBatch":
        self.operations.append(BatchOperation("create", collection, doc_id, dict(data)))
        return self

    def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> "WriteBatch":
        self.operations.append(BatchOperation("set", collection, doc_id, dict(data), merge))
        return self

    def update(self, collection: str, doc_id: str, data: dict,
               last_update_time: Any = None) -> "WriteBatch":
        self.operations.append(
            BatchOperation("update", collection, doc_id, dict(data), last_update_time=last_update_time)
        )
        return self

    def delete(self, collection: str, doc_id: str, last_update_time: Any = None) -> "WriteBatch":
        self.operations.append(
            BatchOperation("delete", collection, doc_id, last_update_time=last_update_time)
        )
        return self

    def increment(self, collection: str, doc_id: str, field_name: str, delta: float) -> "WriteBatch":
        self.operations.append(
            BatchOperation("increment", collection, doc_id, {field_name: delta})
        )
        return self

    def __len__(self) -> int:
        return len(self.operations)

    @abstractmethod
    async def commit(self) -> None:
        """Apply every staged operation, all or nothing."""


class DocumentStore(ABC):
    """Firestore-style document database."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Return the document or None when it does not exist."""

    @abstractmethod
    async def add(self, collection: str, data: dict) -> str:
        """Insert with a generated id, returns the id."""

    @abstractmethod
    async def create(self, collection: str, doc_id: str, data: dict) -> None:
        """Insert with a given id. Raises ConflictError if it exists."""

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        """Write the document, replacing it unless merge=True."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, data: dict) -> None:
        """Update fields. Raises NotFoundError if the document is missing."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete the document (no error if it does not exist)."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Optional[list[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Document]:
        """Return matching documents."""

    @abstractmethod
    async def increment(self, collection: str, doc_id: str, field_name: str, delta: float) -> None:
        """Atomically add `delta` to a numeric field of an existing document."""

    @abstractmethod
    async def array_union(self, collection: str, doc_id: str, field_name: str, value: Any,
                          extra: Optional[dict] = None) -> None:
        """Append `value` to an array field (no duplicates), plus `extra` field updates."""

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Start a multi-document atomic batch."""

    async def count(self, collection: str, filters: Optional[list[Filter]] = None) -> int:
        return len(await self.query(collection, filters))

    async def close(self) -> None:
        """Release provider resources."""


class RealtimeStore(ABC):
    """Realtime-Database-style JSON tree addressed by slash paths."""

    @abstractmethod
    async def get(self, path: str) -> Any:
        """Return the value at path, or None."""

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Replace the value at path."""

    @abstractmethod
    async def update(self, path: str, value: dict) -> None:
        """Merge children into the value at path."""

    @abstractmethod
    async def push(self, path: str, value: Any) -> str:
        """Append a child with a generated, time-ordered key and return the key."""

    @abstractmethod
    async def multi_update(self, updates: dict[str, Any]) -> None:
        """Write several absolute paths in one atomic update."""

    async def close(self) -> None:
        """Release provider resources."""


class Messenger(ABC):
    """Push notification transport."""

    @abstractmethod
    async def send(
        self,
        title: str,
        body: str,
        data: Optional[dict[str, str]] = None,
        topic: Optional[str] = None,
        token: Optional[str] = None,
    ) -> str:
        """Send to a topic or a device token, returns the message id."""

    @abstractmethod
    async def subscribe(self, token: str, topic: str) -> None:
        """Subscribe a device token to a topic."""

    @abstractmethod
    async def unsubscribe(self, token: str, topic: str) -> None:
        """Remove a device token from a topic."""


@dataclass
class UserRecord:
    """Identity provider account."""
    uid: str
    email: str
    display_name: Optional[str] = None


@dataclass
class SignInResult:
    """Result of a password sign-in."""
    uid: str
    email: str
    id_token: str
    refresh_token: str
    expires_in: int


class IdentityProvider(ABC):
    """Credential issuance and verification (Firebase Auth in production)."""

    @abstractmethod
    async def verify_token(self, token: str) -> dict[str, Any]:
        """Return the token's claims (at least `uid`). Raises AuthError."""

    @abstractmethod
    async def create_user(self, email: str, password: str, display_name: str) -> UserRecord:
        """Create an account. Raises ConflictError if the email is taken."""

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        """Look up an account, None if there is none."""

    @abstractmethod
    async def update_user(self, uid: str, display_name: Optional[str] = None,
                          password: Optional[str] = None) -> None:
        """Update account properties."""

    @abstractmethod
    async def delete_user(self, uid: str) -> None:
        """Delete the account."""

    @abstractmethod
    async def create_custom_token(self, uid: str) -> str:
        """Mint a custom token the client exchanges for an ID token."""

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> SignInResult:
        """Verify a password. Raises AuthError on bad credentials."""

    @abstractmethod
    async def password_reset_link(self, email: str) -> str:
        """Generate a password reset link. Raises NotFoundError for unknown emails."""

    async def close(self) -> None:
        """Release provider resources."""
