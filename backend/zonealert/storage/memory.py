"""
In-Memory Backends
==================

Process-local implementations of the storage interfaces.

Used when STORAGE_BACKEND=memory (the default for local development) and by
the test suite. Everything lives in plain dicts, so a restart wipes the data.

They follow the same rules as the Firebase backends:
- update()/increment() on a missing document -> NotFoundError
- create() on an existing id                  -> ConflictError
- a stale last_update_time precondition       -> ConflictError
- a WriteBatch is applied all-or-nothing
- documents missing a filtered/ordered field never match a query
"""

import copy
import hashlib
import itertools
import logging
import secrets
import time
import uuid
from typing import Any, Optional

from zonealert.errors import AuthError, ConflictError, NotFoundError, ValidationError
from zonealert.storage.base import (
    Document,
    DocumentStore,
    Filter,
    FILTER_OPERATORS,
    IdentityProvider,
    Messenger,
    RealtimeStore,
    SignInResult,
    UserRecord,
    WriteBatch,
)

logger = logging.getLogger(__name__)

_MISSING = object()


# =============================================================================
# HELPERS
# =============================================================================

def _get_field(data: dict, path: str) -> Any:
    """Read a (possibly dotted) field, returns _MISSING if absent."""
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _set_field(data: dict, path: str, value: Any) -> None:
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


def _matches(data: dict, flt: Filter) -> bool:
    field_name, op, expected = flt
    if op not in FILTER_OPERATORS:
        raise ValidationError(f"Unsupported filter operator: {op}")

    actual = _get_field(data, field_name)
    if actual is _MISSING:
        return False

    try:
        if op == "==":
            return actual == expected
        if op == "!=":
            return actual != expected
        if op == "in":
            return actual in expected
        if op == "array_contains":
            return isinstance(actual, list) and expected in actual
        if actual is None or expected is None:
            return False
        if op == "<":
            return actual < expected
        if op == "<=":
            return actual <= expected
        if op == ">":
            return actual > expected
        return actual >= expected
    except TypeError:
        # Mixed types never match, like Firestore's type ordering
        return False


# =============================================================================
# DOCUMENT STORE
# =============================================================================

class MemoryWriteBatch(WriteBatch):
    """Batch that stages every change on copies before touching the store."""

    def __init__(self, store: "MemoryDocumentStore"):
        super().__init__()
        self._store = store

    async def commit(self) -> None:
        staged: dict[tuple[str, str], Optional[dict]] = {}

        def current(collection: str, doc_id: str) -> Optional[dict]:
            key = (collection, doc_id)
            if key in staged:
                return staged[key]
            existing = self._store._collection(collection).get(doc_id)
            return copy.deepcopy(existing) if existing is not None else None

        for op in self.operations:
            key = (op.collection, op.doc_id)
            if op.last_update_time is not None and self._store._versions.get(key) != op.last_update_time:
                raise ConflictError(f"{op.collection}/{op.doc_id} changed since it was read")
            doc = current(op.collection, op.doc_id)

            if op.op == "create":
                if doc is not None:
                    raise ConflictError(f"{op.collection}/{op.doc_id} already exists")
                staged[key] = copy.deepcopy(op.data)

            elif op.op == "set":
                if op.merge and doc is not None:
                    doc.update(copy.deepcopy(op.data))
                    staged[key] = doc
                else:
                    staged[key] = copy.deepcopy(op.data)

            elif op.op == "update":
                if doc is None:
                    raise NotFoundError(f"{op.collection}/{op.doc_id} not found")
                for field_name, value in op.data.items():
                    _set_field(doc, field_name, copy.deepcopy(value))
                staged[key] = doc

            elif op.op == "delete":
                staged[key] = None

            elif op.op == "increment":
                if doc is None:
                    raise NotFoundError(f"{op.collection}/{op.doc_id} not found")
                for field_name, delta in op.data.items():
                    value = _get_field(doc, field_name)
                    base = 0 if value is _MISSING or value is None else value
                    _set_field(doc, field_name, base + delta)
                staged[key] = doc

        # Nothing above awaited, so no other task saw a partial state
        for (collection, doc_id), doc in staged.items():
            self._store._write(collection, doc_id, doc)


class MemoryDocumentStore(DocumentStore):
    """Firestore stand-in backed by nested dicts."""

    def __init__(self):
        self._data: dict[str, dict[str, dict]] = {}
        self._versions: dict[tuple[str, str], int] = {}
        self._clock = itertools.count(1)

    def _collection(self, name: str) -> dict[str, dict]:
        return self._data.setdefault(name, {})

    def _write(self, collection: str, doc_id: str, doc: Optional[dict]) -> None:
        """Store or drop a document and bump its version."""
        if doc is None:
            self._collection(collection).pop(doc_id, None)
            self._versions.pop((collection, doc_id), None)
        else:
            self._collection(collection)[doc_id] = doc
            self._versions[(collection, doc_id)] = next(self._clock)

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        doc = self._collection(collection).get(doc_id)
        if doc is None:
            return None
        return Document(doc_id, copy.deepcopy(doc), self._versions.get((collection, doc_id)))

    async def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex[:20]
        self._write(collection, doc_id, copy.deepcopy(data))
        return doc_id

    async def create(self, collection: str, doc_id: str, data: dict) -> None:
        await self.batch().create(collection, doc_id, data).commit()

    async def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        await self.batch().set(collection, doc_id, data, merge=merge).commit()

    async def update(self, collection: str, doc_id: str, data: dict) -> None:
        await self.batch().update(collection, doc_id, data).commit()

    async def delete(self, collection: str, doc_id: str) -> None:
        self._write(collection, doc_id, None)

    async def query(
        self,
        collection: str,
        filters: Optional[list[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Document]:
        results = [
            Document(doc_id, copy.deepcopy(doc), self._versions.get((collection, doc_id)))
            for doc_id, doc in self._collection(collection).items()
            if all(_matches(doc, flt) for flt in (filters or []))
        ]

        if order_by:
            results = [d for d in results if _get_field(d.data, order_by) is not _MISSING]
            results.sort(
                key=lambda d: (_get_field(d.data, order_by) is not None, _get_field(d.data, order_by)),
                reverse=descending,
            )

        if offset:
            results = results[offset:]
        if limit is not None:
            results = results[:limit]
        return results

    async def increment(self, collection: str, doc_id: str, field_name: str, delta: float) -> None:
        await self.batch().increment(collection, doc_id, field_name, delta).commit()

    async def array_union(self, collection: str, doc_id: str, field_name: str, value: Any,
                          extra: Optional[dict] = None) -> None:
        doc = self._collection(collection).get(doc_id)
        if doc is None:
            raise NotFoundError(f"{collection}/{doc_id} not found")
        items = _get_field(doc, field_name)
        items = [] if items is _MISSING or items is None else list(items)
        if value not in items:
            items.append(copy.deepcopy(value))
        updates = {field_name: items, **(extra or {})}
        await self.update(collection, doc_id, updates)

    def batch(self) -> MemoryWriteBatch:
        return MemoryWriteBatch(self)


# =============================================================================
# REALTIME STORE
# =============================================================================

class MemoryRealtimeStore(RealtimeStore):
    """Realtime Database stand-in: one nested dict addressed by paths."""

    def __init__(self):
        self._root: dict[str, Any] = {}
        self._push_counter = itertools.count()

    @staticmethod
    def _parts(path: str) -> list[str]:
        return [p for p in path.strip("/").split("/") if p]

    async def get(self, path: str) -> Any:
        node: Any = self._root
        for part in self._parts(path):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def _write(self, path: str, value: Any) -> None:
        parts = self._parts(path)
        if not parts:
            self._root = copy.deepcopy(value) if isinstance(value, dict) else {}
            return
        node = self._root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = copy.deepcopy(value)

    async def set(self, path: str, value: Any) -> None:
        self._write(path, value)

    async def update(self, path: str, value: dict) -> None:
        base = path.rstrip("/")
        for key, child in value.items():
            self._write(f"{base}/{key}", child)

    async def push(self, path: str, value: Any) -> str:
        # Millisecond prefix + counter keeps keys sortable by insertion time
        key = f"{int(time.time() * 1000):013d}{next(self._push_counter):07d}"
        self._write(f"{path.rstrip('/')}/{key}", value)
        return key

    async def multi_update(self, updates: dict[str, Any]) -> None:
        for path, value in updates.items():
            self._write(path, value)


# =============================================================================
# MESSENGER
# =============================================================================

class MemoryMessenger(Messenger):
    """Records messages instead of delivering them."""

    def __init__(self):
        self.sent: list[dict[str, Any]] = []
        self.topics: dict[str, set[str]] = {}
        self._ids = itertools.count(1)

    async def send(self, title, body, data=None, topic=None, token=None) -> str:
        if not topic and not token:
            raise ValidationError("A topic or a device token is required")
        message_id = f"projects/local/messages/{next(self._ids)}"
        self.sent.append({
            "id": message_id,
            "title": title,
            "body": body,
            "data": dict(data or {}),
            "topic": topic,
            "token": token,
        })
        logger.debug(f"[memory] push {message_id} -> {topic or token}: {title}")
        return message_id

    async def subscribe(self, token: str, topic: str) -> None:
        self.topics.setdefault(topic, set()).add(token)

    async def unsubscribe(self, token: str, topic: str) -> None:
        self.topics.get(topic, set()).discard(token)


# =============================================================================
# IDENTITY PROVIDER
# =============================================================================

class MemoryIdentityProvider(IdentityProvider):
    """Account store with opaque bearer tokens, for local development."""

    TOKEN_TTL_SECONDS = 3600

    def __init__(self):
        self._users: dict[str, dict[str, Any]] = {}
        self._tokens: dict[str, tuple[str, float]] = {}

    @staticmethod
    def _hash(password: str) -> str:
        return hashlib.sha256(password.encode("utf-8")).hexdigest()

    def issue_token(self, uid: str, ttl_seconds: Optional[int] = None) -> str:
        """Mint a bearer token for `uid` (what the client SDK would do)."""
        token = secrets.token_urlsafe(24)
        ttl = self.TOKEN_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._tokens[token] = (uid, time.time() + ttl)
        return token

    async def verify_token(self, token: str) -> dict[str, Any]:
        entry = self._tokens.get(token)
        if entry is None:
            raise AuthError("Invalid token")
        uid, expires_at = entry
        if time.time() >= expires_at:
            raise AuthError("Token expired")
        user = self._users.get(uid)
        if user is None:
            raise AuthError("Invalid token")
        return {"uid": uid, "email": user["email"]}

    async def create_user(self, email: str, password: str, display_name: str) -> UserRecord:
        if await self.get_user_by_email(email):
            raise ConflictError("User already exists with this email")
        uid = uuid.uuid4().hex[:28]
        self._users[uid] = {
            "email": email.lower(),
            "password": self._hash(password),
            "display_name": display_name,
        }
        return UserRecord(uid=uid, email=email.lower(), display_name=display_name)

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        for uid, user in self._users.items():
            if user["email"] == email.lower():
                return UserRecord(uid=uid, email=user["email"], display_name=user["display_name"])
        return None

    async def update_user(self, uid, display_name=None, password=None) -> None:
        user = self._users.get(uid)
        if user is None:
            raise NotFoundError("User not found")
        if display_name is not None:
            user["display_name"] = display_name
        if password is not None:
            user["password"] = self._hash(password)

    async def delete_user(self, uid: str) -> None:
        if self._users.pop(uid, None) is None:
            raise NotFoundError("User not found")
        self._tokens = {t: v for t, v in self._tokens.items() if v[0] != uid}

    async def create_custom_token(self, uid: str) -> str:
        if uid not in self._users:
            raise NotFoundError("User not found")
        return self.issue_token(uid)

    async def sign_in_with_password(self, email: str, password: str) -> SignInResult:
        user = await self.get_user_by_email(email)
        if user is None or self._users[user.uid]["password"] != self._hash(password):
            raise AuthError("Invalid email or password")
        return SignInResult(
            uid=user.uid,
            email=user.email,
            id_token=self.issue_token(user.uid),
            refresh_token=secrets.token_urlsafe(24),
            expires_in=self.TOKEN_TTL_SECONDS,
        )

    async def password_reset_link(self, email: str) -> str:
        if await self.get_user_by_email(email) is None:
            raise NotFoundError("No user found with this email")
        return f"http://localhost/reset-password?oobCode={secrets.token_urlsafe(16)}"
