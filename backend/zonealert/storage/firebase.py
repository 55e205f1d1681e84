"""
Firebase Backends
=================

Production implementations of the storage interfaces on top of
firebase-admin:

- Firestore (async client)   -> FirestoreDocumentStore
- Realtime Database          -> FirebaseRealtimeStore
- Cloud Messaging (FCM)      -> FirebaseMessenger
- Firebase Auth + REST API   -> FirebaseIdentityProvider

The Realtime Database, Messaging and Auth modules of firebase-admin are
synchronous, so their calls run in a worker thread (asyncio.to_thread) to keep
the event loop free.

Every provider exception is translated here into a zonealert.errors class.
"""

import asyncio
import logging
import os
from typing import Any, Optional

import firebase_admin
import httpx
from firebase_admin import auth, credentials, db, exceptions as firebase_exceptions
from firebase_admin import firestore_async, messaging
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore import ArrayUnion, Increment
from google.cloud.firestore_v1 import FieldFilter, Query

from zonealert.errors import (
    AuthError,
    ConflictError,
    DependencyError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    ZoneAlertError,
)
from zonealert.storage.base import (
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

logger = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"

_OPERATORS = {
    "==": "==",
    "!=": "!=",
    "<": "<",
    "<=": "<=",
    ">": ">",
    ">=": ">=",
    "in": "in",
    "array_contains": "array_contains",
}


# =============================================================================
# APP INITIALIZATION
# =============================================================================

def initialize_firebase(credentials_path: str, database_url: str) -> firebase_admin.App:
    """Initialize the default firebase-admin app once per process."""
    if firebase_admin._apps:
        return firebase_admin.get_app()

    logger.info(f"Loading Firebase credentials from: {credentials_path}")
    if not os.path.exists(credentials_path):
        raise FileNotFoundError(f"Firebase credentials not found at {credentials_path}")

    cred = credentials.Certificate(credentials_path)
    options = {"databaseURL": database_url} if database_url else None
    app = firebase_admin.initialize_app(cred, options)
    logger.info(f"Firebase initialized (project: {app.project_id})")
    return app


# =============================================================================
# ERROR TRANSLATION
# =============================================================================

def translate_error(exc: Exception, context: str) -> ZoneAlertError:
    """Map a provider exception onto the application's error kinds."""
    if isinstance(exc, ZoneAlertError):
        return exc
    if isinstance(exc, google_exceptions.NotFound):
        return NotFoundError(f"{context}: not found")
    if isinstance(exc, google_exceptions.AlreadyExists):
        return ConflictError(f"{context}: already exists")
    if isinstance(exc, google_exceptions.FailedPrecondition):
        return ConflictError(f"{context}: changed since it was read")
    if isinstance(exc, google_exceptions.PermissionDenied):
        return PermissionDeniedError(f"{context}: permission denied")
    if isinstance(exc, google_exceptions.InvalidArgument):
        return ValidationError(f"{context}: {exc.message}")
    if isinstance(exc, (auth.ExpiredIdTokenError, auth.RevokedIdTokenError)):
        return AuthError("Token expired")
    if isinstance(exc, (auth.InvalidIdTokenError, auth.CertificateFetchError)):
        return AuthError("Invalid token")
    if isinstance(exc, auth.UserNotFoundError):
        return NotFoundError("User not found")
    if isinstance(exc, auth.EmailAlreadyExistsError):
        return ConflictError("User already exists with this email")
    if isinstance(exc, firebase_exceptions.NotFoundError):
        return NotFoundError(f"{context}: not found")
    if isinstance(exc, firebase_exceptions.AlreadyExistsError):
        return ConflictError(f"{context}: already exists")
    if isinstance(exc, firebase_exceptions.PermissionDeniedError):
        return PermissionDeniedError(f"{context}: permission denied")
    if isinstance(exc, firebase_exceptions.InvalidArgumentError):
        return ValidationError(f"{context}: {exc}")
    return DependencyError(f"{context} failed: {exc}")


# =============================================================================
# FIRESTORE
# =============================================================================

class FirestoreWriteBatch(WriteBatch):
    """Stages operations, then replays them into one Firestore batch."""

    def __init__(self, client):
        super().__init__()
        self._client = client

    async def commit(self) -> None:
        batch = self._client.batch()
        for op in self.operations:
            ref = self._client.collection(op.collection).document(op.doc_id)
            option = None
            if op.last_update_time is not None:
                option = self._client.write_option(last_update_time=op.last_update_time)
            if op.op == "create":
                batch.create(ref, op.data)
            elif op.op == "set":
                batch.set(ref, op.data, merge=op.merge)
            elif op.op == "update":
                batch.update(ref, op.data, option=option)
            elif op.op == "delete":
                batch.delete(ref, option=option)
            elif op.op == "increment":
                batch.update(ref, {k: Increment(v) for k, v in op.data.items()})
        try:
            await batch.commit()
        except Exception as e:
            raise translate_error(e, f"batch of {len(self.operations)} writes") from e


class FirestoreDocumentStore(DocumentStore):
    """DocumentStore on the async Firestore client."""

    def __init__(self, client=None):
        self._client = client or firestore_async.client()

    def _ref(self, collection: str, doc_id: str):
        return self._client.collection(collection).document(doc_id)

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        try:
            snapshot = await self._ref(collection, doc_id).get()
        except Exception as e:
            raise translate_error(e, f"read {collection}/{doc_id}") from e
        if not snapshot.exists:
            return None
        return Document(snapshot.id, snapshot.to_dict() or {}, snapshot.update_time)

    async def add(self, collection: str, data: dict) -> str:
        try:
            _, ref = await self._client.collection(collection).add(data)
        except Exception as e:
            raise translate_error(e, f"insert into {collection}") from e
        return ref.id

    async def create(self, collection: str, doc_id: str, data: dict) -> None:
        try:
            await self._ref(collection, doc_id).create(data)
        except Exception as e:
            raise translate_error(e, f"create {collection}/{doc_id}") from e

    async def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        try:
            await self._ref(collection, doc_id).set(data, merge=merge)
        except Exception as e:
            raise translate_error(e, f"write {collection}/{doc_id}") from e

    async def update(self, collection: str, doc_id: str, data: dict) -> None:
        try:
            await self._ref(collection, doc_id).update(data)
        except Exception as e:
            raise translate_error(e, f"update {collection}/{doc_id}") from e

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            await self._ref(collection, doc_id).delete()
        except Exception as e:
            raise translate_error(e, f"delete {collection}/{doc_id}") from e

    async def query(
        self,
        collection: str,
        filters: Optional[list[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Document]:
        query = self._client.collection(collection)
        for field_name, op, value in filters or []:
            if op not in _OPERATORS:
                raise ValidationError(f"Unsupported filter operator: {op}")
            query = query.where(filter=FieldFilter(field_name, _OPERATORS[op], value))
        if order_by:
            direction = Query.DESCENDING if descending else Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        try:
            return [
                Document(snapshot.id, snapshot.to_dict() or {}, snapshot.update_time)
                async for snapshot in query.stream()
            ]
        except Exception as e:
            raise translate_error(e, f"query {collection}") from e

    async def count(self, collection: str, filters: Optional[list[Filter]] = None) -> int:
        query = self._client.collection(collection)
        for field_name, op, value in filters or []:
            query = query.where(filter=FieldFilter(field_name, _OPERATORS[op], value))
        try:
            results = await query.count().get()
        except Exception as e:
            raise translate_error(e, f"count {collection}") from e
        return int(results[0][0].value)

    async def increment(self, collection: str, doc_id: str, field_name: str, delta: float) -> None:
        await self.update(collection, doc_id, {field_name: Increment(delta)})

    async def array_union(self, collection: str, doc_id: str, field_name: str, value: Any,
                          extra: Optional[dict] = None) -> None:
        await self.update(collection, doc_id, {field_name: ArrayUnion([value]), **(extra or {})})

    def batch(self) -> FirestoreWriteBatch:
        return FirestoreWriteBatch(self._client)

    async def close(self) -> None:
        self._client.close()


# =============================================================================
# REALTIME DATABASE
# =============================================================================

class FirebaseRealtimeStore(RealtimeStore):
    """RealtimeStore on firebase_admin.db (sync SDK, run in threads)."""

    async def _call(self, context: str, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except Exception as e:
            raise translate_error(e, context) from e

    async def get(self, path: str) -> Any:
        return await self._call(f"read {path}", lambda: db.reference(path).get())

    async def set(self, path: str, value: Any) -> None:
        await self._call(f"write {path}", lambda: db.reference(path).set(value))

    async def update(self, path: str, value: dict) -> None:
        await self._call(f"update {path}", lambda: db.reference(path).update(value))

    async def push(self, path: str, value: Any) -> str:
        ref = await self._call(f"push {path}", lambda: db.reference(path).push(value))
        return ref.key

    async def multi_update(self, updates: dict[str, Any]) -> None:
        await self._call("multi-path update", lambda: db.reference("/").update(updates))


# =============================================================================
# CLOUD MESSAGING
# =============================================================================

class FirebaseMessenger(Messenger):
    """Messenger on firebase_admin.messaging (FCM)."""

    async def send(self, title, body, data=None, topic=None, token=None) -> str:
        if not topic and not token:
            raise ValidationError("A topic or a device token is required")
        message = messaging.Message(
            notification=messaging.Notification(title=title, body=body),
            data={k: str(v) for k, v in (data or {}).items()},
            topic=None if token else topic,
            token=token,
        )
        try:
            return await asyncio.to_thread(messaging.send, message)
        except Exception as e:
            raise translate_error(e, "push notification") from e

    async def subscribe(self, token: str, topic: str) -> None:
        try:
            response = await asyncio.to_thread(messaging.subscribe_to_topic, [token], topic)
        except Exception as e:
            raise translate_error(e, f"subscribe to {topic}") from e
        if response.failure_count:
            reason = response.errors[0].reason if response.errors else "unknown"
            raise ValidationError(f"Could not subscribe token to {topic}: {reason}")

    async def unsubscribe(self, token: str, topic: str) -> None:
        try:
            await asyncio.to_thread(messaging.unsubscribe_from_topic, [token], topic)
        except Exception as e:
            raise translate_error(e, f"unsubscribe from {topic}") from e


# =============================================================================
# AUTH
# =============================================================================

class FirebaseIdentityProvider(IdentityProvider):
    """IdentityProvider on firebase_admin.auth plus the Identity Toolkit REST API."""

    def __init__(self, web_api_key: str = "", http_client: Optional[httpx.AsyncClient] = None):
        self.web_api_key = web_api_key
        self.http_client = http_client or httpx.AsyncClient(timeout=15.0)

    async def _call(self, context: str, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except Exception as e:
            raise translate_error(e, context) from e

    async def verify_token(self, token: str) -> dict[str, Any]:
        claims = await self._call("verify token", auth.verify_id_token, token)
        return {"uid": claims["uid"], "email": claims.get("email"), **claims}

    async def create_user(self, email: str, password: str, display_name: str) -> UserRecord:
        user = await self._call(
            "create user", auth.create_user,
            email=email, password=password, display_name=display_name,
        )
        return UserRecord(uid=user.uid, email=user.email, display_name=user.display_name)

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        try:
            user = await self._call("look up user", auth.get_user_by_email, email)
        except NotFoundError:
            return None
        return UserRecord(uid=user.uid, email=user.email, display_name=user.display_name)

    async def update_user(self, uid, display_name=None, password=None) -> None:
        changes = {}
        if display_name is not None:
            changes["display_name"] = display_name
        if password is not None:
            changes["password"] = password
        if changes:
            await self._call("update user", auth.update_user, uid, **changes)

    async def delete_user(self, uid: str) -> None:
        await self._call("delete user", auth.delete_user, uid)

    async def create_custom_token(self, uid: str) -> str:
        token = await self._call("mint custom token", auth.create_custom_token, uid)
        return token.decode("utf-8") if isinstance(token, bytes) else token

    async def sign_in_with_password(self, email: str, password: str) -> SignInResult:
        if not self.web_api_key:
            raise DependencyError("FIREBASE_WEB_API_KEY is not configured")
        try:
            response = await self.http_client.post(
                SIGN_IN_URL,
                params={"key": self.web_api_key},
                json={"email": email, "password": password, "returnSecureToken": True},
            )
        except httpx.HTTPError as e:
            raise DependencyError(f"Password sign-in failed: {e}") from e

        if response.status_code != 200:
            raise AuthError("Invalid email or password")

        payload = response.json()
        return SignInResult(
            uid=payload["localId"],
            email=payload["email"],
            id_token=payload["idToken"],
            refresh_token=payload["refreshToken"],
            expires_in=int(payload.get("expiresIn", 3600)),
        )

    async def password_reset_link(self, email: str) -> str:
        return await self._call("generate reset link", auth.generate_password_reset_link, email)

    async def close(self) -> None:
        await self.http_client.aclose()
