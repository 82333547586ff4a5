"""Firebase backend - Firestore documents plus Identity Toolkit auth.

Requires the ``firebase`` extra::

    pip install savedrops[firebase]

Documents go through the ``firebase-admin`` Firestore client, whose calls
are blocking and therefore run in the default executor.  Email / password
auth uses the Identity Toolkit REST API over ``httpx`` with the project's
web API key.  Snapshot listeners fire on a Firestore thread; results are
handed back to the event loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from pathlib import Path
from typing import Any

from savedrops.backends.base import DataBackend, SubscriptionCallback
from savedrops.errors import (
    AuthError,
    AuthErrorCode,
    BackendNotConnectedError,
    ReadError,
    WriteError,
)
from savedrops.models import Document, UserSession

__all__ = ["FirebaseBackend"]

logger = logging.getLogger("savedrops.backends.firebase")

try:
    import firebase_admin
    from firebase_admin import credentials, firestore

    FIREBASE_AVAILABLE = True
except ImportError:
    FIREBASE_AVAILABLE = False

try:
    import httpx

    HTTPX_AVAILABLE = True
except ImportError:
    HTTPX_AVAILABLE = False

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts:{method}"

# Identity Toolkit error strings -> AuthErrorCode.  Matched on prefix since
# some carry a suffix, e.g. "WEAK_PASSWORD : Password should be ...".
_IDENTITY_ERRORS: dict[str, AuthErrorCode] = {
    "EMAIL_NOT_FOUND": AuthErrorCode.INVALID_CREDENTIALS,
    "INVALID_PASSWORD": AuthErrorCode.INVALID_CREDENTIALS,
    "INVALID_LOGIN_CREDENTIALS": AuthErrorCode.INVALID_CREDENTIALS,
    "USER_DISABLED": AuthErrorCode.INVALID_CREDENTIALS,
    "EMAIL_EXISTS": AuthErrorCode.EMAIL_IN_USE,
    "WEAK_PASSWORD": AuthErrorCode.WEAK_PASSWORD,
    "INVALID_EMAIL": AuthErrorCode.INVALID_EMAIL,
    "MISSING_EMAIL": AuthErrorCode.INVALID_EMAIL,
    "TOO_MANY_ATTEMPTS_TRY_LATER": AuthErrorCode.RATE_LIMITED,
}


def _auth_error_from(message: str, overrides: dict[str, AuthErrorCode] | None = None) -> AuthError:
    table = {**_IDENTITY_ERRORS, **(overrides or {})}
    for prefix, code in table.items():
        if message.startswith(prefix):
            return AuthError(code)
    return AuthError(AuthErrorCode.INVALID_CREDENTIALS, message=message or None)


class FirebaseBackend(DataBackend):
    """Firestore + Firebase Auth :class:`DataBackend`.

    Parameters:
        credentials_path: Service-account JSON used by ``firebase-admin``.
        api_key: Web API key for the Identity Toolkit REST endpoints.
        timeout_s: Per-request timeout for auth calls.
    """

    def __init__(
        self,
        *,
        credentials_path: str,
        api_key: str,
        timeout_s: float = 30.0,
    ) -> None:
        if not FIREBASE_AVAILABLE or not HTTPX_AVAILABLE:
            raise ImportError(
                "firebase-admin and httpx are required for FirebaseBackend.  "
                "Install with: pip install savedrops[firebase]"
            )
        self._credentials_path = credentials_path
        self._api_key = api_key
        self._timeout = timeout_s
        self._db: Any = None
        self._client: httpx.AsyncClient | None = None
        self._current: UserSession | None = None
        self._watches: dict[int, Any] = {}
        self._callback_tasks: set[asyncio.Future] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        if not firebase_admin._apps:
            path = Path(self._credentials_path).expanduser()
            if not path.exists():
                raise FileNotFoundError(f"Firebase credentials not found at {path}")
            firebase_admin.initialize_app(credentials.Certificate(str(path)))
        self._db = firestore.client()
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        logger.info("FirebaseBackend connected")

    async def close(self) -> None:
        for watch in self._watches.values():
            watch.unsubscribe()
        self._watches.clear()
        if self._client:
            await self._client.aclose()
            self._client = None
        self._db = None
        logger.info("FirebaseBackend closed")

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def authenticate(self, email: str, password: str) -> UserSession:
        body = await self._identity(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._set_current(body)

    async def sign_up(self, email: str, password: str) -> UserSession:
        body = await self._identity(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._set_current(body)

    async def sign_out(self) -> None:
        self._current = None

    def current_user(self) -> UserSession | None:
        return self._current

    async def send_password_reset(self, email: str) -> None:
        await self._identity(
            "sendOobCode",
            {"requestType": "PASSWORD_RESET", "email": email},
            overrides={"EMAIL_NOT_FOUND": AuthErrorCode.USER_NOT_FOUND},
        )

    async def _identity(
        self,
        method: str,
        payload: dict[str, Any],
        overrides: dict[str, AuthErrorCode] | None = None,
    ) -> dict[str, Any]:
        if self._client is None:
            raise BackendNotConnectedError("FirebaseBackend is not connected")
        url = IDENTITY_TOOLKIT_URL.format(method=method)
        try:
            resp = await self._client.post(url, params={"key": self._api_key}, json=payload)
        except httpx.TransportError as exc:
            logger.warning("Identity Toolkit %s failed: %s", method, exc)
            raise AuthError(AuthErrorCode.NETWORK_FAILURE) from exc

        try:
            body = resp.json()
        except ValueError as exc:
            logger.warning("Identity Toolkit %s returned a non-JSON body (HTTP %s)", method, resp.status_code)
            raise AuthError(AuthErrorCode.NETWORK_FAILURE) from exc
        if resp.status_code >= 400:
            message = body.get("error", {}).get("message", "")
            logger.info("Identity Toolkit %s rejected: %s", method, message)
            raise _auth_error_from(message, overrides)
        return body

    def _set_current(self, body: dict[str, Any]) -> UserSession:
        self._current = UserSession(
            uid=body["localId"],
            email=body.get("email", ""),
            id_token=body.get("idToken"),
        )
        return self._current

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def append(self, collection: str, record: dict[str, Any]) -> str:
        def _add() -> str:
            _update_time, ref = self._collection(collection).add(record)
            return ref.id

        return await self._run(_add, WriteError)

    async def update(self, collection: str, record_id: str, partial: dict[str, Any]) -> None:
        ref = self._collection(collection).document(record_id)
        await self._run(functools.partial(ref.update, partial), WriteError)

    async def set(
        self,
        collection: str,
        record_id: str,
        record: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        ref = self._collection(collection).document(record_id)
        await self._run(functools.partial(ref.set, record, merge=merge), WriteError)

    async def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        def _get() -> dict[str, Any] | None:
            snap = self._collection(collection).document(record_id).get()
            return snap.to_dict() if snap.exists else None

        return await self._run(_get, ReadError)

    async def query(
        self,
        collection: str,
        *,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        ref = self._build_query(collection, where, order_by, descending, limit)
        return await self._run(lambda: [_to_document(snap) for snap in ref.stream()], ReadError)

    # ------------------------------------------------------------------
    # Live queries
    # ------------------------------------------------------------------

    async def subscribe(
        self,
        collection: str,
        on_update: SubscriptionCallback,
        *,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> int:
        loop = asyncio.get_running_loop()
        ref = self._build_query(collection, where, order_by, descending, limit)

        def _on_snapshot(snapshots, _changes, _read_time) -> None:
            try:
                docs = [_to_document(snap) for snap in snapshots]
            except Exception as exc:
                logger.error("Bad snapshot on '%s': %s", collection, exc, exc_info=True)
                return
            loop.call_soon_threadsafe(self._dispatch, on_update, docs)

        try:
            watch = ref.on_snapshot(_on_snapshot)
        except Exception as exc:
            raise ReadError(f"Failed to subscribe to '{collection}': {exc}") from exc

        handle = id(watch)
        self._watches[handle] = watch
        return handle

    async def unsubscribe(self, handle: int) -> None:
        watch = self._watches.pop(handle, None)
        if watch is not None:
            watch.unsubscribe()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _dispatch(self, on_update: SubscriptionCallback, docs: list[Document]) -> None:
        try:
            result = on_update(docs)
        except Exception as exc:
            logger.error("Snapshot callback failed: %s", exc, exc_info=True)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._callback_tasks.add(task)
            task.add_done_callback(self._callback_done)

    def _callback_done(self, task: asyncio.Future) -> None:
        self._callback_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Snapshot callback failed: %s", exc, exc_info=exc)

    def _collection(self, name: str) -> Any:
        if self._db is None:
            raise BackendNotConnectedError("FirebaseBackend is not connected")
        return self._db.collection(name)

    def _build_query(
        self,
        collection: str,
        where: dict[str, Any] | None,
        order_by: str | None,
        descending: bool,
        limit: int | None,
    ) -> Any:
        ref = self._collection(collection)
        for field, value in (where or {}).items():
            ref = ref.where(field, "==", value)
        if order_by is not None:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            ref = ref.order_by(order_by, direction=direction)
        if limit is not None:
            ref = ref.limit(limit)
        return ref

    @staticmethod
    async def _run(fn, error_cls: type[Exception]) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except BackendNotConnectedError:
            raise
        except Exception as exc:
            raise error_cls(str(exc)) from exc


def _to_document(snap: Any) -> Document:
    return Document(id=snap.id, data=snap.to_dict() or {})
