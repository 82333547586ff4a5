"""In-memory backend - an in-process document store with live queries.

Behaves like a hosted document database closely enough for the CLI demo
and the test-suite: documents are deep-copied in and out, merges are
recursive, ordered queries skip documents that lack the ordering field,
and subscribers are re-run after every write touching a matching document.
"""

from __future__ import annotations

import copy
import datetime
import hashlib
import inspect
import itertools
import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from savedrops.backends.base import DataBackend, SubscriptionCallback
from savedrops.errors import AuthError, AuthErrorCode, BackendNotConnectedError, WriteError
from savedrops.models import Document, UserSession

__all__ = ["InMemoryBackend"]

logger = logging.getLogger("savedrops.backends.memory")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


@dataclass
class _Account:
    uid: str
    email: str
    password_hash: str
    created_at: float = field(default_factory=time.time)


@dataclass
class _Subscription:
    handle: int
    collection: str
    on_update: SubscriptionCallback
    where: dict[str, Any]
    order_by: str | None
    descending: bool
    limit: int | None


def _hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def _deep_merge(target: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target


def _sort_key(value: Any) -> tuple[int, Any]:
    # Mixed value types order by type first: bool < number < timestamp < string.
    if isinstance(value, bool):
        return (0, value)
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, datetime.datetime):
        return (2, value.timestamp())
    if isinstance(value, str):
        return (3, value)
    return (4, repr(value))


def _matches(data: dict[str, Any], where: dict[str, Any]) -> bool:
    return all(data.get(key) == value for key, value in where.items())


class InMemoryBackend(DataBackend):
    """Process-local :class:`DataBackend`.

    Parameters:
        max_failed_logins:
            Consecutive failed sign-ins for one email before further
            attempts are rejected as ``rate-limited``.
    """

    def __init__(self, *, max_failed_logins: int = 5) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._accounts: dict[str, _Account] = {}
        self._failed_logins: dict[str, int] = {}
        self._subscriptions: dict[int, _Subscription] = {}
        self._handles = itertools.count(1)
        self._current: UserSession | None = None
        self._connected = False
        self.max_failed_logins = max_failed_logins
        self.password_reset_outbox: list[str] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        self._connected = True
        logger.info("InMemoryBackend ready")

    async def close(self) -> None:
        self._subscriptions.clear()
        self._connected = False
        logger.info("InMemoryBackend closed")

    def _require_connected(self) -> None:
        if not self._connected:
            raise BackendNotConnectedError("InMemoryBackend is not connected")

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def authenticate(self, email: str, password: str) -> UserSession:
        self._require_connected()
        email = email.strip().lower()
        if self._failed_logins.get(email, 0) >= self.max_failed_logins:
            raise AuthError(AuthErrorCode.RATE_LIMITED)

        account = self._accounts.get(email)
        if account is None or account.password_hash != _hash_password(password):
            self._failed_logins[email] = self._failed_logins.get(email, 0) + 1
            raise AuthError(AuthErrorCode.INVALID_CREDENTIALS)

        self._failed_logins.pop(email, None)
        self._current = UserSession(uid=account.uid, email=account.email, created_at=account.created_at)
        logger.info("Signed in %s", email)
        return self._current

    async def sign_up(self, email: str, password: str) -> UserSession:
        self._require_connected()
        email = email.strip().lower()
        if not _EMAIL_RE.match(email):
            raise AuthError(AuthErrorCode.INVALID_EMAIL)
        if email in self._accounts:
            raise AuthError(AuthErrorCode.EMAIL_IN_USE)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(AuthErrorCode.WEAK_PASSWORD)

        account = _Account(uid=uuid.uuid4().hex[:28], email=email, password_hash=_hash_password(password))
        self._accounts[email] = account
        self._current = UserSession(uid=account.uid, email=email, created_at=account.created_at)
        logger.info("Created account %s (uid=%s)", email, account.uid)
        return self._current

    async def sign_out(self) -> None:
        self._current = None

    def current_user(self) -> UserSession | None:
        return self._current

    async def send_password_reset(self, email: str) -> None:
        self._require_connected()
        email = email.strip().lower()
        if not _EMAIL_RE.match(email):
            raise AuthError(AuthErrorCode.INVALID_EMAIL)
        if email not in self._accounts:
            raise AuthError(AuthErrorCode.USER_NOT_FOUND)
        self.password_reset_outbox.append(email)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def append(self, collection: str, record: dict[str, Any]) -> str:
        self._require_connected()
        record_id = uuid.uuid4().hex[:20]
        self._collections.setdefault(collection, {})[record_id] = copy.deepcopy(record)
        await self._notify(collection, [record])
        return record_id

    async def update(self, collection: str, record_id: str, partial: dict[str, Any]) -> None:
        self._require_connected()
        existing = self._collections.get(collection, {}).get(record_id)
        if existing is None:
            raise WriteError(f"No document {collection}/{record_id} to update")
        before = copy.deepcopy(existing)
        _deep_merge(existing, partial)
        await self._notify(collection, [before, existing])

    async def set(
        self,
        collection: str,
        record_id: str,
        record: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        self._require_connected()
        docs = self._collections.setdefault(collection, {})
        before = docs.get(record_id)
        if merge and before is not None:
            docs[record_id] = _deep_merge(copy.deepcopy(before), record)
        else:
            docs[record_id] = copy.deepcopy(record)
        await self._notify(collection, [d for d in (before, docs[record_id]) if d is not None])

    async def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        self._require_connected()
        data = self._collections.get(collection, {}).get(record_id)
        return copy.deepcopy(data) if data is not None else None

    async def query(
        self,
        collection: str,
        *,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        self._require_connected()
        return self._run_query(collection, where or {}, order_by, descending, limit)

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
        self._require_connected()
        sub = _Subscription(
            handle=next(self._handles),
            collection=collection,
            on_update=on_update,
            where=dict(where or {}),
            order_by=order_by,
            descending=descending,
            limit=limit,
        )
        self._subscriptions[sub.handle] = sub
        logger.debug("Subscription %d on '%s' where=%s", sub.handle, collection, sub.where)
        await self._deliver(sub)
        return sub.handle

    async def unsubscribe(self, handle: int) -> None:
        self._subscriptions.pop(handle, None)

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run_query(
        self,
        collection: str,
        where: dict[str, Any],
        order_by: str | None,
        descending: bool,
        limit: int | None,
    ) -> list[Document]:
        items = [
            (record_id, data)
            for record_id, data in self._collections.get(collection, {}).items()
            if _matches(data, where)
        ]
        if order_by is not None:
            items = [item for item in items if item[1].get(order_by) is not None]
            items.sort(key=lambda item: _sort_key(item[1][order_by]), reverse=descending)
        if limit is not None:
            items = items[:limit]
        return [Document(id=record_id, data=copy.deepcopy(data)) for record_id, data in items]

    async def _notify(self, collection: str, touched: list[dict[str, Any]]) -> None:
        for sub in list(self._subscriptions.values()):
            if sub.collection != collection:
                continue
            if any(_matches(data, sub.where) for data in touched):
                await self._deliver(sub)

    async def _deliver(self, sub: _Subscription) -> None:
        if sub.handle not in self._subscriptions:
            return
        docs = self._run_query(sub.collection, sub.where, sub.order_by, sub.descending, sub.limit)
        # Subscriber errors stay with the subscriber; the write already happened.
        try:
            result = sub.on_update(docs)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.error("Subscription %d callback failed: %s", sub.handle, exc, exc_info=True)
