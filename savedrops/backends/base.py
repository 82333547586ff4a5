"""Data Backend abstraction.

The generator, dashboard and account services only talk to storage and
authentication through :class:`DataBackend`.  Concrete backends implement
document CRUD, one-shot ordered queries, live subscriptions and email /
password auth.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from savedrops.models import Document, UserSession

__all__ = ["DataBackend", "SubscriptionCallback"]

SubscriptionCallback = Callable[[list[Document]], Any]


class DataBackend(ABC):
    """Abstract base class for all data backends.

    Query semantics shared by ``query`` and ``subscribe``:

    - ``where``: equality filters, ``{"userId": uid}``.
    - ``order_by``: field to sort on; ``descending`` flips the order.
    - ``limit``: maximum number of documents returned.
    """

    # -- lifecycle --

    @abstractmethod
    async def connect(self) -> None:
        """Open clients / resources."""

    @abstractmethod
    async def close(self) -> None:
        """Release clients / resources and cancel live subscriptions."""

    # -- auth --

    @abstractmethod
    async def authenticate(self, email: str, password: str) -> UserSession:
        """Sign in; raises :class:`~savedrops.errors.AuthError`."""

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> UserSession:
        """Create an account and sign it in."""

    @abstractmethod
    async def sign_out(self) -> None:
        """Forget the current user."""

    @abstractmethod
    def current_user(self) -> UserSession | None:
        """Return the signed-in user, if any."""

    @abstractmethod
    async def send_password_reset(self, email: str) -> None:
        """Send a password reset email."""

    # -- documents --

    @abstractmethod
    async def append(self, collection: str, record: dict[str, Any]) -> str:
        """Store *record* under a new id and return that id."""

    @abstractmethod
    async def update(self, collection: str, record_id: str, partial: dict[str, Any]) -> None:
        """Merge *partial* into an existing document."""

    @abstractmethod
    async def set(
        self,
        collection: str,
        record_id: str,
        record: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        """Create or overwrite (or merge into) the document *record_id*."""

    @abstractmethod
    async def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        """Return the document data, or ``None`` when it does not exist."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        *,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        """One-shot ordered query."""

    @abstractmethod
    async def subscribe(
        self,
        collection: str,
        on_update: SubscriptionCallback,
        *,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> Any:
        """Start a live query.

        *on_update* receives the full current result set once when the
        subscription starts and again each time a matching document
        changes.  Returns a handle for :meth:`unsubscribe`.
        """

    @abstractmethod
    async def unsubscribe(self, handle: Any) -> None:
        """Stop a live query; no further callbacks are delivered."""
