"""Session - the signed-in user, passed explicitly to every component.

Lifecycle: ``init()`` on app start restores whatever user the backend
still holds; ``teardown()`` on sign-out clears it.  Sign-up validates the
form client-side before any backend call.
"""

from __future__ import annotations

import logging
import time

from savedrops.backends.base import DataBackend
from savedrops.errors import NotAuthenticatedError, ValidationError
from savedrops.models import UserSession

__all__ = [
    "LOGIN_ROUTE",
    "MIN_PASSWORD_LENGTH",
    "PROTECTED_ROUTES",
    "PUBLIC_ROUTES",
    "Session",
]

logger = logging.getLogger("savedrops.session")

MIN_PASSWORD_LENGTH = 6
USERS_COLLECTION = "users"

LOGIN_ROUTE = "/login"
PUBLIC_ROUTES = frozenset({"/", LOGIN_ROUTE, "/signup", "/reset-password"})
PROTECTED_ROUTES = frozenset({"/dashboard", "/profile", "/settings", "/simulation", "/signout"})


class Session:
    """Explicit authentication context.

    Parameters:
        backend: Connected :class:`DataBackend` that performs the auth.
    """

    def __init__(self, backend: DataBackend) -> None:
        self.backend = backend
        self._user: UserSession | None = None

    @property
    def user(self) -> UserSession | None:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def init(self) -> UserSession | None:
        """Restore the backend's current user, if any."""
        self._user = self.backend.current_user()
        if self._user is not None:
            logger.info("Session restored for %s", self._user.email)
        return self._user

    async def teardown(self) -> None:
        """Sign out and forget the user."""
        if self._user is not None:
            logger.info("Signing out %s", self._user.email)
        await self.backend.sign_out()
        self._user = None

    def require_user(self) -> UserSession:
        if self._user is None:
            raise NotAuthenticatedError("No user is signed in")
        return self._user

    # ------------------------------------------------------------------
    # Auth flows
    # ------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> UserSession:
        self._user = await self.backend.authenticate(email, password)
        return self._user

    async def sign_up(self, email: str, password: str, confirm_password: str) -> UserSession:
        """Create an account and its initial profile document."""
        if password != confirm_password:
            raise ValidationError("Passwords do not match")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        user = await self.backend.sign_up(email, password)
        self._user = user
        await self.backend.set(
            USERS_COLLECTION,
            user.uid,
            {"email": user.email, "createdAt": time.time(), "profileComplete": False},
        )
        logger.info("Signed up %s (uid=%s)", user.email, user.uid)
        return user

    async def request_password_reset(self, email: str) -> None:
        if not email.strip():
            raise ValidationError("Please enter your email address")
        await self.backend.send_password_reset(email)
        logger.info("Password reset requested for %s", email)

    # ------------------------------------------------------------------
    # Route guard
    # ------------------------------------------------------------------

    def guard(self, path: str) -> str:
        """Return where a visitor to *path* should end up.

        Public routes and signed-in users pass through; everyone else is
        sent to the login page.
        """
        if path in PUBLIC_ROUTES or self.is_authenticated:
            return path
        return LOGIN_ROUTE
