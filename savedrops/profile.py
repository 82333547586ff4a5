"""Profile and settings services over the ``users`` and ``userSettings``
collections, one document per user keyed by uid.
"""

from __future__ import annotations

import logging
from typing import Any

from savedrops.backends.base import DataBackend
from savedrops.errors import ValidationError
from savedrops.models import Location, UserProfile, UserSettings
from savedrops.session import Session

__all__ = ["ProfileService", "SettingsService"]

logger = logging.getLogger("savedrops.profile")

USERS_COLLECTION = "users"
SETTINGS_COLLECTION = "userSettings"


class ProfileService:
    """Load and edit the signed-in user's profile."""

    def __init__(self, backend: DataBackend, session: Session) -> None:
        self._backend = backend
        self._session = session

    async def load(self) -> UserProfile:
        """Return the stored profile, creating an empty one if missing."""
        user = self._session.require_user()
        data = await self._backend.get(USERS_COLLECTION, user.uid)
        if data is None:
            profile = UserProfile(email=user.email)
            await self._backend.set(USERS_COLLECTION, user.uid, profile.to_document())
            logger.info("Created profile document for %s", user.uid)
            return profile
        # Sign-up only stores email / createdAt / profileComplete
        return UserProfile.from_document({"email": user.email, **data})

    async def save(self, profile: UserProfile) -> UserProfile:
        user = self._session.require_user()
        complete = bool(profile.name and profile.phone and profile.address)
        profile = profile.model_copy(update={"profile_complete": complete})
        await self._backend.set(USERS_COLLECTION, user.uid, profile.to_document(), merge=True)
        logger.info("Profile saved for %s (complete=%s)", user.uid, complete)
        return profile

    async def set_location(self, latitude: float, longitude: float) -> UserProfile:
        """Store a coordinate pair on the profile."""
        try:
            location = Location(latitude=latitude, longitude=longitude)
        except ValueError as exc:
            raise ValidationError(f"Invalid coordinates ({latitude}, {longitude})") from exc
        profile = await self.load()
        return await self.save(profile.model_copy(update={"location": location}))


class SettingsService:
    """Notification, preference and privacy toggles for the signed-in user."""

    def __init__(self, backend: DataBackend, session: Session) -> None:
        self._backend = backend
        self._session = session

    async def load(self) -> UserSettings:
        """Defaults overlaid with whatever the user has saved."""
        user = self._session.require_user()
        data = await self._backend.get(SETTINGS_COLLECTION, user.uid)
        if not data:
            return UserSettings()
        merged = UserSettings().to_document()
        for category, values in data.items():
            if isinstance(values, dict) and category in merged:
                merged[category].update(values)
        return UserSettings.from_document(merged)

    @staticmethod
    def change(settings: UserSettings, category: str, field: str, value: Any) -> UserSettings:
        """Return a copy of *settings* with one field changed, validated."""
        current = settings.model_dump()
        if category not in current:
            raise ValidationError(f"Unknown settings category '{category}'")
        if field not in current[category]:
            raise ValidationError(f"Unknown setting '{category}.{field}'")
        current[category][field] = value
        try:
            return UserSettings.model_validate(current)
        except ValueError as exc:
            raise ValidationError(f"Invalid value for '{category}.{field}': {value!r}") from exc

    async def save(self, settings: UserSettings) -> None:
        user = self._session.require_user()
        await self._backend.set(SETTINGS_COLLECTION, user.uid, settings.to_document(), merge=True)
        logger.info("Settings saved for %s", user.uid)
