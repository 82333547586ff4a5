"""Common data models for the Save Drops simulator.

Defines the ``Reading`` - the telemetry record the generator appends and
the dashboard reads back - together with the in-memory simulation state
and the supporting user-facing models.
"""

from __future__ import annotations

import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

__all__ = [
    "Bill",
    "ChartPoint",
    "DashboardMetrics",
    "Document",
    "Location",
    "NotificationSettings",
    "PreferenceSettings",
    "PrivacySettings",
    "Reading",
    "SimulationState",
    "SyncHealth",
    "UserProfile",
    "UserSession",
    "UserSettings",
]


class _StoredModel(BaseModel):
    """Base for models persisted as camelCase documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Return the camelCase ``dict`` written to the backend."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_document(cls, data: dict[str, Any]):
        """Construct the model from a stored camelCase document."""
        return cls.model_validate(data)


class Reading(_StoredModel):
    """A single telemetry sample produced by the generator.

    Readings are appended once and never modified.  Stored documents use
    camelCase keys (``userId``, ``tankLevel``, ``flowRate``, ...).

    Attributes:
        user_id: Owner of the reading (the signed-in user's uid).
        timestamp: Unix epoch seconds at emission.
        tank_level: Tank fill in percent, ``[0, 100]``.
        flow_rate: Flow in L/min.
        motor_status: ``True`` when the pump is running.
        pressure: Line pressure in bar.
        ph: Water pH.
        turbidity: Turbidity in NTU.
        conductivity: Conductivity in uS/cm.
        temperature: Water temperature in degrees Celsius.
        leak_detected: Result of the leak heuristic for this sample.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    user_id: str = Field(min_length=1)
    timestamp: float
    tank_level: float = Field(ge=0.0, le=100.0)
    flow_rate: float = Field(ge=0.0)
    motor_status: bool
    pressure: float
    ph: float
    turbidity: float
    conductivity: int
    temperature: float
    leak_detected: bool = False

    @staticmethod
    def now() -> float:
        """Return current epoch timestamp (seconds, float)."""
        return time.time()


class SimulationState(BaseModel):
    """Process-local state of a running simulation.

    Never persisted.  Every change produces a new instance via
    ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    tank_level: float = 75.0
    flow_rate: float = 50.0
    motor_status: bool = False
    pressure: float = 2.5
    ph: float = 7.0
    turbidity: float = 1.2
    conductivity: int = 300
    temperature: float = 25.0
    leak_detected: bool = False
    is_running: bool = False

    def to_reading(self, user_id: str, timestamp: float | None = None) -> Reading:
        """Snapshot the sensor fields into an immutable :class:`Reading`."""
        return Reading(
            user_id=user_id,
            timestamp=Reading.now() if timestamp is None else timestamp,
            tank_level=self.tank_level,
            flow_rate=self.flow_rate,
            motor_status=self.motor_status,
            pressure=self.pressure,
            ph=self.ph,
            turbidity=self.turbidity,
            conductivity=self.conductivity,
            temperature=self.temperature,
            leak_detected=self.leak_detected,
        )


class Document(BaseModel):
    """A stored record as returned by backend reads."""

    id: str
    data: dict[str, Any]


class UserSession(BaseModel):
    """An authenticated user as reported by the backend."""

    uid: str
    email: str
    created_at: float = Field(default_factory=time.time)
    last_sign_in_at: float = Field(default_factory=time.time)
    id_token: str | None = None


class SyncHealth(BaseModel):
    """Counters describing how telemetry writes are faring.

    ``degraded`` is true when the most recent write failed or readings
    were dropped since the last successful write.
    """

    written: int = 0
    failed: int = 0
    dropped: int = 0
    pending: int = 0
    last_error: str | None = None
    degraded: bool = False


# ----------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------


class ChartPoint(BaseModel):
    time: str
    flow: float


class DashboardMetrics(BaseModel):
    """Values the dashboard displays, derived from the latest reading."""

    tank_level: float = 0.0
    flow_rate: float = 0.0
    motor_status: bool = False
    leak_alert: bool = False
    bill: float = 0.0
    last_update: float | None = None


class Bill(_StoredModel):
    user_id: str
    amount: float = 0.0
    date: float = Field(default_factory=time.time)


# ----------------------------------------------------------------------
# Profile and settings
# ----------------------------------------------------------------------


class Location(BaseModel):
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)


class UserProfile(_StoredModel):
    """Profile document stored under ``users/{uid}``."""

    email: str = ""
    name: str = ""
    phone: str = ""
    address: str = ""
    location: Location = Field(default_factory=Location)
    created_at: float = Field(default_factory=time.time)
    profile_complete: bool = False


class NotificationSettings(BaseModel):
    email: bool = True
    push: bool = True
    sms: bool = False
    marketing: bool = False


class PreferenceSettings(BaseModel):
    theme: Literal["light", "dark", "system"] = "system"
    language: Literal["en", "es", "fr", "de"] = "en"
    timezone: str = "UTC"
    currency: str = "USD"


class PrivacySettings(_StoredModel):
    profile_visibility: Literal["private", "public"] = "private"
    data_sharing: bool = False
    search_visibility: bool = False


class UserSettings(_StoredModel):
    """Preferences stored under ``userSettings/{uid}``."""

    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    preferences: PreferenceSettings = Field(default_factory=PreferenceSettings)
    privacy: PrivacySettings = Field(default_factory=PrivacySettings)
