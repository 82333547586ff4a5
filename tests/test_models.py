"""Tests for savedrops.models and savedrops.errors."""

from __future__ import annotations

import time

import pytest
from pydantic import ValidationError

from savedrops.errors import AuthError, AuthErrorCode, BackendError, SaveDropsError, WriteError
from savedrops.models import Bill, Reading, SimulationState, SyncHealth, UserSettings

# -----------------------------------------------------------------------
# Reading
# -----------------------------------------------------------------------


class TestReading:
    def test_document_uses_camel_case(self, make_reading) -> None:
        doc = make_reading(leak_detected=True).to_document()
        assert set(doc) == {
            "userId",
            "timestamp",
            "tankLevel",
            "flowRate",
            "motorStatus",
            "pressure",
            "ph",
            "turbidity",
            "conductivity",
            "temperature",
            "leakDetected",
        }
        assert doc["leakDetected"] is True

    def test_from_document(self, make_reading) -> None:
        reading = make_reading(tank_level=12.5)
        assert Reading.from_document(reading.to_document()) == reading

    def test_snake_case_construction(self) -> None:
        reading = Reading.model_validate(
            {
                "user_id": "u",
                "timestamp": 1.0,
                "tank_level": 1.0,
                "flow_rate": 1.0,
                "motor_status": False,
                "pressure": 2.5,
                "ph": 7.0,
                "turbidity": 1.2,
                "conductivity": 300,
                "temperature": 25.0,
            }
        )
        assert reading.leak_detected is False

    def test_is_frozen(self, make_reading) -> None:
        reading = make_reading()
        with pytest.raises(ValidationError):
            reading.tank_level = 10.0

    @pytest.mark.parametrize(
        "overrides",
        [{"tank_level": 100.1}, {"tank_level": -0.1}, {"flow_rate": -1.0}, {"user_id": ""}],
    )
    def test_rejects_invalid_fields(self, make_reading, overrides: dict) -> None:
        with pytest.raises(ValidationError):
            make_reading(**overrides)

    def test_missing_field_rejected(self, make_reading) -> None:
        doc = make_reading().to_document()
        del doc["flowRate"]
        with pytest.raises(ValidationError):
            Reading.from_document(doc)


# -----------------------------------------------------------------------
# SimulationState
# -----------------------------------------------------------------------


class TestSimulationState:
    def test_to_reading_copies_sensor_fields(self) -> None:
        state = SimulationState(tank_level=42.0, motor_status=True, leak_detected=True)
        reading = state.to_reading("u1", timestamp=5.0)
        assert reading.user_id == "u1"
        assert reading.timestamp == 5.0
        assert reading.tank_level == 42.0
        assert reading.motor_status is True
        assert reading.leak_detected is True

    def test_to_reading_stamps_current_time(self) -> None:
        before = time.time()
        reading = SimulationState().to_reading("u1")
        assert before <= reading.timestamp <= time.time()

    def test_model_copy_leaves_original(self) -> None:
        state = SimulationState()
        changed = state.model_copy(update={"tank_level": 10.0})
        assert state.tank_level == 75.0
        assert changed.tank_level == 10.0


# -----------------------------------------------------------------------
# Supporting models
# -----------------------------------------------------------------------


class TestSupportingModels:
    def test_bill_document(self) -> None:
        doc = Bill(user_id="u1", date=3.0).to_document()
        assert doc == {"userId": "u1", "amount": 0.0, "date": 3.0}

    def test_sync_health_defaults(self) -> None:
        health = SyncHealth()
        assert (health.written, health.failed, health.dropped, health.pending) == (0, 0, 0, 0)
        assert health.degraded is False

    def test_settings_document_nests_camel_case_privacy(self) -> None:
        doc = UserSettings().to_document()
        assert doc["privacy"] == {
            "profileVisibility": "private",
            "dataSharing": False,
            "searchVisibility": False,
        }
        assert doc["notifications"]["email"] is True


# -----------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------


class TestErrors:
    def test_auth_error_default_message(self) -> None:
        err = AuthError(AuthErrorCode.RATE_LIMITED)
        assert err.message == "Too many attempts. Please try again later."
        assert str(err) == err.message

    def test_auth_error_from_string_code(self) -> None:
        err = AuthError("weak-password", message="custom")
        assert err.code is AuthErrorCode.WEAK_PASSWORD
        assert err.message == "custom"

    def test_hierarchy(self) -> None:
        assert issubclass(WriteError, BackendError)
        assert issubclass(BackendError, SaveDropsError)
        assert issubclass(AuthError, SaveDropsError)
