"""Shared pytest configuration."""

from __future__ import annotations

import pytest

from savedrops.models import Reading


@pytest.fixture
def make_reading():
    """Factory for sample :class:`Reading` objects."""

    def _make(user_id: str = "user-1", timestamp: float = 1_700_000_000.0, **overrides) -> Reading:
        fields = {
            "user_id": user_id,
            "timestamp": timestamp,
            "tank_level": 75.0,
            "flow_rate": 3.0,
            "motor_status": False,
            "pressure": 2.5,
            "ph": 7.0,
            "turbidity": 1.2,
            "conductivity": 300,
            "temperature": 25.0,
            "leak_detected": False,
        }
        fields.update(overrides)
        return Reading(**fields)

    return _make
