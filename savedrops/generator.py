"""Telemetry generator - computes the next simulation state each tick.

Pure state transitions with no I/O: :class:`Simulator` owns the schedule
and the emission, this module owns the numbers.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Protocol

from savedrops.models import SimulationState

__all__ = [
    "DEFAULT_STATE",
    "LEAK_FLOW_THRESHOLD",
    "RandomSource",
    "TelemetryGenerator",
    "clamp",
    "detect_leak",
    "reset_leak",
    "set_tank_level",
    "simulate_leak",
    "toggle_motor",
]

logger = logging.getLogger("savedrops.generator")

DEFAULT_STATE = SimulationState()

# Flow (L/min) above which a stopped pump is reported as a leak
LEAK_FLOW_THRESHOLD = 15.0

TANK_DRAIN_PER_TICK = 0.5
TANK_FILL_PER_TICK = 0.2
LEAK_FLOW_RATE = 120.0

PUMP_FLOW_RANGE = (45.0, 65.0)
IDLE_FLOW_RANGE = (0.0, 5.0)
PRESSURE_RANGE = (2.0, 3.0)
PH_RANGE = (6.8, 7.6)
TURBIDITY_RANGE = (0.8, 1.6)
CONDUCTIVITY_RANGE = (280.0, 380.0)
TEMPERATURE_RANGE = (24.0, 27.0)


class RandomSource(Protocol):
    """Anything with ``uniform(a, b)``; ``random.Random`` satisfies it."""

    def uniform(self, a: float, b: float) -> float: ...


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def detect_leak(motor_before: bool, flow_after: float) -> bool:
    """Leak heuristic: flow above the threshold while the pump was off.

    *motor_before* is the motor status going into the tick and *flow_after*
    the freshly drawn flow, so a tick that follows ``toggle_motor()`` judges
    the new flow against the old motor state.
    """
    return not motor_before and flow_after > LEAK_FLOW_THRESHOLD


class TelemetryGenerator:
    """Produces the next :class:`SimulationState` from the previous one.

    Parameters:
        rng:
            Random source used for every draw.  Defaults to a private
            ``random.Random`` seeded with *seed*.
        seed:
            Seed for the default source; ignored when *rng* is given.
    """

    def __init__(self, rng: RandomSource | None = None, seed: int | None = None) -> None:
        self._rng = rng if rng is not None else random.Random(seed)

    def step(self, state: SimulationState, *, leak_latched: bool = False) -> SimulationState:
        """Advance *state* by one tick.

        ``leak_latched`` keeps ``leak_detected`` raised after a manual
        ``simulate_leak()`` until it is reset.
        """
        rng = self._rng
        delta = -TANK_DRAIN_PER_TICK if state.motor_status else TANK_FILL_PER_TICK
        tank_level = round(clamp(state.tank_level + delta), 1)

        flow_range = PUMP_FLOW_RANGE if state.motor_status else IDLE_FLOW_RANGE
        flow_rate = round(rng.uniform(*flow_range), 1)

        leak = detect_leak(state.motor_status, flow_rate) or leak_latched
        if leak and not state.leak_detected:
            logger.debug("Leak flagged: motor off, flow %.1f L/min", flow_rate)

        return state.model_copy(
            update={
                "tank_level": tank_level,
                "flow_rate": flow_rate,
                "pressure": round(rng.uniform(*PRESSURE_RANGE), 1),
                "ph": round(rng.uniform(*PH_RANGE), 1),
                "turbidity": round(rng.uniform(*TURBIDITY_RANGE), 1),
                "conductivity": math.floor(rng.uniform(*CONDUCTIVITY_RANGE)),
                "temperature": round(rng.uniform(*TEMPERATURE_RANGE), 1),
                "leak_detected": leak,
            }
        )


# ----------------------------------------------------------------------
# Manual overrides
# ----------------------------------------------------------------------


def toggle_motor(state: SimulationState) -> SimulationState:
    return state.model_copy(update={"motor_status": not state.motor_status})


def set_tank_level(state: SimulationState, level: float) -> SimulationState:
    return state.model_copy(update={"tank_level": clamp(float(level))})


def simulate_leak(state: SimulationState) -> SimulationState:
    return state.model_copy(
        update={"flow_rate": LEAK_FLOW_RATE, "motor_status": False, "leak_detected": True}
    )


def reset_leak(state: SimulationState) -> SimulationState:
    return state.model_copy(
        update={"leak_detected": False, "flow_rate": 50.0 if state.motor_status else 2.0}
    )
