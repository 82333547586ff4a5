"""Simulator - runs the telemetry generator on a fixed tick and emits
each reading to the Data Backend through a :class:`TelemetryWriter`.

State machine::

    Stopped --start()--> Running --stop()--> Stopped
    any     --reset()--> Stopped (default state)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from savedrops import generator
from savedrops.backends.base import DataBackend
from savedrops.errors import SimulationNotRunningError
from savedrops.generator import DEFAULT_STATE, RandomSource, TelemetryGenerator
from savedrops.models import Reading, SimulationState, SyncHealth
from savedrops.session import Session
from savedrops.writer import TelemetryWriter

__all__ = ["Simulator"]

logger = logging.getLogger("savedrops.simulator")


class Simulator:
    """High-level API for the simulated water system.

    Example::

        sim = Simulator(backend, session, tick_period_s=2.0)
        await sim.start()
        sim.toggle_motor()
        ...
        await sim.close()

    Parameters:
        backend:
            Connected :class:`DataBackend` receiving the readings.
        session:
            Signed-in :class:`Session`; readings are stamped with its uid.
        tick_period_s:
            Seconds between ticks.
        max_pending_writes:
            Readings buffered while the backend is slow before the oldest
            are dropped.
        rng / seed:
            Random source for the generator, see :class:`TelemetryGenerator`.
    """

    def __init__(
        self,
        backend: DataBackend,
        session: Session,
        *,
        tick_period_s: float = 2.0,
        max_pending_writes: int = 32,
        rng: RandomSource | None = None,
        seed: int | None = None,
    ) -> None:
        if tick_period_s <= 0:
            raise ValueError("tick_period_s must be positive")
        self._session = session
        self._generator = TelemetryGenerator(rng=rng, seed=seed)
        self._writer = TelemetryWriter(backend, max_pending=max_pending_writes)
        self.tick_period_s = tick_period_s
        self._state = DEFAULT_STATE
        self._leak_latched = False
        self._user_id: str | None = None
        self._tick_task: asyncio.Task[None] | None = None
        self.tick_count = 0

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> SimulationState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def sync_health(self) -> SyncHealth:
        """Non-blocking view of telemetry delivery; see :class:`SyncHealth`."""
        return self._writer.health

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Begin periodic emission.  No-op when already running."""
        if self._state.is_running:
            return
        self._user_id = self._session.require_user().uid
        await self._writer.start()
        self._state = self._state.model_copy(update={"is_running": True})
        self._tick_task = asyncio.create_task(self._tick_loop(), name="simulator-ticks")
        logger.info("Simulation started (tick every %.1fs, user=%s)", self.tick_period_s, self._user_id)

    async def stop(self) -> None:
        """Halt emission.  Readings already handed to the writer still go out."""
        if not self._state.is_running:
            return
        self._state = self._state.model_copy(update={"is_running": False})
        if self._tick_task and not self._tick_task.done():
            self._tick_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._tick_task
        self._tick_task = None
        logger.info("Simulation stopped after %d ticks", self.tick_count)

    async def reset(self) -> None:
        """Stop and restore the default state."""
        await self.stop()
        self._state = DEFAULT_STATE
        self._leak_latched = False
        logger.info("Simulation reset")

    async def close(self) -> None:
        """Stop ticking, flush buffered readings and release the writer."""
        await self.stop()
        await self._writer.stop()

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self) -> Reading | None:
        """Run one generator step and emit its reading.

        Returns ``None`` (and changes nothing) while stopped.
        """
        if not self._state.is_running or self._user_id is None:
            return None
        new_state = self._generator.step(self._state, leak_latched=self._leak_latched)
        reading = new_state.to_reading(self._user_id)
        self._writer.submit(reading)
        self._state = new_state
        self.tick_count += 1
        return reading

    async def _tick_loop(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            next_at = loop.time() + self.tick_period_s
            while self._state.is_running:
                await asyncio.sleep(max(0.0, next_at - loop.time()))
                next_at += self.tick_period_s
                reading = self.tick()
                if reading is not None and self.tick_count % 30 == 0:
                    logger.debug(
                        "Tick %d - tank %.1f%%, flow %.1f L/min, leak=%s",
                        self.tick_count,
                        reading.tank_level,
                        reading.flow_rate,
                        reading.leak_detected,
                    )
        except asyncio.CancelledError:
            logger.debug("Tick loop cancelled")

    # ------------------------------------------------------------------
    # Manual controls (require a running simulation)
    # ------------------------------------------------------------------

    def toggle_motor(self) -> None:
        """Flip the pump; the change shows up in the next tick's reading."""
        self._require_running("toggle_motor")
        self._state = generator.toggle_motor(self._state)
        logger.info("Motor %s", "started" if self._state.motor_status else "stopped")

    def set_tank_level(self, level: float) -> None:
        self._require_running("set_tank_level")
        self._state = generator.set_tank_level(self._state, level)

    def simulate_leak(self) -> Reading:
        """Force a leak now and emit a reading without waiting for a tick."""
        self._require_running("simulate_leak")
        self._state = generator.simulate_leak(self._state)
        self._leak_latched = True
        reading = self._state.to_reading(self._user_id)
        self._writer.submit(reading)
        logger.warning("Leak simulated - flow forced to %.0f L/min", self._state.flow_rate)
        return reading

    def reset_leak(self) -> None:
        self._require_running("reset_leak")
        self._state = generator.reset_leak(self._state)
        self._leak_latched = False
        logger.info("Leak cleared")

    def _require_running(self, action: str) -> None:
        if not self._state.is_running:
            raise SimulationNotRunningError(f"{action}() needs a running simulation")
