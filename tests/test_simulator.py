"""Tests for savedrops.simulator - lifecycle, ticks, manual controls, sync health."""

from __future__ import annotations

import asyncio

import pytest

from savedrops.backends.memory import InMemoryBackend
from savedrops.errors import NotAuthenticatedError, SimulationNotRunningError, WriteError
from savedrops.models import Reading, SimulationState
from savedrops.session import Session
from savedrops.simulator import Simulator

# -----------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------


class _FractionRandom:
    def __init__(self, fraction: float) -> None:
        self.fraction = fraction

    def uniform(self, a: float, b: float) -> float:
        return a + (b - a) * self.fraction


class _FailingBackend(InMemoryBackend):
    """Memory backend whose appends to ``readings`` always fail."""

    async def append(self, collection: str, record: dict) -> str:
        if collection == "readings":
            raise WriteError("network unreachable")
        return await super().append(collection, record)


async def _signed_in(backend: InMemoryBackend | None = None) -> tuple[InMemoryBackend, Session]:
    backend = backend or InMemoryBackend()
    await backend.connect()
    session = Session(backend)
    await session.sign_up("tester@example.com", "secret1", "secret1")
    return backend, session


async def _stored_readings(backend: InMemoryBackend, uid: str) -> list[Reading]:
    docs = await backend.query("readings", where={"userId": uid}, order_by="timestamp")
    return [Reading.from_document(d.data) for d in docs]


# -----------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------


class TestSimulatorLifecycle:
    @pytest.mark.asyncio
    async def test_initial_state_is_stopped_default(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session)
        assert sim.state == SimulationState()
        assert not sim.is_running

    @pytest.mark.asyncio
    async def test_start_and_stop(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session, tick_period_s=10.0)
        await sim.start()
        assert sim.is_running
        await sim.stop()
        assert not sim.is_running
        await sim.close()

    @pytest.mark.asyncio
    async def test_start_requires_signed_in_user(self) -> None:
        backend = InMemoryBackend()
        await backend.connect()
        sim = Simulator(backend, Session(backend))
        with pytest.raises(NotAuthenticatedError):
            await sim.start()

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session, tick_period_s=10.0)
        await sim.start()
        task = sim._tick_task
        await sim.start()
        assert sim._tick_task is task
        await sim.close()

    @pytest.mark.asyncio
    async def test_stop_twice_is_idempotent(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session, tick_period_s=10.0, rng=_FractionRandom(0.5))
        await sim.start()
        sim.tick()
        await sim.stop()
        once = (sim.state, sim.tick_count, sim.is_running)
        await sim.stop()
        assert (sim.state, sim.tick_count, sim.is_running) == once
        await sim.close()

    @pytest.mark.asyncio
    async def test_reset_restores_defaults_and_stops(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session, tick_period_s=0.01, rng=_FractionRandom(0.5))
        await sim.start()
        sim.toggle_motor()
        sim.set_tank_level(10)
        sim.simulate_leak()
        await asyncio.sleep(0.05)

        await sim.reset()
        assert sim.state == SimulationState()
        assert not sim.is_running

        count = sim.tick_count
        await asyncio.sleep(0.05)
        assert sim.tick_count == count
        await sim.close()

    def test_rejects_non_positive_tick(self) -> None:
        backend = InMemoryBackend()
        with pytest.raises(ValueError):
            Simulator(backend, Session(backend), tick_period_s=0)


# -----------------------------------------------------------------------
# Ticks and emission
# -----------------------------------------------------------------------


class TestSimulatorTicks:
    @pytest.mark.asyncio
    async def test_tick_while_stopped_does_nothing(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session)
        assert sim.tick() is None
        assert sim.state == SimulationState()

    @pytest.mark.asyncio
    async def test_scenario_motor_off_one_tick(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session, tick_period_s=10.0, rng=_FractionRandom(1.0))
        await sim.start()
        reading = sim.tick()
        assert reading is not None
        assert 75.0 <= reading.tank_level <= 75.2
        assert 0.0 <= reading.flow_rate <= 5.0
        assert reading.leak_detected is False
        assert reading.user_id == session.user.uid
        assert sim.state.tank_level == reading.tank_level
        await sim.close()

    @pytest.mark.asyncio
    async def test_tick_appends_to_backend(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session, tick_period_s=10.0, rng=_FractionRandom(0.5))
        await sim.start()
        first = sim.tick()
        second = sim.tick()
        await sim.close()

        stored = await _stored_readings(backend, session.user.uid)
        assert [r.tank_level for r in stored] == [first.tank_level, second.tank_level]
        assert sim.sync_health.written == 2
        assert not sim.sync_health.degraded

    @pytest.mark.asyncio
    async def test_periodic_ticks(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session, tick_period_s=0.02, seed=1)
        await sim.start()
        await asyncio.sleep(0.15)
        await sim.close()
        assert sim.tick_count >= 3
        stored = await _stored_readings(backend, session.user.uid)
        assert len(stored) == sim.tick_count
        for reading in stored:
            assert 0.0 <= reading.tank_level <= 100.0

    @pytest.mark.asyncio
    async def test_motor_toggle_takes_effect_next_tick(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session, tick_period_s=10.0, rng=_FractionRandom(0.0))
        await sim.start()
        sim.toggle_motor()
        assert sim.state.motor_status is True
        reading = sim.tick()
        assert reading.motor_status is True
        assert reading.tank_level == 74.5
        assert reading.flow_rate == 45.0
        await sim.close()


# -----------------------------------------------------------------------
# Manual controls
# -----------------------------------------------------------------------


class TestSimulatorControls:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["toggle_motor", "simulate_leak", "reset_leak"])
    async def test_controls_need_running_simulation(self, action: str) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session)
        with pytest.raises(SimulationNotRunningError):
            getattr(sim, action)()

    @pytest.mark.asyncio
    async def test_set_tank_level_needs_running_simulation(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session)
        with pytest.raises(SimulationNotRunningError):
            sim.set_tank_level(10)

    @pytest.mark.asyncio
    async def test_set_tank_level_clamps_immediately(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session, tick_period_s=10.0)
        await sim.start()
        sim.set_tank_level(140)
        assert sim.state.tank_level == 100.0
        sim.set_tank_level(-3)
        assert sim.state.tank_level == 0.0
        await sim.close()

    @pytest.mark.asyncio
    async def test_simulate_leak_emits_reading_immediately(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session, tick_period_s=10.0)
        await sim.start()
        sim.toggle_motor()
        reading = sim.simulate_leak()
        assert reading.flow_rate == 120.0
        assert reading.motor_status is False
        assert reading.leak_detected is True
        await sim.close()

        stored = await _stored_readings(backend, session.user.uid)
        assert len(stored) == 1
        assert stored[0].flow_rate == 120.0
        assert stored[0].leak_detected is True

    @pytest.mark.asyncio
    async def test_leak_stays_flagged_until_reset(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session, tick_period_s=10.0, rng=_FractionRandom(0.5))
        await sim.start()
        sim.simulate_leak()
        for _ in range(3):
            reading = sim.tick()
            assert reading.leak_detected is True
            assert 0.0 <= reading.flow_rate <= 5.0

        sim.reset_leak()
        assert sim.state.leak_detected is False
        assert sim.state.flow_rate == 2.0
        assert sim.tick().leak_detected is False
        await sim.close()

    @pytest.mark.asyncio
    async def test_reset_leak_with_motor_running(self) -> None:
        backend, session = await _signed_in()
        sim = Simulator(backend, session, tick_period_s=10.0)
        await sim.start()
        sim.simulate_leak()
        sim.toggle_motor()
        sim.reset_leak()
        assert sim.state.flow_rate == 50.0
        assert sim.state.leak_detected is False
        await sim.close()


# -----------------------------------------------------------------------
# Failure handling
# -----------------------------------------------------------------------


class TestSimulatorSyncHealth:
    @pytest.mark.asyncio
    async def test_failed_write_keeps_state_and_flags_degraded(self) -> None:
        backend, session = await _signed_in(_FailingBackend())
        sim = Simulator(backend, session, tick_period_s=10.0, rng=_FractionRandom(1.0))
        await sim.start()
        reading = sim.tick()
        await sim.close()

        assert sim.state.tank_level == reading.tank_level == 75.2
        health = sim.sync_health
        assert health.failed == 1
        assert health.written == 0
        assert health.degraded
        assert "network unreachable" in health.last_error

    @pytest.mark.asyncio
    async def test_failed_write_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        backend, session = await _signed_in(_FailingBackend())
        sim = Simulator(backend, session, tick_period_s=10.0)
        await sim.start()
        sim.tick()
        await sim.close()
        assert "Telemetry write failed" in caplog.text
