"""Save Drops - a simulated water-monitoring device and its dashboard.

Quick start::

    from savedrops import DashboardReader, Session, Simulator
    from savedrops.backends import InMemoryBackend

    backend = InMemoryBackend()
    await backend.connect()
    session = Session(backend)
    await session.sign_up("me@example.com", "secret1", "secret1")

    dashboard = DashboardReader(backend, session)
    await dashboard.mount()

    sim = Simulator(backend, session, tick_period_s=2.0)
    await sim.start()
"""

from __future__ import annotations

from savedrops.dashboard import DashboardReader
from savedrops.generator import TelemetryGenerator
from savedrops.models import Reading, SimulationState
from savedrops.profile import ProfileService, SettingsService
from savedrops.session import Session
from savedrops.simulator import Simulator

__all__ = [
    "DashboardReader",
    "ProfileService",
    "Reading",
    "Session",
    "SettingsService",
    "SimulationState",
    "Simulator",
    "TelemetryGenerator",
]

__version__ = "0.1.0"
