#!/usr/bin/env python3
"""Simulator + dashboard examples -- 3 cases demonstrating a plain run,
a leak drill, and a motor toggle issued from the dashboard.

Directly runnable (uses the in-memory backend, no external services).

Usage::

    python examples/scenarios/leak_drill_example.py           # Case 1 (default)
    python examples/scenarios/leak_drill_example.py --case 2  # Leak drill
    python examples/scenarios/leak_drill_example.py --case 3  # Dashboard motor toggle
"""

from __future__ import annotations

import argparse
import asyncio


async def _signed_in():
    from savedrops import Session
    from savedrops.backends import InMemoryBackend

    backend = InMemoryBackend()
    await backend.connect()
    session = Session(backend)
    await session.sign_up("drill@example.com", "drill-password", "drill-password")
    return backend, session


def _show(metrics) -> None:
    print(
        f"  tank {metrics.tank_level:>5.1f}%  flow {metrics.flow_rate:>6.1f} L/min  "
        f"motor {'ON ' if metrics.motor_status else 'OFF'}"
        f"{'  ** LEAK **' if metrics.leak_alert else ''}"
    )


# ---------------------------------------------------------------------------
# Case 1: Plain run -- pump on, tank drains
# ---------------------------------------------------------------------------


async def run_case_1() -> None:
    """Start the pump and watch the tank drain half a percent per tick.

    Knobs demonstrated:
      - tick_period_s=0.5  -> two readings per second
      - seed=7             -> same numbers every run
    """
    from savedrops import DashboardReader, Simulator

    print("=== Case 1: Pump on ===\n")
    backend, session = await _signed_in()
    dashboard = DashboardReader(backend, session, on_change=_show)
    await dashboard.mount()

    sim = Simulator(backend, session, tick_period_s=0.5, seed=7)
    await sim.start()
    sim.toggle_motor()
    await asyncio.sleep(4)
    await sim.close()

    await dashboard.refresh_history()
    print(f"\n  Chart points: {[p.flow for p in dashboard.history]}")
    await dashboard.unmount()


# ---------------------------------------------------------------------------
# Case 2: Leak drill -- force a leak, then clear it
# ---------------------------------------------------------------------------


async def run_case_2() -> None:
    """Force a leak, keep it flagged for a few ticks, then reset it.

    The leak reading is emitted immediately; later ticks keep
    ``leakDetected`` set until ``reset_leak()``.
    """
    from savedrops import DashboardReader, Simulator

    print("=== Case 2: Leak drill ===\n")
    backend, session = await _signed_in()
    dashboard = DashboardReader(backend, session, on_change=_show)
    await dashboard.mount()

    sim = Simulator(backend, session, tick_period_s=0.5, seed=11)
    await sim.start()
    await asyncio.sleep(1)
    print("\n  -> simulate_leak()")
    sim.simulate_leak()
    await asyncio.sleep(2)
    print("\n  -> reset_leak()")
    sim.reset_leak()
    await asyncio.sleep(1.5)
    await sim.close()
    await dashboard.unmount()

    health = sim.sync_health
    print(f"\n  written={health.written} failed={health.failed} dropped={health.dropped}")


# ---------------------------------------------------------------------------
# Case 3: Dashboard toggle -- append-only motor control
# ---------------------------------------------------------------------------


async def run_case_3() -> None:
    """Flip the pump from the dashboard side.

    The toggle appends a new reading; nothing already stored changes.
    """
    from savedrops import DashboardReader, Simulator

    print("=== Case 3: Dashboard motor toggle ===\n")
    backend, session = await _signed_in()
    dashboard = DashboardReader(backend, session, on_change=_show)
    await dashboard.mount()

    sim = Simulator(backend, session, tick_period_s=0.5, seed=3)
    await sim.start()
    await asyncio.sleep(1)
    await sim.stop()

    print("\n  -> dashboard.toggle_motor()")
    await dashboard.toggle_motor()
    await sim.close()

    docs = await backend.query("readings", where={"userId": session.user.uid}, order_by="timestamp")
    print(f"\n  Stored readings: {len(docs)}, motor states: {[d.data['motorStatus'] for d in docs]}")
    await dashboard.unmount()


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulator and dashboard examples")
    parser.add_argument(
        "--case", type=int, default=1, choices=[1, 2, 3], help="Which example case to run (default: 1)"
    )
    args = parser.parse_args()

    cases = {
        1: run_case_1,
        2: run_case_2,
        3: run_case_3,
    }
    asyncio.run(cases[args.case]())


if __name__ == "__main__":
    main()
