#!/usr/bin/env python3
"""YAML config-driven example -- load the simulator configuration from a
YAML file and build the backend with the backend factory.

Directly runnable with the bundled config (in-memory backend).

Usage::

    python examples/scenarios/yaml_config_example.py

Equivalent CLI::

    savedrops run --config examples/configs/savedrops.yaml --duration 10
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path


async def _run(cfg) -> None:
    from savedrops import DashboardReader, Session, Simulator
    from savedrops.backends.factory import create_backend

    backend = create_backend(cfg.backend)
    await backend.connect()
    session = Session(backend)
    await session.sign_up("yaml@example.com", "yaml-password", "yaml-password")

    dashboard = DashboardReader(backend, session, history_limit=cfg.history_limit)
    await dashboard.mount()

    sim = Simulator(
        backend,
        session,
        tick_period_s=cfg.tick_period_s,
        max_pending_writes=cfg.max_pending_writes,
        seed=cfg.seed,
    )
    await sim.start()
    await asyncio.sleep(cfg.tick_period_s * 5 + 0.1)
    await sim.close()

    await dashboard.refresh_history()
    for point in dashboard.history:
        print(f"  {point.time}  {point.flow:>6.1f} L/min")
    await dashboard.unmount()
    await backend.close()


def main() -> None:
    print("=== YAML Config-Driven Example ===\n")

    # Resolve the config file relative to this script
    config_path = Path(__file__).parent.parent / "configs" / "savedrops.yaml"

    if not config_path.exists():
        print(f"  Config file not found: {config_path}")
        return

    print(f"  Config file: {config_path}\n")

    from savedrops.config import load_yaml_config

    cfg = load_yaml_config(config_path)

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s %(name)-26s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )

    print(f"  Backend:        {cfg.backend.get('type')}")
    print(f"  Tick period:    {cfg.tick_period_s}s")
    print(f"  Write buffer:   {cfg.max_pending_writes}")
    print(f"  History limit:  {cfg.history_limit}")
    print()

    asyncio.run(_run(cfg))


if __name__ == "__main__":
    main()
