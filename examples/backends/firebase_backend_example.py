#!/usr/bin/env python3
"""FirebaseBackend example -- stream readings into Firestore and read them
back through a live dashboard subscription.

Requires the ``firebase`` extra and a Firebase project::

    pip install savedrops[firebase]

Usage::

    python examples/backends/firebase_backend_example.py \\
        --credentials service-account.json --api-key AIza... \\
        --email me@example.com --password secret123

Firestore needs a composite index on ``readings`` (userId asc, timestamp
desc) for the dashboard query; the first run prints a link to create it.
"""

from __future__ import annotations

import argparse
import asyncio
import logging


async def run(args: argparse.Namespace) -> None:
    from savedrops import DashboardReader, Session, Simulator
    from savedrops.backends import FirebaseBackend
    from savedrops.errors import AuthError

    backend = FirebaseBackend(credentials_path=args.credentials, api_key=args.api_key)
    await backend.connect()
    session = Session(backend)

    try:
        if args.create_user:
            await session.sign_up(args.email, args.password, args.password)
        else:
            await session.sign_in(args.email, args.password)
    except AuthError as exc:
        print(f"  Sign-in failed: {exc.message}")
        await backend.close()
        return

    dashboard = DashboardReader(
        backend,
        session,
        on_change=lambda m: print(f"  tank {m.tank_level:>5.1f}%  flow {m.flow_rate:>6.1f} L/min"),
    )
    await dashboard.mount()

    sim = Simulator(backend, session, tick_period_s=2.0)
    await sim.start()
    await asyncio.sleep(args.duration)
    await sim.close()

    health = sim.sync_health
    print(f"\n  written={health.written} failed={health.failed} dropped={health.dropped}")
    await dashboard.unmount()
    await session.teardown()
    await backend.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="FirebaseBackend example")
    parser.add_argument("--credentials", required=True, help="Service-account JSON path")
    parser.add_argument("--api-key", required=True, help="Web API key")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--create-user", action="store_true")
    parser.add_argument("--duration", type=float, default=20.0)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)-26s %(levelname)-7s %(message)s")
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
