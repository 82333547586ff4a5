"""CLI entry point for the Save Drops simulator.

Usage::

    savedrops run --duration 20
    savedrops run --duration 30 --motor-on --leak-at 10
    savedrops run --config savedrops.yaml --email me@example.com --password secret
    savedrops list-backends
    savedrops init-config --output savedrops.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
import textwrap

from savedrops.models import DashboardMetrics

# ---------------------------------------------------------------------------
# Sample YAML config template for init-config
# ---------------------------------------------------------------------------
_SAMPLE_CONFIG = """\
# Save Drops simulator configuration

simulator:
  tick_period_s: 2.0                  # seconds between readings
  max_pending_writes: 32              # buffered readings before the oldest are dropped
  # seed: 42                          # optional: reproducible random draws
  # log_level: INFO                   # DEBUG, INFO, WARNING, ERROR

dashboard:
  history_limit: 10                   # readings shown in the flow chart

backend:
  type: memory                        # memory or firebase

  # type: firebase
  # credentials_path: service-account.json
  # api_key: your-web-api-key
  # timeout_s: 30
"""

_DEMO_EMAIL = "demo@savedrops.local"
_DEMO_PASSWORD = "demo-password"


# ======================================================================
# Main entry point
# ======================================================================


def main(argv: list[str] | None = None) -> None:
    epilog = textwrap.dedent("""\
        examples:
          savedrops run --duration 20
          savedrops run --duration 30 --motor-on --leak-at 10
          savedrops run --config savedrops.yaml --email me@example.com --password secret
          savedrops list-backends
          savedrops init-config --output savedrops.yaml
    """)

    parser = argparse.ArgumentParser(
        prog="savedrops",
        description="Simulate a water-monitoring device and watch its dashboard.",
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", title="commands")

    # -- run ---------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        help="Run the simulator and a live dashboard side by side.",
    )
    run_parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to YAML config file.",
    )
    run_parser.add_argument(
        "--email",
        type=str,
        default=_DEMO_EMAIL,
        help=f"Account email (default: {_DEMO_EMAIL}).",
    )
    run_parser.add_argument(
        "--password",
        type=str,
        default=_DEMO_PASSWORD,
        help="Account password.",
    )
    run_parser.add_argument(
        "--create-user",
        action="store_true",
        help="Sign up instead of signing in (always done for the memory backend).",
    )
    run_parser.add_argument(
        "--duration",
        "-d",
        type=float,
        default=None,
        help="Run duration in seconds (default: indefinite, Ctrl-C to stop).",
    )
    run_parser.add_argument(
        "--tick",
        type=float,
        default=None,
        help="Seconds between readings (overrides the config file).",
    )
    run_parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for reproducible readings.",
    )
    run_parser.add_argument(
        "--motor-on",
        action="store_true",
        help="Start the pump right after the simulation starts.",
    )
    run_parser.add_argument(
        "--leak-at",
        type=float,
        default=None,
        help="Simulate a leak after this many seconds.",
    )
    run_parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from config, else INFO).",
    )

    # -- list-backends -----------------------------------------------------
    subparsers.add_parser(
        "list-backends",
        help="List available data backends and install instructions.",
    )

    # -- init-config -------------------------------------------------------
    init_parser = subparsers.add_parser(
        "init-config",
        help="Generate a sample YAML configuration file.",
    )
    init_parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Write config to this file instead of stdout.",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return

    # -- Dispatch ----------------------------------------------------------
    if args.command == "run":
        _cmd_run(args)
    elif args.command == "list-backends":
        _cmd_list_backends()
    elif args.command == "init-config":
        _cmd_init_config(args.output)
    else:
        parser.print_help()


# ======================================================================
# Command implementations
# ======================================================================


def _cmd_run(args: argparse.Namespace) -> None:
    """Execute the simulator with a dashboard attached."""
    from savedrops.config import SaveDropsConfig, load_yaml_config

    # Handlers first so the config loader's own log line is not lost;
    # the level is finalised once the file has been read.
    logging.basicConfig(
        level=getattr(logging, args.log_level or "INFO"),
        format="%(asctime)s %(name)-26s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )

    cfg = load_yaml_config(args.config) if args.config else SaveDropsConfig()
    overrides = {}
    if args.tick is not None:
        overrides["tick_period_s"] = args.tick
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    cfg = cfg.model_copy(update=overrides)
    logging.getLogger().setLevel(getattr(logging, cfg.log_level, logging.INFO))

    try:
        asyncio.run(
            _run_async(
                cfg,
                email=args.email,
                password=args.password,
                create_user=args.create_user,
                duration=args.duration,
                motor_on=args.motor_on,
                leak_at=args.leak_at,
            )
        )
    except KeyboardInterrupt:
        logging.getLogger("savedrops").info("Interrupted by user")


async def _run_async(
    cfg,
    *,
    email: str,
    password: str,
    create_user: bool,
    duration: float | None,
    motor_on: bool,
    leak_at: float | None,
) -> None:
    from savedrops.backends.factory import create_backend
    from savedrops.dashboard import DashboardReader, format_clock
    from savedrops.errors import AuthError, ValidationError
    from savedrops.session import Session
    from savedrops.simulator import Simulator

    logger = logging.getLogger("savedrops")

    backend = create_backend(cfg.backend)
    await backend.connect()
    session = Session(backend)
    session.init()

    try:
        if create_user or cfg.backend.get("type", "memory") == "memory":
            await session.sign_up(email, password, password)
        else:
            await session.sign_in(email, password)
    except (AuthError, ValidationError) as exc:
        await backend.close()
        print(f"Error: {getattr(exc, 'message', exc)}")
        sys.exit(1)

    sim = Simulator(
        backend,
        session,
        tick_period_s=cfg.tick_period_s,
        max_pending_writes=cfg.max_pending_writes,
        seed=cfg.seed,
    )
    dashboard = DashboardReader(
        backend,
        session,
        history_limit=cfg.history_limit,
        on_change=_print_metrics,
    )

    # NotImplementedError: Windows; RuntimeError: not in the main thread.
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop_event.set)

    try:
        await dashboard.mount()
        await sim.start()
        if motor_on:
            sim.toggle_motor()

        start = loop.time()
        leaked = False
        while not stop_event.is_set():
            elapsed = loop.time() - start
            if duration is not None and elapsed >= duration:
                logger.info("Duration reached (%.1fs) - stopping", duration)
                break
            if leak_at is not None and not leaked and elapsed >= leak_at:
                sim.simulate_leak()
                leaked = True
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=0.1)
    finally:
        await sim.close()
        await dashboard.refresh_history()
        await dashboard.unmount()

        health = sim.sync_health
        print(f"\nFlow history ({len(dashboard.history)} readings):")
        for point in dashboard.history:
            print(f"  {point.time}  {point.flow:>6.1f} L/min")
        print(
            f"Readings written: {health.written}, failed: {health.failed}, "
            f"dropped: {health.dropped}"
            f"{'  (sync degraded)' if health.degraded or dashboard.sync_degraded else ''}"
        )
        if dashboard.metrics.last_update is not None:
            print(f"Last update: {format_clock(dashboard.metrics.last_update)}")

        await session.teardown()
        await backend.close()


def _print_metrics(metrics: DashboardMetrics) -> None:
    print(
        f"tank {metrics.tank_level:>5.1f}%  "
        f"flow {metrics.flow_rate:>6.1f} L/min  "
        f"motor {'ON ' if metrics.motor_status else 'OFF'}  "
        f"bill ${metrics.bill:.2f}"
        f"{'  LEAK DETECTED' if metrics.leak_alert else ''}"
    )


# -- list-backends ----------------------------------------------------------


def _cmd_list_backends() -> None:
    from savedrops.backends.factory import _BACKEND_REGISTRY, BACKEND_EXTRAS

    print(f"\n{'Backend':<12} {'Class':<18} {'Install Extra'}")
    print("-" * 58)
    for name, (_module_path, class_name) in _BACKEND_REGISTRY.items():
        extra = BACKEND_EXTRAS.get(name)
        extra_str = "(built-in)" if extra is None else f"pip install savedrops[{extra}]"
        print(f"{name:<12} {class_name:<18} {extra_str}")
    print()


# -- init-config ------------------------------------------------------------


def _cmd_init_config(output_path: str | None) -> None:
    if output_path:
        from pathlib import Path

        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        Path(output_path).write_text(_SAMPLE_CONFIG)
        print(f"Sample config written to {output_path}")
    else:
        print(_SAMPLE_CONFIG)


# ======================================================================
if __name__ == "__main__":
    main()
