"""Configuration loader for the YAML config format.

Parses YAML files with the following top-level sections::

    simulator:   # tick period, write buffer, seed, log level
    dashboard:   # history size
    backend:     # backend type plus constructor keys

Example:

.. code-block:: yaml

    simulator:
      tick_period_s: 2.0
      max_pending_writes: 32
      seed: 42

    dashboard:
      history_limit: 10

    backend:
      type: firebase
      credentials_path: service-account.json
      api_key: AIza...
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

__all__ = ["SaveDropsConfig", "load_yaml_config"]

logger = logging.getLogger("savedrops.config")


class SaveDropsConfig(BaseModel):
    """Parsed representation of the full YAML configuration.

    Attributes:
        tick_period_s: Seconds between generator ticks.
        max_pending_writes: Telemetry buffer size before drop-oldest.
        seed: Seed for the generator's random source (``None`` = random).
        log_level: Logging level string.
        history_limit: Readings loaded for the dashboard chart.
        backend: Raw dict passed to the backend factory.
    """

    tick_period_s: float = Field(default=2.0, gt=0)
    max_pending_writes: int = Field(default=32, ge=1)
    seed: int | None = None
    log_level: str = "INFO"
    history_limit: int = Field(default=10, ge=1)
    backend: dict[str, Any] = Field(default_factory=lambda: {"type": "memory"})


def load_yaml_config(path: str | Path) -> SaveDropsConfig:
    """Load and validate a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    sim_section = raw.get("simulator", {}) or {}
    dash_section = raw.get("dashboard", {}) or {}
    backend_section = raw.get("backend") or {"type": "memory"}

    config = SaveDropsConfig(
        tick_period_s=float(sim_section.get("tick_period_s", 2.0)),
        max_pending_writes=int(sim_section.get("max_pending_writes", 32)),
        seed=sim_section.get("seed"),
        log_level=str(sim_section.get("log_level", "INFO")).upper(),
        history_limit=int(dash_section.get("history_limit", 10)),
        backend=dict(backend_section),
    )

    logger.info(
        "Loaded config: backend=%s, tick=%.1fs, history=%d",
        config.backend.get("type"),
        config.tick_period_s,
        config.history_limit,
    )
    return config
