"""Backend factory - creates backend instances from configuration dicts.

Used by the config-driven mode to pick a backend declaratively::

    backend:
      type: firebase
      credentials_path: service-account.json
      api_key: AIza...
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from savedrops.backends.base import DataBackend

__all__ = ["BACKEND_EXTRAS", "create_backend", "register_backend"]

logger = logging.getLogger("savedrops.backends.factory")

# Registry of type names -> (module_path, class_name)
_BACKEND_REGISTRY: dict[str, tuple[str, str]] = {
    "memory": ("savedrops.backends.memory", "InMemoryBackend"),
    "firebase": ("savedrops.backends.firebase", "FirebaseBackend"),
}

# Install extra needed per backend type (None = built-in)
BACKEND_EXTRAS: dict[str, str | None] = {
    "memory": None,
    "firebase": "firebase",
}


def create_backend(config: dict[str, Any]) -> DataBackend:
    """Create a backend from a configuration dict.

    The dict must contain a ``"type"`` key matching a registered backend
    name.  All other keys are forwarded to the backend constructor.

    Returns:
        A constructed :class:`DataBackend` (not yet connected).
    """
    config = dict(config)
    backend_type = config.pop("type", None)

    if backend_type is None:
        raise ValueError("Backend config must include a 'type' key")

    backend_type = backend_type.lower().strip()

    if backend_type not in _BACKEND_REGISTRY:
        raise ValueError(
            f"Unknown backend type '{backend_type}'.  "
            f"Available: {sorted(_BACKEND_REGISTRY)}"
        )

    module_path, class_name = _BACKEND_REGISTRY[backend_type]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)

    logger.debug("Creating %s with keys: %s", class_name, sorted(config))
    return cls(**config)


def register_backend(name: str, module_path: str, class_name: str) -> None:
    """Register a custom backend type for config-driven instantiation.

    Example::

        from savedrops.backends.factory import register_backend
        register_backend("postgres", "mypackage.backends", "PostgresBackend")
    """
    _BACKEND_REGISTRY[name.lower().strip()] = (module_path, class_name)
