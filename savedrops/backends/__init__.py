"""Data backends for the Save Drops simulator.

Import the backend you need directly from this package::

    from savedrops.backends import InMemoryBackend, FirebaseBackend
"""

from __future__ import annotations

import importlib
from typing import Any

from savedrops.backends.base import DataBackend, SubscriptionCallback
from savedrops.backends.memory import InMemoryBackend

# FirebaseBackend needs the optional ``firebase`` extra and is loaded lazily.

__all__ = [
    "DataBackend",
    "InMemoryBackend",
    "SubscriptionCallback",
]


def __getattr__(name: str) -> Any:
    """Lazy-import backends that require optional dependencies."""
    _lazy = {
        "FirebaseBackend": "savedrops.backends.firebase",
    }
    if name in _lazy:
        mod = importlib.import_module(_lazy[name])
        return getattr(mod, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
