"""Tests for savedrops.backends.factory - create_backend and register_backend."""

from __future__ import annotations

import pytest

from savedrops.backends.base import DataBackend
from savedrops.backends.factory import _BACKEND_REGISTRY, BACKEND_EXTRAS, create_backend, register_backend
from savedrops.backends.memory import InMemoryBackend

# -----------------------------------------------------------------------
# create_backend
# -----------------------------------------------------------------------


class TestCreateBackend:
    """create_backend() creates typed backend instances from config dicts."""

    def test_create_memory_backend(self) -> None:
        backend = create_backend({"type": "memory"})
        assert isinstance(backend, InMemoryBackend)
        assert isinstance(backend, DataBackend)

    def test_forwards_keys_to_constructor(self) -> None:
        backend = create_backend({"type": "memory", "max_failed_logins": 2})
        assert backend.max_failed_logins == 2

    def test_does_not_mutate_config(self) -> None:
        config = {"type": "memory"}
        create_backend(config)
        assert config == {"type": "memory"}

    def test_missing_type_raises(self) -> None:
        with pytest.raises(ValueError, match="type"):
            create_backend({"max_failed_logins": 2})

    def test_unknown_type_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown backend type"):
            create_backend({"type": "nonexistent_backend_xyz"})

    def test_case_insensitive_type(self) -> None:
        assert isinstance(create_backend({"type": " Memory "}), InMemoryBackend)

    def test_every_backend_has_extra_entry(self) -> None:
        assert set(BACKEND_EXTRAS) == set(_BACKEND_REGISTRY)


# -----------------------------------------------------------------------
# register_backend
# -----------------------------------------------------------------------


class TestRegisterBackend:
    """register_backend() extends the factory registry."""

    def test_register_and_lookup(self) -> None:
        register_backend("test_backend_abc", "savedrops.backends.memory", "InMemoryBackend")
        assert "test_backend_abc" in _BACKEND_REGISTRY

        backend = create_backend({"type": "test_backend_abc"})
        assert isinstance(backend, InMemoryBackend)

        # Cleanup
        del _BACKEND_REGISTRY["test_backend_abc"]

    def test_register_normalises_name(self) -> None:
        register_backend("  My_Backend  ", "savedrops.backends.memory", "InMemoryBackend")
        assert "my_backend" in _BACKEND_REGISTRY
        del _BACKEND_REGISTRY["my_backend"]
