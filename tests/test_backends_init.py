"""Tests for savedrops.backends.__init__ - lazy loading of optional backends."""

from __future__ import annotations

import pytest

import savedrops.backends as backends_pkg


class TestBackendsPackage:
    """Tests for backends package __all__ and lazy imports."""

    def test_direct_exports(self) -> None:
        assert hasattr(backends_pkg, "DataBackend")
        assert hasattr(backends_pkg, "InMemoryBackend")

    def test_all_contains_expected_names(self) -> None:
        assert set(backends_pkg.__all__) == {"DataBackend", "InMemoryBackend", "SubscriptionCallback"}

    def test_lazy_import_unknown_raises(self) -> None:
        with pytest.raises(AttributeError, match="has no attribute"):
            _ = backends_pkg.NonExistentBackend  # type: ignore[attr-defined]
