"""Tests for savedrops.config - YAML config loading and parsing."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from savedrops.config import SaveDropsConfig, load_yaml_config

# -----------------------------------------------------------------------
# SaveDropsConfig model
# -----------------------------------------------------------------------


class TestSaveDropsConfig:
    """SaveDropsConfig defaults and construction."""

    def test_defaults(self) -> None:
        cfg = SaveDropsConfig()
        assert cfg.tick_period_s == 2.0
        assert cfg.max_pending_writes == 32
        assert cfg.seed is None
        assert cfg.log_level == "INFO"
        assert cfg.history_limit == 10
        assert cfg.backend == {"type": "memory"}

    def test_rejects_non_positive_tick(self) -> None:
        with pytest.raises(ValidationError):
            SaveDropsConfig(tick_period_s=0)

    def test_rejects_empty_buffer(self) -> None:
        with pytest.raises(ValidationError):
            SaveDropsConfig(max_pending_writes=0)


# -----------------------------------------------------------------------
# load_yaml_config
# -----------------------------------------------------------------------


class TestLoadYAMLConfig:
    """load_yaml_config() parsing from temporary YAML files."""

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_yaml_config(tmp_path / "nonexistent.yaml")

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "empty.yaml"
        cfg_file.write_text("")
        assert load_yaml_config(cfg_file) == SaveDropsConfig()

    def test_minimal_config(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "savedrops.yaml"
        cfg_file.write_text("""\
simulator:
  tick_period_s: 0.5
""")
        cfg = load_yaml_config(cfg_file)
        assert cfg.tick_period_s == 0.5
        assert cfg.backend == {"type": "memory"}

    def test_full_config(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "savedrops.yaml"
        cfg_file.write_text("""\
simulator:
  tick_period_s: 1.0
  max_pending_writes: 8
  seed: 42
  log_level: debug

dashboard:
  history_limit: 25

backend:
  type: firebase
  credentials_path: service-account.json
  api_key: web-key
""")
        cfg = load_yaml_config(cfg_file)
        assert cfg.tick_period_s == 1.0
        assert cfg.max_pending_writes == 8
        assert cfg.seed == 42
        assert cfg.log_level == "DEBUG"
        assert cfg.history_limit == 25
        assert cfg.backend == {
            "type": "firebase",
            "credentials_path": "service-account.json",
            "api_key": "web-key",
        }

    def test_invalid_value_raises(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "bad.yaml"
        cfg_file.write_text("""\
dashboard:
  history_limit: 0
""")
        with pytest.raises(ValidationError):
            load_yaml_config(cfg_file)

    def test_sample_config_parses(self, tmp_path: Path) -> None:
        from savedrops.__main__ import _SAMPLE_CONFIG

        cfg_file = tmp_path / "sample.yaml"
        cfg_file.write_text(_SAMPLE_CONFIG)
        cfg = load_yaml_config(cfg_file)
        assert cfg.backend == {"type": "memory"}
        assert cfg.tick_period_s == 2.0
