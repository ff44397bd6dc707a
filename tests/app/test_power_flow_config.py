from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from app.config import AppSettings, load_settings


def test_defaults_match_layout_constants(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    settings = load_settings()
    config = settings.layout.to_layout_config()

    assert settings.log_level == "WARNING"
    assert config.node_pitch == 380
    assert config.center.x == 400
    assert config.max_depth == 10
    assert settings.consolidation.to_policy().convergence_forces_primary


def test_env_overrides_nested_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PFT_LAYOUT__MIN_GAP", "150")
    monkeypatch.setenv("PFT_CONSOLIDATION__CLOSER_PATH_WINS", "false")

    settings = load_settings()

    assert settings.layout.min_gap == 150
    assert settings.layout.to_layout_config().node_pitch == 330
    assert not settings.consolidation.to_policy().closer_path_wins


def test_yaml_file_is_loaded(tmp_path: Path) -> None:
    config_path = tmp_path / "power_flow.yaml"
    config_path.write_text(
        "log_level: debug\n"
        "layout:\n"
        "  level_spacing: 120\n"
        "  enforce_category_baselines: false\n"
        "source:\n"
        "  output_dir: out\n",
        encoding="utf-8",
    )

    settings = load_settings(config_path)

    assert settings.log_level == "DEBUG"
    assert settings.layout.level_spacing == 120
    assert not settings.layout.to_layout_config().enforce_category_baselines
    assert settings.source.output_dir == Path("out")


def test_env_beats_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "power_flow.yaml"
    config_path.write_text("log_level: debug\n", encoding="utf-8")
    monkeypatch.setenv("PFT_CONFIG_PATH", str(config_path))
    monkeypatch.setenv("PFT_LOG_LEVEL", "error")

    settings = load_settings()

    assert settings.log_level == "ERROR"


def test_missing_config_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="Config file not found"):
        load_settings(tmp_path / "absent.yaml")


def test_unknown_log_level_is_rejected() -> None:
    with pytest.raises(ValidationError, match="Unknown log level"):
        AppSettings(log_level="loud")
