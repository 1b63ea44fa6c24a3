from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from stagegate.config import ConfigManager
from stagegate.schemas.config import AppConfig, load_config


def test_load_config_produces_settings_without_unset_values():
    app_config = load_config(
        {
            "gate": {"thresholds": {2: 6.5}},
            "evaluators": {"resume": {"resume_chars": 8000}},
            "suggestions": {"max_per_failure": 3},
        }
    )

    assert isinstance(app_config, AppConfig)
    assert app_config.to_settings() == {
        "gate": {"thresholds": {2: 6.5}},
        "evaluators": {"resume": {"resume_chars": 8000}},
        "suggestions": {"max_per_failure": 3},
    }


def test_load_config_accepts_none():
    assert load_config(None).to_settings() == {}


def test_load_config_rejects_unknown_keys_and_bad_values():
    with pytest.raises(ValidationError):
        load_config({"core": {}})
    with pytest.raises(ValidationError):
        load_config({"gate": {"thresholds": {4: 5.0}}})
    with pytest.raises(ValidationError):
        load_config({"gate": {"thresholds": {1: 11}}})
    with pytest.raises(TypeError):
        load_config(["not", "a", "mapping"])


def test_config_manager_reads_yaml(tmp_path: Path):
    (tmp_path / "prod.yaml").write_text(
        "database:\n  url: sqlite:///prod.db\ngate:\n  thresholds:\n    3: 7\n",
        encoding="utf-8",
    )

    app_config = ConfigManager(tmp_path).load("prod")

    assert app_config.database.url == "sqlite:///prod.db"
    assert app_config.gate.thresholds == {3: 7.0}


def test_config_manager_rejects_non_mapping(tmp_path: Path):
    path = tmp_path / "bad.yaml"
    path.write_text("- one\n- two\n", encoding="utf-8")

    with pytest.raises(ValueError, match="YAML object"):
        ConfigManager.read(path)
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert ConfigManager.read(empty) == {}
