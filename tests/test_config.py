"""Tests for config loading and stage validation."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from bootstage.config import load_config, validate_stages
from bootstage.contracts.config import BootConfig, StageConfig
from bootstage.contracts.exceptions import ConfigError


def write_config(tmp_path: Path, payload: object) -> Path:
    path = tmp_path / "bootstage.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_config_reads_stages(config_file: Path) -> None:
    config = load_config(config_file)

    assert [stage.name for stage in config.stages] == ["start", "game"]
    assert config.entry_stage.name == "start"
    assert config.stage("game").fan_out is True
    assert config.stage("start").steps[1] is None
    assert config.progress.animated is False


def test_entry_defaults_to_first_stage() -> None:
    config = BootConfig(stages=[StageConfig(name="only")])

    assert config.entry_stage.name == "only"
    with pytest.raises(KeyError):
        config.stage("missing")


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="failed reading config file"):
        load_config(tmp_path / "nope.json")


def test_load_config_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "bootstage.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError, match="invalid JSON"):
        load_config(path)


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"stages": []}, "stages"),
        ({"stages": [{"name": "a"}, {"name": "a"}]}, "duplicate stage names: a"),
        ({"stages": [{"name": "a"}], "entry": "b"}, "entry stage 'b' is not defined"),
        ({"stages": [{"name": "a", "next_stage": "z"}]}, "unknown stage 'z'"),
        ({"stages": [{"name": "a"}], "frame_rate": 0}, "frame_rate"),
        ({"stages": [{"name": "a"}], "progress": {"seconds_per_unit": -1}}, "seconds_per_unit"),
    ],
)
def test_load_config_rejects_invalid_models(tmp_path: Path, payload: object, message: str) -> None:
    with pytest.raises(ConfigError, match="invalid config") as exc_info:
        load_config(write_config(tmp_path, payload))

    assert message in str(exc_info.value)


def test_config_models_are_frozen() -> None:
    config = BootConfig(stages=[StageConfig(name="a")])

    with pytest.raises(ValueError):
        config.entry = "b"  # type: ignore[misc]


def test_validate_stages_reports_each_slot() -> None:
    config = BootConfig(
        stages=[
            StageConfig(
                name="start",
                steps=["tests.fakes.steps:recording", None, "tests.fakes.nowhere:x", "tests.fakes.steps:marker"],
                bootstrap=["tests.fakes.steps:camera"],
            )
        ]
    )

    checks = validate_stages(config)

    assert [(check.section, check.index, check.ok) for check in checks] == [
        ("steps", 0, True),
        ("steps", 1, False),
        ("steps", 2, False),
        ("steps", 3, False),
        ("bootstrap", 0, True),
    ]
    assert checks[0].steps == 1
    assert checks[1].error == "empty declaration"
    assert "cannot import module" in (checks[2].error or "")
    assert checks[3].error == "no AsyncStep component"
    assert checks[4].steps == 0


def test_validate_stages_counts_children_in_fan_out_mode() -> None:
    config = BootConfig(stages=[StageConfig(name="demo", steps=["bootstage.demo:hud"], fan_out=True)])

    (check,) = validate_stages(config)

    assert check.ok
    assert check.steps == 2
