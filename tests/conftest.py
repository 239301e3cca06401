"""Shared test fixtures for bootstage tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tests.fakes.progress import RecordingProgress
from tests.fakes.scheduler import CountingScheduler


@pytest.fixture
def journal() -> list[str]:
    """Ordered record of step, progress and tick events."""
    return []


@pytest.fixture
def progress(journal: list[str]) -> RecordingProgress:
    return RecordingProgress(journal)


@pytest.fixture
def scheduler() -> CountingScheduler:
    return CountingScheduler()


@pytest.fixture
def config_payload() -> dict[str, object]:
    return {
        "entry": "start",
        "stages": [
            {
                "name": "start",
                "steps": ["tests.fakes.steps:recording", None],
                "bootstrap": ["tests.fakes.steps:camera"],
                "next_stage": "game",
            },
            {"name": "game", "steps": ["tests.fakes.steps:recording"], "fan_out": True},
        ],
        "progress": {"animated": False, "seconds_per_unit": 0},
    }


@pytest.fixture
def config_file(tmp_path: Path, config_payload: dict[str, object]) -> Path:
    path = tmp_path / "bootstage.json"
    path.write_text(json.dumps(config_payload), encoding="utf-8")
    return path
