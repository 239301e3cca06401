"""Config loading and stage validation."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from bootstage.contracts.config import BootConfig
from bootstage.contracts.exceptions import ConfigError, DeclarationError
from bootstage.scene.declarations import UnitDeclaration


def load_config(path: str | Path) -> BootConfig:
    """Load and validate a boot config from JSON."""
    config_path = Path(path).expanduser().resolve()

    try:
        raw_payload: Any = json.loads(config_path.read_text(encoding="utf-8"))
        return BootConfig.model_validate(raw_payload)
    except OSError as exc:
        raise ConfigError(f"failed reading config file: {config_path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON in config file: {config_path}") from exc
    except ValidationError as exc:
        raise ConfigError(f"invalid config: {exc}") from exc


@dataclass(frozen=True)
class SlotCheck:
    """Resolution result for one configured reference."""

    stage: str
    section: str
    index: int
    reference: str | None
    steps: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def validate_stages(config: BootConfig) -> list[SlotCheck]:
    """Resolve every step and bootstrap reference without instantiating anything."""
    checks: list[SlotCheck] = []
    for stage in config.stages:
        sections = (("steps", stage.steps), ("bootstrap", stage.bootstrap))
        for section, references in sections:
            for index, reference in enumerate(references):
                checks.append(_check(stage.name, section, index, reference, fan_out=stage.fan_out))
    return checks


def _check(stage: str, section: str, index: int, reference: str | None, *, fan_out: bool) -> SlotCheck:
    if reference is None:
        return SlotCheck(stage=stage, section=section, index=index, reference=None, error="empty declaration")
    try:
        template = UnitDeclaration(reference).resolve()
    except DeclarationError as exc:
        return SlotCheck(stage=stage, section=section, index=index, reference=reference, error=str(exc))
    if template is None:
        return SlotCheck(stage=stage, section=section, index=index, reference=reference, error="empty declaration")
    # Root mode only ever runs the first step on the root.
    steps = template.count_steps() if fan_out else min(1, template.count_steps(include_children=False))
    if section == "steps" and steps == 0:
        return SlotCheck(stage=stage, section=section, index=index, reference=reference, error="no AsyncStep component")
    return SlotCheck(stage=stage, section=section, index=index, reference=reference, steps=steps)
