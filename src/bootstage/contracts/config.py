"""Configuration contracts."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class ProgressSettings(BaseModel):
    enabled: bool = True
    only_increase: bool = True
    animated: bool = True
    seconds_per_unit: float = Field(default=0.35, ge=0)
    fade_duration: float = Field(default=0.2, ge=0)

    model_config = {"frozen": True}


class StageConfig(BaseModel):
    """One boot stage: an ordered list of step references plus bootstrap singletons.

    Attributes:
        name: Stage name, unique within a ``BootConfig``.
        steps: ``"module:attribute"`` references; ``None`` entries are kept as
            empty slots and reported as configuration warnings at run time.
        bootstrap: Infrastructure templates created only when absent from the scene.
        fan_out: Run every step component of each instance (root and children).
        next_stage: Stage handed control after this stage is deconstructed.
    """

    name: str = Field(min_length=1)
    steps: list[str | None] = Field(default_factory=list)
    bootstrap: list[str] = Field(default_factory=list)
    fan_out: bool = False
    next_stage: str | None = None

    model_config = {"frozen": True}


class BootConfig(BaseModel):
    stages: list[StageConfig] = Field(min_length=1)
    entry: str | None = None
    frame_rate: float | None = Field(default=None, gt=0)
    progress: ProgressSettings = Field(default_factory=ProgressSettings)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_stage_graph(self) -> BootConfig:
        names = [stage.name for stage in self.stages]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate stage names: {', '.join(duplicates)}")
        if self.entry is not None and self.entry not in names:
            raise ValueError(f"entry stage '{self.entry}' is not defined")
        for stage in self.stages:
            if stage.next_stage is not None and stage.next_stage not in names:
                raise ValueError(f"stage '{stage.name}' hands off to unknown stage '{stage.next_stage}'")
        return self

    @property
    def entry_stage(self) -> StageConfig:
        if self.entry is None:
            return self.stages[0]
        return self.stage(self.entry)

    def stage(self, name: str) -> StageConfig:
        for stage in self.stages:
            if stage.name == name:
                return stage
        raise KeyError(name)
