"""
Provisioning config model — loaded from provision.yml.

This is the declarative side of the engine: which steps exist, what
they depend on, and which action type carries each one out. The engine
itself knows nothing about packages, dotfiles, or databases; all of
that is described here.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ActionSpec(BaseModel):
    """Which action implements a step, plus its free-form parameters.

    Everything besides ``type`` is passed to the action factory.
    """

    model_config = ConfigDict(extra="allow")

    type: str

    @property
    def params(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class StepSpec(BaseModel):
    """A step declaration."""

    id: str
    description: str = ""
    depends_on: list[str] = Field(default_factory=list)
    destructive: bool = False
    interactive: bool = False
    prompt: str = ""
    targets: list[str] = Field(default_factory=list)
    on_failure: Literal["stop", "continue"] | None = None
    action: ActionSpec

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("step id must be non-empty")
        if "," in v:
            raise ValueError(f"step id must not contain commas: {v!r}")
        return v

    @field_validator("depends_on", mode="before")
    @classmethod
    def _coerce_depends_on(cls, v: Any) -> Any:
        # Allow a bare string for a single dependency
        if isinstance(v, str):
            return [v]
        return v


class Settings(BaseModel):
    """Engine settings."""

    state_dir: str = ".state"
    backup_dir: str = ""           # default: <state_dir>/backups
    stop_on_failure: bool = True
    notes: list[str] = Field(default_factory=list)  # printed after install


class ProvisionConfig(BaseModel):
    """Root configuration — loaded from provision.yml."""

    version: int = 1

    name: str = "provision"
    description: str = ""

    settings: Settings = Field(default_factory=Settings)
    steps: list[StepSpec] = Field(default_factory=list)

    def get_step(self, step_id: str) -> StepSpec | None:
        """Look up a step declaration by id."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None
