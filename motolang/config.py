"""Runtime configuration for motolang.

Values come from keyword overrides first, then ``MOTO_*`` environment
variables, then the defaults below.
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .interpolation import DEFAULT_MAX_ITERATIONS

DEFAULT_SHELLS: Dict[str, List[str]] = {
    "shell": ["bash", "-s"],
    "sh": ["bash", "-s"],
    "powershell": ["pwsh", "-Command", "-"],
    "ps": ["pwsh", "-Command", "-"],
}

_ENV = {
    "script_dir": "MOTO_SCRIPT_DIR",
    "extension": "MOTO_EXTENSION",
    "workspace": "MOTO_WORKSPACE",
    "max_iterations": "MOTO_MAX_ITERATIONS",
    "runtime_task": "MOTO_RUNTIME_TASK",
    "log_level": "MOTO_LOG_LEVEL",
}


class MotoConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    script_dir: Path = Field(default=Path("."), description="Directory scanned for scripts")
    extension: str = Field(default=".moto", description="Script file extension")
    workspace: Path = Field(default=Path("workspace"), description="Working directory of spawned shells")
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1, description="Interpolation round cap")
    runtime_task: str = Field(default="run", description="Task a custom runtime must define")
    shells: Dict[str, List[str]] = Field(default_factory=lambda: {k: list(v) for k, v in DEFAULT_SHELLS.items()})
    log_level: str = "INFO"

    @field_validator("extension", mode="before")
    @classmethod
    def dotted_extension(cls, v: Any) -> str:
        v = str(v).strip()
        if not v:
            raise ValueError("extension cannot be empty")
        return v if v.startswith(".") else "." + v

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> str:
        return str(v).strip().upper()

    @field_validator("shells")
    @classmethod
    def non_empty_commands(cls, v: Dict[str, List[str]]) -> Dict[str, List[str]]:
        for name, argv in v.items():
            if not argv:
                raise ValueError(f"shell '{name}' has an empty command")
        return v

    def is_shell(self, runtime: str) -> bool:
        return runtime in self.shells

    @classmethod
    def from_env(cls, **overrides: Any) -> "MotoConfig":
        data: Dict[str, Any] = {}
        for name, var in _ENV.items():
            value = os.getenv(var)
            if value is not None and value != "":
                data[name] = value
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(data)
