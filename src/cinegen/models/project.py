"""Project state model."""

import random
import string
import time
from enum import Enum
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field

from .script import ScriptData
from .shot import Shot


class ProjectStage(str, Enum):
    """Project stage enum."""
    SCRIPT = "script"
    ASSETS = "assets"
    DIRECTOR = "director"
    EXPORT = "export"


def _base36(number: int) -> str:
    digits = string.digits + string.ascii_lowercase
    out = ""
    while number:
        number, rem = divmod(number, 36)
        out = digits[rem] + out
    return out or "0"


def new_project_id() -> str:
    """Return an id of the form ``proj_<base36 epoch ms>``."""
    return "proj_" + _base36(int(time.time() * 1000))


def generate_filename(prefix: str, extension: str = ".png") -> str:
    """Build a unique artifact filename: ``{prefix}_{epoch_ms}_{6 chars}{ext}``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}{extension}"


class Project(BaseModel):
    """Project state tracking."""

    id: str = Field(default_factory=new_project_id, description="Project id")
    title: str = Field(default="Untitled Project", description="Project title")
    stage: ProjectStage = Field(default=ProjectStage.SCRIPT, description="Current stage")
    language: str = Field(default="English", description="Language for generated text")
    target_duration: str = Field(default="60s", description="Target runtime of the whole script")
    raw_script: str = Field(default="", description="Screenplay text")
    script_data: Optional[ScriptData] = Field(None, description="Parsed script")
    shots: List[Shot] = Field(default_factory=list, description="Current shot list")
    errors: List[str] = Field(default_factory=list, description="Error messages")

    class Config:
        """Pydantic config."""
        frozen = False

    @classmethod
    def from_yaml(cls, path: Path) -> "Project":
        """Load project from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """Save project to YAML file."""
        with open(path, "w") as f:
            yaml.safe_dump(
                self.model_dump(mode="json"),
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )
