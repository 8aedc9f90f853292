"""Data models for script breakdown and generated assets."""

from .script import Character, CharacterVariation, Scene, ScriptData, StoryParagraph
from .shot import Keyframe, KeyframeStatus, KeyframeType, Shot
from .task import GenerationTask, PollResult, StageReport, TaskStatus
from .project import Project, ProjectStage, generate_filename

__all__ = [
    "Character",
    "CharacterVariation",
    "Scene",
    "ScriptData",
    "StoryParagraph",
    "Keyframe",
    "KeyframeStatus",
    "KeyframeType",
    "Shot",
    "GenerationTask",
    "PollResult",
    "StageReport",
    "TaskStatus",
    "Project",
    "ProjectStage",
    "generate_filename",
]
