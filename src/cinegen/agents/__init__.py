"""AI agents for script breakdown and shot planning."""

from .base import BaseAgent
from .script import ScriptAgent, ScriptInput
from .shots import ShotListAgent, ShotListInput, ShotPlan
from .visual import VisualInput, VisualPromptAgent

__all__ = [
    "BaseAgent",
    "ScriptAgent",
    "ScriptInput",
    "ShotListAgent",
    "ShotListInput",
    "ShotPlan",
    "VisualInput",
    "VisualPromptAgent",
]
