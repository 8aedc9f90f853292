"""Shot and keyframe data models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .task import TaskStatus


class KeyframeType(str, Enum):
    """Which end of the shot a keyframe marks."""
    START = "start"
    END = "end"


class KeyframeStatus(str, Enum):
    """Keyframe image generation state."""
    PENDING = "pending"
    GENERATING = "generating"
    READY = "ready"
    FAILED = "failed"


class Keyframe(BaseModel):
    """A generated still marking the start or end state of a shot."""

    id: str = Field(..., description="Keyframe identifier (kf-{shot}-{type})")
    type: KeyframeType = Field(..., description="start or end")
    visual_prompt: str = Field(default="", alias="visualPrompt")
    status: KeyframeStatus = Field(default=KeyframeStatus.PENDING)
    image_url: Optional[str] = Field(None, alias="imageUrl")
    error: Optional[str] = Field(None, description="Last generation error")

    class Config:
        """Pydantic config."""
        frozen = False
        populate_by_name = True


class Shot(BaseModel):
    """One camera setup within a scene."""

    id: str = Field(..., description="Shot identifier (shot-{n})")
    scene_id: str = Field(..., alias="sceneId")
    action_summary: str = Field(default="", alias="actionSummary")
    dialogue: str = Field(default="")
    camera_movement: str = Field(default="", alias="cameraMovement")
    shot_size: str = Field(default="", alias="shotSize")
    characters: List[str] = Field(default_factory=list, description="Character ids")
    keyframes: List[Keyframe] = Field(default_factory=list)
    video_url: Optional[str] = Field(None, alias="videoUrl")
    video_status: Optional[TaskStatus] = Field(None, alias="videoStatus")
    video_error: Optional[str] = Field(None, alias="videoError")

    class Config:
        """Pydantic config."""
        frozen = False
        populate_by_name = True

    def keyframe(self, kind: KeyframeType) -> Optional[Keyframe]:
        """Return the keyframe of the given type, if present."""
        for keyframe in self.keyframes:
            if keyframe.type == kind:
                return keyframe
        return None
