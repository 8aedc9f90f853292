"""Script data model."""

from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field, field_validator


def _as_str(value: Any) -> Any:
    """Coerce scalars emitted by the model (numbers, booleans) to strings."""
    if isinstance(value, (int, float)):
        return str(value)
    return value


class CharacterVariation(BaseModel):
    """An alternate look for a character (costume, age, injury...)."""

    id: str = Field(..., description="Variation identifier")
    name: str = Field(default="", description="Short label")
    visual_prompt: str = Field(default="", alias="visualPrompt")
    image_url: Optional[str] = Field(None, alias="imageUrl")

    @field_validator("id", "name", "visual_prompt", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _as_str(value)

    class Config:
        """Pydantic config."""
        frozen = False
        populate_by_name = True


class Character(BaseModel):
    """A character extracted from the script."""

    id: str = Field(..., description="Character identifier")
    name: str = Field(default="")
    gender: str = Field(default="")
    age: str = Field(default="")
    personality: str = Field(default="")
    visual_prompt: Optional[str] = Field(None, alias="visualPrompt")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    variations: List[CharacterVariation] = Field(default_factory=list)

    @field_validator(
        "id", "name", "gender", "age", "personality", "visual_prompt", mode="before"
    )
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _as_str(value)

    class Config:
        """Pydantic config."""
        frozen = False
        populate_by_name = True

    def add_variation(self, variation: CharacterVariation) -> None:
        """Append a variation. Existing variations are never replaced."""
        self.variations.append(variation)

    @property
    def description(self) -> str:
        """Compact description used in generation prompts."""
        return self.visual_prompt or self.personality


class Scene(BaseModel):
    """A scene (location + time) extracted from the script."""

    id: str = Field(..., description="Scene identifier")
    location: str = Field(default="")
    time: str = Field(default="")
    atmosphere: str = Field(default="")
    visual_prompt: Optional[str] = Field(None, alias="visualPrompt")
    image_url: Optional[str] = Field(None, alias="imageUrl")

    @field_validator("id", "location", "time", "atmosphere", "visual_prompt", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _as_str(value)

    class Config:
        """Pydantic config."""
        frozen = False
        populate_by_name = True


class StoryParagraph(BaseModel):
    """A block of narrative text attached to one scene."""

    id: Union[int, str] = Field(default=0)
    text: str = Field(default="")
    scene_ref_id: str = Field(default="", alias="sceneRefId")

    @field_validator("text", "scene_ref_id", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _as_str(value)

    class Config:
        """Pydantic config."""
        frozen = False
        populate_by_name = True


class ScriptData(BaseModel):
    """Structured breakdown of a screenplay."""

    title: str = Field(default="Untitled Script")
    genre: str = Field(default="General")
    logline: str = Field(default="")
    language: str = Field(default="English")
    target_duration: Optional[str] = Field(None, alias="targetDuration")
    characters: List[Character] = Field(default_factory=list)
    scenes: List[Scene] = Field(default_factory=list)
    story_paragraphs: List[StoryParagraph] = Field(default_factory=list, alias="storyParagraphs")

    class Config:
        """Pydantic config."""
        frozen = False
        populate_by_name = True

    def paragraphs_for(self, scene: Scene) -> List[StoryParagraph]:
        """Return the paragraphs that reference ``scene``, in script order."""
        scene_id = str(scene.id).strip()
        return [p for p in self.story_paragraphs if str(p.scene_ref_id).strip() == scene_id]

    def character(self, character_id: str) -> Optional[Character]:
        """Look up a character by id."""
        for character in self.characters:
            if character.id == str(character_id):
                return character
        return None

    def scene(self, scene_id: str) -> Optional[Scene]:
        """Look up a scene by id."""
        for scene in self.scenes:
            if scene.id == str(scene_id):
                return scene
        return None
