"""Configuration management."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DEFAULT_ARK_BASE_URL = "https://ark.cn-beijing.volces.com/api/v3"


class Config(BaseModel):
    """Application configuration."""

    # API Keys
    ark_api_key: str = Field(
        default_factory=lambda: os.getenv("ARK_API_KEY", ""),
        description="API key for the task-based generation endpoint"
    )
    anthropic_api_key: str = Field(
        default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", ""),
        description="Anthropic API key (optional text provider)"
    )
    google_cloud_project: str = Field(
        default_factory=lambda: os.getenv("GOOGLE_CLOUD_PROJECT", ""),
        description="Google Cloud project ID (optional Imagen image provider)"
    )

    # Endpoints and models
    ark_base_url: str = Field(
        default_factory=lambda: os.getenv("ARK_BASE_URL", DEFAULT_ARK_BASE_URL),
        description="Base URL of the generation API"
    )
    chat_model: str = Field(
        default_factory=lambda: os.getenv("ARK_CHAT_MODEL", "doubao-seed-1-8-251228"),
        description="Text completion model or endpoint id"
    )
    image_model: str = Field(
        default_factory=lambda: os.getenv("ARK_IMAGE_MODEL", "doubao-seedream-4-5-251128"),
        description="Image synthesis model or endpoint id"
    )
    video_model: str = Field(
        default_factory=lambda: os.getenv("ARK_VIDEO_MODEL", "doubao-seedance-1-5-pro-251215"),
        description="Video synthesis model or endpoint id"
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used when the text provider is 'anthropic'"
    )
    text_provider: str = Field(
        default_factory=lambda: os.getenv("CINEGEN_TEXT_PROVIDER", "ark"),
        description="Text backend: 'ark' or 'anthropic'"
    )
    image_provider: str = Field(
        default_factory=lambda: os.getenv("CINEGEN_IMAGE_PROVIDER", "ark"),
        description="Image backend: 'ark' or 'imagen'"
    )

    # Storage
    username: str = Field(
        default_factory=lambda: os.getenv("CINEGEN_USERNAME", ""),
        description="Explicit storage namespace for this user"
    )
    store_url: str = Field(
        default_factory=lambda: os.getenv("CINEGEN_STORE_URL", "http://localhost:3001"),
        description="Base URL of the file store server"
    )
    storage_root: Path = Field(
        default_factory=lambda: Path(os.getenv("CINEGEN_STORAGE_ROOT", "UserSaved")),
        description="Root directory of the file store server"
    )
    cache_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("CINEGEN_CACHE_DIR", ".cinegen/cache")),
        description="Local resource cache directory"
    )
    server_host: str = Field(
        default_factory=lambda: os.getenv("CINEGEN_HOST", "127.0.0.1"),
        description="Bind address of the file store server"
    )
    server_port: int = Field(
        default_factory=lambda: int(os.getenv("CINEGEN_PORT", "3001")),
        description="Port of the file store server"
    )

    class Config:
        """Pydantic config."""
        frozen = False

    def validate_required(self) -> None:
        """Validate that credentials for the configured providers are set.

        Raises:
            ValueError: If any required setting is missing.
        """
        missing: list[str] = []

        if not self.ark_api_key:
            # The task-based backend always serves video
            missing.append("ARK_API_KEY")
        if self.text_provider == "anthropic" and not self.anthropic_api_key:
            missing.append("ANTHROPIC_API_KEY")
        if self.image_provider == "imagen" and not self.google_cloud_project:
            missing.append("GOOGLE_CLOUD_PROJECT")

        if missing:
            raise ValueError(
                f"Missing required configuration: {', '.join(missing)}. "
                "Set the corresponding environment variables."
            )

    def validate_store_required(self) -> None:
        """Validate the file store settings.

        Raises:
            ValueError: If the store URL is not an http(s) URL.
        """
        if not self.store_url.startswith(("http://", "https://")):
            raise ValueError(
                f"CINEGEN_STORE_URL must start with 'http://' or 'https://'. "
                f"Got: {self.store_url}"
            )


class GenerationConfig(BaseModel):
    """Immutable snapshot of everything a generation client needs.

    A client is built from one of these and never sees later changes. Use
    ``with_api_key`` (or ``GenerationClient.with_api_key``) to get a new one.
    """

    api_key: str = ""
    base_url: str = DEFAULT_ARK_BASE_URL
    chat_model: str = "doubao-seed-1-8-251228"
    image_model: str = "doubao-seedream-4-5-251128"
    video_model: str = "doubao-seedance-1-5-pro-251215"
    text_provider: str = "ark"
    image_provider: str = "ark"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    google_cloud_project: str = ""

    temperature: float = 0.7
    request_timeout: float = 120.0
    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=2.0, ge=0)
    poll_interval: float = Field(default=5.0, ge=0)
    max_poll_attempts: int = Field(default=240, ge=1)
    unknown_status_threshold: int = Field(default=20, ge=1)
    video_duration: int = 4
    video_resolution: str = "720p"
    video_aspect_ratio: str = "16:9"

    @classmethod
    def from_config(cls, source: Optional[Config] = None) -> "GenerationConfig":
        """Snapshot generation settings from the application config."""
        source = source or config
        return cls(
            api_key=source.ark_api_key,
            base_url=source.ark_base_url,
            chat_model=source.chat_model,
            image_model=source.image_model,
            video_model=source.video_model,
            text_provider=source.text_provider,
            image_provider=source.image_provider,
            anthropic_api_key=source.anthropic_api_key,
            anthropic_model=source.anthropic_model,
            google_cloud_project=source.google_cloud_project,
        )

    def with_api_key(self, api_key: str) -> "GenerationConfig":
        """Return a copy using a different API key."""
        return self.model_copy(update={"api_key": api_key})

    class Config:
        """Pydantic config."""
        frozen = True


# Global config instance
config = Config()
