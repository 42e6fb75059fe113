"""Configuration management with YAML and environment variable support."""

from pathlib import Path
from typing import ClassVar, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads configuration from YAML file."""

    def get_field_value(self, field, field_name: str):
        # Not used with prepare method
        pass

    def prepare_field_value(self, field_name: str, field, value, value_is_complex: bool):
        return value

    def __call__(self):
        yaml_path = Path("config.yaml")
        if not yaml_path.exists():
            return {}

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return data


class GeminiConfig(BaseModel):
    """Gemini API access.

    api_key is optional here; the key persisted by ``omnipedia set-key``
    takes precedence over it.
    """

    api_key: Optional[str] = None
    credential_file: Path = Path.home() / ".omnipedia" / "api_key"

    @field_validator("credential_file", mode="before")
    @classmethod
    def expand_credential_file(cls, v):
        """Expand ``~`` in configured credential paths."""
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


class ModelsConfig(BaseModel):
    """AI model identifiers, one per pipeline stage."""

    planning: str = "gemini-3-pro-preview"
    authoring: str = "gemini-2.5-flash"
    script: str = "gemini-flash-lite-latest"
    image: str = "gemini-3-pro-image-preview"
    video: str = "veo-3.1-generate-preview"
    tts: str = "gemini-2.5-flash-preview-tts"
    surprise: str = "gemini-2.5-flash"


class PipelineConfig(BaseModel):
    """Pipeline execution parameters."""

    enrich_batch_size: int = Field(default=3, ge=1)
    video_poll_interval: float = 5
    video_poll_max: int = 120
    image_aspect_ratio: str = "16:9"
    image_size: str = "2K"
    video_resolution: str = "720p"
    narration_source_chars: int = 1500
    tts_sample_rate: int = 24000
    default_voice: str = "Kore"
    surprise_temperature: float = 1.3


class RetryPolicy(BaseModel):
    """Blind exponential-backoff policy for one stage."""

    attempts: int = Field(default=3, ge=1)
    base_delay: float = 1.0


class RetryConfig(BaseModel):
    """Retry policies per stage."""

    surprise: RetryPolicy = RetryPolicy(attempts=3, base_delay=1.0)
    plan: RetryPolicy = RetryPolicy(attempts=3, base_delay=1.0)
    image: RetryPolicy = RetryPolicy(attempts=3, base_delay=2.0)
    enrich: RetryPolicy = RetryPolicy(attempts=3, base_delay=2.0)
    video: RetryPolicy = RetryPolicy(attempts=2, base_delay=5.0)
    script: RetryPolicy = RetryPolicy(attempts=3, base_delay=1.0)
    tts: RetryPolicy = RetryPolicy(attempts=3, base_delay=2.0)


class StorageConfig(BaseModel):
    """Where generated video and audio files are written."""

    tmp_dir: Path = Path("tmp")

    @field_validator("tmp_dir", mode="before")
    @classmethod
    def convert_tmp_dir_to_path(cls, v):
        """Convert string to Path object."""
        if isinstance(v, str):
            return Path(v)
        return v


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000


class Settings(BaseSettings):
    """Main application settings with YAML and environment variable support.

    Configuration sources (in priority order):
    1. Environment variables (prefix: OMNIPEDIA_, delimiter: __)
    2. .env file
    3. YAML file (config.yaml)
    4. Field defaults
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="OMNIPEDIA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    gemini: GeminiConfig = GeminiConfig()
    models: ModelsConfig = ModelsConfig()
    pipeline: PipelineConfig = PipelineConfig()
    retry: RetryConfig = RetryConfig()
    storage: StorageConfig = StorageConfig()
    server: ServerConfig = ServerConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        """Customize settings sources to include YAML configuration.

        Priority order (highest to lowest):
        1. Environment variables
        2. .env file
        3. YAML file
        4. Init settings (programmatic defaults)
        """
        return (
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            init_settings,
        )


# Singleton instance
settings = Settings()
