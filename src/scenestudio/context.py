"""Runtime context for the scene generation pipeline."""

import os
from typing import List

from pydantic import BaseModel, Field, field_validator

from scenestudio.providers import (
    DEFAULT_FALLBACK_SIZE,
    DEFAULT_FALLBACK_TIMEOUT,
    DEFAULT_PRIMARY_MODELS,
    DEFAULT_PRIMARY_TIMEOUT,
)


_TRUE_VALUES = {"1", "true", "yes", "on"}


class StudioContext(BaseModel):
    """Runtime configuration for scene generation."""

    # API Configuration
    gemini_api_key: str | None = Field(default=None, description="Gemini API key for the primary provider")
    primary_models: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PRIMARY_MODELS),
        description="Primary model variants, best quality first",
    )

    # Fallback
    fallback_enabled: bool = Field(default=True, description="Try the credential-free fallback after the cascade")
    fallback_image_size: int = Field(default=DEFAULT_FALLBACK_SIZE, description="Fallback image width and height")

    # Timeouts
    primary_timeout: float = Field(default=DEFAULT_PRIMARY_TIMEOUT, description="Seconds per primary request")
    fallback_timeout: float = Field(default=DEFAULT_FALLBACK_TIMEOUT, description="Seconds per fallback request")
    batch_deadline: float | None = Field(default=None, description="Optional wall-clock limit for a whole batch")
    retry_base_delay: float = Field(default=0.0, description="Base backoff before retrying the same model")

    log_level: str = Field(default="INFO", description="Logging level for the CLI")

    @field_validator("primary_models")
    @classmethod
    def _require_models(cls, value: List[str]) -> List[str]:
        models = [model.strip() for model in value if model and model.strip()]
        if not models:
            raise ValueError("At least one primary model must be configured")
        return models

    @field_validator("primary_timeout", "fallback_timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Timeouts must be positive")
        return value

    model_config = {"extra": "forbid"}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_float(name: str, default: float | None) -> float | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def get_default_context() -> StudioContext:
    """Get default context with environment variables."""
    models_env = os.getenv('SCENESTUDIO_PRIMARY_MODELS')
    primary_models = (
        [model.strip() for model in models_env.split(',')]
        if models_env
        else list(DEFAULT_PRIMARY_MODELS)
    )

    return StudioContext(
        gemini_api_key=os.getenv('GEMINI_API_KEY'),
        primary_models=primary_models,
        fallback_enabled=_env_bool('SCENESTUDIO_FALLBACK_ENABLED', True),
        primary_timeout=_env_float('SCENESTUDIO_PRIMARY_TIMEOUT', DEFAULT_PRIMARY_TIMEOUT),
        fallback_timeout=_env_float('SCENESTUDIO_FALLBACK_TIMEOUT', DEFAULT_FALLBACK_TIMEOUT),
        batch_deadline=_env_float('SCENESTUDIO_BATCH_DEADLINE', None),
        log_level=os.getenv('SCENESTUDIO_LOG_LEVEL', 'INFO').upper(),
    )
