"""Configuration for the Admission Engine, loaded with pydantic-settings.

Values come from ``ADMISSION_ENGINE_*`` environment variables (or a ``.env``
file). Nested sections use a double underscore, for example
``ADMISSION_ENGINE_STORE__DB_PATH`` or
``ADMISSION_ENGINE_ADMISSION__MAX_OPEN_APPLICATIONS_PER_INSTITUTION``.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseModel):
    """State store settings.

    busy_timeout_seconds bounds how long a store call waits on a locked
    database before failing with StoreUnavailableError.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    db_path: str = "admission_engine.db"
    busy_timeout_seconds: float = Field(default=5.0, gt=0)


class AdmissionSettings(BaseModel):
    """Admission rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_open_applications_per_institution: int = Field(default=2, ge=1)


class MatchSettings(BaseModel):
    """Job matching weights and thresholds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    academic_weight: float = Field(default=0.4, ge=0)
    skills_weight: float = Field(default=0.3, ge=0)
    experience_weight: float = Field(default=0.2, ge=0)
    qualification_weight: float = Field(default=0.1, ge=0)
    max_gpa: float = Field(default=4.0, gt=0)
    qualified_threshold: float = Field(default=0.6, ge=0, le=1)
    good_match_threshold: float = Field(default=0.7, ge=0, le=1)

    @model_validator(mode="after")
    def check_weights(self) -> MatchSettings:
        total = (
            self.academic_weight
            + self.skills_weight
            + self.experience_weight
            + self.qualification_weight
        )
        if total <= 0:
            raise ValueError("Match weights must not all be zero")
        return self


class Settings(BaseSettings):
    """Top-level Admission Engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="ADMISSION_ENGINE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    store: StoreSettings = Field(default_factory=StoreSettings)
    admission: AdmissionSettings = Field(default_factory=AdmissionSettings)
    matching: MatchSettings = Field(default_factory=MatchSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()
