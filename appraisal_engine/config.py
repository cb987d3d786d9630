"""Application configuration with comprehensive validation."""
from typing import Optional, Literal
from functools import lru_cache
from pydantic import Field, model_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings with production-grade validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Appraisal Calibration Engine"
    APP_VERSION: str = "1.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    # Anomaly detection (thresholds expressed on a 5-point scale)
    CALIBRATION_GAP_THRESHOLD: float = Field(default=1.5, gt=0, le=5)
    EXTREME_HIGH_RATIO: float = Field(default=0.9, gt=0.5, le=1.0)
    EXTREME_LOW_RATIO: float = Field(default=0.3, ge=0.0, lt=0.5)

    # Distribution suggestions (percentage points)
    CATEGORY_TOLERANCE_PCT: float = Field(default=2.0, ge=0, le=20)
    HIGH_PRIORITY_DELTA_PCT: float = Field(default=5.0, ge=0, le=50)
    UNDER_REPRESENTED_DELTA_PCT: float = Field(default=-10.0, ge=-100, le=0)

    # Health score penalty weights
    HEALTH_ANOMALY_WEIGHT: float = Field(default=60.0, ge=0, le=100)
    HEALTH_DEVIATION_WEIGHT: float = Field(default=40.0, ge=0, le=100)

    # Cohort map
    ANALYSIS_MAX_WORKERS: int = Field(default=8, ge=1, le=64)

    # Session store
    REDIS_URL: str = "redis://localhost:6379/0"
    SESSION_KEY_PREFIX: str = "calibration:session"
    SESSION_TTL_SECONDS: int = Field(default=60 * 60 * 24 * 30, ge=60)

    # Narrative assistant (optional)
    NARRATIVE_ASSISTANT_URL: Optional[str] = None
    NARRATIVE_API_KEY: Optional[SecretStr] = None
    NARRATIVE_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0, le=60)

    @model_validator(mode="after")
    def validate_health_weights(self):
        """Validate health penalty weights sum to 100."""
        total = self.HEALTH_ANOMALY_WEIGHT + self.HEALTH_DEVIATION_WEIGHT
        if abs(total - 100.0) > 0.001:
            raise ValueError(f"Health penalty weights must sum to 100, got {total}")
        return self

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure production runs without debug output."""
        if self.APP_ENV == "production" and self.DEBUG:
            raise ValueError("DEBUG must be False in production")
        return self

    @property
    def narrative_enabled(self) -> bool:
        return bool(self.NARRATIVE_ASSISTANT_URL)


@lru_cache
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
