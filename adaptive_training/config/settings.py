from loguru import logger
from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from adaptive_training.plans.types import PHASE_SEQUENCE, IntensityLevel

DEFAULT_PHASE_RATIOS: tuple[float, ...] = (0.25, 0.25, 0.20, 0.10, 0.10, 0.10)
DEFAULT_PHASE_MINIMUMS: tuple[int, ...] = (1, 1, 1, 1, 1, 1)


class EngineConfig(BaseModel):
    """Tunables for plan generation, adaptation and progress tracking.

    Passed explicitly to PlanGenerator, AdaptationEngine and the progress
    functions. Phase ratios and minimums are ordered like PHASE_SEQUENCE
    (Foundation, Build, Intensity, Peak, Taper, Recovery).
    """

    phase_ratios: tuple[float, ...] = DEFAULT_PHASE_RATIOS
    phase_minimums: tuple[int, ...] = DEFAULT_PHASE_MINIMUMS
    min_plan_weeks: int = 4
    max_plan_weeks: int = 52
    default_plan_weeks: int = 12
    deload_every_weeks: int = 4

    intensity_step: int = Field(default=1, ge=1, le=3)
    intensity_window_days: int = Field(default=14, ge=1)
    injury_intensity_ceiling: IntensityLevel = IntensityLevel.MODERATE

    miss_threshold: int = Field(default=2, ge=1)
    miss_window_days: int = Field(default=7, ge=1)
    missed_reentry_weeks: int = Field(default=1, ge=1)
    missed_reentry_weeks_extended: int = Field(default=2, ge=1)
    missed_extended_threshold: int = Field(default=4, ge=1)
    missed_warning_count: int = Field(default=7, ge=1)

    min_days_between_adaptations: int = Field(default=7, ge=0)
    conflict_retries: int = Field(default=1, ge=0)
    weekly_streak_min_workouts: int = Field(default=3, ge=1)

    @field_validator("phase_ratios")
    @classmethod
    def validate_phase_ratios(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        """Validate one positive ratio per phase."""
        if len(value) != len(PHASE_SEQUENCE):
            raise ValueError(f"phase_ratios needs {len(PHASE_SEQUENCE)} values, got {len(value)}")
        if any(ratio <= 0 for ratio in value):
            raise ValueError(f"phase_ratios must all be positive, got {value}")
        return value

    @field_validator("phase_minimums")
    @classmethod
    def validate_phase_minimums(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        """Validate one minimum (>= 1 week) per phase."""
        if len(value) != len(PHASE_SEQUENCE):
            raise ValueError(f"phase_minimums needs {len(PHASE_SEQUENCE)} values, got {len(value)}")
        if any(minimum < 1 for minimum in value):
            raise ValueError(f"phase_minimums must all be >= 1, got {value}")
        return value

    @model_validator(mode="after")
    def validate_week_bounds(self) -> "EngineConfig":
        if not self.min_plan_weeks <= self.default_plan_weeks <= self.max_plan_weeks:
            raise ValueError(
                f"Plan week bounds are inconsistent: min={self.min_plan_weeks}, "
                f"default={self.default_plan_weeks}, max={self.max_plan_weeks}"
            )
        return self

    def minimum_total_weeks(self) -> int:
        return sum(self.phase_minimums)


class LLMConfig(BaseModel):
    """Completion-service settings used by the intent classifier."""

    enabled: bool = True
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 1000
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    backoff_base_seconds: float = Field(default=1.0, ge=0)
    history_limit: int = Field(default=10, ge=0)
    api_key: SecretStr | None = None


class Settings(BaseSettings):
    database_url: str = Field(default="sqlite:///./adaptive_training.db", validation_alias="DATABASE_URL")
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")

    llm_enabled: bool = Field(default=True, validation_alias="LLM_ENABLED")
    llm_model: str = Field(default="gpt-4o-mini", validation_alias="LLM_MODEL")
    llm_temperature: float = Field(default=0.7, validation_alias="LLM_TEMPERATURE")
    llm_max_tokens: int = Field(default=1000, validation_alias="LLM_MAX_TOKENS")
    llm_timeout_seconds: float = Field(default=30.0, validation_alias="LLM_TIMEOUT_SECONDS")
    llm_max_retries: int = Field(default=3, validation_alias="LLM_MAX_RETRIES")
    llm_backoff_base_seconds: float = Field(default=1.0, validation_alias="LLM_BACKOFF_BASE_SECONDS")
    llm_history_limit: int = Field(default=10, validation_alias="LLM_HISTORY_LIMIT")

    plan_phase_ratios: tuple[float, ...] = Field(
        default=DEFAULT_PHASE_RATIOS,
        validation_alias="PLAN_PHASE_RATIOS",
        description="JSON list of six ratios: Foundation, Build, Intensity, Peak, Taper, Recovery",
    )
    plan_phase_minimums: tuple[int, ...] = Field(default=DEFAULT_PHASE_MINIMUMS, validation_alias="PLAN_PHASE_MINIMUMS")
    plan_intensity_step: int = Field(default=1, validation_alias="PLAN_INTENSITY_STEP")
    plan_intensity_window_days: int = Field(default=14, validation_alias="PLAN_INTENSITY_WINDOW_DAYS")
    plan_miss_threshold: int = Field(default=2, validation_alias="PLAN_MISS_THRESHOLD")
    plan_miss_window_days: int = Field(default=7, validation_alias="PLAN_MISS_WINDOW_DAYS")
    plan_min_days_between_adaptations: int = Field(default=7, validation_alias="PLAN_MIN_DAYS_BETWEEN_ADAPTATIONS")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("openai_api_key")
    @classmethod
    def validate_openai_api_key(cls, value: str) -> str:
        """Empty keys are allowed; the classifier then runs in fallback mode."""
        if not value:
            logger.warning("OPENAI_API_KEY is not set. Intent classification will use the fallback response.")
        return value

    def engine_config(self) -> EngineConfig:
        """Build the explicit engine configuration from environment settings."""
        return EngineConfig(
            phase_ratios=self.plan_phase_ratios,
            phase_minimums=self.plan_phase_minimums,
            intensity_step=self.plan_intensity_step,
            intensity_window_days=self.plan_intensity_window_days,
            miss_threshold=self.plan_miss_threshold,
            miss_window_days=self.plan_miss_window_days,
            min_days_between_adaptations=self.plan_min_days_between_adaptations,
        )

    def llm_config(self) -> LLMConfig:
        """Build the completion-service configuration.

        The service is disabled when no API key is configured.
        """
        return LLMConfig(
            enabled=self.llm_enabled and bool(self.openai_api_key),
            model=self.llm_model,
            temperature=self.llm_temperature,
            max_tokens=self.llm_max_tokens,
            timeout_seconds=self.llm_timeout_seconds,
            max_retries=self.llm_max_retries,
            backoff_base_seconds=self.llm_backoff_base_seconds,
            history_limit=self.llm_history_limit,
            api_key=SecretStr(self.openai_api_key) if self.openai_api_key else None,
        )


settings = Settings()
