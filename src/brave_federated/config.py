"""Configuration management for the federated learning client."""

from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from brave_federated.constants import (
    DEFAULT_COLLECTION_ID_LIFETIME_DAYS,
    DEFAULT_COLLECTION_SLOT_SIZE_MINUTES,
    DEFAULT_SIMULATE_LOCAL_TRAINING_STEP_MINUTES,
    FEDERATED_LEARNING_URL,
    REQUEST_TIMEOUT_SECONDS,
)


class OperationalProfilingFeatures(BaseModel):
    """Feature parameters for operational profiling.

    Passed explicitly to every component that needs them instead of
    being looked up from a global feature list.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False, description="Master switch for operational profiling")
    slot_size_minutes: int = Field(
        default=DEFAULT_COLLECTION_SLOT_SIZE_MINUTES,
        gt=0,
        description="Width of a collection slot; also drives the slot-start timer period",
    )
    simulate_duration_minutes: int = Field(
        default=DEFAULT_SIMULATE_LOCAL_TRAINING_STEP_MINUTES,
        ge=0,
        description="Delay of the training-step timer before an upload attempt",
    )
    collection_id_lifetime_days: int = Field(
        default=DEFAULT_COLLECTION_ID_LIFETIME_DAYS,
        gt=0,
        description="Days before the collection id is rotated",
    )

    @property
    def training_step_delay_seconds(self) -> int:
        return self.simulate_duration_minutes * 60

    @property
    def slot_timer_period_seconds(self) -> float:
        """Period of the slot-start timer: two fires per slot."""
        return self.slot_size_minutes * 60 / 2


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")
    log_to_file: bool = Field(default=False, description="Also write logs to a rotating file")
    log_file_path: str = Field(
        default="logs/brave_federated.log", description="Path of the rotating log file"
    )

    # Local state
    local_state_path: str | None = Field(
        default=None,
        description="JSON file holding persisted prefs; memory only when unset",
    )
    p3a_enabled: bool = Field(default=True, description="Initial P3A opt-in for a fresh profile")
    ads_enabled: bool = Field(default=False, description="Initial ads opt-in for a fresh profile")

    # Transport
    fl_endpoint: str = Field(
        default=FEDERATED_LEARNING_URL, description="Operational profiling endpoint"
    )
    fl_request_timeout: float = Field(
        default=REQUEST_TIMEOUT_SECONDS, gt=0, description="HTTP timeout in seconds"
    )
    platform_override: str | None = Field(
        default=None, description="Report this platform identifier instead of detecting it"
    )

    # Operational profiling feature parameters
    operational_profiling_enabled: bool = Field(default=False)
    operational_profiling_slot_size_minutes: int = Field(
        default=DEFAULT_COLLECTION_SLOT_SIZE_MINUTES, gt=0
    )
    operational_profiling_simulate_duration_minutes: int = Field(
        default=DEFAULT_SIMULATE_LOCAL_TRAINING_STEP_MINUTES, ge=0
    )
    operational_profiling_collection_id_lifetime_days: int = Field(
        default=DEFAULT_COLLECTION_ID_LIFETIME_DAYS, gt=0
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"

    def features(self) -> OperationalProfilingFeatures:
        """Build the feature parameters handed to the profiling service."""
        return OperationalProfilingFeatures(
            enabled=self.operational_profiling_enabled,
            slot_size_minutes=self.operational_profiling_slot_size_minutes,
            simulate_duration_minutes=self.operational_profiling_simulate_duration_minutes,
            collection_id_lifetime_days=self.operational_profiling_collection_id_lifetime_days,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
