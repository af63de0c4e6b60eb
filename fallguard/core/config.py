"""
Configuration management system for fallguard.

This module provides Pydantic settings models for type-safe configuration with
validation and environment variable integration. Every detection threshold is a
field here, so a deployment can recalibrate the pipeline through FALLGUARD_*
environment variables or a .env file without touching code.
"""

from enum import Enum
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class LogLevel(str, Enum):
    """Log levels for the application."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

class BaseConfig(BaseSettings):
    """
    Base configuration class with common settings for all components.

    All other configuration classes should inherit from this class.
    """
    debug: bool = False
    log_level: LogLevel = LogLevel.INFO

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FALLGUARD_",
        extra="ignore",
    )

class EventConfig(BaseConfig):
    """Configuration for the event system."""
    max_trace_events: int = 1000
    tracing_enabled: bool = True

    model_config = SettingsConfigDict(env_prefix="FALLGUARD_EVENT_")

class ServiceConfig(BaseConfig):
    """Configuration for service management."""
    # True when the acquisition layer delivers a dedicated linear-acceleration
    # stream; the pipeline then stops deriving its own from RAW samples.
    dedicated_linear_sensor: bool = False

    model_config = SettingsConfigDict(env_prefix="FALLGUARD_SERVICE_")

class FilterConfig(BaseConfig):
    """Configuration for the signal filters shared by both detectors."""
    gravity_alpha: float = 0.08
    raw_magnitude_alpha: float = 0.15
    tremor_highpass_alpha: float = 0.88
    standard_gravity: float = 9.81  # m/s^2, initial gravity estimate on z
    max_abs_acceleration: float = 160.0  # m/s^2 per axis, about 16 g

    @field_validator("gravity_alpha", "raw_magnitude_alpha", "tremor_highpass_alpha")
    @classmethod
    def validate_alpha(cls, v):
        """Validate smoothing factors are usable EMA coefficients."""
        if not 0.0 < v <= 1.0:
            raise ValueError("Filter alpha must be in (0.0, 1.0]")
        return v

    @field_validator("max_abs_acceleration")
    @classmethod
    def validate_max_abs(cls, v):
        """Validate the sample clamp is positive."""
        if v <= 0.0:
            raise ValueError("max_abs_acceleration must be positive")
        return v

    model_config = SettingsConfigDict(env_prefix="FALLGUARD_FILTER_")

class FallConfig(BaseConfig):
    """Configuration for the free-fall -> impact -> stillness state machine."""
    free_fall_threshold: float = 3.0  # m/s^2, smoothed |a| at or below counts as free-fall
    free_fall_min_ms: int = 220
    impact_threshold: float = 22.0  # m/s^2
    impact_window_ms: int = 1500
    stillness_window_ms: int = 5000
    stillness_max_linear: float = 1.8  # m/s^2, peak linear magnitude allowed
    stillness_rms_linear: float = 1.0  # m/s^2, RMS linear magnitude allowed

    @field_validator(
        "free_fall_threshold", "impact_threshold",
        "stillness_max_linear", "stillness_rms_linear",
    )
    @classmethod
    def validate_positive(cls, v):
        """Validate thresholds are positive."""
        if v <= 0.0:
            raise ValueError("Fall thresholds must be positive")
        return v

    @model_validator(mode="after")
    def validate_ordering(self):
        """Free-fall must sit below impact or the stages overlap."""
        if self.free_fall_threshold >= self.impact_threshold:
            raise ValueError("free_fall_threshold must be below impact_threshold")
        return self

    model_config = SettingsConfigDict(env_prefix="FALLGUARD_FALL_")

class TremorConfig(BaseConfig):
    """Configuration for the tremor evaluator."""
    window_ms: int = 3000
    eval_interval_ms: int = 500
    deadzone: float = 0.25  # m/s^2, |hp_x| below this is ignored by the crossing counter
    min_rms: float = 1.35  # m/s^2
    min_zero_cross: int = 16
    max_zero_cross: int = 80
    min_active_samples: int = 60
    sustained_windows: int = 3

    @field_validator("window_ms", "eval_interval_ms", "min_active_samples", "sustained_windows")
    @classmethod
    def validate_positive_int(cls, v):
        """Validate window sizes and counts are positive."""
        if v <= 0:
            raise ValueError("Tremor windows and counts must be positive")
        return v

    @model_validator(mode="after")
    def validate_band(self):
        """Validate the zero-crossing band is not empty."""
        if self.min_zero_cross > self.max_zero_cross:
            raise ValueError("min_zero_cross must not exceed max_zero_cross")
        return self

    model_config = SettingsConfigDict(env_prefix="FALLGUARD_TREMOR_")

class AlertConfig(BaseConfig):
    """Configuration for the alert gate."""
    cooldown_ms: int = 20_000

    @field_validator("cooldown_ms")
    @classmethod
    def validate_cooldown(cls, v):
        if v < 0:
            raise ValueError("cooldown_ms must not be negative")
        return v

    model_config = SettingsConfigDict(env_prefix="FALLGUARD_ALERT_")

class ApplicationConfig(BaseConfig):
    """
    Main application configuration that combines all component configurations.

    This is the top-level configuration class that should be used by the application.
    """
    event: EventConfig = Field(default_factory=EventConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    filters: FilterConfig = Field(default_factory=FilterConfig)
    fall: FallConfig = Field(default_factory=FallConfig)
    tremor: TremorConfig = Field(default_factory=TremorConfig)
    alert: AlertConfig = Field(default_factory=AlertConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FALLGUARD_",
        env_nested_delimiter="__",
        extra="ignore",
    )

def get_config() -> ApplicationConfig:
    """
    Get the application configuration.

    Returns:
        The validated ApplicationConfig instance
    """
    return ApplicationConfig()
