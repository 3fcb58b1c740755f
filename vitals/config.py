"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Simulator tuning constants live here, not in the step logic
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class SimulatorConfig(BaseModel):
    """Tuning for the simulated vital-signs stream."""

    # Randomised gates, in milliseconds since the last update
    heart_rate_gate_min_ms: float = Field(default=8000.0, gt=0.0)
    heart_rate_gate_max_ms: float = Field(default=12000.0, gt=0.0)
    pressure_gate_min_ms: float = Field(default=10000.0, gt=0.0)
    pressure_gate_max_ms: float = Field(default=15000.0, gt=0.0)

    # Slow sinusoidal trends: amplitude * sin/cos(now_ms / divisor)
    heart_rate_trend_amplitude: float = Field(default=2.0, ge=0.0)
    heart_rate_trend_divisor_ms: float = Field(default=120000.0, gt=0.0)
    pressure_trend_amplitude: float = Field(default=1.0, ge=0.0)
    pressure_trend_divisor_ms: float = Field(default=90000.0, gt=0.0)

    # Drift spans: drift is a uniform integer in [-span, span]
    heart_rate_drift_span: int = Field(default=1, ge=0)
    pressure_drift_span: int = Field(default=2, ge=0)

    # Bounds may only narrow the stream limits that snapshots and stored records accept
    heart_rate_min: float = Field(default=55.0, ge=55.0, le=110.0)
    heart_rate_max: float = Field(default=110.0, ge=55.0, le=110.0)
    foot_pressure_min: float = Field(default=20.0, ge=20.0, le=100.0)
    foot_pressure_max: float = Field(default=100.0, ge=20.0, le=100.0)
    max_anomalies: int = Field(default=10, gt=0, le=10)

    # Heart rates outside this band may raise the anomaly count
    normal_heart_rate_low: int = 60
    normal_heart_rate_high: int = 100

    # Per-call probabilities
    bluetooth_toggle_probability: float = Field(default=0.01, ge=0.0, le=1.0)
    battery_drain_probability: float = Field(default=0.10, ge=0.0, le=1.0)
    battery_recharge_probability: float = Field(default=0.05, ge=0.0, le=1.0)
    anomaly_increment_probability: float = Field(default=0.10, ge=0.0, le=1.0)
    anomaly_decrement_probability: float = Field(default=0.02, ge=0.0, le=1.0)

    battery_recharge_threshold: int = Field(default=20, ge=0, le=100)
    battery_recharge_min: int = Field(default=3, ge=0)
    battery_recharge_max: int = Field(default=7, ge=0)
    disconnect_drain_max: int = Field(default=2, ge=0)

    seed: int | None = Field(default=None, description="Seed for a reproducible stream")

    @model_validator(mode="after")
    def ranges_are_ordered(self) -> "SimulatorConfig":
        pairs = {
            "heart_rate_gate": (self.heart_rate_gate_min_ms, self.heart_rate_gate_max_ms),
            "pressure_gate": (self.pressure_gate_min_ms, self.pressure_gate_max_ms),
            "heart_rate": (self.heart_rate_min, self.heart_rate_max),
            "foot_pressure": (self.foot_pressure_min, self.foot_pressure_max),
            "normal_heart_rate": (self.normal_heart_rate_low, self.normal_heart_rate_high),
            "battery_recharge": (self.battery_recharge_min, self.battery_recharge_max),
        }
        for name, (low, high) in pairs.items():
            if low > high:
                raise ValueError(f"{name} range is inverted: {low} > {high}")
        return self


class DatabaseConfig(BaseModel):
    """Storage backend for persisted health metric samples."""

    url: str = Field(
        default="sqlite:///./vitals.db",
        description="sqlite:///<path> for SQLite, memory:// for an in-process store",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")

    # Log destinations
    enable_file_logging: bool = Field(default=False, description="Enable file logging")
    log_file_path: str = Field(default="./logs/vitals.log", description="Path to log file")
    max_file_bytes: int = Field(default=5 * 1024 * 1024, gt=0)
    backup_count: int = Field(default=3, ge=0)


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Component configs
    simulator: SimulatorConfig = Field(default_factory=SimulatorConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    def _parse_seed(val: str | None) -> int | None:
        if val is None or not val.strip():
            return None
        return int(val)

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    simulator_config = SimulatorConfig(seed=_parse_seed(os.getenv("SIMULATOR_SEED")))

    database_config = DatabaseConfig(
        url=os.getenv("DATABASE_URL", "sqlite:///./vitals.db"),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
        enable_file_logging=_parse_bool(os.getenv("LOG_FILE_ENABLED"), False),
        log_file_path=os.getenv("LOG_FILE_PATH", "./logs/vitals.log"),
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        simulator=simulator_config,
        database=database_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def validate_config() -> AppConfig:
    """Validate configuration at startup."""
    # Imported here so config stays importable before logging is configured
    from vitals.observability import get_logger

    log = get_logger(__name__)
    try:
        config = get_config()
    except Exception as e:
        log.error("configuration_validation_failed", error=str(e))
        raise

    log.info(
        "configuration_loaded",
        environment=config.environment,
        database_url=config.database.url,
        seeded=config.simulator.seed is not None,
    )
    return config


# Development helpers
def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()
    sim = config.simulator

    print("\n🔧 CONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\n🦶 SIMULATOR CONFIGURATION")
    print(f"Heart-rate gate: {sim.heart_rate_gate_min_ms:.0f}-{sim.heart_rate_gate_max_ms:.0f}ms")
    print(f"Pressure gate: {sim.pressure_gate_min_ms:.0f}-{sim.pressure_gate_max_ms:.0f}ms")
    print(f"Seed: {sim.seed if sim.seed is not None else 'random'}")

    print("\n💾 STORAGE CONFIGURATION")
    print(f"Database URL: {config.database.url}")


if __name__ == "__main__":
    validate_config()
    print_config_summary()
