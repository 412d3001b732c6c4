from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Rate limiter settings loaded from environment variables.

    All settings can be configured via GCRA_* environment variables or .env file.
    """

    # Redis settings
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "gcra:"  # Namespace shared by all buckets of this deployment
    reconnect_on_readonly: bool = False  # Reconnect once when hitting a read-only replica

    # GCRA settings
    rate_limit_period_seconds: float = 1.0  # Emission interval per unit of quantity
    rate_limit_max_burst: int = 10  # Extra capacity above the steady-state rate
    rate_limit_max_attempts: int = 10  # Optimistic CAS attempts before giving up
    rate_limit_fail_closed: bool = (
        False  # If True, the HTTP middleware denies requests when the store fails
    )

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator("rate_limit_period_seconds")
    @classmethod
    def validate_period(cls, v: float) -> float:
        """Validate the period is not negative."""
        if v < 0:
            raise ValueError("rate_limit_period_seconds must not be negative")
        return v

    @field_validator("rate_limit_max_burst")
    @classmethod
    def validate_max_burst(cls, v: int) -> int:
        """Validate the burst is not negative."""
        if v < 0:
            raise ValueError("rate_limit_max_burst must not be negative")
        return v

    @field_validator("rate_limit_max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        """Validate at least one attempt is made."""
        if v < 1:
            raise ValueError("rate_limit_max_attempts must be at least 1")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "structured", "json"):
            raise ValueError("log_format must be one of: text, structured, json")
        return v

    model_config = SettingsConfigDict(env_prefix="GCRA_", env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
