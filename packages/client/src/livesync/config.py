"""Client configuration via environment variables.

Uses pydantic-settings to load config from env vars with LIVESYNC_ prefix.
Every component also takes explicit arguments, so `settings` is only the
default wiring used by the CLI.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All client configuration. Set via LIVESYNC_* env vars."""

    # Snapshot API
    api_url: str = "http://localhost:3001/api"
    api_token: str = ""
    request_timeout: float = 30.0

    # Change stream (Redis pub/sub)
    redis_url: str = "redis://localhost:6379/0"
    channel_prefix: str = "livesync:changes"

    # Reconnect backoff (owned by the transport)
    reconnect_initial_delay: float = 0.5
    reconnect_max_delay: float = 30.0

    # View state capacities
    recent_anomalies_capacity: int = 10
    activity_feed_capacity: int = 50

    # Logging
    log_level: str = "INFO"

    model_config = {"env_prefix": "LIVESYNC_"}

    @model_validator(mode="after")
    def validate_limits(self):
        """Capacities must be positive and backoff must be ordered."""
        if self.recent_anomalies_capacity < 1 or self.activity_feed_capacity < 1:
            raise ValueError("LIVESYNC_*_CAPACITY values must be at least 1")
        if self.reconnect_initial_delay > self.reconnect_max_delay:
            raise ValueError(
                "LIVESYNC_RECONNECT_INITIAL_DELAY must not exceed "
                "LIVESYNC_RECONNECT_MAX_DELAY"
            )
        return self


# Default instance used by the CLI
settings = Settings()
