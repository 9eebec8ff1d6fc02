"""
Planning Poker - Application Settings

Loads configuration from environment variables (prefixed PPOKER_) and an
optional .env file using Pydantic Settings, and turns it into the already
validated parameters the synchronization core expects.
"""

import getpass
import secrets
import string
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from ppoker.realtime.connection import ConnectionManager, ConnectionParams, PlayerIdentity
from ppoker.realtime.retry import RetryPolicy
from ppoker.room.base import Role
from ppoker.room.validators import validate_display_name


def _generate_room_name(length: int = 8) -> str:
    """Generate a random room name, avoiding ambiguous characters."""
    alphabet = string.ascii_lowercase.replace("l", "").replace("o", "")
    alphabet += string.digits.replace("0", "").replace("1", "")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _default_name() -> str:
    """The OS login name, or a generic fallback when none is available."""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "anonymous"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Session
    server: str
    room: str = Field(default_factory=_generate_room_name, min_length=1)
    name: str = Field(default_factory=_default_name, validate_default=True)
    role: Role = Role.VOTER
    auto_reveal: bool = True

    # Notifications
    notifications_enabled: bool = True

    # Connection
    connect_timeout: float = Field(default=10.0, gt=0)
    idle_timeout: float = Field(default=60.0, gt=0)
    send_timeout: float = Field(default=10.0, gt=0)
    retry_max_attempts: int = Field(default=5, ge=0)
    retry_base_delay: float = Field(default=0.5, ge=0)
    retry_max_delay: float = Field(default=10.0, ge=0)

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    model_config = {
        "env_prefix": "PPOKER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("name")
    @classmethod
    def _clean_name(cls, value: str) -> str:
        return validate_display_name(value)

    def connection_params(self) -> ConnectionParams:
        """Parameters for one room session."""
        return ConnectionParams(
            server=self.server,
            room=self.room,
            player=PlayerIdentity(name=self.name, role=self.role),
            auto_reveal=self.auto_reveal,
        )

    def connector(self) -> ConnectionManager:
        """Connection manager using the configured timeouts."""
        return ConnectionManager(
            connect_timeout=self.connect_timeout,
            idle_timeout=self.idle_timeout,
            send_timeout=self.send_timeout,
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached singleton settings instance."""
    return Settings()
