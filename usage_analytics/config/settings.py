"""
Usage analytics settings.

Usage:
    from usage_analytics.config import load_settings

    settings = load_settings()
    host, port = settings.redis_host_port
"""

import os
from pathlib import Path
from typing import Dict, Literal, Mapping, Optional, Tuple, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from usage_analytics.exceptions import ConfigError

LogFormat = Literal["text", "json"]

# Environment variable -> Settings field
ENV_FIELDS: Dict[str, str] = {
    "REDIS_ADDR": "redis_addr",
    "REDIS_PASSWORD": "redis_password",
    "REDIS_DB": "redis_db",
    "CAPTURE_PORT": "capture_port",
    "ANALYTICS_PORT": "analytics_port",
    "TIMESERIES_PORT": "timeseries_port",
    "LOG_LEVEL": "log_level",
    "LOG_FORMAT": "log_format",
    "ANALYTICS_REFRESH_SECONDS": "analytics_refresh_seconds",
    "TIMESERIES_ROLLUP_SECONDS": "timeseries_rollup_seconds",
    "TOP_USERS_LIMIT": "top_users_limit",
    "SESSION_IDLE_MINUTES": "session_idle_minutes",
    "CAPTURE_MAX_RETRIES": "capture_max_retries",
    "TASK_RULES_PATH": "task_rules_path",
}


class Settings(BaseModel):
    """
    Settings shared by the capture, analytics and time-series services.
    """

    redis_addr: str = Field(default="localhost:6379", description="Store address as host:port")
    redis_password: Optional[str] = Field(default=None, description="Store password")
    redis_db: int = Field(default=0, ge=0, description="Store database index")

    capture_port: int = Field(default=8080, ge=1, le=65535)
    analytics_port: int = Field(default=8081, ge=1, le=65535)
    timeseries_port: int = Field(default=8082, ge=1, le=65535)

    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default="text")

    analytics_refresh_seconds: float = Field(default=10.0, gt=0, description="Gauge refresh period")
    timeseries_rollup_seconds: float = Field(default=30.0, gt=0, description="Rollup period")
    top_users_limit: int = Field(default=10, ge=1)
    session_idle_minutes: int = Field(
        default=30,
        ge=1,
        description="Inactivity after which a session is no longer reused",
    )
    capture_max_retries: int = Field(
        default=64,
        ge=1,
        description="Optimistic transaction attempts per capture before giving up",
    )
    task_rules_path: Optional[str] = Field(default=None, description="YAML task classification rules")

    @property
    def redis_host_port(self) -> Tuple[str, int]:
        """Split ``redis_addr`` into host and port."""
        host, sep, port = self.redis_addr.rpartition(":")
        if not sep:
            return self.redis_addr, 6379
        try:
            return host or "localhost", int(port)
        except ValueError:
            raise ConfigError(f"Invalid REDIS_ADDR: {self.redis_addr}")

    def port_for(self, service: str) -> int:
        """Return the configured port for a service name."""
        ports = {
            "capture": self.capture_port,
            "analytics": self.analytics_port,
            "timeseries": self.timeseries_port,
            "all": self.capture_port,
        }
        if service not in ports:
            raise ConfigError(f"Unknown service: {service}")
        return ports[service]


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    env_path: Union[str, Path, None] = ".env",
) -> Settings:
    """
    Build settings from environment variables.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``)
        env_path: Optional ``.env`` file loaded into the process environment first

    Returns:
        Validated Settings

    Raises:
        ConfigError: If a value fails validation
    """
    if environ is None:
        if env_path and Path(env_path).exists():
            load_dotenv(env_path)
        environ = os.environ

    values = {
        field: environ[env_name]
        for env_name, field in ENV_FIELDS.items()
        if environ.get(env_name) not in (None, "")
    }

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
