"""Settings for connecting to the management cluster."""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, field_validator

from capi_ops.exceptions import ConfigurationError
from capi_ops.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/capi-ops/config.yml")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseModel):
    """Connection and logging settings."""

    kubeconfig: str | None = None
    context: str | None = None
    request_timeout: float = 30.0
    log_level: str = "INFO"
    log_file: str | None = None

    @field_validator("request_timeout")
    @classmethod
    def validate_request_timeout(cls, v: float) -> float:
        """Validate request_timeout is positive."""
        if v <= 0:
            raise ValueError(f"request_timeout must be positive, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log_level is a known logging level."""
        if v.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got '{v}'")
        return v.upper()

    def save(self, path: str | Path) -> None:
        """Save settings to YAML file."""
        path = Path(path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.model_dump(exclude_none=True), f, default_flow_style=False)

    @classmethod
    def load(cls, path: str | Path) -> "Settings":
        """Load settings from YAML file.

        Raises:
            ConfigurationError: If the file is missing or invalid
        """
        path = Path(path).expanduser()
        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                "Create the file or omit --config to use environment variables",
            )
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration file {path}: {e}")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from CAPI_OPS_* environment variables."""
        data = {
            "kubeconfig": os.environ.get("CAPI_OPS_KUBECONFIG"),
            "context": os.environ.get("CAPI_OPS_CONTEXT"),
            "log_file": os.environ.get("CAPI_OPS_LOG_FILE"),
        }
        if "CAPI_OPS_REQUEST_TIMEOUT" in os.environ:
            data["request_timeout"] = os.environ["CAPI_OPS_REQUEST_TIMEOUT"]
        if "CAPI_OPS_LOG_LEVEL" in os.environ:
            data["log_level"] = os.environ["CAPI_OPS_LOG_LEVEL"]
        try:
            return cls(**data)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment configuration: {e}")


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from an explicit file, the default file, or the environment."""
    if config_path:
        return Settings.load(config_path)
    default = DEFAULT_CONFIG_PATH.expanduser()
    if default.exists():
        logger.debug(f"Loading settings from {default}")
        return Settings.load(default)
    return Settings.from_env()
