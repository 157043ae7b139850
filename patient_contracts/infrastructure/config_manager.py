"""Configuration Manager for validation policy and runtime settings.

Loads configuration from ``PC_*`` environment variables (optionally seeded
from a ``.env`` file) or from a JSON file, and exposes the validation policy
as a typed pydantic model.

Security Impact:
    - Configuration never contains patient data
    - Malformed configuration fails fast at load time instead of silently
      falling back to a more permissive policy

Architecture:
    - Infrastructure layer; the domain only ever sees ``ValidationPolicy``
    - Type-safe configuration using Pydantic models
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from patient_contracts.domain.policy import ValidationPolicy

logger = logging.getLogger(__name__)

ENV_PREFIX = "PC_"
TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: Optional[str]) -> Optional[bool]:
    if raw is None or raw == "":
        return None
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValueError(f"Environment variable {name} must be a boolean, got {raw!r}")


class LoggingConfig(BaseModel):
    """Logging configuration.

    Parameters:
        level: Root log level name
        json_format: Emit JSON lines instead of human-readable text
    """

    level: str = Field(default="INFO", description="Root log level")
    json_format: bool = Field(default=False, description="Emit JSON lines")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level name."""
        supported = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in supported:
            raise ValueError(f"Unsupported log level: {v}. Supported: {supported}")
        return v.upper()


class ConfigManager:
    """Configuration manager for policy and logging settings.

    Example Usage:
        ```python
        config = ConfigManager.from_environment()
        policy = config.get_policy()

        config = ConfigManager.from_file("contracts.json")
        level = config.get("logging.level", "INFO")
        ```
    """

    def __init__(self, config_data: Dict[str, Any]):
        """Initialize configuration manager.

        Parameters:
            config_data: Configuration dictionary with optional ``policy``
                and ``logging`` sections
        """
        self._config_data = config_data
        self._policy: Optional[ValidationPolicy] = None
        self._logging: Optional[LoggingConfig] = None

    @classmethod
    def from_environment(cls, env_file: Optional[str] = None) -> 'ConfigManager':
        """Load configuration from environment variables.

        Environment Variables:
            - PC_AUTO_PROMOTE_PRIMARY: Mark the first contact primary when none is
            - PC_REQUIRE_REVOCATION_DETAILS: Reject declined consents without revocation data
            - PC_LOG_LEVEL: Root log level
            - PC_LOG_JSON: Emit JSON log lines

        Parameters:
            env_file: ``.env`` file to load first; defaults to ``.env`` in the
                current working directory when present. Variables already set
                in the environment win.

        Returns:
            ConfigManager instance

        Raises:
            ValueError: If a boolean variable holds anything but a boolean word
        """
        env_path = Path(env_file) if env_file else Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment variables from {env_path}")

        policy = {
            "auto_promote_primary": _parse_bool(
                f"{ENV_PREFIX}AUTO_PROMOTE_PRIMARY", os.getenv(f"{ENV_PREFIX}AUTO_PROMOTE_PRIMARY")
            ),
            "require_revocation_details": _parse_bool(
                f"{ENV_PREFIX}REQUIRE_REVOCATION_DETAILS", os.getenv(f"{ENV_PREFIX}REQUIRE_REVOCATION_DETAILS")
            ),
        }
        logging_section = {
            "level": os.getenv(f"{ENV_PREFIX}LOG_LEVEL"),
            "json_format": _parse_bool(f"{ENV_PREFIX}LOG_JSON", os.getenv(f"{ENV_PREFIX}LOG_JSON")),
        }
        config_data = {
            "policy": {key: value for key, value in policy.items() if value is not None},
            "logging": {key: value for key, value in logging_section.items() if value is not None},
        }
        return cls(config_data)

    @classmethod
    def from_file(cls, config_path: str) -> 'ConfigManager':
        """Load configuration from a JSON file.

        Parameters:
            config_path: Path to configuration file

        Returns:
            ConfigManager instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is not valid JSON
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {str(e)}")

        if not isinstance(config_data, dict):
            raise ValueError(f"Configuration file must hold a JSON object: {config_path}")
        return cls(config_data)

    def get_policy(self) -> ValidationPolicy:
        """Get the validation policy.

        Returns:
            ValidationPolicy instance, defaults for anything not configured
        """
        if self._policy is None:
            self._policy = ValidationPolicy(**self._config_data.get("policy", {}))
        return self._policy

    def get_logging_config(self) -> LoggingConfig:
        if self._logging is None:
            self._logging = LoggingConfig(**self._config_data.get("logging", {}))
        return self._logging

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key.

        Parameters:
            key: Configuration key (supports dot notation, e.g., "policy.auto_promote_primary")
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split(".")
        value = self._config_data

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default


def get_validation_policy() -> ValidationPolicy:
    """Convenience function to get the validation policy from the environment."""
    return ConfigManager.from_environment().get_policy()
