"""Application Settings.

Combines configuration from the configuration manager with application
defaults behind one module-level ``settings`` object.
"""

import os
from typing import Optional

from patient_contracts import __version__
from patient_contracts.domain.policy import ValidationPolicy
from patient_contracts.infrastructure.config_manager import ConfigManager

# Application metadata
APP_NAME = "patient-contracts"
APP_VERSION = __version__


class Settings:
    """Application settings loaded from the configuration manager and environment.

    The validation policy and logging configuration are loaded lazily on
    first access so that importing this module never reads files.
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        self._config_manager = config_manager
        self._policy: Optional[ValidationPolicy] = None

        self.app_name = os.getenv("PC_APP_NAME", APP_NAME)
        self.app_version = APP_VERSION

    @property
    def config_manager(self) -> ConfigManager:
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    @property
    def policy(self) -> ValidationPolicy:
        """Validation policy applied by the CLI and adapters."""
        if self._policy is None:
            self._policy = self.config_manager.get_policy()
        return self._policy

    @property
    def log_level(self) -> str:
        return self.config_manager.get_logging_config().level

    @property
    def log_json(self) -> bool:
        return self.config_manager.get_logging_config().json_format


# Global settings instance
settings = Settings()
