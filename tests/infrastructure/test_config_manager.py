"""Unit tests for ConfigManager and Settings."""

import json
import os

import pytest

from patient_contracts.domain.policy import ValidationPolicy
from patient_contracts.infrastructure.config_manager import ConfigManager, get_validation_policy
from patient_contracts.infrastructure.settings import Settings

ENV_VARS = ("PC_AUTO_PROMOTE_PRIMARY", "PC_REQUIRE_REVOCATION_DETAILS", "PC_LOG_LEVEL", "PC_LOG_JSON", "PC_APP_NAME")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Isolate tests from the caller's environment and any .env in the working directory."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    # load_dotenv writes straight into os.environ
    for name in ENV_VARS:
        os.environ.pop(name, None)


class TestConfigManagerFromEnvironment:
    """Test suite for environment-based configuration."""

    def test_defaults(self):
        """Test that an empty environment yields the default policy."""
        config = ConfigManager.from_environment()
        assert config.get_policy() == ValidationPolicy()
        assert config.get_logging_config().level == "INFO"
        assert config.get_logging_config().json_format is False

    def test_policy_flags(self, monkeypatch):
        """Test reading policy switches."""
        monkeypatch.setenv("PC_AUTO_PROMOTE_PRIMARY", "true")
        monkeypatch.setenv("PC_REQUIRE_REVOCATION_DETAILS", "0")
        policy = ConfigManager.from_environment().get_policy()
        assert policy.auto_promote_primary is True
        assert policy.require_revocation_details is False

    def test_invalid_boolean(self, monkeypatch):
        """Test that an unparseable switch fails fast."""
        monkeypatch.setenv("PC_AUTO_PROMOTE_PRIMARY", "maybe")
        with pytest.raises(ValueError, match="PC_AUTO_PROMOTE_PRIMARY"):
            ConfigManager.from_environment()

    def test_logging_settings(self, monkeypatch):
        """Test log level normalization and JSON switch."""
        monkeypatch.setenv("PC_LOG_LEVEL", "debug")
        monkeypatch.setenv("PC_LOG_JSON", "yes")
        logging_config = ConfigManager.from_environment().get_logging_config()
        assert logging_config.level == "DEBUG"
        assert logging_config.json_format is True

    def test_invalid_log_level(self, monkeypatch):
        """Test that unknown log levels are rejected."""
        monkeypatch.setenv("PC_LOG_LEVEL", "LOUD")
        with pytest.raises(ValueError):
            ConfigManager.from_environment().get_logging_config()

    def test_dotenv_file(self, tmp_path):
        """Test loading switches from a .env file."""
        (tmp_path / ".env").write_text("PC_REQUIRE_REVOCATION_DETAILS=true\n")
        assert ConfigManager.from_environment().get_policy().require_revocation_details is True

    def test_environment_wins_over_dotenv(self, tmp_path, monkeypatch):
        """Test that real environment variables take precedence."""
        env_file = tmp_path / "custom.env"
        env_file.write_text("PC_AUTO_PROMOTE_PRIMARY=true\n")
        monkeypatch.setenv("PC_AUTO_PROMOTE_PRIMARY", "false")
        policy = ConfigManager.from_environment(str(env_file)).get_policy()
        assert policy.auto_promote_primary is False

    def test_convenience_function(self, monkeypatch):
        """Test get_validation_policy."""
        monkeypatch.setenv("PC_AUTO_PROMOTE_PRIMARY", "on")
        assert get_validation_policy().auto_promote_primary is True


class TestConfigManagerFromFile:
    """Test suite for JSON file configuration."""

    def test_from_file(self, tmp_path):
        """Test loading policy and logging sections."""
        config_file = tmp_path / "contracts.json"
        config_file.write_text(json.dumps({
            "policy": {"auto_promote_primary": True},
            "logging": {"level": "warning"},
        }))
        config = ConfigManager.from_file(str(config_file))
        assert config.get_policy().auto_promote_primary is True
        assert config.get_logging_config().level == "WARNING"
        assert config.get("policy.auto_promote_primary") is True
        assert config.get("policy.missing", "fallback") == "fallback"

    def test_missing_file(self, tmp_path):
        """Test the missing file error."""
        with pytest.raises(FileNotFoundError):
            ConfigManager.from_file(str(tmp_path / "absent.json"))

    def test_invalid_json(self, tmp_path):
        """Test the malformed file error."""
        config_file = tmp_path / "broken.json"
        config_file.write_text("{not json")
        with pytest.raises(ValueError, match="Invalid JSON"):
            ConfigManager.from_file(str(config_file))

    def test_non_object_json(self, tmp_path):
        """Test that the top level must be an object."""
        config_file = tmp_path / "list.json"
        config_file.write_text("[]")
        with pytest.raises(ValueError):
            ConfigManager.from_file(str(config_file))


class TestSettings:
    """Test suite for Settings."""

    def test_settings_from_config_manager(self):
        """Test that settings expose the configured policy and logging."""
        settings = Settings(ConfigManager({"policy": {"require_revocation_details": True}, "logging": {"json_format": True}}))
        assert settings.policy.require_revocation_details is True
        assert settings.log_json is True
        assert settings.log_level == "INFO"
        assert settings.app_name == "patient-contracts"

    def test_app_name_override(self, monkeypatch):
        """Test the application name variable."""
        monkeypatch.setenv("PC_APP_NAME", "intake")
        assert Settings(ConfigManager({})).app_name == "intake"
