"""
Test suite for ConfigLoader component
Following TDD approach with AAA pattern and descriptive naming
"""

import tempfile
from pathlib import Path

import pytest

from question_harvester.config_loader import (
    ConfigLoader, ConfigurationError, HarvestConfig, MissingCredentialError
)

VALID_TOML = """
[api]
name = "myquest"
base_url = "https://api.test.com/api/questions"

[authentication]
type = "bearer_token"
token_env = "TEST_MYQUEST_KEY"

[collection]
exam = "JAMB"
per_subject_target = 500
polite_delay_ms = 50
years_back = 13

[checkpoint]
pages = 10
path = "state/checkpoint_JAMB.json"

[retries]
max_attempts = 5
backoff_ms = 200
"""

VALID_YAML = """
api:
  name: myquest
  base_url: https://api.test.com/api/questions
authentication:
  token_env: TEST_MYQUEST_KEY
collection:
  exam: POSTUTME
  target: 1000
  fallback_subjects: [mathematics, english]
"""


def write_temp(content: str, suffix: str) -> Path:
    temp_dir = Path(tempfile.mkdtemp())
    path = temp_dir / f"config{suffix}"
    path.write_text(content, encoding='utf-8')
    return path


class TestConfigLoader:
    """Test suite for ConfigLoader configuration functionality"""

    def test_load_config_with_valid_toml_returns_harvest_config(self):
        """
        Test that a complete TOML file produces a populated HarvestConfig
        """
        # Arrange
        config_path = write_temp(VALID_TOML, '.toml')
        environ = {'TEST_MYQUEST_KEY': 'secret_key_123'}

        # Act
        config = ConfigLoader.load_config(config_path, environ=environ)

        # Assert
        assert isinstance(config, HarvestConfig)
        assert config.api_name == 'myquest'
        assert config.token == 'secret_key_123'
        assert config.exam == 'JAMB'
        assert config.per_subject_target == 500
        assert config.polite_delay_ms == 50
        assert config.variant_delay_ms == 80
        assert config.years_back == 13
        assert config.checkpoint_pages == 10
        assert config.checkpoint_path == Path("state/checkpoint_JAMB.json")
        assert config.retry_max_attempts == 5
        assert config.retry_backoff_ms == 200

    def test_load_config_with_yaml_file_parses_yaml(self):
        """
        Test that YAML files are parsed by suffix
        """
        # Arrange
        config_path = write_temp(VALID_YAML, '.yml')

        # Act
        config = ConfigLoader.load_config(config_path, environ={'TEST_MYQUEST_KEY': 'k'})

        # Assert
        assert config.exam == 'POSTUTME'
        assert config.target == 1000
        assert config.per_subject_target is None
        assert config.fallback_subjects == ('mathematics', 'english')

    def test_load_config_without_credential_raises_missing_credential_error(self):
        """
        Test that an unset credential variable is fatal
        """
        # Arrange
        config_path = write_temp(VALID_TOML, '.toml')

        # Act & Assert
        with pytest.raises(MissingCredentialError) as exc_info:
            ConfigLoader.load_config(config_path, environ={})

        assert 'TEST_MYQUEST_KEY' in str(exc_info.value)

    def test_load_config_with_missing_sections_lists_every_missing_item(self):
        """
        Test that validation reports all missing sections and keys together
        """
        # Arrange
        config_path = write_temp('[api]\nname = "myquest"\n', '.toml')

        # Act & Assert
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader.load_config(config_path, environ={})

        message = str(exc_info.value)
        assert "Key 'base_url' in section [api]" in message
        assert "Section [authentication]" in message
        assert "Section [collection]" in message

    def test_load_config_with_invalid_toml_raises_configuration_error(self):
        """
        Test that TOML syntax errors surface as ConfigurationError
        """
        # Arrange
        config_path = write_temp('[api\nname = ', '.toml')

        # Act & Assert
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader.load_config(config_path, environ={})

        assert "Invalid TOML syntax" in str(exc_info.value)

    def test_load_config_with_nonexistent_file_raises_file_not_found(self):
        # Act & Assert
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load_config(Path('/nonexistent/config.toml'))

    def test_load_config_with_overrides_prefers_override_values(self):
        """
        Test that CLI-style overrides win and None overrides are ignored
        """
        # Arrange
        config_path = write_temp(VALID_TOML, '.toml')
        overrides = {'exam': 'GST', 'per_subject_target': 25, 'target': None}

        # Act
        config = ConfigLoader.load_config(config_path, overrides, environ={'TEST_MYQUEST_KEY': 'k'})

        # Assert
        assert config.exam == 'GST'
        assert config.per_subject_target == 25
        assert config.target is None

    def test_load_config_with_unknown_override_raises_configuration_error(self):
        # Arrange
        config_path = write_temp(VALID_TOML, '.toml')

        # Act & Assert
        with pytest.raises(ConfigurationError):
            ConfigLoader.load_config(config_path, {'colour': 'blue'}, environ={'TEST_MYQUEST_KEY': 'k'})

    def test_load_config_without_any_target_raises_configuration_error(self):
        """
        Test that collection cannot be configured without a quota
        """
        # Arrange
        content = VALID_TOML.replace('per_subject_target = 500\n', '')
        config_path = write_temp(content, '.toml')

        # Act & Assert
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader.load_config(config_path, environ={'TEST_MYQUEST_KEY': 'k'})

        assert "per_subject_target or target" in str(exc_info.value)

    def test_load_config_with_non_positive_target_raises_configuration_error(self):
        # Arrange
        config_path = write_temp(VALID_TOML, '.toml')

        # Act & Assert
        with pytest.raises(ConfigurationError):
            ConfigLoader.load_config(config_path, {'per_subject_target': 0}, environ={'TEST_MYQUEST_KEY': 'k'})

    def test_resolve_quota_with_per_subject_target_takes_precedence(self):
        # Act
        quota = ConfigLoader.resolve_quota(per_subject_target=7, target=1000, subject_count=3)

        # Assert
        assert quota == 7

    def test_resolve_quota_with_global_target_divides_with_ceiling(self):
        # Act
        quota = ConfigLoader.resolve_quota(per_subject_target=None, target=10, subject_count=3)

        # Assert
        assert quota == 4

    def test_resolve_quota_without_targets_raises_configuration_error(self):
        # Act & Assert
        with pytest.raises(ConfigurationError):
            ConfigLoader.resolve_quota(per_subject_target=None, target=None, subject_count=5)

    def test_stale_page_limit_is_off_unless_configured(self, make_config):
        # Act
        config = make_config()

        # Assert
        assert config.stale_page_limit is None

    def test_load_config_with_non_positive_stale_page_limit_raises_configuration_error(self):
        # Arrange
        config_path = write_temp(VALID_TOML, '.toml')

        # Act & Assert
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader.load_config(config_path, {'stale_page_limit': 0}, environ={'TEST_MYQUEST_KEY': 'k'})

        assert "stale_page_limit" in str(exc_info.value)

    def test_harvest_config_is_immutable(self, make_config):
        # Arrange
        config = make_config()

        # Act & Assert
        with pytest.raises(AttributeError):
            config.exam = 'OTHER'

    def test_resolved_checkpoint_path_defaults_to_exam_named_file(self, make_config):
        # Arrange
        config = make_config(checkpoint_path=None, exam='GST')

        # Act
        path = config.resolved_checkpoint_path

        # Assert
        assert path.name == 'checkpoint_GST.json'
