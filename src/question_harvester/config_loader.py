"""
ConfigLoader module for loading and validating harvest configuration files
"""

import math
import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml


class ConfigurationError(Exception):
    """Raised when configuration is invalid or incomplete"""
    pass


class MissingCredentialError(ConfigurationError):
    """Raised when the bearer credential environment variable is not set"""
    pass


DEFAULT_FALLBACK_YEARS: Tuple[str, ...] = tuple(str(year) for year in range(2024, 1999, -1))
DEFAULT_FALLBACK_SUBJECTS: Tuple[str, ...] = ("mathematics", "english", "physics", "chemistry", "biology")


@dataclass(frozen=True)
class HarvestConfig:
    """Immutable configuration shared by every harvest component"""
    api_name: str
    base_url: str
    token: str
    exam: str
    per_subject_target: Optional[int] = None
    target: Optional[int] = None
    polite_delay_ms: int = 150
    variant_delay_ms: int = 80
    checkpoint_pages: int = 40
    stale_page_limit: Optional[int] = None
    checkpoint_path: Optional[Path] = None
    output_dir: Path = Path("outputs")
    years_back: Optional[int] = None
    verify_exam: bool = True
    fallback_years: Tuple[str, ...] = DEFAULT_FALLBACK_YEARS
    fallback_subjects: Tuple[str, ...] = DEFAULT_FALLBACK_SUBJECTS
    retry_max_attempts: int = 4
    retry_backoff_ms: int = 300
    request_timeout_seconds: Optional[float] = 30.0
    cache_enabled: bool = False
    cache_path: Path = Path("cache/catalog_cache")
    cache_expiration_seconds: int = 86400
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @property
    def resolved_checkpoint_path(self) -> Path:
        """Checkpoint location, defaulting to checkpoint_<EXAM>.json in the working directory"""
        if self.checkpoint_path is not None:
            return Path(self.checkpoint_path)
        return Path.cwd() / f"checkpoint_{self.exam}.json"

    @property
    def polite_delay_seconds(self) -> float:
        return self.polite_delay_ms / 1000.0

    @property
    def variant_delay_seconds(self) -> float:
        return self.variant_delay_ms / 1000.0


class ConfigLoader:
    """Loads and validates TOML or YAML harvest configuration files"""

    # Required configuration sections and their mandatory keys
    REQUIRED_SECTIONS = {
        'api': ['name', 'base_url'],
        'authentication': ['token_env'],
        'collection': ['exam']
    }

    @staticmethod
    def load_config(config_path: Path, overrides: Optional[Dict[str, Any]] = None,
                    environ: Optional[Dict[str, str]] = None) -> HarvestConfig:
        """
        Load harvest configuration from a TOML or YAML file

        Args:
            config_path: Path to the configuration file (.toml, .yml or .yaml)
            overrides: Field values that take precedence over the file (e.g. CLI flags);
                       None values are ignored
            environ: Environment mapping used to resolve the credential (defaults to os.environ)

        Returns:
            HarvestConfig built once for the whole run

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigurationError: If required configuration is missing or invalid
            MissingCredentialError: If the credential environment variable is not set
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        config_data = ConfigLoader._read_file(config_path)
        ConfigLoader._validate_required_sections(config_data)

        environ = os.environ if environ is None else environ
        token_env = config_data['authentication']['token_env']
        token = ConfigLoader.get_environment_value(token_env, environ)

        config = ConfigLoader._build_config(config_data, token)

        if overrides:
            known = {f.name for f in fields(HarvestConfig)}
            unknown = [key for key in overrides if key not in known]
            if unknown:
                raise ConfigurationError(f"Unknown configuration overrides: {', '.join(unknown)}")
            applied = {key: value for key, value in overrides.items() if value is not None}
            config = replace(config, **applied)

        ConfigLoader.validate_config(config)
        return config

    @staticmethod
    def _read_file(config_path: Path) -> Dict[str, Any]:
        """Parse TOML or YAML depending on the file suffix"""
        if config_path.suffix.lower() == '.toml':
            try:
                with open(config_path, 'rb') as f:
                    return tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML syntax in {config_path}: {e}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}")

        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
        return config_data

    @staticmethod
    def _validate_required_sections(config_data: Dict[str, Any]) -> None:
        """
        Validate that all required configuration sections and keys are present

        Args:
            config_data: Parsed configuration data

        Raises:
            ConfigurationError: If any required section or key is missing
        """
        missing_items = []

        for section_name, required_keys in ConfigLoader.REQUIRED_SECTIONS.items():
            if section_name not in config_data:
                missing_items.append(f"Section [{section_name}]")
            else:
                section_data = config_data[section_name]
                for key in required_keys:
                    if key not in section_data:
                        missing_items.append(f"Key '{key}' in section [{section_name}]")

        if missing_items:
            raise ConfigurationError(
                f"Missing required configuration items: {', '.join(missing_items)}"
            )

    @staticmethod
    def _build_config(config_data: Dict[str, Any], token: str) -> HarvestConfig:
        api = config_data['api']
        collection = config_data['collection']
        checkpoint = config_data.get('checkpoint', {})
        retries = config_data.get('retries', {})
        output = config_data.get('output', {})
        cache = config_data.get('cache', {})
        logging_section = config_data.get('logging', {})

        values: Dict[str, Any] = {
            'api_name': str(api['name']),
            'base_url': str(api['base_url']),
            'token': token,
            'exam': str(collection['exam']),
            'per_subject_target': collection.get('per_subject_target'),
            'target': collection.get('target'),
            'years_back': collection.get('years_back'),
        }

        optional_values = {
            'request_timeout_seconds': api.get('request_timeout_seconds'),
            'polite_delay_ms': collection.get('polite_delay_ms'),
            'variant_delay_ms': collection.get('variant_delay_ms'),
            'stale_page_limit': collection.get('stale_page_limit'),
            'verify_exam': collection.get('verify_exam'),
            'checkpoint_pages': checkpoint.get('pages'),
            'checkpoint_path': Path(checkpoint['path']) if 'path' in checkpoint else None,
            'retry_max_attempts': retries.get('max_attempts'),
            'retry_backoff_ms': retries.get('backoff_ms'),
            'output_dir': Path(output['directory']) if 'directory' in output else None,
            'cache_enabled': cache.get('enabled'),
            'cache_path': Path(cache['path']) if 'path' in cache else None,
            'cache_expiration_seconds': cache.get('expiration'),
            'log_level': logging_section.get('level'),
            'log_file': Path(logging_section['file']) if 'file' in logging_section else None,
        }
        values.update({key: value for key, value in optional_values.items() if value is not None})

        if 'fallback_years' in collection:
            values['fallback_years'] = tuple(str(year) for year in collection['fallback_years'])
        if 'fallback_subjects' in collection:
            values['fallback_subjects'] = tuple(str(subject) for subject in collection['fallback_subjects'])

        return HarvestConfig(**values)

    @staticmethod
    def validate_config(config: HarvestConfig) -> None:
        """
        Validate numeric settings of a built configuration

        Raises:
            ConfigurationError: If any value is out of range
        """
        problems: List[str] = []

        for name in ('per_subject_target', 'target', 'years_back', 'stale_page_limit'):
            value = getattr(config, name)
            if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value <= 0):
                problems.append(f"{name} must be a positive integer, got {value!r}")

        if config.per_subject_target is None and config.target is None:
            problems.append("Set either per_subject_target or target, for example per_subject_target = 1000")
        if config.checkpoint_pages <= 0:
            problems.append(f"checkpoint_pages must be positive, got {config.checkpoint_pages}")
        if config.retry_max_attempts <= 0:
            problems.append(f"retry_max_attempts must be positive, got {config.retry_max_attempts}")
        if config.polite_delay_ms < 0 or config.variant_delay_ms < 0:
            problems.append("delays must not be negative")

        if problems:
            raise ConfigurationError("; ".join(problems))

    @staticmethod
    def resolve_quota(per_subject_target: Optional[int], target: Optional[int],
                      subject_count: int) -> int:
        """
        Derive the per-subject quota

        An explicit per-subject target wins; otherwise the global target is
        divided evenly (ceiling) across the subjects.

        Raises:
            ConfigurationError: If neither target is configured
        """
        if per_subject_target:
            return per_subject_target
        if target:
            if subject_count <= 0:
                raise ConfigurationError("Cannot derive a per-subject quota without subjects")
            return math.ceil(target / subject_count)
        raise ConfigurationError(
            "Set either per_subject_target or target, for example per_subject_target = 1000"
        )

    @staticmethod
    def get_environment_value(env_var_name: str, environ: Optional[Dict[str, str]] = None) -> str:
        """
        Get environment variable value with proper error handling

        Args:
            env_var_name: Name of the environment variable
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Value of the environment variable

        Raises:
            MissingCredentialError: If environment variable is not set or empty
        """
        environ = os.environ if environ is None else environ
        value = environ.get(env_var_name)
        if not value:
            raise MissingCredentialError(
                f"Missing API key. Set environment variable '{env_var_name}' and re-run"
            )
        return value
