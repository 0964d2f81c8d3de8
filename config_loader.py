"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

from models import AttachmentKeyMode

DEFAULT_CONFIG: Dict[str, Any] = {
    'outline': {
        'base_url': '${OUTLINE_DOMAIN}',
        'api_key': '${OUTLINE_API_KEY}',
        'collection_permission': 'read_write',
        'publish': True
    },
    'source': {
        'export_path': './slite-backup/channels',
        'preamble_lines': 6,
        'max_depth': 64
    },
    'migration': {
        'attachment_key_mode': AttachmentKeyMode.SCOPED.value,
        'dry_run': False,
        'report_path': 'migration_report.json'
    },
    'advanced': {
        'request_timeout': 30,
        'max_retries': 3,
        'retry_backoff_factor': 2.0,
        'retry_policy': 'all',
        'rate_limit': 0.0,
        'verify_ssl': True
    },
    'export': {
        'progress_bars': True
    },
    'logging': {
        'level': None,
        'file': None
    }
}

RETRY_POLICY_NAMES = ('all', 'transient')


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration with environment variable substitution.

        The YAML file, when given, is merged over the built-in defaults, so a
        run without any file only needs OUTLINE_DOMAIN and OUTLINE_API_KEY.

        Args:
            config_path: Optional path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        config_data: Dict[str, Any] = {}

        if config_path is not None:
            if not os.path.exists(config_path):
                raise FileNotFoundError(f"Configuration file not found: {config_path}")

            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}

            if not isinstance(config_data, dict):
                raise ValueError("Configuration file must contain a dictionary")

        merged = _deep_merge(DEFAULT_CONFIG, config_data)

        # Substitute environment variables recursively
        return cls._substitute_env_vars_recursive(merged)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Outline credentials are only required when the run is not a dry run.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        dry_run = get_nested(config, 'migration.dry_run', False)
        if not isinstance(dry_run, bool):
            raise ValueError("migration.dry_run must be a boolean")

        if not dry_run:
            cls._validate_required_field(config, 'outline.base_url')
            cls._validate_required_field(config, 'outline.api_key')
            cls._validate_url(get_nested(config, 'outline.base_url'), 'outline.base_url')

        cls._validate_required_field(config, 'source.export_path')
        export_path = get_nested(config, 'source.export_path')
        if not os.path.isdir(export_path):
            raise ValueError(f"source.export_path '{export_path}' is not a valid directory")

        preamble_lines = get_nested(config, 'source.preamble_lines', 6)
        if not isinstance(preamble_lines, int) or preamble_lines < 0:
            raise ValueError("source.preamble_lines must be a non-negative integer")

        max_depth = get_nested(config, 'source.max_depth', 64)
        if not isinstance(max_depth, int) or max_depth < 1:
            raise ValueError("source.max_depth must be a positive integer")

        key_mode = get_nested(config, 'migration.attachment_key_mode', AttachmentKeyMode.SCOPED.value)
        try:
            AttachmentKeyMode(key_mode)
        except ValueError:
            raise ValueError(
                f"migration.attachment_key_mode must be one of: {[m.value for m in AttachmentKeyMode]}"
            )

        # Validate timeout settings
        timeout = get_nested(config, 'advanced.request_timeout', 30)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("advanced.request_timeout must be a positive number")

        max_retries = get_nested(config, 'advanced.max_retries', 3)
        if not isinstance(max_retries, int) or max_retries < 1:
            raise ValueError("advanced.max_retries must be a positive integer")

        backoff = get_nested(config, 'advanced.retry_backoff_factor', 2.0)
        if not isinstance(backoff, (int, float)) or backoff < 0:
            raise ValueError("advanced.retry_backoff_factor must be a non-negative number")

        rate_limit = get_nested(config, 'advanced.rate_limit', 0.0)
        if not isinstance(rate_limit, (int, float)) or rate_limit < 0:
            raise ValueError("advanced.rate_limit must be a non-negative number")

        retry_policy = get_nested(config, 'advanced.retry_policy', 'all')
        if retry_policy not in RETRY_POLICY_NAMES:
            raise ValueError(f"advanced.retry_policy must be one of: {list(RETRY_POLICY_NAMES)}")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('source', 'migration', 'logging'):
            merged.setdefault(section, {})

        if getattr(args, 'source', None):
            merged['source']['export_path'] = args.source

        if getattr(args, 'dry_run', None) is not None:
            merged['migration']['dry_run'] = args.dry_run

        if getattr(args, 'attachment_key_mode', None):
            merged['migration']['attachment_key_mode'] = args.attachment_key_mode

        if getattr(args, 'report', None):
            merged['migration']['report_path'] = args.report

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            var_name = match.group(1)
            env_value = os.getenv(var_name)
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config_section: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config_section, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        # Check for unsubstituted environment variables
        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "outline.base_url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'get_nested']
