"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml


DEFAULT_CONFIG: Dict[str, Any] = {
    'scanner': {
        'local_prefixes': ['/uploads/'],
        'normalized_prefixes': ['./', '../'],
        'normalized_markers': [],
    },
    'fetcher': {
        'storage_root': '.',
        'timeout': 30,
        'max_retries': 0,
        'user_agent': (
            'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
            '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
        ),
        'referer': None,
        'hostile_hosts': ['cdn.nlark.com', 'yuque.com'],
        'proxy_base': 'https://images.weserv.nl/?url=',
        'max_workers': 1,
        'max_file_size': 52428800,  # 50MB, 0 means unlimited
    },
    'export': {
        'image_directory': 'images',
        'progress_bars': True,
    },
    'normalize': {
        'folder': 'articles',
        'only_hosts': [],
        'clean_content': False,
    },
    'storage': {
        'backend': 'local',
        'local_root': './uploads',
        'public_base_url': '/uploads',
        'local_public_base_url': '/uploads',
        'upload_url': None,
        'upload_token': None,
        'fallback_to_local': True,
    },
    'logging': {
        'level': None,
        'file': None,
    },
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        The loaded values are merged over DEFAULT_CONFIG.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        # Substitute environment variables recursively
        config_data = cls._substitute_env_vars_recursive(config_data)

        return cls.with_defaults(config_data)

    @classmethod
    def with_defaults(cls, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Deep-merge a (possibly partial) configuration over DEFAULT_CONFIG.

        Args:
            config: Partial configuration dictionary

        Returns:
            New dictionary with every default key present
        """
        return _deep_merge(DEFAULT_CONFIG, config or {})

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        for list_key in (
            'scanner.local_prefixes',
            'scanner.normalized_prefixes',
            'scanner.normalized_markers',
            'fetcher.hostile_hosts',
            'normalize.only_hosts',
        ):
            value = get_nested(config, list_key, [])
            if not isinstance(value, list):
                raise ValueError(f"{list_key} must be a list")

        # Validate fetcher settings
        timeout = get_nested(config, 'fetcher.timeout', 30)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("fetcher.timeout must be a positive number")

        max_retries = get_nested(config, 'fetcher.max_retries', 0)
        if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
            raise ValueError("fetcher.max_retries must be a non-negative integer")

        max_workers = get_nested(config, 'fetcher.max_workers', 1)
        if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
            raise ValueError("fetcher.max_workers must be a positive integer")

        max_file_size = get_nested(config, 'fetcher.max_file_size', 0)
        if isinstance(max_file_size, bool) or not isinstance(max_file_size, int) or max_file_size < 0:
            raise ValueError("fetcher.max_file_size must be a non-negative integer")

        proxy_base = get_nested(config, 'fetcher.proxy_base')
        if proxy_base:
            cls._validate_url(proxy_base, 'fetcher.proxy_base')

        # Validate normalize settings
        folder = get_nested(config, 'normalize.folder', 'articles')
        if not folder or not isinstance(folder, str):
            raise ValueError("normalize.folder must be a non-empty string")
        if folder.startswith('/'):
            raise ValueError("normalize.folder must be a relative path (no leading /)")

        image_directory = get_nested(config, 'export.image_directory', 'images')
        if not image_directory or '/' in image_directory.strip('/'):
            raise ValueError("export.image_directory must be a single directory name")

        # Validate storage settings
        backend = get_nested(config, 'storage.backend', 'local')
        if backend not in ['local', 'http']:
            raise ValueError("storage.backend must be 'local' or 'http'")

        if backend == 'http':
            cls._validate_required_field(config, 'storage.upload_url')
            cls._validate_url(get_nested(config, 'storage.upload_url'), 'storage.upload_url')

        fallback = get_nested(config, 'storage.fallback_to_local', True)
        if not isinstance(fallback, bool):
            raise ValueError("storage.fallback_to_local must be a boolean")

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

        for section in ('fetcher', 'export', 'logging'):
            if section not in merged:
                merged[section] = {}

        if getattr(args, 'storage_root', None):
            merged['fetcher']['storage_root'] = args.storage_root

        if getattr(args, 'workers', None):
            merged['fetcher']['max_workers'] = args.workers

        if getattr(args, 'no_progress', False):
            merged['export']['progress_bars'] = False

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
        path: Dot-separated path (e.g., "fetcher.timeout")
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


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of base with override merged in, recursing into dicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'get_nested']
