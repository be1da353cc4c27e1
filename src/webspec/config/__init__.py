"""Configuration for the webspec CLI: ``webspec.toml`` plus ``WEBSPEC_*`` overrides."""

from webspec.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    SETTINGS,
    ConfigLoadError,
    dump_effective_config,
    env_var_for,
    load_config,
    normalize_paths,
)
from webspec.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    ConfigValidationError,
    ConfigValidationResult,
    WebSpecConfig,
    assert_valid_config,
    default_config,
    migration_guidance,
    validate_config,
)

__all__ = [
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "PATH_FIELDS",
    "SETTINGS",
    "WebSpecConfig",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "env_var_for",
    "load_config",
    "migration_guidance",
    "normalize_paths",
    "validate_config",
]
