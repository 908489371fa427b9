"""
Configuration loading for smartcommit.

Provides a loader for the JSON configuration file kept in the user's
data directory. See :mod:`smartcommit.config.loader` for implementation
details.
"""

from .loader import (  # noqa: F401
    ConfigError,
    clean_config,
    config_exists,
    get_config_directory,
    load_config,
    save_config,
    update_config,
)
