"""
Pipeline package for the jianpu converter.

Provides configuration handling:
- YAML config loading and recursive merging
- Command-line overrides
- Logging setup
"""

from .config_parser import (
    AppConfig,
    OutputConfig,
    LoggingConfig,
    load_yaml_config,
    merge_configs,
    dict_to_config,
    config_to_dict,
    add_config_arguments,
    args_to_config,
    setup_logging
)

__all__ = [
    'AppConfig',
    'OutputConfig',
    'LoggingConfig',
    'load_yaml_config',
    'merge_configs',
    'dict_to_config',
    'config_to_dict',
    'add_config_arguments',
    'args_to_config',
    'setup_logging'
]
