"""Configuration parser for the jianpu converter.

Handles loading YAML config and merging with command-line arguments.
Command-line arguments have higher priority than config file values.
"""

import argparse
import logging
import yaml
from pathlib import Path
from typing import Dict, Any
from dataclasses import dataclass, field, asdict

from src.jianpu.segmenter import EngineConfig


DEFAULT_CONFIG_PATH = Path(__file__).parent / 'config.yaml'

OUTPUT_FORMATS = ('json', 'midi', 'musicxml')
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


@dataclass
class OutputConfig:
    """Export configuration."""
    format: str = "json"
    indent: int = 2

    def __post_init__(self):
        if self.format not in OUTPUT_FORMATS:
            raise ValueError(
                f"Invalid output format: {self.format}. Must be one of {', '.join(OUTPUT_FORMATS)}."
            )
        if self.indent < 0:
            raise ValueError(f"Invalid indent: {self.indent}. Must be >= 0.")


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"

    def __post_init__(self):
        self.level = self.level.upper()
        if self.level not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {self.level}. Must be one of {', '.join(LOG_LEVELS)}."
            )


@dataclass
class AppConfig:
    """Complete converter configuration."""
    engine: EngineConfig = field(default_factory=EngineConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_yaml_config(config_path: str) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_file, 'r') as f:
        config_dict = yaml.safe_load(f)

    return config_dict or {}


def merge_configs(base_config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override config into base config."""
    merged = base_config.copy()

    for key, value in overrides.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        elif value is not None:  # Only override if value is not None
            merged[key] = value

    return merged


def dict_to_config(config_dict: Dict[str, Any]) -> AppConfig:
    """Convert dictionary to AppConfig dataclass."""
    return AppConfig(
        engine=EngineConfig(**(config_dict.get('engine') or {})),
        output=OutputConfig(**(config_dict.get('output') or {})),
        logging=LoggingConfig(**(config_dict.get('logging') or {}))
    )


def config_to_dict(config: AppConfig) -> Dict[str, Any]:
    """Convert AppConfig back to a plain dictionary (YAML friendly)."""
    config_dict = asdict(config)
    config_dict['engine']['spelling'] = config.engine.spelling.value
    return config_dict


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the options shared by every command that builds a model."""
    parser.add_argument('--config', type=str,
                        help='Path to YAML configuration file')
    parser.add_argument('--log-level', type=str.upper, choices=LOG_LEVELS,
                        help='Logging level')

    engine_group = parser.add_argument_group('Engine')
    engine_group.add_argument('--key', type=int, choices=range(12), metavar='0-11',
                              help='Key (tonic pitch class) used when the score has none at 0')
    engine_group.add_argument('--no-dotted-rests', action='store_true',
                              help='Only use undotted rest lengths')
    engine_group.add_argument('--spelling', type=str, choices=['key_signature', 'sharps'],
                              help='Chromatic spelling of non-scale degrees')


def args_to_config(args: argparse.Namespace) -> AppConfig:
    """Merge parsed command-line arguments with YAML config.

    Priority: CLI args > YAML config > defaults
    """
    config_path = getattr(args, 'config', None)
    if config_path:
        yaml_config = load_yaml_config(config_path)
    elif DEFAULT_CONFIG_PATH.exists():
        yaml_config = load_yaml_config(str(DEFAULT_CONFIG_PATH))
    else:
        yaml_config = {}

    overrides: Dict[str, Any] = {}

    engine_overrides = {}
    if getattr(args, 'key', None) is not None:
        engine_overrides['default_key'] = args.key
    if getattr(args, 'no_dotted_rests', False):
        engine_overrides['allow_dotted_rests'] = False
    if getattr(args, 'spelling', None) is not None:
        engine_overrides['spelling'] = args.spelling
    if engine_overrides:
        overrides['engine'] = engine_overrides

    if getattr(args, 'format', None) is not None:
        overrides['output'] = {'format': args.format}

    if getattr(args, 'log_level', None) is not None:
        overrides['logging'] = {'level': args.log_level}

    merged_config = merge_configs(yaml_config, overrides)
    return dict_to_config(merged_config)


def setup_logging(config: LoggingConfig) -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, config.level),
        format=config.format,
        datefmt=config.datefmt
    )
