#!/usr/bin/env python3
"""
Configuration Management for Minimum-Distance Assignment

This module provides structured configuration loading, validation,
and management for the R/S assignment search. It handles the input
matrix file and its label prefixes, the candidate-list width and
search limits, result export, and console display settings.

Features:
- YAML-based configuration with comprehensive validation
- Built-in defaults when no configuration file is present
- Search limits that accept numbers or "Inf"
- Clear error messages for configuration issues

"""

import yaml
import os
from typing import Optional, Union
from dataclasses import dataclass, field, asdict


PROGRESS_MODES = ("lines", "bar", "none")


@dataclass
class InputConfig:
    """Input matrix file and item categories."""

    # Default matrix file name when none is given on the command line
    matrix_file: str = "cophenetic_pairs_TT"

    # First characters of header tokens that mark row and column items
    row_prefix: str = "R"
    column_prefix: str = "S"


@dataclass
class SearchConfig:
    """Branch-and-bound search parameters."""

    # Number of best columns kept per row (K)
    candidate_width: int = 10

    # Deadline in seconds (None or "Inf" for unlimited)
    time_limit: Optional[Union[float, str]] = None

    # Store exact column sets instead of 64-bit fingerprints
    exact_duplicate_check: bool = False

    def __post_init__(self):
        """Normalize "Inf" and infinite limits to None."""
        if isinstance(self.time_limit, str):
            if self.time_limit.strip().lower() in ("inf", "infinity", "none", ""):
                self.time_limit = None
            else:
                try:
                    self.time_limit = float(self.time_limit)
                except ValueError:
                    raise ValueError(f"time_limit must be a number or 'Inf': {self.time_limit!r}")
        if isinstance(self.time_limit, float) and self.time_limit == float('inf'):
            self.time_limit = None


@dataclass
class OutputConfig:
    """Result export settings."""
    results_folder: str = "output/assignments"
    save_csv: bool = False


@dataclass
class VisualizationConfig:
    """Console display settings."""
    progress: str = "lines"
    verbose_output: bool = False


@dataclass
class Config:
    """Complete configuration container."""
    input: InputConfig = field(default_factory=InputConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)

    # Internal tracking
    _config_path: str = "<defaults>"


def _parse_section(raw_config: dict, name: str, section_class):
    """Build one dataclass section, turning bad keys into ValueError."""
    section = raw_config.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping, got {type(section).__name__}")
    try:
        return section_class(**section)
    except TypeError as e:
        raise ValueError(f"Error parsing {name} configuration: {e}")


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load and validate configuration from YAML file.

    Args:
        config_path: Path to configuration YAML file, or None for defaults

    Returns:
        Validated Config object with all settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If configuration is invalid
    """
    if config_path is None:
        config = Config()
        validate_config(config)
        return config

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML configuration: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration file must contain a mapping of sections")

    # All sections are optional
    input_config = _parse_section(raw_config, 'input', InputConfig)
    search = _parse_section(raw_config, 'search', SearchConfig)
    output = _parse_section(raw_config, 'output', OutputConfig)
    visualization = _parse_section(raw_config, 'visualization', VisualizationConfig)

    config = Config(input_config, search, output, visualization, config_path)

    # Validate the complete configuration
    validate_config(config)

    return config


def validate_config(config: Config) -> None:
    """
    Perform comprehensive validation of configuration.

    Args:
        config: Configuration object to validate

    Raises:
        ValueError: If any validation check fails
    """
    inp = config.input
    search = config.search

    # Prefixes decide item categories, so they must be usable and distinct
    for name, prefix in (("row_prefix", inp.row_prefix), ("column_prefix", inp.column_prefix)):
        if not isinstance(prefix, str) or not prefix:
            raise ValueError(f"{name} must be a non-empty string")
    if inp.row_prefix.startswith(inp.column_prefix) or inp.column_prefix.startswith(inp.row_prefix):
        raise ValueError(
            f"row_prefix '{inp.row_prefix}' and column_prefix '{inp.column_prefix}' "
            f"must not be prefixes of each other"
        )

    if not inp.matrix_file:
        raise ValueError("matrix_file cannot be empty")

    # bool is an int subclass; reject it explicitly
    if isinstance(search.candidate_width, bool) or not isinstance(search.candidate_width, int):
        raise ValueError(f"candidate_width must be an integer, got {search.candidate_width!r}")
    if search.candidate_width < 1:
        raise ValueError(f"candidate_width must be at least 1, got {search.candidate_width}")

    if search.time_limit is not None:
        if isinstance(search.time_limit, bool) or not isinstance(search.time_limit, (int, float)):
            raise ValueError(f"time_limit must be a number, got {search.time_limit!r}")
        if search.time_limit <= 0:
            raise ValueError("time_limit must be positive")

    if config.visualization.progress not in PROGRESS_MODES:
        raise ValueError(
            f"progress must be one of {list(PROGRESS_MODES)}, got '{config.visualization.progress}'"
        )

    if config.output.save_csv and not config.output.results_folder:
        raise ValueError("results_folder cannot be empty when save_csv is enabled")


def print_config_summary(config: Config) -> None:
    """Print human-readable configuration summary."""
    search = config.search

    print(f"\nConfiguration Summary:")
    print(f"  Config file: {config._config_path}")
    print(f"  Row prefix: '{config.input.row_prefix}'  Column prefix: '{config.input.column_prefix}'")
    print(f"  Candidate width (K): {search.candidate_width}")
    print(f"  Time limit: {search.time_limit if search.time_limit is not None else 'unlimited'}"
          f"{'s' if search.time_limit is not None else ''}")
    print(f"  Duplicate check: {'exact column sets' if search.exact_duplicate_check else '64-bit fingerprints'}")
    if config.output.save_csv:
        print(f"  Results folder: {config.output.results_folder}")
    print(f"  Progress display: {config.visualization.progress}")


def create_default_config(output_path: str = "config.yaml") -> None:
    """
    Create a default configuration file with common settings.

    Args:
        output_path: Path where to save the default config
    """
    default_config = asdict(Config())
    default_config.pop('_config_path')

    with open(output_path, 'w') as f:
        yaml.dump(default_config, f, default_flow_style=False, indent=2, sort_keys=False)

    print(f"Default configuration saved to: {output_path}")


if __name__ == "__main__":
    # Example usage and testing
    print("Configuration Management for Minimum-Distance Assignment")

    try:
        if not os.path.exists("config.yaml"):
            print("Creating default configuration...")
            create_default_config()

        print("Loading configuration...")
        config = load_config("config.yaml")

        print_config_summary(config)

        print(f"\nConfiguration validation successful!")

    except (FileNotFoundError, ValueError) as e:
        print(f"Configuration error: {e}")
