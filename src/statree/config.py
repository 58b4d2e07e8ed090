# Copyright 2026 Pennyworth Technologies, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Configuration for statree.

Two kinds of configuration live here:

- ``MetadataConfiguration``: the immutable per-stream descriptor saying which
  statistics are tracked and which scheme backs each one.
- ``StatreeConfig``: tool-level settings, layered with precedence:
  1. CLI flags (highest)
  2. Environment variables
  3. Project config (.statree/config.json)
  4. Global config (~/.statree_config.json)
  5. Hardcoded defaults (lowest)
"""

from __future__ import annotations

import copy
import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

logger = logging.getLogger(__name__)

# Statistics a stream may track
STAT_NAMES = ("sum", "count", "min", "max", "first", "last", "tags")

# Algorithm tags per statistic; the first entry is the default
VALID_ALGORITHMS: dict[str, tuple[str, ...]] = {
    "sum": ("paillier", "ecelgamal", "plaintext"),
    "count": ("paillier", "ecelgamal", "plaintext"),
    "min": ("ope", "ore", "plaintext"),
    "max": ("ope", "ore", "plaintext"),
    "first": ("opaque", "plaintext"),
    "last": ("opaque", "plaintext"),
    "tags": ("bloom",),
}
DEFAULT_ALGORITHMS = {stat: algos[0] for stat, algos in VALID_ALGORITHMS.items()}

VALID_OUTPUT_FORMATS = ("json", "text")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Hardcoded defaults
DEFAULT_FANOUT = 2
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_OUTPUT_FORMAT = "json"

STATREE_DIR_NAME = ".statree"

# Environment variable names
ENV_FANOUT = "STATREE_FANOUT"
ENV_LOG_LEVEL = "STATREE_LOG_LEVEL"
ENV_OUTPUT_FORMAT = "STATREE_OUTPUT_FORMAT"


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


class ConfigLoadError(Exception):
    """Raised when configuration file cannot be loaded."""

    pass


@dataclass(frozen=True)
class MetadataConfiguration:
    """Which statistics a stream tracks, fixed at stream creation.

    ``algorithms`` maps a statistic name to the scheme that produced it.
    Statistics missing from the map use ``DEFAULT_ALGORITHMS``. The map is
    copied into a read-only view at construction.
    """

    sum: bool = False
    count: bool = False
    min: bool = False
    max: bool = False
    first: bool = False
    last: bool = False
    tags: bool = False
    algorithms: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "algorithms", MappingProxyType(dict(self.algorithms)))

    @property
    def enabled_fields(self) -> tuple[str, ...]:
        """Names of the statistics this stream tracks, in canonical order."""
        return tuple(name for name in STAT_NAMES if getattr(self, name))

    def is_enabled(self, name: str) -> bool:
        return name in STAT_NAMES and bool(getattr(self, name))

    def algorithm_for(self, stat: str) -> str:
        """Return the algorithm tag backing a statistic."""
        if stat not in STAT_NAMES:
            raise ConfigValidationError(f"Unknown statistic '{stat}'")
        return self.algorithms.get(stat, DEFAULT_ALGORITHMS[stat])

    def validate(self) -> None:
        """Validate algorithm tags."""
        for stat, algorithm in self.algorithms.items():
            if stat not in STAT_NAMES:
                raise ConfigValidationError(
                    f"Unknown statistic '{stat}' in algorithms. "
                    f"Valid values: {', '.join(STAT_NAMES)}"
                )
            if algorithm not in VALID_ALGORITHMS[stat]:
                raise ConfigValidationError(
                    f"Invalid algorithm '{algorithm}' for {stat}. "
                    f"Valid values: {', '.join(VALID_ALGORITHMS[stat])}"
                )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stream descriptor form."""
        result: dict[str, Any] = {name: getattr(self, name) for name in STAT_NAMES}
        if self.algorithms:
            result["algorithms"] = dict(self.algorithms)
        return result

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], strict: bool = False
    ) -> MetadataConfiguration:
        """Create from a stream descriptor like ``{"sum": true, "algorithms": {...}}``."""
        if strict:
            unknown = set(data.keys()) - set(STAT_NAMES) - {"algorithms"}
            if unknown:
                raise ConfigValidationError(
                    f"Unknown fields in metadata config: {', '.join(sorted(unknown))}"
                )

        algorithms = data.get("algorithms") or {}
        if not isinstance(algorithms, dict):
            raise ConfigValidationError("algorithms must be a mapping")

        config = cls(
            **{name: bool(data.get(name, False)) for name in STAT_NAMES},
            algorithms={str(k): str(v) for k, v in algorithms.items()},
        )
        config.validate()
        return config


@dataclass
class DefaultsConfig:
    """Default tool settings."""

    fanout: int = DEFAULT_FANOUT
    log_level: str = DEFAULT_LOG_LEVEL
    output_format: str = DEFAULT_OUTPUT_FORMAT

    def validate(self) -> None:
        """Validate configuration values."""
        if self.fanout < 2:
            raise ConfigValidationError(
                f"fanout must be at least 2, got {self.fanout}"
            )
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigValidationError(
                f"Invalid log_level '{self.log_level}'. "
                f"Valid values: {', '.join(VALID_LOG_LEVELS)}"
            )
        if self.output_format not in VALID_OUTPUT_FORMATS:
            raise ConfigValidationError(
                f"Invalid output_format '{self.output_format}'. "
                f"Valid values: {', '.join(VALID_OUTPUT_FORMATS)}"
            )

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "fanout": self.fanout,
            "log_level": self.log_level,
            "output_format": self.output_format,
        }
        if exclude_none:
            return {k: v for k, v in result.items() if v is not None}
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any], strict: bool = False) -> DefaultsConfig:
        """Create from dictionary."""
        if strict:
            known_fields = {f.name for f in fields(cls)}
            unknown = set(data.keys()) - known_fields
            if unknown:
                raise ConfigValidationError(
                    f"Unknown fields in defaults config: {', '.join(unknown)}"
                )

        return cls(
            fanout=data.get("fanout", DEFAULT_FANOUT),
            log_level=data.get("log_level", DEFAULT_LOG_LEVEL),
            output_format=data.get("output_format", DEFAULT_OUTPUT_FORMAT),
        )


@dataclass
class StatreeConfig:
    """Main configuration container."""

    version: str = "1"
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)

    def validate(self) -> None:
        """Validate entire configuration."""
        self.defaults.validate()

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "version": self.version,
            "defaults": self.defaults.to_dict(exclude_none),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], strict: bool = False) -> StatreeConfig:
        """Create from dictionary."""
        if strict:
            unknown = set(data.keys()) - {"version", "defaults"}
            if unknown:
                raise ConfigValidationError(
                    f"Unknown fields in config: {', '.join(unknown)}"
                )

        return cls(
            version=data.get("version", "1"),
            defaults=DefaultsConfig.from_dict(data.get("defaults", {}), strict),
        )


def get_global_config_path() -> Path:
    """Get path to global config file."""
    return Path.home() / ".statree_config.json"


def get_project_config_path(statree_home: Path) -> Path:
    """Get path to project config file."""
    return statree_home / "config.json"


def load_config_file(path: Path, strict: bool = False) -> StatreeConfig:
    """Load configuration from a JSON file.

    Args:
        path: Path to the config file
        strict: If True, fail on unknown fields

    Returns:
        StatreeConfig instance (defaults if the file does not exist)

    Raises:
        ConfigLoadError: If file cannot be read or parsed
        ConfigValidationError: If strict=True and unknown fields found
    """
    if not path.exists():
        return StatreeConfig()

    try:
        content = path.read_text()
    except PermissionError as e:
        raise ConfigLoadError(f"Permission denied reading {path}: {e}")
    except OSError as e:
        raise ConfigLoadError(f"Error reading {path}: {e}")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigLoadError(f"Invalid JSON in {path}: {e}")

    logger.info("Loaded config from %s", path)
    return StatreeConfig.from_dict(data, strict=strict)


def merge_configs(*configs: StatreeConfig) -> StatreeConfig:
    """Merge multiple configs with later configs taking precedence.

    Only values that differ from the hardcoded defaults override earlier ones,
    so partial configs layer properly.
    """
    if not configs:
        return StatreeConfig()

    result = copy.deepcopy(configs[0])

    for config in configs[1:]:
        if config.defaults.fanout != DEFAULT_FANOUT:
            result.defaults.fanout = config.defaults.fanout
        if config.defaults.log_level != DEFAULT_LOG_LEVEL:
            result.defaults.log_level = config.defaults.log_level
        if config.defaults.output_format != DEFAULT_OUTPUT_FORMAT:
            result.defaults.output_format = config.defaults.output_format

    return result


def apply_env_overrides(config: StatreeConfig) -> StatreeConfig:
    """Apply environment variable overrides to config.

    Raises:
        ConfigValidationError: If env var value is invalid
    """
    result = copy.deepcopy(config)

    if fanout_str := os.environ.get(ENV_FANOUT):
        try:
            result.defaults.fanout = int(fanout_str)
        except ValueError:
            raise ConfigValidationError(
                f"{ENV_FANOUT} must be an integer, got '{fanout_str}'"
            )

    if log_level := os.environ.get(ENV_LOG_LEVEL):
        result.defaults.log_level = log_level.upper()

    if output_format := os.environ.get(ENV_OUTPUT_FORMAT):
        result.defaults.output_format = output_format

    return result


def get_config(statree_home: Path | None = None) -> StatreeConfig:
    """Load and merge configuration from all sources.

    Loads in order (later sources override earlier):
    1. Hardcoded defaults
    2. Global config (~/.statree_config.json)
    3. Project config (.statree/config.json)
    4. Environment variables
    """
    base_config = StatreeConfig()
    global_config = load_config_file(get_global_config_path())

    project_config = StatreeConfig()
    if statree_home is not None:
        project_config = load_config_file(get_project_config_path(statree_home))

    merged = merge_configs(base_config, global_config, project_config)
    result = apply_env_overrides(merged)
    result.validate()
    return result


def load_stream_file(path: Path) -> tuple[MetadataConfiguration, int | None]:
    """Load a stream descriptor from a YAML or JSON file.

    Expected shape::

        fanout: 4            # optional
        metadata:
          sum: true
          count: true
          algorithms: {sum: plaintext, count: plaintext}

    Returns:
        (metadata configuration, fanout or None if not given)

    Raises:
        ConfigLoadError: If the file cannot be read or parsed
        ConfigValidationError: If the descriptor is invalid
    """
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as e:
        raise ConfigLoadError(f"Error reading {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Invalid stream descriptor in {path}: {e}")

    if not isinstance(data, dict) or not isinstance(data.get("metadata"), dict):
        raise ConfigValidationError(
            f"Stream descriptor {path} must contain a 'metadata' mapping"
        )

    fanout = data.get("fanout")
    if fanout is not None and not isinstance(fanout, int):
        raise ConfigValidationError(f"fanout must be an integer, got '{fanout}'")

    return MetadataConfiguration.from_dict(data["metadata"], strict=True), fanout


def generate_config_template() -> dict[str, Any]:
    """Generate a config template dictionary."""
    return {
        "version": "1",
        "_comment_version": "Config file format version",
        "defaults": {
            "fanout": DEFAULT_FANOUT,
            "_comment_fanout": "Maximum children per tree node (k >= 2)",
            "log_level": DEFAULT_LOG_LEVEL,
            "_comment_log_level": f"Log level. Valid: {', '.join(VALID_LOG_LEVELS)}",
            "output_format": DEFAULT_OUTPUT_FORMAT,
            "_comment_output_format": f"Output format. Valid: {', '.join(VALID_OUTPUT_FORMATS)}",
        },
    }


def generate_config_template_string() -> str:
    """Generate a config template as a formatted JSON string."""
    return json.dumps(generate_config_template(), indent=2)
