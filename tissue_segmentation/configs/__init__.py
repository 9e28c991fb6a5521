"""Configuration dataclasses."""

from .config import (
    DEFAULT_PROBABILITY_MAPS,
    ClassificationConfig,
    Config,
    ConfigurationError,
    OutputConfig,
)

__all__ = [
    "DEFAULT_PROBABILITY_MAPS",
    "ClassificationConfig",
    "Config",
    "ConfigurationError",
    "OutputConfig",
]
