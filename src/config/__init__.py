"""
Config Module

Pydantic-based configuration for the life expectancy analysis.
"""

from src.config.schema import (
    STRATA,
    PipelineConfig,
    DataConfig,
    CollinearityDecision,
    CollinearityConfig,
    SelectionConfig,
    LassoConfig,
    ValidationConfig,
    OutputConfig,
    ReproducibilityConfig,
)
from src.config.loader import load_config, save_config

__all__ = [
    "STRATA",
    "PipelineConfig",
    "DataConfig",
    "CollinearityDecision",
    "CollinearityConfig",
    "SelectionConfig",
    "LassoConfig",
    "ValidationConfig",
    "OutputConfig",
    "ReproducibilityConfig",
    "load_config",
    "save_config",
]
