"""
Life Expectancy Analysis - Core Package

This package provides the shared infrastructure for an analysis run:
- Logging utilities
- Custom exceptions
"""

from src.core.logger import get_logger, setup_logging, PipelineLogger
from src.core.exceptions import (
    PipelineException,
    ConfigurationError,
    DataReaderError,
    DataValidationError,
    SchemaValidationError,
    DataQualityError,
    CollinearityError,
    ModelFittingError,
    AliasedDesignError,
    SelectionError,
    EvaluationError,
)

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    "PipelineLogger",
    # Exceptions
    "PipelineException",
    "ConfigurationError",
    "DataReaderError",
    "DataValidationError",
    "SchemaValidationError",
    "DataQualityError",
    "CollinearityError",
    "ModelFittingError",
    "AliasedDesignError",
    "SelectionError",
    "EvaluationError",
]
