"""
Exceptions raised by the analysis.

Every error is rooted at PipelineException so the orchestrator can log a
failed stage once and re-raise. Subclasses carry the object that failed
(source path, offending pairs, predictor set) as an attribute and list it
in their string form through ``_context``.
"""

from typing import Any, Dict, List, Optional, Tuple


class PipelineException(Exception):
    """Base class for analysis errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def _context(self) -> List[Tuple[str, Any]]:
        """Labelled values appended to the message; subclasses extend."""
        parts = []
        if self.details:
            parts.append(("Details", self.details))
        if self.cause:
            parts.append(("Caused by", self.cause))
        return parts

    def __str__(self) -> str:
        pieces = [self.message] + [f"{label}: {value}" for label, value in self._context()]
        return " | ".join(pieces)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "type": type(self).__name__,
            "message": self.message,
            "details": self.details,
            "cause": str(self.cause) if self.cause else None,
        }
        for label, value in self._context():
            if label not in ("Details", "Caused by"):
                payload[label.lower().replace(" ", "_")] = value
        return payload


class ConfigurationError(PipelineException):
    """Inconsistent settings, e.g. the outcome listed as a predictor."""


class DataReaderError(PipelineException):
    """The input table could not be read."""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.source = source

    def _context(self):
        parts = super()._context()
        if self.source:
            parts.append(("Source", self.source))
        return parts


class DataValidationError(PipelineException):
    """
    The table does not have the shape the analysis needs.

    ``validation_errors`` holds one dict per problem found; only the count
    goes into the message.
    """

    def __init__(
        self,
        message: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.validation_errors = validation_errors or []

    def __str__(self) -> str:
        text = super().__str__()
        if self.validation_errors:
            text += f" | {len(self.validation_errors)} validation error(s)"
        return text


class SchemaValidationError(DataValidationError):
    """Required columns are absent after header normalization."""

    def __init__(self, message: str, missing_columns: Optional[List[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.missing_columns = missing_columns or []


class DataQualityError(DataValidationError):
    """Values present but unusable: unknown status labels, an empty stratum."""


class CollinearityError(PipelineException):
    """Correlated pairs above threshold that no decision entry resolves."""

    def __init__(self, message: str, pairs: Optional[List[Dict[str, Any]]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.pairs = pairs or []

    def __str__(self) -> str:
        text = super().__str__()
        if self.pairs:
            text += f" | {len(self.pairs)} unresolved pair(s)"
        return text


class ModelFittingError(PipelineException):
    """
    OLS could not be fit: singular design, more parameters than rows,
    or non-finite values.
    """

    def __init__(self, message: str, predictors=None, **kwargs):
        super().__init__(message, **kwargs)
        self.predictors = list(predictors) if predictors else []

    def _context(self):
        parts = super()._context()
        if self.predictors:
            parts.append(("Predictors", self.predictors))
        return parts


class AliasedDesignError(ModelFittingError):
    """The design is rank-deficient: some term is a combination of the others."""


class SelectionError(PipelineException):
    """Unknown direction or stratum, or an empty candidate scope."""


class EvaluationError(PipelineException):
    """A hold-out metric could not be computed."""

    def __init__(self, message: str, metric_name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.metric_name = metric_name

    def _context(self):
        parts = super()._context()
        if self.metric_name:
            parts.append(("Metric", self.metric_name))
        return parts
