"""
Pipeline error taxonomy.

Every error is terminal for the stage that raised it: nothing is retried,
repaired or coerced. Each carries enough detail (violating paths, mismatch
description) to debug the failure from the caller's side.
"""

from typing import Any, Dict, List, Optional


class PipelineError(Exception):
    """Base class for all scene-spec pipeline failures."""

    error_type = "pipeline_error"

    def __init__(self, message: str, stage: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'error': self.message,
            'error_type': self.error_type,
            'stage': self.stage,
            'details': self.details,
        }


class ExternalCallFailure(PipelineError):
    """The language-model capability did not return usable text."""

    error_type = "external_call_failure"


class MalformedOutput(PipelineError):
    """The returned text is not valid JSON."""

    error_type = "malformed_output"

    def __init__(self, message: str, stage: Optional[str] = None, raw_excerpt: str = ""):
        super().__init__(message, stage=stage, details={'raw_excerpt': raw_excerpt})
        self.raw_excerpt = raw_excerpt


class SchemaViolation(PipelineError):
    """Parsed JSON does not conform to the expected contract."""

    error_type = "schema_violation"

    def __init__(self, message: str, stage: Optional[str] = None, violations: Optional[List[Dict[str, str]]] = None):
        violations = violations or []
        super().__init__(message, stage=stage, details={'violations': violations})
        self.violations = violations

    @property
    def paths(self) -> List[str]:
        return [v['path'] for v in self.violations]


class ImmutabilityViolation(PipelineError):
    """Stage-2 output altered content it was required to copy forward unchanged."""

    error_type = "immutability_violation"

    def __init__(self, message: str, stage: Optional[str] = None, mismatches: Optional[List[Dict[str, Any]]] = None):
        mismatches = mismatches or []
        super().__init__(message, stage=stage, details={'mismatches': mismatches})
        self.mismatches = mismatches

    @property
    def sections(self) -> List[str]:
        return [m['section'] for m in self.mismatches]


class InputValidationError(PipelineError):
    """The caller-supplied envelope is malformed."""

    error_type = "input_validation_error"

    def __init__(self, message: str, stage: Optional[str] = None, violations: Optional[List[Dict[str, str]]] = None):
        violations = violations or []
        super().__init__(message, stage=stage, details={'violations': violations})
        self.violations = violations
