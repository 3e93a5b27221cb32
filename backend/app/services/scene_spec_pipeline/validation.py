"""
Parsing and contract validation for model output.

Model text is treated as an untrusted document: it is parsed as strict JSON
and validated against a contract schema before anything downstream sees it.
There is no markdown-fence stripping, no repair and no partial acceptance.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import InputValidationError, MalformedOutput, SchemaViolation

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

RAW_EXCERPT_CHARS = 200


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def parse_json_output(raw: str, stage: str) -> Any:
    """
    Parse model text as JSON.

    Args:
        raw: Completion text returned by the model
        stage: Stage name for error reporting

    Returns:
        The decoded JSON value

    Raises:
        MalformedOutput: if the text is not valid JSON
    """
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except (json.JSONDecodeError, ValueError, TypeError) as e:
        excerpt = (raw or "")[:RAW_EXCERPT_CHARS]
        logger.error(f"[{stage}] Model output is not valid JSON: {e}")
        raise MalformedOutput(
            f"Model output is not valid JSON: {e}",
            stage=stage,
            raw_excerpt=excerpt,
        ) from e


def format_violations(error: ValidationError) -> List[Dict[str, str]]:
    """Flatten pydantic diagnostics into [{path, message}] entries."""
    violations = []
    for item in error.errors():
        path = ".".join(str(part) for part in item.get('loc', ())) or "$"
        violations.append({'path': path, 'message': item.get('msg', '')})
    return violations


def validate_contract(model_cls: Type[ModelT], data: Any, stage: str) -> ModelT:
    """
    Validate parsed model output against a contract schema.

    Raises:
        SchemaViolation: carrying every violating path
    """
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        violations = format_violations(e)
        logger.error(
            f"[{stage}] {model_cls.__name__} failed validation with "
            f"{len(violations)} violation(s): {', '.join(v['path'] for v in violations[:10])}"
        )
        raise SchemaViolation(
            f"{model_cls.__name__} does not conform to its contract "
            f"({len(violations)} violation(s))",
            stage=stage,
            violations=violations,
        ) from e


def coerce_input(model_cls: Type[ModelT], value: Any, name: str, stage: str) -> ModelT:
    """
    Accept a caller-supplied document as a validated model instance.

    Already-validated instances pass through untouched; mappings are validated.

    Raises:
        InputValidationError: if the document does not satisfy its contract
    """
    if isinstance(value, model_cls):
        return value
    if not isinstance(value, Mapping):
        raise InputValidationError(
            f"{name} must be an object",
            stage=stage,
            violations=[{'path': name, 'message': f"expected an object, got {type(value).__name__}"}],
        )
    try:
        return model_cls.model_validate(dict(value))
    except ValidationError as e:
        violations = [
            {'path': f"{name}.{v['path']}" if v['path'] != "$" else name, 'message': v['message']}
            for v in format_violations(e)
        ]
        raise InputValidationError(
            f"{name} is invalid ({len(violations)} violation(s))",
            stage=stage,
            violations=violations,
        ) from e


def dump_document(document: BaseModel) -> Dict[str, Any]:
    """Convert a validated document to plain JSON-compatible data."""
    return document.model_dump(mode="json")
