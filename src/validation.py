"""
Spec Validation - Schema checks for Cluster specs.

Parses the k3d config document and validates it, together with the other
inputs, against JSON Schemas before any external command is run.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import yaml
from jsonschema import Draft7Validator

from errors import ValidationError
from models import ResourceSpec

logger = logging.getLogger(__name__)

NAME_PATTERN = r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"
VERSION_PATTERN = r"^v?[0-9]+\.[0-9]+\.[0-9]+(-[0-9A-Za-z.]+)?$"

# Subset of the k3d "Simple" config that the provider relies on. Anything
# else k3d understands is passed through untouched.
CLUSTER_CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "apiVersion": {"type": "string", "pattern": "^k3d\\.io/"},
        "kind": {"type": "string", "enum": ["Simple"]},
        "metadata": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "pattern": NAME_PATTERN},
            },
        },
        "servers": {"type": "integer", "minimum": 1},
        "agents": {"type": "integer", "minimum": 0},
        "image": {"type": "string", "minLength": 1},
    },
    "additionalProperties": True,
}

SPEC_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "config": {"type": "string"},
        "name": {"type": "string", "pattern": NAME_PATTERN, "maxLength": 63},
        "version": {"type": "string", "pattern": VERSION_PATTERN},
    },
    "additionalProperties": False,
}


def parse_cluster_config(config: str) -> Dict[str, Any]:
    """
    Parse a k3d config document.

    Args:
        config: YAML text

    Returns:
        The parsed mapping (empty for an empty document)

    Raises:
        ValidationError: If the text is not YAML or not a mapping
    """
    try:
        data = yaml.safe_load(config)
    except yaml.YAMLError as e:
        raise ValidationError([f"config: not valid YAML: {e}"])

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(["config: must be a YAML mapping"])
    return data


def validate_against_schema(
    document: Dict[str, Any], schema: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    """
    Validate a document against a JSON Schema.

    Args:
        document: The data to validate
        schema: The JSON Schema (Draft 7) to validate against

    Returns:
        Tuple of (is_valid, error_message)
    """
    problems = _schema_problems(document, schema)
    if not problems:
        return True, None
    return False, "; ".join(problems)


def _schema_problems(
    document: Dict[str, Any], schema: Dict[str, Any], prefix: str = ""
) -> List[str]:
    validator = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)
    problems = []
    errors = sorted(
        validator.iter_errors(document), key=lambda e: [str(p) for p in e.path]
    )
    for error in errors:
        path = ".".join(str(p) for p in error.absolute_path) or "(root)"
        problems.append(f"{prefix}{path}: {error.message}")
    return problems


def validate_spec(spec: ResourceSpec) -> None:
    """
    Validate a spec before it is sent to the cluster tool.

    Args:
        spec: The desired state

    Raises:
        ValidationError: Listing every problem found
    """
    problems = _schema_problems(spec.to_dict(), SPEC_SCHEMA)

    if isinstance(spec.config, str):
        try:
            document = parse_cluster_config(spec.config)
        except ValidationError as e:
            problems.extend(e.problems)
        else:
            problems.extend(
                _schema_problems(document, CLUSTER_CONFIG_SCHEMA, prefix="config.")
            )

    if problems:
        logger.debug(f"Spec rejected: {'; '.join(problems)}")
        raise ValidationError(problems)
