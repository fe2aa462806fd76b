"""Cluster definition loading.

SECURITY: File reads enforce a size limit to prevent DoS attacks via large
documents. Pydantic validation runs at the boundary, before any rule.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import ValidatorConfig, default_config
from .models import Properties

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


class SpecLoadError(Exception):
    """Raised when a cluster definition cannot be loaded or parsed."""

    pass


def parse_properties(data: Any, source: str = "<memory>") -> Properties:
    """Build a Properties model from a decoded cluster definition.

    Accepts either the bare properties mapping or the API envelope
    ``{"apiVersion": ..., "properties": {...}}``.

    Raises:
        SpecLoadError: If the data is not a mapping or fails model validation.
    """
    if not isinstance(data, dict):
        raise SpecLoadError(f"Cluster definition must be a mapping: {source}")

    if "properties" in data:
        properties_data = data["properties"]
        if not isinstance(properties_data, dict):
            raise SpecLoadError(f"properties section must be a mapping: {source}")
    else:
        properties_data = data

    try:
        return Properties.model_validate(properties_data)
    except ValidationError as e:
        # Format Pydantic validation errors for readability
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {source}:\n{error_list}") from e


def load_properties(path: Path, config: ValidatorConfig | None = None) -> Properties:
    """Load a cluster definition from a JSON or YAML file.

    Args:
        path: Path to the document. ``.yaml``/``.yml`` files are parsed as
            YAML, everything else as JSON.
        config: Validator configuration providing the size limit.

    Returns:
        Parsed (not yet rule-validated) specification.

    Raises:
        SpecLoadError: If the file cannot be read, decoded or parsed.
    """
    config = config or default_config()

    if not path.exists():
        raise SpecLoadError(f"Cluster definition not found: {path}")

    # SECURITY: Check file size before reading to prevent DoS
    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat cluster definition {path}: {e}") from e

    if file_size > config.max_spec_file_size_bytes:
        raise SpecLoadError(
            f"Cluster definition exceeds maximum size of "
            f"{config.max_spec_file_size_bytes} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read cluster definition {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise SpecLoadError(f"Cluster definition is not valid UTF-8: {path}") from e

    if path.suffix.lower() in YAML_SUFFIXES:
        try:
            raw_data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e
    else:
        try:
            raw_data = json.loads(content)
        except json.JSONDecodeError as e:
            raise SpecLoadError(f"Invalid JSON in {path}: {e}") from e

    properties = parse_properties(raw_data, str(path))
    logger.info("Loaded cluster definition from %s", path)
    return properties
