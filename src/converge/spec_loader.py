"""Spec file loading with validation.

A spec file is a YAML mapping in Kubernetes-style form:

    apiVersion: converge/v1
    kind: AgentPool
    metadata:
      name: pool0
    spec:
      resourceGroup: rg-aks
      cluster: aks-prod
      ...

The ``kind`` selects the spec class; the ``spec`` section is validated by it.
``metadata.name`` is used as the resource name when the spec omits one.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import ResourceSpec, get_spec_class

logger = logging.getLogger(__name__)


class SpecLoadError(Exception):
    """Raised when spec loading or validation fails."""

    pass


def parse_spec(
    raw_data: Any,
    source: str = "<memory>",
    default_location: str = "",
    default_admin_username: str = "",
) -> ResourceSpec:
    """Validate an already-parsed spec document.

    Args:
        raw_data: Parsed YAML document.
        source: Where the document came from, for error messages.
        default_location: Location applied when the spec declares none.
        default_admin_username: VM admin user applied when the spec declares none.

    Raises:
        SpecLoadError: If the document is malformed or fails validation.
    """
    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Spec file must contain a YAML mapping: {source}")

    kind = raw_data.get("kind")
    if not kind:
        raise SpecLoadError(f"Spec file must declare a kind: {source}")

    spec_data = raw_data.get("spec", {})
    if not isinstance(spec_data, dict):
        raise SpecLoadError(f"Spec section must be a mapping: {source}")
    spec_data = dict(spec_data)

    metadata = raw_data.get("metadata") or {}
    if isinstance(metadata, dict) and metadata.get("name") and "name" not in spec_data:
        spec_data["name"] = metadata["name"]

    if default_location and "location" not in spec_data:
        spec_data["location"] = default_location

    if default_admin_username and not {"adminUsername", "admin_username"} & spec_data.keys():
        spec_data["adminUsername"] = default_admin_username

    try:
        spec_class = get_spec_class(str(kind))
    except ValueError as e:
        raise SpecLoadError(str(e)) from e

    try:
        return spec_class.model_validate(spec_data)
    except ValidationError as e:
        # Format Pydantic validation errors for readability
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"  - {loc}: {msg}")

        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {source}:\n{error_list}") from e


def load_spec(
    spec_path: Path,
    default_location: str = "",
    default_admin_username: str = "",
) -> ResourceSpec:
    """Load and validate a resource spec from YAML.

    Raises:
        SpecLoadError: If the spec cannot be loaded or fails validation.
    """
    if not spec_path.exists():
        raise SpecLoadError(f"Spec file not found: {spec_path}")

    # Check file size before reading
    try:
        file_size = spec_path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat spec file {spec_path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Spec file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {spec_path}"
        )

    try:
        content = spec_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SpecLoadError(f"Failed to read spec file {spec_path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {spec_path}: {e}") from e

    spec = parse_spec(raw_data, str(spec_path), default_location, default_admin_username)

    logger.info("Loaded %s spec '%s' from %s", spec.kind.value, spec.resource_name(), spec_path)
    return spec
