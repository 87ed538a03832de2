"""
Input validation for publisher routes.

Two checks run before any store operation touches the disk:

- ``is_valid_filename`` guards the ``{filename}`` path segment against
  traversal and anything that is not a plain ``name.json``.
- ``validate_publisher_config`` checks the shape of a submitted config
  and reports the first problem it finds.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .index_repository import INDEX_FILENAME
from .models import PublisherConfig, ValidationResult

FILENAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+\.json")


def is_valid_filename(filename: str, data_dir: Path) -> bool:
    """
    Check that ``filename`` names a config file directly inside ``data_dir``.

    The pattern check runs first and rejects without touching the filesystem.
    Only names that pass it are resolved, which catches a symlink in the data
    directory pointing somewhere else.

    Args:
        filename: Raw path segment taken from the request URL
        data_dir: Root directory holding the publisher configs

    Returns:
        True when the name is safe to read or write
    """
    if not isinstance(filename, str) or not FILENAME_PATTERN.fullmatch(filename):
        return False
    if filename == INDEX_FILENAME:
        return False

    root = Path(data_dir).resolve()
    candidate = (root / filename).resolve()
    return candidate != root and candidate.is_relative_to(root)


def _format_error(error: dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


def validate_publisher_config(payload: Any) -> ValidationResult:
    """Structurally validate a publisher config body; never raises."""
    if not isinstance(payload, dict):
        return ValidationResult(ok=False, detail="Request body must be a JSON object")

    try:
        PublisherConfig.model_validate(payload)
    except PydanticValidationError as exc:
        errors = exc.errors()
        return ValidationResult(ok=False, detail=_format_error(errors[0]) if errors else "Invalid publisher config")
    return ValidationResult(ok=True)
