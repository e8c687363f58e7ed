"""Helpers to load and validate the structured facts schema."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

FACTS_SCHEMA_NAME = "facts_list"


def default_schema_path() -> Path:
    """Return the path to the facts schema shipped with the package."""
    return Path(__file__).resolve().parent / "schemas" / "facts.schema.json"


@lru_cache(maxsize=1)
def load_facts_schema(path: Optional[Path | str] = None) -> Dict[str, Any]:
    """Load and cache the facts schema as a dictionary."""
    schema_path = Path(path) if path else default_schema_path()
    return json.loads(schema_path.read_text(encoding="utf-8"))


def response_format(schema: Dict[str, Any], name: str = FACTS_SCHEMA_NAME) -> Dict[str, Any]:
    """Wrap a schema as a strict Responses API text format."""
    return {"type": "json_schema", "name": name, "schema": schema, "strict": True}


def format_errors(errors: Iterable[ValidationError]) -> str:
    """Turn jsonschema errors into a concise human-readable string."""
    parts = []
    for err in errors:
        location = ".".join(str(piece) for piece in err.absolute_path) or "<root>"
        parts.append(f"{location}: {err.message}")
    return "; ".join(parts)


def validate_facts_payload(
    payload: Dict[str, Any], schema: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Validate a facts payload against the schema.

    Raises ValueError with a readable message if validation fails.
    """
    schema_dict = schema or load_facts_schema()
    validator = Draft202012Validator(schema_dict)
    errors = list(validator.iter_errors(payload))
    if errors:
        raise ValueError(f"Schema validation failed: {format_errors(errors)}")
    return payload
