"""
Schema Document Parser

Parses a TOML schema document into a DesiredSchema after validating its
shape against SCHEMA_DOCUMENT_SCHEMA:

    [collections.<name>]
    indexes = ["<index-name>", ...]       # optional, default []

    [groups.<name>.rules.<rule-name>]
    template = "<expression>"             # required
    validator = "<expression>"            # optional

Collection, group and rule names are data, so any key is accepted there;
unknown keys anywhere else are rejected.

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

import logging
import tomllib
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from ..exceptions import SchemaValidationError
from .model import Collection, DesiredSchema, Group, Rule

logger = logging.getLogger(__name__)

RULE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "template": {"type": "string", "minLength": 1},
        "validator": {"type": "string"},
    },
    "required": ["template"],
    "additionalProperties": False,
}

COLLECTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "indexes": {
            "type": "array",
            "items": {"type": "string", "minLength": 1},
            "default": [],
        },
    },
    "additionalProperties": False,
}

GROUP_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "rules": {
            "type": "object",
            "additionalProperties": RULE_SCHEMA,
            "default": {},
        },
    },
    "additionalProperties": False,
}

SCHEMA_DOCUMENT_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "collections": {"type": "object", "additionalProperties": COLLECTION_SCHEMA},
        "groups": {"type": "object", "additionalProperties": GROUP_SCHEMA},
    },
    "additionalProperties": False,
}


class SchemaDocumentValidator:
    """
    Validates decoded schema documents.

    Mirrors the manifest validator API: validate() reports problems instead
    of raising, check() raises SchemaValidationError.
    """

    def __init__(self, schema: Optional[Dict[str, Any]] = None):
        self.schema = schema or SCHEMA_DOCUMENT_SCHEMA
        self._validator = Draft7Validator(self.schema)

    def validate(self, document: Any) -> Tuple[bool, Optional[str], Optional[List[str]]]:
        """
        Validate a decoded document.

        Returns:
            Tuple of (is_valid, error_message, error_paths)
        """
        errors = list(self._validator.iter_errors(document))
        if not errors:
            return True, None, None

        error = best_match(errors)
        paths = [".".join(str(p) for p in e.absolute_path) or "<root>" for e in errors]
        return False, error.message, paths

    def check(self, document: Any) -> None:
        errors = list(self._validator.iter_errors(document))
        if not errors:
            return

        error = best_match(errors)
        others = [e.message for e in errors if e is not error]
        raise SchemaValidationError(
            error.message,
            path=tuple(error.absolute_path),
            errors=[error.message] + others,
        )


_default_validator = SchemaDocumentValidator()


def parse_schema(schema_toml: str) -> DesiredSchema:
    """
    Parse and validate a schema document.

    Args:
        schema_toml: Raw TOML text

    Returns:
        DesiredSchema with defaults filled in

    Raises:
        SchemaValidationError: If the text is not TOML or has the wrong shape
    """
    try:
        document = tomllib.loads(schema_toml)
    except tomllib.TOMLDecodeError as e:
        raise SchemaValidationError(f"not a valid TOML document: {e}") from e

    _default_validator.check(document)

    collections = [
        Collection(id=name, indexes=list(entry.get("indexes", [])))
        for name, entry in document.get("collections", {}).items()
    ]

    groups = []
    for name, entry in document.get("groups", {}).items():
        rules = {
            rule_name: Rule(template=rule["template"], validator=rule.get("validator"))
            for rule_name, rule in entry.get("rules", {}).items()
        }
        groups.append(Group(id=name, rules=rules))

    logger.debug(f"Parsed schema with {len(collections)} collection(s) and {len(groups)} group(s)")
    return DesiredSchema(collections=collections, groups=groups)
