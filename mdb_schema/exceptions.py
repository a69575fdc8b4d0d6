"""
Exceptions raised by MDB_SCHEMA.

Every error surfaced by the parser, the reconciliation engine or the
database layer derives from SchemaError so callers (the CLI in particular)
can report a single terminal failure.

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

from typing import Any, List, Optional, Sequence, Tuple


class SchemaError(Exception):
    """Base class for all MDB_SCHEMA errors."""


class SchemaValidationError(SchemaError):
    """
    The schema document is malformed.

    Attributes:
        path: Tuple of keys leading to the offending value (empty for
            document-level errors such as a TOML syntax error)
        errors: All validation messages found, most relevant first
    """

    def __init__(
        self,
        message: str,
        path: Sequence[Any] = (),
        errors: Optional[List[str]] = None,
    ):
        self.message = message
        self.path: Tuple[Any, ...] = tuple(path)
        self.errors = errors or [message]
        super().__init__(self._format())

    def _format(self) -> str:
        if not self.path:
            return f"Invalid schema: {self.message}"
        location = ".".join(str(p) for p in self.path)
        return f"Invalid schema at '{location}': {self.message}"


class DestructiveChangeError(SchemaError):
    """An authoritative apply would remove collections and force is not set."""

    def __init__(self, collections: Sequence[str]):
        self.collections = list(collections)
        super().__init__(
            'Run with "--force" to continue.\n'
            "These collections would be removed along with their data:\n"
            f"{', '.join(self.collections)}"
        )


class ReadinessTimeoutError(SchemaError):
    """Metadata collections did not become ready before the deadline."""

    def __init__(self, target: str, timeout: float):
        self.target = target
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for '{target}' to become ready")


class InvalidIndexNameError(SchemaError):
    """An index name does not decode under the index naming convention."""

    def __init__(self, name: str, reason: str = "invalid format"):
        self.name = name
        self.reason = reason
        super().__init__(f'Unexpected index name ({reason}): "{name}"')


class WriteError(SchemaError):
    """
    A database write failed.

    Attributes:
        entity: Identifier of the group, collection or step that failed
        cause: Underlying exception
        errors: Every failure collected for aggregate steps (index creation
            and removal); a single-item list otherwise
    """

    def __init__(
        self,
        entity: str,
        cause: BaseException,
        errors: Optional[List[BaseException]] = None,
    ):
        self.entity = entity
        self.cause = cause
        self.errors = errors or [cause]
        message = f"Failed to write '{entity}': {cause}"
        if len(self.errors) > 1:
            message += f" (and {len(self.errors) - 1} more)"
        super().__init__(message)


class ReconciliationInterrupted(SchemaError):
    """The run was interrupted; completed steps are not rolled back."""

    def __init__(self, step: str = ""):
        self.step = step
        super().__init__(f"Interrupted before step '{step}'" if step else "Interrupted")


class SchemaConnectionError(SchemaError):
    """Could not connect to the MongoDB server."""


class ConfigurationError(SchemaError):
    """Invalid configuration file, environment variable or flag value."""
