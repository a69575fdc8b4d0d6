"""
MDB_SCHEMA - MongoDB Schema Reconciler

Applies a declared schema (collections, their indexes and access-control
groups) to a MongoDB project database, and saves the live schema back to the
same TOML document format.

Usage:
    from mdb_schema import SchemaConnection, apply_schema, parse_schema

    schema = parse_schema(Path("schema.toml").read_text())
    conn = await SchemaConnection.connect("localhost", 27017, "my_app")
    result = await apply_schema(conn, schema, update=False, force=False)

    conn = await SchemaConnection.connect("localhost", 27017, "my_app")
    print(schema_to_toml(await save_schema(conn)))
"""

__version__ = "0.1.0"

from .core import (
    ApplyResult,
    Collection,
    DesiredSchema,
    Group,
    IndexInfo,
    Interrupt,
    Rule,
    SchemaDocumentValidator,
    SchemaReconciler,
    apply_schema,
    info_to_name,
    name_to_info,
    parse_schema,
    save_schema,
    schema_to_toml,
)
from .database import SchemaConnection, start_mongod
from .exceptions import (
    ConfigurationError,
    DestructiveChangeError,
    InvalidIndexNameError,
    ReadinessTimeoutError,
    ReconciliationInterrupted,
    SchemaConnectionError,
    SchemaError,
    SchemaValidationError,
    WriteError,
)

__all__ = [
    # Model
    "DesiredSchema",
    "Collection",
    "Group",
    "Rule",
    "IndexInfo",
    # Parsing and serialization
    "parse_schema",
    "schema_to_toml",
    "SchemaDocumentValidator",
    "name_to_info",
    "info_to_name",
    # Reconciliation
    "SchemaReconciler",
    "ApplyResult",
    "Interrupt",
    "apply_schema",
    "save_schema",
    # Database
    "SchemaConnection",
    "start_mongod",
    # Errors
    "SchemaError",
    "SchemaValidationError",
    "DestructiveChangeError",
    "ReadinessTimeoutError",
    "InvalidIndexNameError",
    "WriteError",
    "ReconciliationInterrupted",
    "SchemaConnectionError",
    "ConfigurationError",
]
