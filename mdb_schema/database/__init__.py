"""
MongoDB access for schema reconciliation.
"""

from .connection import (
    COLLECTIONS_METADATA,
    GROUPS_METADATA,
    READY_FOR_READS,
    READY_FOR_WRITES,
    SchemaConnection,
)
from .local_server import start_mongod

__all__ = [
    "SchemaConnection",
    "start_mongod",
    "COLLECTIONS_METADATA",
    "GROUPS_METADATA",
    "READY_FOR_READS",
    "READY_FOR_WRITES",
]
