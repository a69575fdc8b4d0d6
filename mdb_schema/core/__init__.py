"""
Core schema components: model, parser, serializer, index naming convention
and the reconciliation engine.
"""

from .index_names import IndexInfo, info_to_name, name_to_info
from .interrupt import Interrupt
from .model import Collection, DesiredSchema, Group, Rule
from .parser import SCHEMA_DOCUMENT_SCHEMA, SchemaDocumentValidator, parse_schema
from .reconciler import ApplyResult, SchemaReconciler, apply_schema, save_schema
from .serializer import schema_to_toml

__all__ = [
    "Collection",
    "DesiredSchema",
    "Group",
    "Rule",
    "IndexInfo",
    "name_to_info",
    "info_to_name",
    "SCHEMA_DOCUMENT_SCHEMA",
    "SchemaDocumentValidator",
    "parse_schema",
    "schema_to_toml",
    "Interrupt",
    "ApplyResult",
    "SchemaReconciler",
    "apply_schema",
    "save_schema",
]
