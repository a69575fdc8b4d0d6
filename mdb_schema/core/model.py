"""
Schema Model

Canonical in-memory representation of a schema: collections with their
index names, and groups with their rules. Shared by the apply path (built
by the parser) and the save path (built from live metadata records).

Each type converts to and from the document stored in the metadata
collections:

    hz_collections: {"_id": "posts"}
    hz_groups:      {"_id": "default",
                     "rules": {"everyone": {"template": "true"}}}

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Rule:
    """A group rule. Atomic: template and validator are always written together."""

    template: str
    validator: Optional[str] = None

    def to_document(self) -> Dict[str, str]:
        doc = {"template": self.template}
        if self.validator:
            doc["validator"] = self.validator
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Rule":
        return cls(template=doc.get("template"), validator=doc.get("validator"))


@dataclass
class Collection:
    """A collection and the names of its secondary indexes."""

    id: str
    indexes: List[str] = field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        # Index names are not stored; the collection itself is the source of truth.
        return {"_id": self.id}

    @classmethod
    def from_document(cls, doc: Dict[str, Any], indexes: Optional[List[str]] = None) -> "Collection":
        return cls(id=doc["_id"], indexes=list(indexes or []))


@dataclass
class Group:
    """An authorization policy bundle: rule name -> Rule."""

    id: str
    rules: Dict[str, Rule] = field(default_factory=dict)

    def rule_documents(self) -> Dict[str, Dict[str, str]]:
        return {name: rule.to_document() for name, rule in self.rules.items()}

    def to_document(self) -> Dict[str, Any]:
        return {"_id": self.id, "rules": self.rule_documents()}

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Group":
        rules = doc.get("rules") or {}
        return cls(
            id=doc["_id"],
            rules={name: Rule.from_document(rule) for name, rule in rules.items()},
        )


@dataclass
class DesiredSchema:
    """
    Root of the model: collections and groups.

    Identifiers are unique within each list; the document format's key
    uniqueness guarantees it for parsed schemas.
    """

    collections: List[Collection] = field(default_factory=list)
    groups: List[Group] = field(default_factory=list)

    def collection_ids(self) -> List[str]:
        return [c.id for c in self.collections]

    def group_ids(self) -> List[str]:
        return [g.id for g in self.groups]

    def get_collection(self, collection_id: str) -> Optional[Collection]:
        for collection in self.collections:
            if collection.id == collection_id:
                return collection
        return None

    def get_group(self, group_id: str) -> Optional[Group]:
        for group in self.groups:
            if group.id == group_id:
                return group
        return None
