"""
Serializer

Renders a DesiredSchema back into the TOML schema document format. Section
order is sorted by name so the same live state always produces the same
text.

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

import re
from typing import List

from .model import DesiredSchema

HEADER = "# This is a TOML document"

BARE_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")

ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}


def _escape_char(char: str) -> str:
    code = ord(char)
    if char in ESCAPES:
        return ESCAPES[char]
    if code < 0x20 or code == 0x7F:
        return f"\\u{code:04X}"
    return char


def _string(value: str) -> str:
    """TOML basic string; non-ASCII characters are written literally."""
    return '"' + "".join(_escape_char(c) for c in value) + '"'


def _key(name: str) -> str:
    return name if BARE_KEY_RE.match(name) else _string(name)


def schema_to_toml(schema: DesiredSchema) -> str:
    """Render a schema model as a TOML document."""
    lines: List[str] = [HEADER]

    for collection in sorted(schema.collections, key=lambda c: c.id):
        lines.append("")
        lines.append(f"[collections.{_key(collection.id)}]")
        if collection.indexes:
            indexes = ", ".join(_string(i) for i in sorted(collection.indexes))
            lines.append(f"indexes = [{indexes}]")

    for group in sorted(schema.groups, key=lambda g: g.id):
        group_key = _key(group.id)
        lines.append("")
        lines.append(f"[groups.{group_key}]")
        for rule_name in sorted(group.rules):
            rule = group.rules[rule_name]
            lines.append(f"[groups.{group_key}.rules.{_key(rule_name)}]")
            lines.append(f"template = {_string(rule.template)}")
            if rule.validator:
                lines.append(f"validator = {_string(rule.validator)}")

    lines.append("")
    return "\n".join(lines)
