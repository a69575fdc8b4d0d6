"""
Index naming convention.

An index name fully determines the fields it covers, so a schema only has
to list index names. Two forms are accepted:

    hz_[geo_][multi_<N>_]<JSON array of field paths>
        hz_[["author"],["meta","date"]]   -> author, meta.date
        hz_geo_[["location"]]             -> location (2dsphere)
        hz_multi_0_[["tags"],["date"]]    -> tags (multi-valued), date

    by<Field>[And<Field>...]
        byDate                            -> date
        byAuthorAndCreatedAt              -> author, createdAt

Names are opaque otherwise: an index is identified by its name, not its
fields. MongoDB keeps at most one index per key pattern, so one collection
cannot declare two names that decode to the same keys.

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from pymongo import ASCENDING, GEOSPHERE

from ..exceptions import InvalidIndexNameError

STRUCTURED_NAME_RE = re.compile(r"^hz_(?:(geo)_)?(?:multi_([0-9]+)_)?\[")
NAMED_FORM_RE = re.compile(r"^by([A-Z][A-Za-z0-9_]*)$")


@dataclass(frozen=True)
class IndexInfo:
    """Decoded index name."""

    name: str
    fields: Tuple[Tuple[str, ...], ...]
    geo: bool = False
    multi: Optional[int] = None

    def field_paths(self) -> List[str]:
        """Dotted MongoDB paths, in index order."""
        return [".".join(f) for f in self.fields]

    def keys(self) -> List[Tuple[str, Union[int, str]]]:
        """Key specification for pymongo's create_index."""
        direction = GEOSPHERE if self.geo else ASCENDING
        return [(path, direction) for path in self.field_paths()]


def _decode_field(name: str, raw: Any) -> Tuple[str, ...]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list) or not raw:
        raise InvalidIndexNameError(name, "invalid field")
    for part in raw:
        if not isinstance(part, str) or not part:
            raise InvalidIndexNameError(name, "invalid field")
    return tuple(raw)


def _decode_structured(name: str, match: "re.Match[str]") -> IndexInfo:
    json_offset = match.end() - 1
    try:
        raw_fields = json.loads(name[json_offset:])
    except ValueError:
        raise InvalidIndexNameError(name, "invalid JSON")

    if not isinstance(raw_fields, list) or not raw_fields:
        raise InvalidIndexNameError(name, "fields are not a non-empty array")

    fields = tuple(_decode_field(name, f) for f in raw_fields)
    multi = int(match.group(2)) if match.group(2) is not None else None
    if multi is not None and multi >= len(fields):
        raise InvalidIndexNameError(name, "multi index out of bounds")

    return IndexInfo(name=name, fields=fields, geo=bool(match.group(1)), multi=multi)


def _decode_named(name: str, match: "re.Match[str]") -> IndexInfo:
    parts = re.split(r"And(?=[A-Z])", match.group(1))
    if any(not p for p in parts):
        raise InvalidIndexNameError(name, "invalid field")
    fields = tuple((p[0].lower() + p[1:],) for p in parts)
    return IndexInfo(name=name, fields=fields)


def name_to_info(name: str) -> IndexInfo:
    """
    Decode an index name into its ordered field list.

    Raises:
        InvalidIndexNameError: If the name matches neither form
    """
    if not isinstance(name, str) or not name:
        raise InvalidIndexNameError(str(name), "empty name")

    match = STRUCTURED_NAME_RE.match(name)
    if match:
        return _decode_structured(name, match)

    match = NAMED_FORM_RE.match(name)
    if match:
        return _decode_named(name, match)

    raise InvalidIndexNameError(name)


def info_to_name(info: IndexInfo) -> str:
    """Encode an IndexInfo in the structured hz_ form."""
    head = "hz_"
    if info.geo:
        head += "geo_"
    if info.multi is not None:
        head += f"multi_{info.multi}_"
    return head + json.dumps([list(f) for f in info.fields], separators=(",", ":"))
