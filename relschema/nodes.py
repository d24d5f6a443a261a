# File: relschema/nodes.py
"""
relschema - Schema Node Classification
=======================================
Predicates and name resolution for raw schema nodes.  Both the annotation
validators and the compiler classify nodes through these functions, so the
two passes always agree on which nodes are tables.

A node is a *table* when it has a non-empty ``$id`` and object semantics:
no declared ``type``, ``type: object``, or a ``properties`` mapping.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Tuple

from relschema.models import CompilerSettings, Edge, NodeKind

IDENTITY_KEY: str = "$id"


def is_table_schema(node: Any) -> bool:
    if not isinstance(node, dict):
        return False
    identity = node.get(IDENTITY_KEY)
    if not identity or not isinstance(identity, str):
        return False
    return (
        "type" not in node
        or node.get("type") == "object"
        or isinstance(node.get("properties"), dict)
    )


def is_array_schema(node: Dict[str, Any]) -> bool:
    return node.get("type") == "array" or isinstance(node.get("items"), dict)


def classify(node: Any) -> NodeKind:
    """Resolve the node kind once; see ``NodeKind``."""
    if not isinstance(node, dict):
        return NodeKind.SCALAR
    if is_table_schema(node):
        return NodeKind.TABLE
    if is_array_schema(node):
        if is_table_schema(node.get("items")):
            return NodeKind.ARRAY_OF_TABLE
        return NodeKind.ARRAY_OF_EMBEDDED
    node_type = node.get("type")
    if node_type is None or node_type == "object" or isinstance(node.get("properties"), dict):
        return NodeKind.EMBEDDED
    return NodeKind.SCALAR


# ---------------------------------------------------------------------------
# Name resolution (annotation, else title, else $id)
# ---------------------------------------------------------------------------


def table_name_of(node: Dict[str, Any], settings: CompilerSettings) -> str:
    return node.get(settings.table_name_key) or node.get("title") or node[IDENTITY_KEY]


def model_name_of(node: Dict[str, Any], settings: CompilerSettings) -> str:
    return node.get(settings.model_name_key) or node.get("title") or node[IDENTITY_KEY]


def id_column_of(node: Dict[str, Any], settings: CompilerSettings) -> str:
    return node.get(settings.id_column_key) or settings.default_id_column


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def iter_children(node: Dict[str, Any]) -> Iterator[Tuple[Edge, str, Dict[str, Any]]]:
    """Yield ``(edge, key, child)`` for every sub-schema the walk descends into."""
    properties = node.get("properties")
    if isinstance(properties, dict):
        for name, child in properties.items():
            if isinstance(child, dict):
                yield Edge.PROPERTIES, name, child
    items = node.get("items")
    if isinstance(items, dict):
        yield Edge.ITEMS, "items", items


# Keywords whose sub-schemas are never walked.
UNVISITED_KEYWORDS: Tuple[str, ...] = (
    "allOf",
    "anyOf",
    "oneOf",
    "not",
    "additionalProperties",
    "patternProperties",
    "definitions",
    "$defs",
)


def iter_unvisited_tables(node: Dict[str, Any]) -> Iterator[Tuple[str, ...]]:
    """
    Yield the relative pointer parts of table schemas sitting directly under
    a keyword the walk does not descend into.
    """
    for keyword in UNVISITED_KEYWORDS:
        value = node.get(keyword)
        if isinstance(value, list):
            for index, sub in enumerate(value):
                if is_table_schema(sub):
                    yield keyword, str(index)
        elif is_table_schema(value):
            yield (keyword,)
        elif isinstance(value, dict):
            for name, sub in value.items():
                if is_table_schema(sub):
                    yield keyword, name


def child_pointer(pointer: Tuple[str, ...], edge: Edge, key: str) -> Tuple[str, ...]:
    if edge is Edge.ITEMS:
        return pointer + ("items",)
    return pointer + ("properties", key)


__all__: List[str] = [
    "IDENTITY_KEY",
    "is_table_schema",
    "is_array_schema",
    "classify",
    "table_name_of",
    "model_name_of",
    "id_column_of",
    "iter_children",
    "UNVISITED_KEYWORDS",
    "iter_unvisited_tables",
    "child_pointer",
]
