# File: relschema/models.py
"""
relschema - Core Data Models
=============================
Pydantic V2 models for the compiler's configuration and its output
(table descriptors and relation mappings), plus the small value types the
schema walk carries between nodes.

Pipeline: Raw schema → Annotation validation → Two-phase walk → Descriptors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relschema.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RelationKind(str, Enum):
    """Default relation tokens, used when a factory does not supply its own."""

    BELONGS_TO_ONE = "BelongsToOneRelation"
    HAS_MANY = "HasManyRelation"


class NodeKind(str, Enum):
    """Classification of a schema node, resolved once during the pre-order visit."""

    TABLE = "table"
    EMBEDDED = "embedded"
    ARRAY_OF_TABLE = "array_of_table"
    ARRAY_OF_EMBEDDED = "array_of_embedded"
    SCALAR = "scalar"


class Edge(str, Enum):
    """How a node is reached from its parent."""

    PROPERTIES = "properties"
    ITEMS = "items"


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    frozen=False,
    extra="forbid",
    protected_namespaces=(),
)


# ---------------------------------------------------------------------------
# Compiler settings
# ---------------------------------------------------------------------------


class CompilerSettings(BaseModel):
    """
    Settings for a compile run.

    Every override annotation is the ``annotation_prefix`` followed by a fixed
    suffix, so the whole annotation surface can be renamed at once.  Keys that
    start with the prefix are stripped from every emitted schema.
    """

    model_config = _SHARED_CONFIG

    annotation_prefix: str = Field(
        default="x-relschema-",
        min_length=1,
        description="Namespace prefix for override annotations.",
    )
    default_id_column: str = Field(
        default="id",
        min_length=1,
        description="Identity column used when a table does not override it.",
    )
    foreign_key_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "integer"},
        description="Property schema inserted for generated foreign-key columns.",
    )

    @field_validator("annotation_prefix")
    @classmethod
    def _prefix_not_standard_keyword(cls, v: str) -> str:
        if v.startswith("$"):
            raise ValueError(
                f"Annotation prefix '{v}' would collide with JSON Schema '$' keywords."
            )
        return v

    # -- Annotation keys ----------------------------------------------------

    def annotation(self, suffix: str) -> str:
        return f"{self.annotation_prefix}{suffix}"

    @property
    def table_name_key(self) -> str:
        return self.annotation("table-name")

    @property
    def model_name_key(self) -> str:
        return self.annotation("model-name")

    @property
    def id_column_key(self) -> str:
        return self.annotation("id-column")

    @property
    def join_to_column_key(self) -> str:
        return self.annotation("join-to-column")

    @property
    def join_through_key(self) -> str:
        return self.annotation("join-through")

    @property
    def string_annotation_keys(self) -> List[str]:
        return [
            self.table_name_key,
            self.model_name_key,
            self.id_column_key,
            self.join_to_column_key,
        ]

    def is_annotation(self, key: str) -> bool:
        return key.startswith(self.annotation_prefix)


# ---------------------------------------------------------------------------
# Relations
# ---------------------------------------------------------------------------


class JoinThrough(BaseModel):
    """Intermediate join table for a many-to-many shaped HasMany."""

    model_config = _SHARED_CONFIG

    from_: str = Field(
        ...,
        alias="from",
        min_length=3,
        description="Join-table column referencing the owning table ('table.column').",
    )
    to: str = Field(
        ...,
        min_length=3,
        description="Join-table column referencing the target table ('table.column').",
    )
    extra: List[str] = Field(
        default_factory=list,
        description="Additional join-table columns exposed on the relation.",
    )

    @property
    def table(self) -> str:
        return self.from_.split(".", 1)[0]


class RelationMapping(BaseModel):
    """
    One edge of the relation graph.

    For a BelongsToOne, ``join_from`` names the owning table's foreign-key
    column.  For a HasMany, ``join_to`` names the foreign-key column on the
    target table.
    """

    model_config = _SHARED_CONFIG

    kind: Any = Field(..., description="Relation token supplied by the model factory.")
    target_table: str = Field(..., min_length=1, description="Target table name.")
    target_model: Any = Field(
        default=None,
        exclude=True,
        repr=False,
        description="Handle the factory returned for the target table.",
    )
    join_from: Optional[str] = Field(default=None, description="Owning side 'table.column'.")
    join_to: str = Field(..., min_length=1, description="Target side 'table.column'.")
    join_through: Optional[JoinThrough] = Field(
        default=None, description="Join table for many-to-many shaped relations."
    )

    def __repr__(self) -> str:
        through: str = f" via {self.join_through.table}" if self.join_through else ""
        return (
            f"<Relation {self.kind} {self.join_from} → {self.join_to}{through}>"
        )


# ---------------------------------------------------------------------------
# Table descriptor
# ---------------------------------------------------------------------------


class TableDescriptor(BaseModel):
    """
    The unit of compiler output: one table.

    ``json_schema`` is the table node's schema with annotations removed,
    table-valued and relation properties stripped, and foreign-key stubs
    inserted.  It is serialised under the key ``schema``.
    """

    model_config = _SHARED_CONFIG

    model_name: str = Field(..., min_length=1, description="Key in the compiled mapping.")
    table_name: str = Field(..., min_length=1, description="Physical table name.")
    id_column: str = Field(default="id", min_length=1, description="Identity column.")
    json_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"properties": {}},
        alias="schema",
        description="Emitted JSON Schema for the table's columns.",
    )
    relations: Dict[str, RelationMapping] = Field(
        default_factory=dict, description="Relations keyed by property name."
    )

    @property
    def properties(self) -> Dict[str, Any]:
        return self.json_schema.setdefault("properties", {})

    @property
    def id_path(self) -> str:
        return f"{self.table_name}.{self.id_column}"

    def __repr__(self) -> str:
        return (
            f"<Table {self.table_name} "
            f"({len(self.properties)} props, {len(self.relations)} rels)>"
        )


# ---------------------------------------------------------------------------
# Traversal context
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TraversalContext:
    """
    Identity context handed down the tree.

    A table node opens a fresh context.  Embedded descendants derive a child
    context that keeps the table's ``id_column``/``id_path`` and extends
    ``table_path`` with the traversal key.
    """

    table_path: str
    id_column: str
    id_path: str

    @classmethod
    def for_table(cls, table_name: str, id_column: str) -> "TraversalContext":
        return cls(
            table_path=table_name,
            id_column=id_column,
            id_path=f"{table_name}.{id_column}",
        )

    def child(self, key: str) -> "TraversalContext":
        return TraversalContext(
            table_path=f"{self.table_path}.{key}",
            id_column=self.id_column,
            id_path=self.id_path,
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "RelationKind",
    "NodeKind",
    "Edge",
    "CompilerSettings",
    "JoinThrough",
    "RelationMapping",
    "TableDescriptor",
    "TraversalContext",
]
