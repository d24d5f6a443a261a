# File: relschema/factory.py
"""
relschema - Model Factories
============================
The compiler hands every table descriptor to a *model factory* and returns
whatever handle the factory produces.  This module defines that contract
and ships two implementations:

- ``DescriptorFactory``: returns the descriptor itself.  Used by the CLI and
  anywhere the plain relational model is all that is needed.
- ``SQLAlchemyModelFactory``: binds descriptors to SQLAlchemy Core tables
  in one ``MetaData``, with foreign keys derived from the relation graph.

Tables are built lazily, after compilation, because a HasMany relation adds
its foreign-key column to the target table after the target was registered.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Uuid,
    and_,
)
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.types import TypeEngine

from relschema.models import RelationKind, RelationMapping, TableDescriptor
from relschema.utils import split_column_ref

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relschema.factory")


# ---------------------------------------------------------------------------
# Factory contract
# ---------------------------------------------------------------------------


@runtime_checkable
class ModelFactory(Protocol):
    """What the compiler needs from an ORM binder."""

    virtual_attributes: Sequence[str]
    belongs_to_one: Any
    has_many: Any

    def create_model(self, descriptor: TableDescriptor) -> Any:
        ...


class DescriptorFactory:
    """Identity binder: every table's handle is its ``TableDescriptor``."""

    belongs_to_one: Any = RelationKind.BELONGS_TO_ONE.value
    has_many: Any = RelationKind.HAS_MANY.value

    def __init__(self, virtual_attributes: Sequence[str] = ()) -> None:
        self.virtual_attributes: Sequence[str] = tuple(virtual_attributes)
        self.created: List[TableDescriptor] = []

    def create_model(self, descriptor: TableDescriptor) -> Any:
        self.created.append(descriptor)
        return descriptor


# ---------------------------------------------------------------------------
# JSON Schema → SQLAlchemy column types
# ---------------------------------------------------------------------------

_TYPE_MAP: Dict[str, type] = {
    "integer": Integer,
    "number": Float,
    "boolean": Boolean,
    "string": String,
    "object": JSON,
    "array": JSON,
}

_FORMAT_MAP: Dict[str, type] = {
    "date-time": DateTime,
    "date": Date,
    "uuid": Uuid,
}


def _declared_type(prop: Dict[str, Any]) -> Any:
    declared = prop.get("type")
    if isinstance(declared, list):
        declared = next((t for t in declared if t != "null"), None)
    return declared


def column_type_for(prop: Dict[str, Any]) -> TypeEngine:
    """
    Map a property schema to a SQLAlchemy type.

    ``type`` lists pick the first non-null entry; untyped properties are
    stored as JSON.
    """
    declared = _declared_type(prop)

    if declared == "string":
        fmt = prop.get("format")
        if fmt in _FORMAT_MAP:
            return _FORMAT_MAP[fmt]()
        max_length = prop.get("maxLength")
        if isinstance(max_length, int):
            return String(max_length)

    return _TYPE_MAP.get(declared, JSON)()


def _parse_datetime(value: str) -> datetime:
    # fromisoformat only accepts a trailing 'Z' from Python 3.11 on.
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


_DEFAULT_PARSERS: Dict[str, Callable[[str], Any]] = {
    "date-time": _parse_datetime,
    "date": date.fromisoformat,
    "uuid": uuid.UUID,
}


def column_default_for(prop: Dict[str, Any]) -> Any:
    """
    Normalize a property's ``default`` to the Python value its column type
    accepts.  Formatted strings become ``datetime``, ``date`` or ``UUID``.

    Raises:
        ValueError: If a formatted default cannot be parsed.
    """
    value = prop.get("default")
    fmt = prop.get("format")
    if not isinstance(value, str) or _declared_type(prop) != "string":
        return value
    parser = _DEFAULT_PARSERS.get(fmt)
    if parser is None:
        return value
    try:
        return parser(value)
    except ValueError as exc:
        raise ValueError(f"Default {value!r} is not a valid '{fmt}' value.") from exc


# ---------------------------------------------------------------------------
# SQLAlchemy binder
# ---------------------------------------------------------------------------


class TableModel:
    """Handle returned by ``SQLAlchemyModelFactory`` for one table."""

    __slots__ = ("factory", "descriptor")

    def __init__(self, factory: "SQLAlchemyModelFactory", descriptor: TableDescriptor) -> None:
        self.factory: SQLAlchemyModelFactory = factory
        self.descriptor: TableDescriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.model_name

    @property
    def table(self) -> Table:
        return self.factory.table(self.descriptor.table_name)

    @property
    def relations(self) -> Dict[str, RelationMapping]:
        return self.descriptor.relations

    def join_condition(self, relation_name: str) -> ColumnElement[bool]:
        """
        Build the ON clause for a relation of this table.

        Join-through relations produce the two-step condition across the
        join table.
        """
        try:
            relation: RelationMapping = self.descriptor.relations[relation_name]
        except KeyError:
            raise KeyError(
                f"Table '{self.descriptor.table_name}' has no relation '{relation_name}'."
            ) from None

        column = self.factory.column
        if relation.join_through is not None:
            through = relation.join_through
            return and_(
                column(relation.join_from) == column(through.from_),
                column(through.to) == column(relation.join_to),
            )
        return column(relation.join_from) == column(relation.join_to)

    def __repr__(self) -> str:
        return f"<TableModel {self.descriptor.model_name} → {self.descriptor.table_name}>"


class SQLAlchemyModelFactory(DescriptorFactory):
    """
    Binds compiled tables to SQLAlchemy Core ``Table`` objects.

    Usage::

        factory = SQLAlchemyModelFactory()
        models = compile_schema(factory, schema)
        factory.build().create_all(engine)
    """

    def __init__(
        self,
        metadata: Optional[MetaData] = None,
        virtual_attributes: Sequence[str] = (),
    ) -> None:
        super().__init__(virtual_attributes)
        self.metadata: MetaData = metadata if metadata is not None else MetaData()
        self._models: Dict[str, TableModel] = {}

    def create_model(self, descriptor: TableDescriptor) -> TableModel:
        super().create_model(descriptor)
        model: TableModel = TableModel(self, descriptor)
        self._models[descriptor.table_name] = model
        return model

    # -- Building -----------------------------------------------------------

    def build(self) -> MetaData:
        """Create a ``Table`` for every registered table not yet built."""
        foreign_keys: Dict[str, Dict[str, str]] = self._collect_foreign_keys()
        for table_name, model in self._models.items():
            if table_name in self.metadata.tables:
                continue
            self._build_table(model.descriptor, foreign_keys.get(table_name, {}))
        logger.info("Built %d table(s) into MetaData.", len(self.metadata.tables))
        return self.metadata

    def table(self, table_name: str) -> Table:
        if table_name not in self.metadata.tables:
            self.build()
        return self.metadata.tables[table_name]

    def column(self, ref: str) -> Any:
        table_name, column_name = split_column_ref(ref)
        return self.table(table_name).c[column_name]

    def _collect_foreign_keys(self) -> Dict[str, Dict[str, str]]:
        """Map table → {column: referenced 'table.column'} from every relation."""
        foreign_keys: Dict[str, Dict[str, str]] = {}

        def add(source: Optional[str], target: Optional[str]) -> None:
            if not source or not target:
                return
            try:
                table_name, column_name = split_column_ref(source)
                split_column_ref(target)
            except ValueError:
                # Columns nested inside embedded objects have no table column.
                logger.debug("Skipping foreign key %s → %s.", source, target)
                return
            foreign_keys.setdefault(table_name, {})[column_name] = target

        for model in self._models.values():
            for relation in model.descriptor.relations.values():
                if relation.join_through is not None:
                    add(relation.join_through.from_, relation.join_from)
                    add(relation.join_through.to, relation.join_to)
                elif relation.kind == self.belongs_to_one:
                    add(relation.join_from, relation.join_to)
                elif relation.kind == self.has_many:
                    add(relation.join_to, relation.join_from)
        return foreign_keys

    def _build_table(self, descriptor: TableDescriptor, foreign_keys: Dict[str, str]) -> Table:
        properties: Dict[str, Any] = descriptor.properties
        required = set(descriptor.json_schema.get("required") or [])

        columns: List[Column] = [
            Column(descriptor.id_column, Integer, primary_key=True, autoincrement=True)
        ]
        for name, prop in properties.items():
            if name == descriptor.id_column:
                continue
            prop = prop if isinstance(prop, dict) else {}
            args: List[Any] = [column_type_for(prop)]
            if name in foreign_keys:
                args.append(ForeignKey(foreign_keys[name]))
            columns.append(
                Column(
                    name,
                    *args,
                    nullable=name not in required,
                    default=column_default_for(prop),
                )
            )

        for name, target in foreign_keys.items():
            if name not in properties and name != descriptor.id_column:
                columns.append(Column(name, Integer, ForeignKey(target)))

        logger.debug(
            "Building table '%s' with %d column(s), %d foreign key(s).",
            descriptor.table_name,
            len(columns),
            len(foreign_keys),
        )
        return Table(descriptor.table_name, self.metadata, *columns)


__all__: List[str] = [
    "ModelFactory",
    "DescriptorFactory",
    "SQLAlchemyModelFactory",
    "TableModel",
    "column_type_for",
    "column_default_for",
]
