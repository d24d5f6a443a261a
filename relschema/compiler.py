# File: relschema/compiler.py
"""
relschema - Schema Compiler
============================

Compiles a nested, dereferenced JSON Schema into table descriptors and the
relations between them, registering each table with a model factory.

Workflow::

    1. Deep-copy the input (the caller's tree is never touched).
    2. Validate override annotations (validators.py); fail before any
       factory call.
    3. Walk the tree.  Pre-order: classify the node and derive its
       ``TraversalContext``.  Post-order: rewrite the node from its
       children's results, emit and register tables, and hand relations
       upward until a table absorbs them.
    4. Return ``{model identifier: handle}``.

Relation inference:
    - A table reached as ``properties[key]`` becomes a BelongsToOne on the
      nearest enclosing table: the property is replaced by a ``{key}_id``
      stub.
    - A table reached as ``items`` of an array property becomes a HasMany:
      the array property is removed and the target gains a foreign-key
      column named after the owning table's flattened id-path.

Tables are registered strictly in post-order, so a relation's target
handle always exists before the relation that references it.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from relschema.errors import RelationCollisionError
from relschema.models import (
    CompilerSettings,
    Edge,
    JoinThrough,
    NodeKind,
    RelationKind,
    RelationMapping,
    TableDescriptor,
    TraversalContext,
)
from relschema.nodes import (
    child_pointer,
    classify,
    id_column_of,
    iter_children,
    iter_unvisited_tables,
    model_name_of,
    table_name_of,
)
from relschema.utils import flatten_id_path, format_pointer
from relschema.validators import validate_annotations

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relschema.compiler")


# ---------------------------------------------------------------------------
# Visit results
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _PendingHasMany:
    """A table reached through ``items``, waiting for its array to name the relation."""

    descriptor: TableDescriptor
    handle: Any


@dataclass(slots=True)
class _Visit:
    """What a node's post-order step hands back to its parent."""

    schema: Any
    relations: Dict[str, RelationMapping] = field(default_factory=dict)
    table: Optional[TableDescriptor] = None
    handle: Any = None
    pending: Optional[_PendingHasMany] = None
    removed: bool = False


# ---------------------------------------------------------------------------
# Single compile run
# ---------------------------------------------------------------------------


class _CompileRun:
    """State owned by one ``compile`` call; discarded when it returns."""

    def __init__(self, factory: Any, settings: CompilerSettings) -> None:
        self.factory = factory
        self.settings: CompilerSettings = settings
        self.virtual_attributes = frozenset(getattr(factory, "virtual_attributes", None) or ())
        self.belongs_to_one = getattr(
            factory, "belongs_to_one", RelationKind.BELONGS_TO_ONE.value
        )
        self.has_many = getattr(factory, "has_many", RelationKind.HAS_MANY.value)

        self.models: Dict[str, Any] = {}
        self.descriptors: Dict[str, List[TableDescriptor]] = {}
        self.synthesized: Dict[str, Dict[str, Dict[str, Any]]] = {}

    # -- Walk ---------------------------------------------------------------

    def visit(
        self,
        node: Dict[str, Any],
        parent_ctx: Optional[TraversalContext],
        edge: Optional[Edge],
        key: Optional[str],
        pointer: Tuple[str, ...],
    ) -> _Visit:
        kind: NodeKind = classify(node)
        for parts in iter_unvisited_tables(node):
            logger.debug(
                "Table schema at %s is not under properties or items; it is not compiled.",
                format_pointer(pointer + parts),
            )

        # Pre-order: derive this node's context.
        ctx: Optional[TraversalContext]
        if kind is NodeKind.TABLE:
            ctx = TraversalContext.for_table(
                table_name_of(node, self.settings),
                id_column_of(node, self.settings),
            )
        elif parent_ctx is not None and key is not None:
            ctx = parent_ctx.child(key)
        else:
            ctx = None

        relations: Dict[str, RelationMapping] = {}
        rewritten: Dict[str, Any] = {
            k: v for k, v in node.items() if not self.settings.is_annotation(k)
        }
        children: Dict[Tuple[Edge, str], _Visit] = {}

        for child_edge, child_key, child in iter_children(node):
            sub_pointer = child_pointer(pointer, child_edge, child_key)
            result = self.visit(child, ctx, child_edge, child_key, sub_pointer)
            children[(child_edge, child_key)] = result
            if result.table is None:
                self._merge(relations, result.relations, sub_pointer)

        # Post-order: rebuild properties from the children's results.
        if isinstance(node.get("properties"), dict):
            properties: Dict[str, Any] = {}
            for name, original in node["properties"].items():
                result = children.get((Edge.PROPERTIES, name))
                if result is None:
                    properties[name] = original
                elif result.removed:
                    continue
                elif result.table is not None and ctx is not None:
                    stub: str = f"{name}_id"
                    properties[stub] = dict(self.settings.foreign_key_schema)
                    self._attach(
                        relations,
                        name,
                        RelationMapping(
                            kind=self.belongs_to_one,
                            target_table=result.table.table_name,
                            target_model=result.handle,
                            join_from=f"{ctx.table_path}.{stub}",
                            join_to=result.table.id_path,
                        ),
                        pointer,
                    )
                else:
                    properties[name] = result.schema
            rewritten["properties"] = properties

        items_result: Optional[_Visit] = children.get((Edge.ITEMS, "items"))
        if items_result is not None:
            rewritten["items"] = items_result.schema

        if kind is NodeKind.TABLE:
            return self._emit_table(node, rewritten, relations, edge, pointer)

        if kind is NodeKind.ARRAY_OF_TABLE and items_result is not None:
            pending = items_result.pending
            if pending is not None and edge is Edge.PROPERTIES and ctx is not None:
                relation = self._finalize_has_many(pending, node, ctx)
                self._attach(relations, key, relation, pointer)
                return _Visit(schema=rewritten, relations=relations, removed=True)
            logger.debug(
                "Array at %s has no enclosing table property; "
                "HasMany to '%s' is not attached.",
                format_pointer(pointer),
                items_result.table.table_name if items_result.table else "?",
            )

        return _Visit(schema=rewritten, relations=relations)

    # -- Tables -------------------------------------------------------------

    def _emit_table(
        self,
        node: Dict[str, Any],
        rewritten: Dict[str, Any],
        relations: Dict[str, RelationMapping],
        edge: Optional[Edge],
        pointer: Tuple[str, ...],
    ) -> _Visit:
        table_name: str = table_name_of(node, self.settings)
        model_name: str = model_name_of(node, self.settings)

        emitted: Dict[str, Any] = dict(rewritten)
        declared = emitted.get("properties")
        if not isinstance(declared, dict):
            declared = {}
        emitted["properties"] = {
            name: prop
            for name, prop in declared.items()
            if name not in self.virtual_attributes
        }
        for column, column_schema in self.synthesized.get(table_name, {}).items():
            emitted["properties"].setdefault(column, dict(column_schema))

        descriptor: TableDescriptor = TableDescriptor(
            model_name=model_name,
            table_name=table_name,
            id_column=id_column_of(node, self.settings),
            json_schema=emitted,
            relations=relations,
        )

        handle: Any = self.factory.create_model(descriptor)
        if model_name in self.models:
            logger.debug("Model '%s' is registered again; the later handle wins.", model_name)
        self.models[model_name] = handle
        self.descriptors.setdefault(table_name, []).append(descriptor)
        logger.debug(
            "Registered table '%s' as '%s' from %s (%d relation(s)).",
            table_name,
            model_name,
            format_pointer(pointer),
            len(relations),
        )

        pending: Optional[_PendingHasMany] = None
        if edge is Edge.ITEMS:
            pending = _PendingHasMany(descriptor=descriptor, handle=handle)
        return _Visit(
            schema=descriptor.json_schema,
            table=descriptor,
            handle=handle,
            pending=pending,
        )

    def _finalize_has_many(
        self,
        pending: _PendingHasMany,
        node: Dict[str, Any],
        ctx: TraversalContext,
    ) -> RelationMapping:
        target: TableDescriptor = pending.descriptor
        join_to: str = target.id_path
        join_through: Optional[JoinThrough] = None

        join_to_override: Optional[str] = node.get(self.settings.join_to_column_key)
        through_override: Any = node.get(self.settings.join_through_key)

        if join_to_override:
            join_to = join_to_override
        elif through_override is not None:
            join_through = JoinThrough.model_validate(through_override)
        else:
            column: str = flatten_id_path(ctx.id_path)
            join_to = f"{target.table_name}.{column}"
            self._synthesize_column(target.table_name, column)

        return RelationMapping(
            kind=self.has_many,
            target_table=target.table_name,
            target_model=pending.handle,
            join_from=ctx.id_path,
            join_to=join_to,
            join_through=join_through,
        )

    def _synthesize_column(self, table_name: str, column: str) -> None:
        """
        Add a foreign-key column to every descriptor of ``table_name``.

        Descriptors emitted later for the same table pick the column up in
        ``_emit_table``.  A column that already exists is reused as-is.
        """
        columns = self.synthesized.setdefault(table_name, {})
        if column in columns:
            logger.debug(
                "Foreign-key column '%s.%s' is shared by more than one relation.",
                table_name,
                column,
            )
        columns.setdefault(column, dict(self.settings.foreign_key_schema))

        for descriptor in self.descriptors.get(table_name, []):
            if column in descriptor.properties:
                logger.debug("Reusing existing column '%s.%s'.", table_name, column)
                continue
            descriptor.properties[column] = dict(self.settings.foreign_key_schema)

    # -- Relation accumulators ----------------------------------------------

    @staticmethod
    def _attach(
        relations: Dict[str, RelationMapping],
        name: str,
        relation: RelationMapping,
        pointer: Tuple[str, ...],
    ) -> None:
        if name in relations:
            raise RelationCollisionError(name, format_pointer(pointer))
        relations[name] = relation

    def _merge(
        self,
        relations: Dict[str, RelationMapping],
        incoming: Dict[str, RelationMapping],
        pointer: Tuple[str, ...],
    ) -> None:
        for name, relation in incoming.items():
            self._attach(relations, name, relation, pointer)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class SchemaCompiler:
    """
    Compiles schema trees against one model factory.

    The factory must provide ``create_model(descriptor)``.  It may also
    provide ``virtual_attributes`` (property names never emitted) and the
    relation tokens ``belongs_to_one`` / ``has_many``; ``RelationKind``
    values are used otherwise.

    Each ``compile`` call is independent, so one compiler can be shared
    across threads if the factory is reentrant.
    """

    def __init__(self, factory: Any, settings: Optional[CompilerSettings] = None) -> None:
        self.factory = factory
        self.settings: CompilerSettings = settings or CompilerSettings()

    def compile(self, schema: Any) -> Dict[str, Any]:
        """
        Compile ``schema`` and return ``{model identifier: handle}``.

        Raises:
            CompileError: On a configuration error; no mapping is returned.
            Exception: Whatever ``factory.create_model`` raises, unchanged.
        """
        if not isinstance(schema, dict):
            logger.debug("Schema root is not a mapping; nothing to compile.")
            return {}

        working: Dict[str, Any] = copy.deepcopy(schema)
        validate_annotations(working, self.settings).raise_for_errors()

        run: _CompileRun = _CompileRun(self.factory, self.settings)
        run.visit(working, None, None, None, ())

        logger.info(
            "Compiled %d table(s) into %d model(s).",
            sum(len(d) for d in run.descriptors.values()),
            len(run.models),
        )
        return run.models


def compile_schema(
    factory: Any,
    schema: Any,
    settings: Optional[CompilerSettings] = None,
) -> Dict[str, Any]:
    """Compile ``schema`` with a one-off ``SchemaCompiler``."""
    return SchemaCompiler(factory, settings).compile(schema)


__all__: List[str] = [
    "SchemaCompiler",
    "compile_schema",
]
