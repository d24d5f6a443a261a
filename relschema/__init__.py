# File: relschema/__init__.py
"""
relschema: JSON Schema to Relational Model Compiler
=====================================================

Compiles a nested, dereferenced JSON Schema document into flat table
descriptors and the relations between them (BelongsToOne, HasMany).
Foreign-key columns and join conditions are inferred from the schema's
shape and a few optional ``x-relschema-*`` override annotations.

Architecture overview::

    ┌──────────────┐     ┌────────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ SchemaCompiler │────▶│   ModelFactory   │
    │   (cli.py)   │     │ (compiler.py)  │     │   (factory.py)   │
    └──────────────┘     └───────┬────────┘     └──────────────────┘
                                 │
                    ┌────────────┼────────────┐
                    ▼            ▼            ▼
             ┌──────────┐ ┌───────────┐ ┌───────────┐
             │validators│ │  models   │ │   nodes   │
             │  (.py)   │ │  (.py)    │ │   (.py)   │
             └──────────┘ └───────────┘ └───────────┘

Usage::

    from relschema import DescriptorFactory, compile_schema
    models = compile_schema(DescriptorFactory(), schema)

    # Bound to SQLAlchemy Core tables
    from relschema import SQLAlchemyModelFactory
    factory = SQLAlchemyModelFactory()
    models = compile_schema(factory, schema)
    factory.build().create_all(engine)
"""

from __future__ import annotations

from typing import List

__version__: str = "0.1.0"
__license__: str = "MIT"

from relschema.compiler import SchemaCompiler, compile_schema
from relschema.errors import (
    AnnotationError,
    CompileError,
    JoinThroughError,
    RelationCollisionError,
)
from relschema.factory import (
    DescriptorFactory,
    ModelFactory,
    SQLAlchemyModelFactory,
    TableModel,
)
from relschema.loader import load_schema_file
from relschema.models import (
    CompilerSettings,
    JoinThrough,
    NodeKind,
    RelationKind,
    RelationMapping,
    TableDescriptor,
    TraversalContext,
)
from relschema.validators import ValidationResult, validate_annotations

__all__: List[str] = [
    "__version__",
    "__license__",
    # Compiler
    "SchemaCompiler",
    "compile_schema",
    # Errors
    "CompileError",
    "AnnotationError",
    "JoinThroughError",
    "RelationCollisionError",
    # Factories
    "ModelFactory",
    "DescriptorFactory",
    "SQLAlchemyModelFactory",
    "TableModel",
    # Models
    "CompilerSettings",
    "JoinThrough",
    "NodeKind",
    "RelationKind",
    "RelationMapping",
    "TableDescriptor",
    "TraversalContext",
    # Validation
    "ValidationResult",
    "validate_annotations",
    # Loading
    "load_schema_file",
]
