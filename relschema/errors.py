# File: relschema/errors.py
"""
relschema - Compile Errors
===========================
Configuration errors raised by the compiler.  Every error carries the
JSON-pointer location of the offending schema node so the caller can find
it in the source document.

Errors raised by the model factory are never wrapped; they propagate to the
caller unchanged.
"""

from __future__ import annotations

from typing import List


class CompileError(ValueError):
    """Base class for schema configuration errors."""

    def __init__(self, message: str, pointer: str = "#") -> None:
        self.message: str = message
        self.pointer: str = pointer
        super().__init__(f"{message} (at {pointer})")


class AnnotationError(CompileError):
    """An override annotation is malformed."""


class JoinThroughError(AnnotationError):
    """A join-through annotation names a table the schema never compiles."""


class RelationCollisionError(CompileError):
    """Two relations with the same name land on one table."""

    def __init__(self, relation_name: str, pointer: str = "#") -> None:
        self.relation_name: str = relation_name
        super().__init__(
            f"Relation '{relation_name}' is defined more than once on the same table",
            pointer,
        )


__all__: List[str] = [
    "CompileError",
    "AnnotationError",
    "JoinThroughError",
    "RelationCollisionError",
]
