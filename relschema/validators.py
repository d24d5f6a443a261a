# File: relschema/validators.py
"""
relschema - Annotation Validators
==================================
A **pure-function validation pipeline** run over the raw schema tree before
the compiler registers any table.

The compiler itself only enforces what it needs while walking (relation-name
uniqueness).  This module checks the override annotations up front:
malformed values, join-to columns that are not ``table.column`` references,
and join-through annotations whose join table the schema never compiles.
Because this runs first, a configuration error never leaves a half-built
model mapping behind.

Usage by downstream modules:
    from relschema.validators import validate_annotations
    validate_annotations(schema, settings).raise_for_errors()
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple, Type

from pydantic import ValidationError as PydanticValidationError

from relschema.errors import AnnotationError, CompileError, JoinThroughError
from relschema.models import CompilerSettings, JoinThrough, NodeKind
from relschema.nodes import (
    child_pointer,
    classify,
    is_table_schema,
    iter_children,
    table_name_of,
)
from relschema.utils import format_pointer, is_column_ref, split_column_ref

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relschema.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight finding descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    @property
    def pointer(self) -> str:
        return self.context.get("pointer", "#")

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


# Error codes that map to a more specific exception than AnnotationError.
_ERROR_TYPES: Dict[str, Type[CompileError]] = {
    "JOIN_THROUGH_UNKNOWN_TABLE": JoinThroughError,
}


class ValidationResult:
    """Accumulates ``ValidationError`` instances produced by the pipeline."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("warning", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def all_items(self) -> List[ValidationError]:
        return list(self._items)

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def error_count(self) -> int:
        return sum(1 for e in self._items if e.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self._items if e.is_warning)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def summary(self) -> str:
        return (
            f"Validation: {self.error_count} error(s), "
            f"{self.warning_count} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self) -> str:
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            prefix: str = "✗" if item.is_error else "⚠"
            lines.append(f"  {prefix} [{item.code}] {item.message} (at {item.pointer})")
        return "\n".join(lines)

    def raise_for_errors(self) -> None:
        """
        Raise the first error as a ``CompileError`` subclass.

        Warnings are logged, never raised.
        """
        for warning in self.warnings:
            logger.warning("%s (at %s)", warning.message, warning.pointer)

        errors: List[ValidationError] = self.errors
        if not errors:
            return
        first: ValidationError = errors[0]
        message: str = first.message
        if len(errors) > 1:
            message = f"{message} [and {len(errors) - 1} more error(s)]"
        exc_type: Type[CompileError] = _ERROR_TYPES.get(first.code, AnnotationError)
        raise exc_type(message, first.pointer)


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------


def _walk(
    node: Dict[str, Any],
    pointer: Tuple[str, ...] = (),
) -> Iterator[Tuple[Tuple[str, ...], Dict[str, Any]]]:
    yield pointer, node
    for edge, key, child in iter_children(node):
        yield from _walk(child, child_pointer(pointer, edge, key))


def collect_table_names(schema: Any, settings: CompilerSettings) -> Set[str]:
    """Return every table name the schema compiles to."""
    names: Set[str] = set()
    if not isinstance(schema, dict):
        return names
    for _, node in _walk(schema):
        if is_table_schema(node):
            name = table_name_of(node, settings)
            if isinstance(name, str):
                names.add(name)
    return names


# ---------------------------------------------------------------------------
# Individual validators
# ---------------------------------------------------------------------------


def validate_annotation_values(
    schema: Dict[str, Any], settings: CompilerSettings
) -> ValidationResult:
    """
    Check the shape of every annotation value:
    - string annotations are non-empty strings
    - the join-to column is a ``table.column`` reference
    - a table title that names the table or model is a string
    - unknown keys under the annotation prefix are flagged
    """
    result: ValidationResult = ValidationResult()
    known: Set[str] = set(settings.string_annotation_keys) | {settings.join_through_key}

    for parts, node in _walk(schema):
        ctx: Dict[str, Any] = {"pointer": format_pointer(parts)}

        for key in settings.string_annotation_keys:
            if key not in node:
                continue
            value = node[key]
            if not isinstance(value, str) or not value.strip():
                result.add_error(
                    "ANNOTATION_NOT_STRING",
                    f"Annotation '{key}' must be a non-empty string, got {value!r}.",
                    {**ctx, "annotation": key},
                )
            elif key == settings.join_to_column_key and not is_column_ref(value):
                result.add_error(
                    "JOIN_TO_COLUMN_MALFORMED",
                    f"Annotation '{key}' must be a 'table.column' reference, got '{value}'.",
                    {**ctx, "annotation": key},
                )

        title = node.get("title")
        names_from_title: bool = not (
            node.get(settings.table_name_key) and node.get(settings.model_name_key)
        )
        if (
            is_table_schema(node)
            and names_from_title
            and title is not None
            and not isinstance(title, str)
        ):
            result.add_error(
                "TABLE_TITLE_NOT_STRING",
                f"Table title must be a string, got {title!r}.",
                {**ctx, "identity": node.get("$id")},
            )

        for key in node:
            if isinstance(key, str) and settings.is_annotation(key) and key not in known:
                result.add_warning(
                    "UNKNOWN_ANNOTATION",
                    f"Unknown annotation '{key}' is ignored.",
                    {**ctx, "annotation": key},
                )

    logger.debug("validate_annotation_values: %d issue(s).", len(result))
    return result


def validate_join_annotations(
    schema: Dict[str, Any], settings: CompilerSettings
) -> ValidationResult:
    """
    Check join-to / join-through annotations against the tree:
    - they sit on an array whose items are a table (warning otherwise)
    - join-through has ``from``/``to`` columns on one join table
    - that join table is itself compiled from the schema
    """
    result: ValidationResult = ValidationResult()
    tables: Set[str] = collect_table_names(schema, settings)
    join_to_key: str = settings.join_to_column_key
    through_key: str = settings.join_through_key

    for parts, node in _walk(schema):
        has_join_to: bool = join_to_key in node
        has_through: bool = through_key in node
        if not (has_join_to or has_through):
            continue

        ctx: Dict[str, Any] = {"pointer": format_pointer(parts)}

        if classify(node) is not NodeKind.ARRAY_OF_TABLE:
            result.add_warning(
                "JOIN_ANNOTATION_IGNORED",
                "Join annotations only apply to arrays whose items are tables.",
                ctx,
            )

        if has_join_to and has_through:
            result.add_warning(
                "JOIN_OVERRIDES_CONFLICT",
                f"Both '{join_to_key}' and '{through_key}' are set; "
                f"'{join_to_key}' takes precedence.",
                ctx,
            )

        if not has_through:
            continue

        raw = node[through_key]
        try:
            through: JoinThrough = JoinThrough.model_validate(raw)
        except PydanticValidationError as exc:
            result.add_error(
                "JOIN_THROUGH_MALFORMED",
                f"Annotation '{through_key}' must be a mapping with 'from' and 'to': "
                f"{exc.error_count()} problem(s) in {raw!r}.",
                ctx,
            )
            continue

        if not (is_column_ref(through.from_) and is_column_ref(through.to)):
            result.add_error(
                "JOIN_THROUGH_MALFORMED",
                f"Join-through 'from' and 'to' must be 'table.column' references, "
                f"got '{through.from_}' and '{through.to}'.",
                ctx,
            )
            continue

        from_table, _ = split_column_ref(through.from_)
        to_table, _ = split_column_ref(through.to)
        if from_table != to_table:
            result.add_error(
                "JOIN_THROUGH_MALFORMED",
                f"Join-through 'from' and 'to' must name the same join table, "
                f"got '{from_table}' and '{to_table}'.",
                ctx,
            )
            continue

        if from_table not in tables:
            result.add_error(
                "JOIN_THROUGH_UNKNOWN_TABLE",
                f"Join-through table '{from_table}' is not a table in this schema.",
                {**ctx, "table": from_table},
            )

    logger.debug("validate_join_annotations: %d issue(s).", len(result))
    return result


# ---------------------------------------------------------------------------
# Composite entry point
# ---------------------------------------------------------------------------

ValidatorFn = Callable[[Dict[str, Any], CompilerSettings], ValidationResult]


def validate_annotations(
    schema: Any,
    settings: Optional[CompilerSettings] = None,
) -> ValidationResult:
    """
    **Master validation entry point.**  Runs every validator and merges the
    findings.  Non-mapping roots have nothing to validate.
    """
    settings = settings or CompilerSettings()
    result: ValidationResult = ValidationResult()
    if not isinstance(schema, dict):
        return result

    validators: List[ValidatorFn] = [
        validate_annotation_values,
        validate_join_annotations,
    ]
    for validator_fn in validators:
        logger.debug("Running validator: %s", validator_fn.__name__)
        result.merge(validator_fn(schema, settings))

    if result.has_errors:
        logger.error("Annotation validation FAILED. %s", result.summary())
    else:
        logger.debug("Annotation validation passed. %s", result.summary())
    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationError",
    "ValidationResult",
    "collect_table_names",
    "validate_annotation_values",
    "validate_join_annotations",
    "validate_annotations",
]
