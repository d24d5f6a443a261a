"""
tests/test_validators.py
Unit tests for relschema.validators.

Tests cover:
- ValidationResult accumulation and reporting
- Table-name collection
- Annotation value checks
- Join annotation checks (placement, conflicts, join-through targets)
- raise_for_errors exception mapping
"""

from __future__ import annotations

from typing import Any, Dict

import pytest

from relschema.errors import AnnotationError, JoinThroughError
from relschema.models import CompilerSettings
from relschema.validators import (
    ValidationResult,
    collect_table_names,
    validate_annotation_values,
    validate_annotations,
    validate_join_annotations,
)


# ===========================================================================
# ValidationResult
# ===========================================================================


class TestValidationResult:
    def test_empty_result_is_valid(self) -> None:
        result = ValidationResult()
        assert result.is_valid
        assert bool(result)
        assert len(result) == 0
        result.raise_for_errors()

    def test_counts_and_merge(self) -> None:
        first = ValidationResult()
        first.add_error("E1", "bad", {"pointer": "#/properties/a"})
        second = ValidationResult()
        second.add_warning("W1", "odd")
        first.merge(second)

        assert first.error_count == 1
        assert first.warning_count == 1
        assert not first.is_valid
        assert first.errors[0].pointer == "#/properties/a"
        assert first.warnings[0].pointer == "#"
        assert "1 error(s), 1 warning(s)" in first.summary()

    def test_format_report_lists_items(self) -> None:
        result = ValidationResult()
        result.add_error("E1", "bad thing", {"pointer": "#/x"})
        report = result.format_report()
        assert "[E1] bad thing (at #/x)" in report

    def test_raise_maps_codes(self) -> None:
        result = ValidationResult()
        result.add_error("JOIN_THROUGH_UNKNOWN_TABLE", "missing", {"pointer": "#/p"})
        result.add_error("OTHER", "another")
        with pytest.raises(JoinThroughError) as exc_info:
            result.raise_for_errors()
        assert exc_info.value.pointer == "#/p"
        assert "1 more error(s)" in str(exc_info.value)

    def test_raise_defaults_to_annotation_error(self) -> None:
        result = ValidationResult()
        result.add_error("ANNOTATION_NOT_STRING", "nope")
        with pytest.raises(AnnotationError):
            result.raise_for_errors()

    def test_to_dict(self) -> None:
        result = ValidationResult()
        result.add_warning("W", "msg", {"pointer": "#"})
        assert result.all_items[0].to_dict() == {
            "level": "warning",
            "code": "W",
            "message": "msg",
            "context": {"pointer": "#"},
        }


# ===========================================================================
# collect_table_names
# ===========================================================================


class TestCollectTableNames:
    def test_collects_nested_tables(
        self, branching_schema: Dict[str, Any], settings: CompilerSettings
    ) -> None:
        assert collect_table_names(branching_schema, settings) == {
            "Basic",
            "Employees",
            "Address",
        }

    def test_uses_table_name_annotation(self, settings: CompilerSettings) -> None:
        schema = {"$id": "o", "title": "Order", "x-relschema-table-name": "orders"}
        assert collect_table_names(schema, settings) == {"orders"}

    def test_non_mapping(self, settings: CompilerSettings) -> None:
        assert collect_table_names(["not", "a", "schema"], settings) == set()


# ===========================================================================
# Annotation values
# ===========================================================================


class TestAnnotationValues:
    def test_valid_annotations_pass(self, settings: CompilerSettings) -> None:
        schema = {
            "$id": "o",
            "x-relschema-table-name": "orders",
            "x-relschema-id-column": "pk",
        }
        assert validate_annotation_values(schema, settings).is_valid

    def test_nested_bad_value_reports_pointer(self, settings: CompilerSettings) -> None:
        schema = {
            "$id": "o",
            "properties": {"child": {"$id": "c", "x-relschema-model-name": 3}},
        }
        result = validate_annotation_values(schema, settings)
        assert [e.code for e in result.errors] == ["ANNOTATION_NOT_STRING"]
        assert result.errors[0].pointer == "#/properties/child"

    def test_non_string_table_title(self, settings: CompilerSettings) -> None:
        schema = {
            "$id": "o",
            "title": "Order",
            "properties": {
                "customer": {"$id": "c", "title": 5},
                "meta": {"type": "object", "title": 7},
            },
        }
        result = validate_annotation_values(schema, settings)
        assert [e.code for e in result.errors] == ["TABLE_TITLE_NOT_STRING"]
        assert result.errors[0].pointer == "#/properties/customer"

    def test_unknown_annotation_warns(self, settings: CompilerSettings) -> None:
        result = validate_annotation_values({"x-relschema-tabel-name": "t"}, settings)
        assert result.is_valid
        assert [w.code for w in result.warnings] == ["UNKNOWN_ANNOTATION"]


# ===========================================================================
# Join annotations
# ===========================================================================


class TestJoinAnnotations:
    def test_join_through_accepted(
        self, tagged_order_schema: Dict[str, Any], settings: CompilerSettings
    ) -> None:
        result = validate_join_annotations(tagged_order_schema, settings)
        assert result.is_valid
        assert len(result) == 0

    @pytest.mark.parametrize(
        "through",
        [
            "OrderTag",
            {"from": "OrderTag.order_id"},
            {"from": "OrderTag.order_id", "to": "tag_id"},
            {"from": "OrderTag.order_id", "to": "Other.tag_id"},
        ],
    )
    def test_join_through_malformed(
        self,
        tagged_order_schema: Dict[str, Any],
        settings: CompilerSettings,
        through: Any,
    ) -> None:
        tagged_order_schema["properties"]["tags"]["x-relschema-join-through"] = through
        result = validate_join_annotations(tagged_order_schema, settings)
        assert [e.code for e in result.errors] == ["JOIN_THROUGH_MALFORMED"]

    def test_join_through_unknown_table(
        self, tagged_order_schema: Dict[str, Any], settings: CompilerSettings
    ) -> None:
        del tagged_order_schema["properties"]["order_tags"]
        result = validate_join_annotations(tagged_order_schema, settings)
        assert [e.code for e in result.errors] == ["JOIN_THROUGH_UNKNOWN_TABLE"]
        assert result.errors[0].context["table"] == "OrderTag"

    def test_annotation_on_wrong_node_warns(self, settings: CompilerSettings) -> None:
        schema = {
            "$id": "o",
            "properties": {
                "notes": {
                    "type": "array",
                    "items": {"type": "string"},
                    "x-relschema-join-to-column": "Note.o_id",
                },
            },
        }
        result = validate_join_annotations(schema, settings)
        assert result.is_valid
        assert [w.code for w in result.warnings] == ["JOIN_ANNOTATION_IGNORED"]

    def test_conflicting_overrides_warn(
        self, tagged_order_schema: Dict[str, Any], settings: CompilerSettings
    ) -> None:
        tagged_order_schema["properties"]["tags"]["x-relschema-join-to-column"] = "Tag.order_id"
        result = validate_join_annotations(tagged_order_schema, settings)
        assert result.is_valid
        assert [w.code for w in result.warnings] == ["JOIN_OVERRIDES_CONFLICT"]


# ===========================================================================
# validate_annotations
# ===========================================================================


class TestValidateAnnotations:
    def test_merges_all_validators(self, settings: CompilerSettings) -> None:
        schema = {
            "$id": "o",
            "x-relschema-table-name": 1,
            "properties": {
                "lines": {
                    "type": "array",
                    "items": {"$id": "l"},
                    "x-relschema-join-through": {"from": "Nope.a", "to": "Nope.b"},
                },
            },
        }
        result = validate_annotations(schema, settings)
        assert {e.code for e in result.errors} == {
            "ANNOTATION_NOT_STRING",
            "JOIN_THROUGH_UNKNOWN_TABLE",
        }

    def test_default_settings(self) -> None:
        assert validate_annotations({"$id": "o"}).is_valid

    def test_non_mapping_root(self) -> None:
        assert len(validate_annotations("scalar")) == 0
