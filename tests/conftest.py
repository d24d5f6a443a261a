"""
tests/conftest.py
Shared fixtures for the relschema test suite.

Schemas are plain dicts built per test so each test can mutate freely.
Factories are the real ``DescriptorFactory`` / ``SQLAlchemyModelFactory``;
no mocking library is used.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List

import pytest

from relschema.factory import DescriptorFactory
from relschema.models import CompilerSettings, TableDescriptor


# ---------------------------------------------------------------------------
# Logging isolation (cli._setup_logging detaches the package logger)
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_relschema_logger() -> Any:
    yield
    root_logger = logging.getLogger("relschema")
    root_logger.handlers.clear()
    root_logger.propagate = True
    root_logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Factories & settings
# ---------------------------------------------------------------------------


@pytest.fixture()
def factory() -> DescriptorFactory:
    """Descriptor factory that treats 'etag' as a virtual attribute."""
    return DescriptorFactory(virtual_attributes=["etag"])


@pytest.fixture()
def settings() -> CompilerSettings:
    return CompilerSettings()


class RecordingFactory(DescriptorFactory):
    """Records registration order and fails on a chosen table name."""

    def __init__(self, fail_on: str = "", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.fail_on: str = fail_on
        self.order: List[str] = []

    def create_model(self, descriptor: TableDescriptor) -> Any:
        if descriptor.table_name == self.fail_on:
            raise RuntimeError(f"cannot bind {descriptor.table_name}")
        self.order.append(descriptor.table_name)
        return super().create_model(descriptor)


@pytest.fixture()
def recording_factory() -> RecordingFactory:
    return RecordingFactory()


# ---------------------------------------------------------------------------
# Schema fixtures
# ---------------------------------------------------------------------------

_ADDRESS: Dict[str, Any] = {
    "$id": "address",
    "title": "Address",
    "type": "object",
    "properties": {
        "street": {"type": "string"},
        "city": {"type": "string", "default": "Waterloo"},
    },
}

_EMPLOYEE: Dict[str, Any] = {
    "$id": "employees",
    "title": "Employees",
    "type": "object",
    "properties": {
        "firstName": {"type": "string"},
        "lastName": {"type": "string"},
        "age": {"type": "integer", "default": 37},
        "past_addresses": {"type": "array", "items": _ADDRESS},
    },
}


@pytest.fixture()
def flat_schema() -> Dict[str, Any]:
    """One table, no nested tables."""
    return {
        "type": "object",
        "$id": "./testModel",
        "title": "TestModel",
        "properties": {
            "name": {"type": "string"},
            "address": {"type": "string"},
        },
    }


@pytest.fixture()
def nested_table_schema() -> Dict[str, Any]:
    """A table whose 'address' property is itself a table."""
    return {
        "$id": "rootid",
        "title": "TestModel",
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "address": {
                "$id": "objid",
                "type": "object",
                "properties": {
                    "street": {"type": "string"},
                    "city": {"type": "string", "default": "Waterloo"},
                },
            },
        },
    }


@pytest.fixture()
def array_table_schema() -> Dict[str, Any]:
    """A table with an array property whose items are a table."""
    return {
        "$id": "rootid",
        "title": "TestModel",
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "addresses": {"type": "array", "items": {"$id": "objid"}},
        },
    }


@pytest.fixture()
def branching_schema() -> Dict[str, Any]:
    """
    Address is reachable from Basic.addresses and from
    Basic.employees[].past_addresses (a dereferenced, duplicated sub-schema).
    """
    return {
        "$id": "basic",
        "title": "Basic",
        "type": "object",
        "properties": {
            "employees": {"type": "array", "items": copy.deepcopy(_EMPLOYEE)},
            "addresses": {"type": "array", "items": copy.deepcopy(_ADDRESS)},
        },
    }


@pytest.fixture()
def basic_nested_schema() -> Dict[str, Any]:
    """Basic owns one Address (belongs-to) and many Employees (has-many)."""
    employee = copy.deepcopy(_EMPLOYEE)
    del employee["properties"]["past_addresses"]
    return {
        "$id": "basic",
        "title": "Basic",
        "type": "object",
        "properties": {
            "address": copy.deepcopy(_ADDRESS),
            "employees": {"type": "array", "items": employee},
        },
    }


@pytest.fixture()
def tagged_order_schema() -> Dict[str, Any]:
    """Orders tagged through an OrderTag join table."""
    return {
        "$id": "order",
        "title": "Order",
        "type": "object",
        "properties": {
            "reference": {"type": "string", "maxLength": 20},
            "tags": {
                "type": "array",
                "x-relschema-join-through": {
                    "from": "OrderTag.order_id",
                    "to": "OrderTag.tag_id",
                },
                "items": {
                    "$id": "tag",
                    "title": "Tag",
                    "type": "object",
                    "properties": {"label": {"type": "string"}},
                },
            },
            "order_tags": {
                "type": "array",
                "x-relschema-join-to-column": "OrderTag.order_id",
                "items": {
                    "$id": "order-tag",
                    "title": "OrderTag",
                    "type": "object",
                    "properties": {
                        "order_id": {"type": "integer"},
                        "tag_id": {"type": "integer"},
                    },
                },
            },
        },
    }
