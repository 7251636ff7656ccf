"""Shared fixtures for query derivation tests."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from ldap_query import EntityMetadata, build_entity_metadata

_PERSON: dict[str, Any] = {
    "name": "Person",
    "object_classes": ["person", "top"],
    "base": "ou=people,dc=example,dc=com",
    "properties": [
        {"name": "dn", "identifier": True, "value_type": "dn"},
        {"name": "lastname"},
        {"name": "firstname"},
        {"name": "phone", "attribute": "telephoneNumber"},
        {"name": "department", "attribute": "ou", "dn_component_index": 0},
        {"name": "uid", "dn_component_index": 1},
        {"name": "employeeNumber", "value_type": "integer"},
        {"name": "description", "multi_valued": True},
        {"name": "password", "transient": True},
    ],
}


@pytest.fixture
def person_descriptor() -> dict[str, Any]:
    """Raw descriptor of the Person entity (a fresh copy per test)."""
    return copy.deepcopy(_PERSON)


@pytest.fixture
def person(person_descriptor: dict[str, Any]) -> EntityMetadata:
    """Person entity with mapped, DN-component and transient properties."""
    return build_entity_metadata(person_descriptor)
