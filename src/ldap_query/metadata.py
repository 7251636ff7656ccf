"""
Entity metadata: property to attribute mapping, object classes, DN layout.

Metadata is built once from an :class:`EntityDescriptor` by
:func:`build_entity_metadata` and is immutable afterwards, so a single
instance can be shared by any number of concurrent parse / compile calls.

Example::

    PERSON = build_entity_metadata(
        {
            "name": "Person",
            "object_classes": ["person", "top"],
            "base": "ou=people",
            "properties": [
                {"name": "dn", "identifier": True, "value_type": "dn"},
                {"name": "lastname", "attribute": "sn"},
                {"name": "uid", "dn_component_index": 0},
                {"name": "password", "transient": True},
            ],
        }
    )
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .dn import DistinguishedName
from .exceptions import CompileError, MappingError

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger("ldap_query.metadata")

# RFC 4512 descr or numeric OID, with optional attribute options.
_ATTRIBUTE_RE = re.compile(
    r"(?:[A-Za-z][A-Za-z0-9-]*|\d+(?:\.\d+)+)(?:;[A-Za-z0-9-]+)*"
)


class ValueType(str, Enum):
    """Declared value type of a mapped property."""

    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    BINARY = "binary"
    DATETIME = "datetime"
    DN = "dn"


# ---------------------------------------------------------------------------
# Descriptor source (external input)
# ---------------------------------------------------------------------------


class PropertyDescriptor(BaseModel):
    """One entity property as described by the mapping source."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    attribute: str | None = None
    multi_valued: bool = False
    dn_component_index: int | None = Field(default=None, ge=0)
    transient: bool = False
    identifier: bool = False
    value_type: ValueType = ValueType.STRING


class EntityDescriptor(BaseModel):
    """An entity as described by the mapping source."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    object_classes: list[str]
    base: str | None = None
    properties: list[PropertyDescriptor]


# ---------------------------------------------------------------------------
# Resolved metadata
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AttributeMetadata:
    """
    Resolved mapping of one property.

    Attributes:
        property_name: Name used in method descriptors and expressions.
        attribute_name: LDAP attribute the property maps to.
        multi_valued: Whether the attribute holds several values.
        dn_component_index: Position of the property in the entry DN
            (0 is nearest to the base), or ``None``.
        transient: Never persisted and never filtered on.
        identifier: Holds the entry DN itself.
        value_type: Declared value type.
    """

    property_name: str
    attribute_name: str
    multi_valued: bool = False
    dn_component_index: int | None = None
    transient: bool = False
    identifier: bool = False
    value_type: ValueType = ValueType.STRING

    @property
    def queryable(self) -> bool:
        """True when the property may appear in a filter."""
        return not (self.transient or self.identifier)


@dataclass(frozen=True)
class EntityMetadata:
    """Immutable per-entity mapping shared by parser, compiler and assembler."""

    name: str
    object_classes: tuple[str, ...]
    attributes: tuple[AttributeMetadata, ...]
    base: DistinguishedName = field(default_factory=DistinguishedName)
    _by_property: dict[str, AttributeMetadata] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_by_property", {a.property_name: a for a in self.attributes}
        )

    # -- look-up -------------------------------------------------------------

    def get(self, property_name: str) -> AttributeMetadata | None:
        return self._by_property.get(property_name)

    @property
    def property_names(self) -> list[str]:
        return [a.property_name for a in self.attributes]

    @property
    def queryable_properties(self) -> list[str]:
        return [a.property_name for a in self.attributes if a.queryable]

    @property
    def identifier(self) -> AttributeMetadata:
        return next(a for a in self.attributes if a.identifier)

    @property
    def dn_components(self) -> tuple[AttributeMetadata, ...]:
        """DN-component properties ordered by index."""
        components = [a for a in self.attributes if a.dn_component_index is not None]
        return tuple(sorted(components, key=lambda a: a.dn_component_index or 0))

    @property
    def persisted_attributes(self) -> list[str]:
        """Attribute names to request from the directory."""
        return [a.attribute_name for a in self.attributes if a.queryable]

    # -- identifier composition ----------------------------------------------

    def compose_dn(
        self,
        values: Mapping[str, Any],
        base: DistinguishedName | str | None = None,
    ) -> DistinguishedName:
        """
        Build the full DN of an entry from its DN-component values.

        Raises:
            CompileError: If a component value is missing or cannot be
                rendered as an RDN.
        """
        components = self.dn_components
        if not components:
            raise CompileError(f"Entity '{self.name}' declares no DN components")
        missing = [
            c.property_name for c in components if values.get(c.property_name) is None
        ]
        if missing:
            raise CompileError(
                f"Missing DN component value(s) for '{self.name}': "
                f"{', '.join(missing)}",
                property_name=missing[0],
            )
        return self.scoped_base(values, base)

    def scoped_base(
        self,
        values: Mapping[str, Any],
        base: DistinguishedName | str | None = None,
    ) -> DistinguishedName:
        """
        Extend ``base`` (default: the entity base) with DN-component values.

        ``values`` must cover a contiguous prefix of the component indices,
        starting at 0; an empty mapping returns the base unchanged.

        Raises:
            CompileError: If values skip an index, name a property that is
                not a DN component, or cannot be rendered as an RDN.
        """
        if base is None:
            result = self.base
        else:
            try:
                result = DistinguishedName.parse(base)
            except ValueError as exc:
                raise CompileError(str(exc)) from exc
        components = {c.property_name: c for c in self.dn_components}
        unknown = [name for name in values if name not in components]
        if unknown:
            raise CompileError(
                f"'{unknown[0]}' is not a DN component of '{self.name}'",
                property_name=unknown[0],
            )

        empty = [name for name, value in values.items() if value is None]
        if empty:
            raise CompileError(
                f"DN component '{empty[0]}' of '{self.name}' has no value",
                property_name=empty[0],
            )

        supplied = [
            c for c in self.dn_components if values.get(c.property_name) is not None
        ]
        expected = list(self.dn_components[: len(supplied)])
        if supplied != expected:
            gap = next(c for c in self.dn_components if c not in supplied)
            raise CompileError(
                f"DN component values for '{self.name}' must start at index 0 "
                f"without gaps; '{gap.property_name}' is missing",
                property_name=gap.property_name,
            )

        for component in supplied:
            try:
                result = result.child(
                    component.attribute_name, values[component.property_name]
                )
            except ValueError as exc:
                raise CompileError(
                    str(exc), property_name=component.property_name
                ) from exc
        return result


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


def build_entity_metadata(
    descriptor: EntityDescriptor | Mapping[str, Any],
) -> EntityMetadata:
    """
    Validate an entity descriptor and resolve it to :class:`EntityMetadata`.

    Raises:
        MappingError: On any structural violation (fail fast, before any
            query is derived).
    """
    if not isinstance(descriptor, EntityDescriptor):
        try:
            descriptor = EntityDescriptor.model_validate(descriptor)
        except PydanticValidationError as exc:
            entity = descriptor.get("name") if hasattr(descriptor, "get") else None
            raise MappingError(str(exc), entity=entity) from exc

    entity = descriptor.name
    object_classes = tuple(oc.strip() for oc in descriptor.object_classes)
    if not object_classes or not all(object_classes):
        raise MappingError("at least one non-empty object class is required", entity)

    _check_names(descriptor)
    _check_attribute_names(descriptor)
    _check_identifier(descriptor)
    _check_dn_components(descriptor)

    attributes = tuple(
        AttributeMetadata(
            property_name=p.name,
            attribute_name=p.attribute or p.name,
            multi_valued=p.multi_valued,
            dn_component_index=p.dn_component_index,
            transient=p.transient,
            identifier=p.identifier,
            value_type=p.value_type,
        )
        for p in descriptor.properties
    )
    try:
        base = DistinguishedName.parse(descriptor.base)
    except ValueError as exc:
        raise MappingError(str(exc), entity) from exc

    metadata = EntityMetadata(
        name=entity,
        object_classes=object_classes,
        attributes=attributes,
        base=base,
    )
    logger.debug(
        "Resolved metadata for %s: object_classes=%s, %d properties",
        entity,
        list(object_classes),
        len(attributes),
    )
    return metadata


def _check_names(descriptor: EntityDescriptor) -> None:
    seen: set[str] = set()
    for prop in descriptor.properties:
        if prop.name in seen:
            raise MappingError(f"duplicate property '{prop.name}'", descriptor.name)
        seen.add(prop.name)


def _check_attribute_names(descriptor: EntityDescriptor) -> None:
    for prop in descriptor.properties:
        attribute = prop.attribute or prop.name
        if not _ATTRIBUTE_RE.fullmatch(attribute):
            raise MappingError(
                f"property '{prop.name}' maps to invalid attribute name "
                f"'{attribute}'",
                descriptor.name,
            )


def _check_identifier(descriptor: EntityDescriptor) -> None:
    identifiers = [p for p in descriptor.properties if p.identifier]
    if len(identifiers) != 1:
        raise MappingError(
            f"exactly one identifier property is required, found {len(identifiers)}",
            descriptor.name,
        )
    ident = identifiers[0]
    if ident.transient:
        raise MappingError(
            f"identifier '{ident.name}' cannot be transient", descriptor.name
        )
    if ident.value_type is not ValueType.DN:
        raise MappingError(
            f"identifier '{ident.name}' must have value type 'dn', "
            f"not '{ident.value_type.value}'",
            descriptor.name,
        )
    if ident.dn_component_index is not None:
        raise MappingError(
            f"identifier '{ident.name}' cannot be a DN component", descriptor.name
        )


def _check_dn_components(descriptor: EntityDescriptor) -> None:
    indices: dict[int, str] = {}
    for prop in descriptor.properties:
        index = prop.dn_component_index
        if index is None:
            continue
        if prop.transient:
            raise MappingError(
                f"transient property '{prop.name}' cannot be a DN component",
                descriptor.name,
            )
        if index in indices:
            raise MappingError(
                f"properties '{indices[index]}' and '{prop.name}' share "
                f"DN component index {index}",
                descriptor.name,
            )
        indices[index] = prop.name
    if sorted(indices) != list(range(len(indices))):
        raise MappingError(
            f"DN component indices must be contiguous from 0, got {sorted(indices)}",
            descriptor.name,
        )
