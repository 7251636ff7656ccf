"""
Typed expression API.

Expressions are built independently of the predicate tree and converted
by :func:`ldap_query.adapter.build_predicate`::

    person = EntityPath(PERSON)
    expr = person.lastname.eq("Smith") & person.firstname.starts_with("Jo")

:class:`Property` can also be used directly when no metadata is at hand;
names are then only checked when the predicate is compiled.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .exceptions import ParseError

if TYPE_CHECKING:
    from .metadata import EntityMetadata


class Ops(str, Enum):
    """Operators of the expression API."""

    EQ = "eq"
    NE = "ne"
    LOE = "loe"
    GOE = "goe"
    LIKE = "like"
    NOT_LIKE = "not_like"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    CONTAINS = "contains"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    AND = "and"
    OR = "or"
    NOT = "not"


class Expression:
    """Base class for all expression nodes."""


class BooleanExpression(Expression):
    """An expression that evaluates to true or false for an entry."""

    def __and__(self, other: BooleanExpression) -> Operation:
        return Operation(Ops.AND, (self, other))

    def __or__(self, other: BooleanExpression) -> Operation:
        return Operation(Ops.OR, (self, other))

    def __invert__(self) -> Operation:
        return Operation(Ops.NOT, (self,))

    def and_(self, *others: BooleanExpression) -> Operation:
        return Operation(Ops.AND, (self, *others))

    def or_(self, *others: BooleanExpression) -> Operation:
        return Operation(Ops.OR, (self, *others))

    def not_(self) -> Operation:
        return ~self


@dataclass(frozen=True)
class Constant(Expression):
    value: Any


@dataclass(frozen=True)
class Operation(BooleanExpression):
    """``operator`` applied to ``args`` (paths, constants or operations)."""

    operator: Ops
    args: tuple[Expression, ...]


@dataclass(frozen=True)
class Property(Expression):
    """Path to one entity property."""

    name: str

    def _op(self, operator: Ops, *values: Any) -> Operation:
        return Operation(operator, (self, *(Constant(v) for v in values)))

    def eq(self, value: Any) -> Operation:
        return self._op(Ops.EQ, value)

    def ne(self, value: Any) -> Operation:
        return self._op(Ops.NE, value)

    def loe(self, value: Any) -> Operation:
        """Less than or equal."""
        return self._op(Ops.LOE, value)

    def goe(self, value: Any) -> Operation:
        """Greater than or equal."""
        return self._op(Ops.GOE, value)

    le = loe
    ge = goe

    def like(self, pattern: str) -> Operation:
        """Match ``pattern``; ``*`` in it is a wildcard."""
        return self._op(Ops.LIKE, pattern)

    def not_like(self, value: str) -> Operation:
        """Negated prefix match, equivalent to a ``NotLike`` finder keyword."""
        return self._op(Ops.NOT_LIKE, value)

    def starts_with(self, value: str) -> Operation:
        return self._op(Ops.STARTS_WITH, value)

    def ends_with(self, value: str) -> Operation:
        return self._op(Ops.ENDS_WITH, value)

    def contains(self, value: str) -> Operation:
        return self._op(Ops.CONTAINS, value)

    def is_null(self) -> Operation:
        return self._op(Ops.IS_NULL)

    def is_not_null(self) -> Operation:
        return self._op(Ops.IS_NOT_NULL)


class EntityPath:
    """
    Attribute-style access to the queryable properties of an entity.

    Unknown, transient and identifier properties raise
    :class:`AttributeError` (with suggestions) at expression build time.
    """

    def __init__(self, metadata: EntityMetadata) -> None:
        self._metadata = metadata

    def __getattr__(self, name: str) -> Property:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def __getitem__(self, name: str) -> Property:
        queryable = self._metadata.queryable_properties
        if name not in queryable:
            error = ParseError(
                f"'{self._metadata.name}' has no queryable property '{name}'",
                self._metadata.name,
                fragment=name,
                available=queryable,
            )
            raise AttributeError(str(error)) from error
        return Property(name)

    def __dir__(self) -> list[str]:
        return self._metadata.queryable_properties
