"""
Predicate tree shared by the descriptor parser, the typed adapter and the
filter compiler.

Nodes are frozen dataclasses. Descriptor-derived trees carry
:class:`Parameter` placeholders instead of literal values; they are
substituted per invocation by :func:`bind_parameters`, so a parsed tree is
a reusable template.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from .exceptions import CompileError, ParseError
from .operators import FilterOperator, LogicalOperator

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

_VALID_OPERATORS: frozenset[str] = frozenset(m.value for m in FilterOperator)


@dataclass(frozen=True)
class Parameter:
    """Placeholder for the ``index``-th argument of a derived query."""

    index: int
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"param": self.index, "name": self.name}


class PredicateNode:
    """Base class for predicate tree nodes with logic operator support."""

    def __and__(self, other: PredicateNode) -> Conjunction:
        return Conjunction(flatten(Conjunction, (self, other)))

    def __or__(self, other: PredicateNode) -> Disjunction:
        return Disjunction(flatten(Disjunction, (self, other)))

    def __invert__(self) -> Negation:
        return Negation(self)

    def walk(self) -> Iterator[PredicateNode]:
        """Yield this node and its descendants, depth first, in tree order."""
        yield self

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class Comparison(PredicateNode):
    """A single ``property <operator> value`` condition."""

    property: str
    operator: FilterOperator
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        value = self.value
        if isinstance(value, Parameter):
            value = value.to_dict()
        return {"op": self.operator.value, "attr": self.property, "val": value}


@dataclass(frozen=True)
class Negation(PredicateNode):
    """Logical NOT."""

    child: PredicateNode

    def walk(self) -> Iterator[PredicateNode]:
        yield self
        yield from self.child.walk()

    def to_dict(self) -> dict[str, Any]:
        return {"op": LogicalOperator.NOT.value, "conditions": [self.child.to_dict()]}


@dataclass(frozen=True)
class _Composite(PredicateNode):
    children: tuple[PredicateNode, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))
        if not self.children:
            raise ValueError(f"{type(self).__name__} needs at least one child")

    def walk(self) -> Iterator[PredicateNode]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class Conjunction(_Composite):
    """Logical AND of the children, in insertion order."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "op": LogicalOperator.AND.value,
            "conditions": [c.to_dict() for c in self.children],
        }


@dataclass(frozen=True)
class Disjunction(_Composite):
    """Logical OR of the children, in insertion order."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "op": LogicalOperator.OR.value,
            "conditions": [c.to_dict() for c in self.children],
        }


def flatten(
    kind: type[_Composite], nodes: Sequence[PredicateNode]
) -> tuple[PredicateNode, ...]:
    """Splice children of same-kind composites into one flat tuple."""
    flat: list[PredicateNode] = []
    for node in nodes:
        if type(node) is kind:
            flat.extend(node.children)  # type: ignore[attr-defined]
        else:
            flat.append(node)
    return tuple(flat)


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


def parameters(tree: PredicateNode) -> list[Parameter]:
    """Return the placeholders of ``tree`` in index order."""
    found = [
        node.value
        for node in tree.walk()
        if isinstance(node, Comparison) and isinstance(node.value, Parameter)
    ]
    return sorted(found, key=lambda p: p.index)


def bind_parameters(
    tree: PredicateNode,
    args: Sequence[Any] = (),
    kwargs: Mapping[str, Any] | None = None,
) -> PredicateNode:
    """
    Substitute every :class:`Parameter` in ``tree`` with a call argument.

    Positional arguments bind by index. Keyword arguments bind by property
    name, which must occur only once among the placeholders.

    Raises:
        CompileError: On missing, surplus, duplicate or ambiguous arguments.
    """
    kwargs = dict(kwargs or {})
    placeholders = parameters(tree)
    if not placeholders:
        if args or kwargs:
            raise CompileError("Query takes no arguments")
        return tree

    names = [p.name for p in placeholders]
    values: dict[int, Any] = {}
    if len(args) > len(placeholders):
        raise CompileError(
            f"Query takes {len(placeholders)} argument(s), got {len(args)}"
        )
    for position, value in enumerate(args):
        values[placeholders[position].index] = value

    for name, value in kwargs.items():
        if names.count(name) != 1:
            detail = "is ambiguous" if name in names else "is not a query parameter"
            raise CompileError(f"Keyword argument '{name}' {detail}", name)
        index = placeholders[names.index(name)].index
        if index in values:
            raise CompileError(f"Argument '{name}' given twice", name)
        values[index] = value

    missing = [p.name for p in placeholders if p.index not in values]
    if missing:
        raise CompileError(
            f"Missing argument(s) for {', '.join(missing)}", missing[0]
        )
    return _substitute(tree, values)


def _substitute(node: PredicateNode, values: Mapping[int, Any]) -> PredicateNode:
    if isinstance(node, Comparison):
        if isinstance(node.value, Parameter):
            return replace(node, value=values[node.value.index])
        return node
    if isinstance(node, Negation):
        return Negation(_substitute(node.child, values))
    if isinstance(node, _Composite):
        return type(node)(tuple(_substitute(c, values) for c in node.children))
    raise TypeError(f"Unknown predicate node: {type(node).__name__}")


# ---------------------------------------------------------------------------
# Dictionary form
# ---------------------------------------------------------------------------


class PredicateFactory:
    """
    Build predicate trees from their dictionary / JSON representation.

    Leaf: ``{"op": "=", "attr": "lastname", "val": "Smith"}``; a
    placeholder value is written ``{"param": 0, "name": "lastname"}``.
    Composite: ``{"op": "and" | "or" | "not", "conditions": [...]}``.
    """

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> PredicateNode:
        return PredicateFactory._build(data, path="<root>")

    @staticmethod
    def from_json(text: str) -> PredicateNode:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ParseError(f"invalid JSON: {exc}", "<root>") from exc
        return PredicateFactory.from_dict(data)

    @staticmethod
    def _build(data: Any, *, path: str) -> PredicateNode:
        if not isinstance(data, dict):
            raise ParseError(f"expected a dict, got {type(data).__name__}", path)
        op = data.get("op")
        if not op or not isinstance(op, str):
            raise ParseError("missing or empty 'op' key", path)
        op = op.lower()

        if op in (LogicalOperator.AND, LogicalOperator.OR, LogicalOperator.NOT):
            conditions = data.get("conditions")
            if not conditions or not isinstance(conditions, list):
                raise ParseError(f"'{op}' requires a 'conditions' list", path)
            children = tuple(
                PredicateFactory._build(c, path=f"{path}.conditions[{i}]")
                for i, c in enumerate(conditions)
            )
            if op == LogicalOperator.NOT:
                if len(children) != 1:
                    raise ParseError("'not' takes exactly one condition", path)
                return Negation(children[0])
            if op == LogicalOperator.AND:
                return Conjunction(children)
            return Disjunction(children)

        if op not in _VALID_OPERATORS:
            raise ParseError(
                f"unknown operator '{op}'",
                path,
                fragment=op,
                available=sorted(_VALID_OPERATORS),
            )
        attr = data.get("attr")
        if not attr or not isinstance(attr, str):
            raise ParseError("leaf condition is missing 'attr'", path)
        value = data.get("val")
        if isinstance(value, dict) and "param" in value:
            try:
                index = int(value["param"])
            except (TypeError, ValueError) as exc:
                raise ParseError(
                    f"parameter index must be an integer, got {value['param']!r}",
                    path,
                ) from exc
            value = Parameter(index, str(value.get("name", attr)))
        return Comparison(attr, FilterOperator(op), value)
