"""
Predicate adapter: typed expressions -> predicate tree.

The produced shapes are exactly those of the descriptor parser, so a typed
expression and its equivalent finder name compile to the same filter:

=================  ==========================================
Expression          Predicate node
=================  ==========================================
``eq``              ``Comparison(EQUALS)``
``ne``              ``Negation(Comparison(EQUALS))``
``not_like``        ``Negation(Comparison(STARTING_WITH))``
``a & b & c``       one flat ``Conjunction(a, b, c)``
=================  ==========================================
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .ast import (
    Comparison,
    Conjunction,
    Disjunction,
    Negation,
    PredicateNode,
    flatten,
)
from .expressions import Constant, Ops, Operation, Property
from .operators import FilterOperator

if TYPE_CHECKING:
    from .expressions import Expression

_COMPARISONS: dict[Ops, tuple[FilterOperator, bool]] = {
    Ops.EQ: (FilterOperator.EQUALS, False),
    Ops.NE: (FilterOperator.EQUALS, True),
    Ops.LOE: (FilterOperator.LESS_THAN_EQUAL, False),
    Ops.GOE: (FilterOperator.GREATER_THAN_EQUAL, False),
    Ops.LIKE: (FilterOperator.LIKE, False),
    Ops.NOT_LIKE: (FilterOperator.STARTING_WITH, True),
    Ops.STARTS_WITH: (FilterOperator.STARTING_WITH, False),
    Ops.ENDS_WITH: (FilterOperator.ENDING_WITH, False),
    Ops.CONTAINS: (FilterOperator.CONTAINING, False),
    Ops.IS_NULL: (FilterOperator.IS_NULL, False),
    Ops.IS_NOT_NULL: (FilterOperator.IS_NOT_NULL, False),
}


def build_predicate(expression: Expression) -> PredicateNode:
    """
    Convert a typed expression into a predicate tree.

    Raises:
        TypeError: If the expression is not a well-formed boolean
            expression (e.g. a bare :class:`Property`).
    """
    if not isinstance(expression, Operation):
        raise TypeError(
            f"Expected a boolean expression, got {type(expression).__name__}"
        )
    op = expression.operator

    if op is Ops.AND:
        return _combine(Conjunction, _children(expression))
    if op is Ops.OR:
        return _combine(Disjunction, _children(expression))
    if op is Ops.NOT:
        (child,) = _children(expression)
        return Negation(child)

    operator, negated = _COMPARISONS[op]
    path, *rest = expression.args
    if not isinstance(path, Property):
        raise TypeError(f"'{op.value}' must be applied to a property")
    if operator.takes_value:
        if len(rest) != 1 or not isinstance(rest[0], Constant):
            raise TypeError(f"'{op.value}' takes exactly one value")
        node: PredicateNode = Comparison(path.name, operator, rest[0].value)
    else:
        node = Comparison(path.name, operator)
    return Negation(node) if negated else node


def _combine(
    kind: type[Conjunction] | type[Disjunction], nodes: tuple[PredicateNode, ...]
) -> PredicateNode:
    # A single operand is the bare node, as for a one-segment descriptor.
    children = flatten(kind, nodes)
    return children[0] if len(children) == 1 else kind(children)


def _children(expression: Operation) -> tuple[PredicateNode, ...]:
    if not expression.args:
        raise TypeError(f"'{expression.operator.value}' needs at least one operand")
    return tuple(build_predicate(arg) for arg in expression.args)
