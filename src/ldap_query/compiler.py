"""Filter compiler: predicate tree + entity metadata -> RFC 4515 filter string."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .ast import (
    Comparison,
    Conjunction,
    Disjunction,
    Negation,
    Parameter,
    PredicateNode,
    bind_parameters,
)
from .escaping import WILDCARD, escape, escape_like, render_substring, render_value
from .exceptions import CompileError
from .operators import FilterOperator

if TYPE_CHECKING:
    from .metadata import AttributeMetadata, EntityMetadata

logger = logging.getLogger("ldap_query.compiler")

OBJECT_CLASS_ATTRIBUTE = "objectclass"


class FilterCompiler:
    """
    Render predicate trees for one entity.

    The object classes of the entity are always ANDed in front of the
    predicate. A root :class:`Conjunction` is spliced into that AND; any
    other root becomes a single branch of it::

        (&(objectclass=person)(objectclass=top)(sn=Smith)(givenName=John))
        (&(objectclass=person)(objectclass=top)(|(sn=Smith)(sn=Jones)))

    The compiler holds no per-call state and may be shared across threads.
    """

    def __init__(self, metadata: EntityMetadata) -> None:
        self._metadata = metadata
        self._object_class_filter = "".join(
            f"({OBJECT_CLASS_ATTRIBUTE}={escape(oc)})" for oc in metadata.object_classes
        )

    @property
    def metadata(self) -> EntityMetadata:
        return self._metadata

    def compile(self, tree: PredicateNode | None, *args: Any, **kwargs: Any) -> str:
        """
        Compile ``tree``, binding placeholders to ``args`` / ``kwargs``.

        ``None`` compiles to the object-class constraint alone.

        Raises:
            CompileError: If a value cannot be rendered, a parameter is not
                bound, or a property is not queryable.
        """
        if tree is None:
            if args or kwargs:
                raise CompileError("Query takes no arguments")
            result = f"(&{self._object_class_filter})"
        else:
            bound = bind_parameters(tree, args, kwargs)
            if isinstance(bound, Conjunction):
                body = "".join(self._render(child) for child in bound.children)
            else:
                body = self._render(bound)
            result = f"(&{self._object_class_filter}{body})"
        logger.debug("Compiled filter for %s: %s", self._metadata.name, result)
        return result

    # -- rendering -----------------------------------------------------------

    def _render(self, node: PredicateNode) -> str:
        if isinstance(node, Comparison):
            return self._render_comparison(node)
        if isinstance(node, Negation):
            return f"(!{self._render(node.child)})"
        if isinstance(node, Conjunction):
            return "(&" + "".join(self._render(c) for c in node.children) + ")"
        if isinstance(node, Disjunction):
            return "(|" + "".join(self._render(c) for c in node.children) + ")"
        raise CompileError(f"Unknown predicate node: {type(node).__name__}")

    def _render_comparison(self, node: Comparison) -> str:
        attr = self._resolve(node.property).attribute_name
        op = node.operator

        if op is FilterOperator.IS_NOT_NULL:
            return f"({attr}={WILDCARD})"
        if op is FilterOperator.IS_NULL:
            return f"(!({attr}={WILDCARD}))"

        if isinstance(node.value, Parameter):
            raise CompileError(
                f"Parameter '{node.value.name}' is not bound", node.property
            )

        if op is FilterOperator.EQUALS:
            return f"({attr}={render_value(node.value, property_name=node.property)})"
        if op is FilterOperator.LESS_THAN_EQUAL:
            return f"({attr}<={render_value(node.value, property_name=node.property)})"
        if op is FilterOperator.GREATER_THAN_EQUAL:
            return f"({attr}>={render_value(node.value, property_name=node.property)})"

        if op is FilterOperator.LIKE and isinstance(node.value, str):
            return f"({attr}={escape_like(node.value)})"
        value = render_substring(node.value, property_name=node.property)
        if op is FilterOperator.LIKE:
            return f"({attr}={value})"
        if op is FilterOperator.STARTING_WITH:
            return f"({attr}={value}{WILDCARD})"
        if op is FilterOperator.ENDING_WITH:
            return f"({attr}={WILDCARD}{value})"
        if op is FilterOperator.CONTAINING:
            return f"({attr}={WILDCARD}{value}{WILDCARD})"
        raise CompileError(f"Unsupported operator: {op!r}", node.property)

    def _resolve(self, property_name: str) -> AttributeMetadata:
        attribute = self._metadata.get(property_name)
        if attribute is None:
            raise CompileError(
                f"'{self._metadata.name}' has no property '{property_name}'",
                property_name,
            )
        if not attribute.queryable:
            kind = "identifier" if attribute.identifier else "transient"
            raise CompileError(
                f"Property '{property_name}' is {kind} and cannot be filtered on",
                property_name,
            )
        return attribute


def compile_filter(
    tree: PredicateNode | None,
    metadata: EntityMetadata,
    *args: Any,
    **kwargs: Any,
) -> str:
    """Compile ``tree`` against ``metadata``; see :meth:`FilterCompiler.compile`."""
    return FilterCompiler(metadata).compile(tree, *args, **kwargs)
