"""
Derived LDAP queries: finder names and typed predicates -> search filters.

Pure, synchronous and I/O free apart from the repository's delegation to an
external search executor.
"""

from .adapter import build_predicate
from .assembly import (
    AssemblyConfig,
    QueryDescriptor,
    QueryParameters,
    SearchScope,
    UnsupportedFeaturePolicy,
    assemble,
)
from .ast import (
    Comparison,
    Conjunction,
    Disjunction,
    Negation,
    Parameter,
    PredicateFactory,
    PredicateNode,
    bind_parameters,
)
from .compiler import FilterCompiler, compile_filter
from .dn import DistinguishedName
from .escaping import escape, escape_like
from .exceptions import (
    CompileError,
    IncorrectResultSizeError,
    MappingError,
    ParseError,
    QueryDerivationError,
    UnsupportedFeatureError,
)
from .expressions import EntityPath, Property
from .metadata import (
    AttributeMetadata,
    EntityDescriptor,
    EntityMetadata,
    PropertyDescriptor,
    ValueType,
    build_entity_metadata,
)
from .operators import FilterOperator
from .parser import DescriptorParser, ParsedQuery, parse
from .repository import DerivedQuery, DirectoryRepository, ISearchExecutor

__all__ = [
    # Metadata
    "AttributeMetadata",
    "EntityDescriptor",
    "EntityMetadata",
    "PropertyDescriptor",
    "ValueType",
    "build_entity_metadata",
    "DistinguishedName",
    # Predicate tree
    "FilterOperator",
    "PredicateNode",
    "Comparison",
    "Negation",
    "Conjunction",
    "Disjunction",
    "Parameter",
    "PredicateFactory",
    "bind_parameters",
    # Parser
    "DescriptorParser",
    "ParsedQuery",
    "parse",
    # Typed expressions
    "EntityPath",
    "Property",
    "build_predicate",
    # Compiler
    "FilterCompiler",
    "compile_filter",
    "escape",
    "escape_like",
    # Assembly
    "AssemblyConfig",
    "QueryDescriptor",
    "QueryParameters",
    "SearchScope",
    "UnsupportedFeaturePolicy",
    "assemble",
    # Repository
    "DerivedQuery",
    "DirectoryRepository",
    "ISearchExecutor",
    # Exceptions
    "QueryDerivationError",
    "MappingError",
    "ParseError",
    "CompileError",
    "UnsupportedFeatureError",
    "IncorrectResultSizeError",
]
