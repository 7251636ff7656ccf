"""
Repository dispatch over derived queries.

Finders are declared as :class:`DerivedQuery` class attributes and parsed
once, when the repository subclass is created, so an unreadable name fails
at import time rather than on first call::

    class PersonRepository(DirectoryRepository):
        metadata = PERSON

        find_by_lastname = DerivedQuery()
        by_first = DerivedQuery("findByFirstnameStartingWith")
        one_by_uid = DerivedQuery("findByUid", single=True)

    repo = PersonRepository(executor)
    people = await repo.find_by_lastname("Smith")

The network search itself is delegated to an :class:`ISearchExecutor`.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, cast, runtime_checkable

from .adapter import build_predicate
from .assembly import AssemblyConfig, QueryDescriptor, QueryParameters, assemble
from .compiler import FilterCompiler
from .exceptions import IncorrectResultSizeError
from .parser import DescriptorParser, ParsedQuery

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from .ast import PredicateNode
    from .expressions import Expression
    from .metadata import EntityMetadata

logger = logging.getLogger("ldap_query.repository")

_SNAKE_PART_RE = re.compile(r"_([a-z0-9])")


@runtime_checkable
class ISearchExecutor(Protocol):
    """Runs a query descriptor against a directory and maps the entries."""

    async def search(self, query: QueryDescriptor) -> list[Any]:
        ...


class DerivedQuery:
    """
    Declare a finder derived from a method descriptor.

    Without an explicit descriptor the attribute name is used, converted
    from snake case (``find_by_last_name`` -> ``findByLastName``).
    """

    def __init__(
        self,
        descriptor: str | None = None,
        *,
        single: bool = False,
        params: QueryParameters | None = None,
    ) -> None:
        self.descriptor = descriptor
        self.single = single
        self.params = params
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        if self.descriptor is None:
            self.descriptor = _camel_case(name)

    def __get__(self, instance: DirectoryRepository | None, owner: type) -> Any:
        if instance is None:
            return self
        return _BoundQuery(instance, self)

    def __repr__(self) -> str:
        return f"DerivedQuery({self.descriptor!r})"


class _BoundQuery:
    def __init__(self, repository: DirectoryRepository, query: DerivedQuery) -> None:
        self._repository = repository
        self._query = query

    def __call__(
        self, *args: Any, params: QueryParameters | None = None, **kwargs: Any
    ) -> Awaitable[Any]:
        return self._repository._run_derived(self._query, args, kwargs, params)

    def __repr__(self) -> str:
        return f"<bound {self._query!r} of {type(self._repository).__name__}>"


class DirectoryRepository:
    """
    Base class for directory repositories.

    Subclasses set :attr:`metadata`; intermediate base classes may leave it
    ``None`` and are then not parsed.
    """

    metadata: ClassVar[EntityMetadata | None] = None
    derived_queries: ClassVar[dict[str, ParsedQuery]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls.derived_queries = {}
        if cls.metadata is None:
            return
        parser = DescriptorParser(cls.metadata)
        for klass in reversed(cls.__mro__):
            for name, value in vars(klass).items():
                if isinstance(value, DerivedQuery) and value.descriptor:
                    cls.derived_queries[name] = parser.parse(value.descriptor)
        logger.debug(
            "Derived %d queries for %s", len(cls.derived_queries), cls.__name__
        )

    def __init__(
        self,
        executor: ISearchExecutor,
        *,
        config: AssemblyConfig | None = None,
    ) -> None:
        if self.metadata is None:
            raise TypeError(f"{type(self).__name__} does not declare metadata")
        self._executor = executor
        self._config = config or AssemblyConfig()
        self._compiler = FilterCompiler(self.metadata)

    # -- typed searches ------------------------------------------------------

    async def find(
        self,
        expression: Expression | None = None,
        *,
        params: QueryParameters | None = None,
    ) -> list[Any]:
        """Search with a typed expression (``None`` matches every entry)."""
        tree = build_predicate(expression) if expression is not None else None
        return await self._search(self.query_for(tree, params=params))

    async def find_one(
        self,
        expression: Expression,
        *,
        params: QueryParameters | None = None,
    ) -> Any | None:
        """
        Return the single matching entry, or ``None``.

        Raises:
            IncorrectResultSizeError: If more than one entry matches.
        """
        return _single(await self.find(expression, params=params))

    async def find_all(self, *, params: QueryParameters | None = None) -> list[Any]:
        return await self.find(None, params=params)

    # -- descriptor building -------------------------------------------------

    def query_for(
        self,
        tree: PredicateNode | None,
        *args: Any,
        params: QueryParameters | None = None,
        **kwargs: Any,
    ) -> QueryDescriptor:
        """Compile and assemble without executing."""
        metadata = cast("EntityMetadata", self.metadata)
        search_filter = self._compiler.compile(tree, *args, **kwargs)
        return assemble(search_filter, metadata, params, self._config)

    # -- internals -----------------------------------------------------------

    async def _run_derived(
        self,
        query: DerivedQuery,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        params: QueryParameters | None,
    ) -> Any:
        parsed = self.derived_queries.get(query.name)
        if parsed is None:
            raise TypeError(
                f"{query!r} was not declared in the body of "
                f"{type(self).__name__} and was never parsed"
            )
        descriptor = self.query_for(
            parsed.tree, *args, params=params or query.params, **kwargs
        )
        results = await self._search(descriptor)
        return _single(results) if query.single else results

    async def _search(self, query: QueryDescriptor) -> list[Any]:
        logger.debug("Searching %s under %r", query.filter, str(query.base))
        return list(await self._executor.search(query))


def _single(results: list[Any]) -> Any | None:
    if len(results) > 1:
        raise IncorrectResultSizeError(1, len(results))
    return results[0] if results else None


def _camel_case(name: str) -> str:
    return _SNAKE_PART_RE.sub(lambda m: m.group(1).upper(), name)

