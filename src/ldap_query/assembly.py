"""
Query descriptor assembly.

Packages a compiled filter with its search base and scope for handoff to a
search executor. No I/O happens here.

The directory protocol has no offset and no server-side ordering in a
plain search, so paging and sorting parameters are refused
(:attr:`UnsupportedFeaturePolicy.REJECT`, the default) or dropped with a
warning (:attr:`UnsupportedFeaturePolicy.IGNORE`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from ldap3 import BASE, LEVEL, SUBTREE

from .dn import DistinguishedName
from .exceptions import CompileError, UnsupportedFeatureError

if TYPE_CHECKING:
    from .metadata import EntityMetadata

logger = logging.getLogger("ldap_query.assembly")


class SearchScope(str, Enum):
    """How far below the base a search reaches."""

    OBJECT = "base"
    ONE_LEVEL = "one"
    SUBTREE = "sub"

    def to_ldap3(self) -> str:
        return _LDAP3_SCOPES[self]


_LDAP3_SCOPES = {
    SearchScope.OBJECT: BASE,
    SearchScope.ONE_LEVEL: LEVEL,
    SearchScope.SUBTREE: SUBTREE,
}


class UnsupportedFeaturePolicy(str, Enum):
    REJECT = "reject"
    IGNORE = "ignore"


# ═══════════════════════════════════════════════════════════════
# CONFIGURATION
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class AssemblyConfig:
    """
    Defaults applied when assembling query descriptors.

    Attributes:
        default_scope: Scope used when the caller names none.
        default_base: Base used when neither caller nor entity names one.
        unsupported_feature_policy: What to do with paging / sorting
            parameters.
        count_limit: Default server-side size limit (0 = unlimited).
        time_limit: Default server-side time limit in seconds (0 = unlimited).
    """

    default_scope: SearchScope = SearchScope.SUBTREE
    default_base: str = ""
    unsupported_feature_policy: UnsupportedFeaturePolicy = (
        UnsupportedFeaturePolicy.REJECT
    )
    count_limit: int = 0
    time_limit: int = 0


# ═══════════════════════════════════════════════════════════════
# PARAMETERS & DESCRIPTOR
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class QueryParameters:
    """
    Per-call search parameters.

    Attributes:
        base: Search base overriding the entity base.
        dn_values: DN-component values that narrow the base to a computed
            location below it (contiguous from index 0).
        scope: Search scope overriding the configured default.
        attributes: Attributes to return; defaults to every persisted
            attribute of the entity.
        count_limit: Server-side size limit.
        time_limit: Server-side time limit in seconds.
        offset: Paging offset (unsupported).
        page: Page number (unsupported).
        page_size: Page size (unsupported).
        order_by: Sort fields (unsupported).
    """

    base: DistinguishedName | str | None = None
    dn_values: dict[str, Any] = field(default_factory=dict)
    scope: SearchScope | None = None
    attributes: tuple[str, ...] | None = None
    count_limit: int | None = None
    time_limit: int | None = None
    offset: int | None = None
    page: int | None = None
    page_size: int | None = None
    order_by: tuple[str, ...] = ()

    def unsupported(self) -> dict[str, Any]:
        """Paging / sorting parameters that were set."""
        requested = {
            "offset": self.offset,
            "page": self.page,
            "page_size": self.page_size,
            "order_by": self.order_by or None,
        }
        return {k: v for k, v in requested.items() if v is not None}


@dataclass(frozen=True)
class QueryDescriptor:
    """Everything a search executor needs; a pure value."""

    base: DistinguishedName
    filter: str
    scope: SearchScope
    attributes: tuple[str, ...] = ()
    count_limit: int = 0
    time_limit: int = 0

    def to_ldap3(self) -> dict[str, Any]:
        """Keyword arguments for ``ldap3.Connection.search``."""
        return {
            "search_base": str(self.base),
            "search_filter": self.filter,
            "search_scope": self.scope.to_ldap3(),
            "attributes": list(self.attributes),
            "size_limit": self.count_limit,
            "time_limit": self.time_limit,
        }


# ═══════════════════════════════════════════════════════════════
# ASSEMBLY
# ═══════════════════════════════════════════════════════════════


def assemble(
    search_filter: str,
    metadata: EntityMetadata,
    params: QueryParameters | None = None,
    config: AssemblyConfig | None = None,
) -> QueryDescriptor:
    """
    Build a :class:`QueryDescriptor`.

    Raises:
        UnsupportedFeatureError: If paging / sorting was requested under
            the ``REJECT`` policy.
        CompileError: If the base or DN-component values are invalid.
    """
    params = params or QueryParameters()
    config = config or AssemblyConfig()

    requested = params.unsupported()
    if requested:
        if config.unsupported_feature_policy is UnsupportedFeaturePolicy.REJECT:
            feature = next(iter(requested))
            raise UnsupportedFeatureError(
                feature, "directory searches cannot page or sort results"
            )
        logger.warning(
            "Ignoring unsupported query parameters for %s: %s",
            metadata.name,
            ", ".join(sorted(requested)),
        )

    if params.base is not None:
        base = _parse_base(params.base)
    elif metadata.base:
        base = metadata.base
    else:
        base = _parse_base(config.default_base)
    if params.dn_values:
        base = metadata.scoped_base(params.dn_values, base)

    attributes = (
        tuple(params.attributes)
        if params.attributes is not None
        else tuple(metadata.persisted_attributes)
    )
    descriptor = QueryDescriptor(
        base=base,
        filter=search_filter,
        scope=params.scope or config.default_scope,
        attributes=attributes,
        count_limit=_limit(params.count_limit, config.count_limit, "count_limit"),
        time_limit=_limit(params.time_limit, config.time_limit, "time_limit"),
    )
    logger.debug(
        "Assembled query for %s: base=%r scope=%s filter=%s",
        metadata.name,
        str(descriptor.base),
        descriptor.scope.value,
        descriptor.filter,
    )
    return descriptor


def _parse_base(value: DistinguishedName | str) -> DistinguishedName:
    try:
        return DistinguishedName.parse(value)
    except ValueError as exc:
        raise CompileError(str(exc)) from exc


def _limit(value: int | None, default: int, name: str) -> int:
    result = default if value is None else value
    if result < 0:
        raise CompileError(f"'{name}' must not be negative, got {result}")
    return result
