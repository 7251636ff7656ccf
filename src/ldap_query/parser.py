"""
Method descriptor parser.

Reads finder names such as ``findByLastnameAndFirstnameStartingWith`` into a
predicate tree whose comparison values are :class:`Parameter` placeholders::

    findBy<Segment>((And|Or)<Segment>)*
    Segment = <Property><Keyword>?

Property names are matched longest first, capitalised as they appear in a
method name (``lastName`` -> ``LastName``). The text following the property
must be one of the keywords below or nothing (equality).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple

from .ast import Comparison, Conjunction, Disjunction, Negation, Parameter
from .exceptions import ParseError, UnsupportedFeatureError
from .operators import FilterOperator

if TYPE_CHECKING:
    from .ast import PredicateNode
    from .metadata import EntityMetadata

logger = logging.getLogger("ldap_query.parser")


class _Keyword(NamedTuple):
    operator: FilterOperator
    negated: bool = False


_KEYWORDS: dict[str, _Keyword] = {
    "": _Keyword(FilterOperator.EQUALS),
    "Is": _Keyword(FilterOperator.EQUALS),
    "Equals": _Keyword(FilterOperator.EQUALS),
    "Not": _Keyword(FilterOperator.EQUALS, negated=True),
    "IsNot": _Keyword(FilterOperator.EQUALS, negated=True),
    "LessThanEqual": _Keyword(FilterOperator.LESS_THAN_EQUAL),
    "IsLessThanEqual": _Keyword(FilterOperator.LESS_THAN_EQUAL),
    "GreaterThanEqual": _Keyword(FilterOperator.GREATER_THAN_EQUAL),
    "IsGreaterThanEqual": _Keyword(FilterOperator.GREATER_THAN_EQUAL),
    "IsNotNull": _Keyword(FilterOperator.IS_NOT_NULL),
    "NotNull": _Keyword(FilterOperator.IS_NOT_NULL),
    "IsNull": _Keyword(FilterOperator.IS_NULL),
    "Null": _Keyword(FilterOperator.IS_NULL),
    "Like": _Keyword(FilterOperator.LIKE),
    "IsLike": _Keyword(FilterOperator.LIKE),
    # Negated prefix match, not a negated Like.
    "NotLike": _Keyword(FilterOperator.STARTING_WITH, negated=True),
    "IsNotLike": _Keyword(FilterOperator.STARTING_WITH, negated=True),
    "StartingWith": _Keyword(FilterOperator.STARTING_WITH),
    "IsStartingWith": _Keyword(FilterOperator.STARTING_WITH),
    "StartsWith": _Keyword(FilterOperator.STARTING_WITH),
    "EndingWith": _Keyword(FilterOperator.ENDING_WITH),
    "IsEndingWith": _Keyword(FilterOperator.ENDING_WITH),
    "EndsWith": _Keyword(FilterOperator.ENDING_WITH),
    "Containing": _Keyword(FilterOperator.CONTAINING),
    "IsContaining": _Keyword(FilterOperator.CONTAINING),
    "Contains": _Keyword(FilterOperator.CONTAINING),
}

# Longest first so that e.g. "IsNotNull" wins over "IsNot".
_KEYWORDS_BY_LENGTH = sorted(_KEYWORDS, key=len, reverse=True)

# Common finder keywords that have no directory filter equivalent.
_UNSUPPORTED_KEYWORDS = frozenset(
    {
        "LessThan",
        "IsLessThan",
        "GreaterThan",
        "IsGreaterThan",
        "Before",
        "IsBefore",
        "After",
        "IsAfter",
        "Between",
        "IsBetween",
        "In",
        "IsIn",
        "NotIn",
        "IsNotIn",
        "True",
        "IsTrue",
        "False",
        "IsFalse",
        "Empty",
        "IsEmpty",
        "NotEmpty",
        "IsNotEmpty",
        "Regex",
        "MatchesRegex",
        "Matches",
        "Exists",
        "NotContaining",
        "IsNotContaining",
        "IgnoreCase",
        "IgnoringCase",
        "AllIgnoreCase",
    }
)

_ALL_KEYWORDS_BY_LENGTH = sorted(
    [*_KEYWORDS, *_UNSUPPORTED_KEYWORDS], key=len, reverse=True
)

_SUBJECT_RE = re.compile(
    r"^(?P<verb>find|read|get|query|search|stream)"
    r"(?P<subject>[A-Z]\w*?)??By(?P<body>.*)$"
)
_LIMIT_RE = re.compile(r"(?:First|Top)\d*(?=[A-Z]|$)")
_COMBINATORS = ("And", "Or")
_SEGMENT_SPLIT_RE = re.compile(r"(?:And|Or)(?=[A-Z])")
_ORDER_BY = "OrderBy"


@dataclass(frozen=True)
class ParsedQuery:
    """
    Result of parsing one descriptor.

    Attributes:
        descriptor: The original method name.
        tree: Predicate tree with :class:`Parameter` placeholders.
        parameters: Placeholders in argument order.
    """

    descriptor: str
    tree: PredicateNode
    parameters: tuple[Parameter, ...]

    @property
    def arity(self) -> int:
        return len(self.parameters)


class _Segment(NamedTuple):
    property_name: str
    keyword: str
    combinator: str | None


class DescriptorParser:
    """
    Parse method descriptors against one entity.

    Parsing is pure: the same descriptor always yields an equal
    :class:`ParsedQuery`.
    """

    def __init__(self, metadata: EntityMetadata) -> None:
        self._metadata = metadata
        # (property name, capitalised form), longest first; ties by name.
        self._candidates = sorted(
            ((name, _capitalize(name)) for name in metadata.property_names),
            key=lambda c: (-len(c[1]), c[1]),
        )

    def parse(self, descriptor: str) -> ParsedQuery:
        """
        Raises:
            ParseError: Unknown subject, property or keyword, or mixed
                ``And``/``Or``.
            UnsupportedFeatureError: ``OrderBy`` or result limiting.
        """
        body = self._strip_subject(descriptor)
        reader = _SegmentReader(descriptor, body, self._metadata, self._candidates)
        segments = reader.read()

        combinators = {s.combinator for s in segments if s.combinator}
        if len(combinators) > 1:
            raise ParseError(
                "mixing 'And' and 'Or' is ambiguous; no precedence is defined",
                descriptor,
            )

        nodes: list[PredicateNode] = []
        params: list[Parameter] = []
        for segment in segments:
            keyword = _KEYWORDS[segment.keyword]
            value: Parameter | None = None
            if keyword.operator.takes_value:
                value = Parameter(len(params), segment.property_name)
                params.append(value)
            node: PredicateNode = Comparison(
                segment.property_name, keyword.operator, value
            )
            if keyword.negated:
                node = Negation(node)
            nodes.append(node)

        tree: PredicateNode
        if len(nodes) == 1:
            tree = nodes[0]
        elif combinators == {"Or"}:
            tree = Disjunction(tuple(nodes))
        else:
            tree = Conjunction(tuple(nodes))

        result = ParsedQuery(descriptor, tree, tuple(params))
        logger.debug(
            "Parsed %s for %s: %d segment(s), %d parameter(s)",
            descriptor,
            self._metadata.name,
            len(segments),
            len(params),
        )
        return result

    @staticmethod
    def _strip_subject(descriptor: str) -> str:
        match = _SUBJECT_RE.match(descriptor)
        if match is None:
            raise ParseError(
                "expected a name of the form 'findBy<Property>...'", descriptor
            )
        subject = match.group("subject") or ""
        if _LIMIT_RE.search(subject):
            raise UnsupportedFeatureError(
                "limit", f"'{subject}' in '{descriptor}' requests result limiting"
            )
        if "Distinct" in subject:
            raise UnsupportedFeatureError(
                "distinct", f"'{descriptor}' requests distinct results"
            )
        body = match.group("body")
        if _ORDER_BY in body:
            raise UnsupportedFeatureError(
                "sorting", f"'{descriptor}' declares an OrderBy clause"
            )
        if not body:
            raise ParseError("no criteria after 'By'", descriptor)
        return body


class _SegmentReader:
    """Backtracking reader for the criteria part of one descriptor."""

    def __init__(
        self,
        descriptor: str,
        body: str,
        metadata: EntityMetadata,
        candidates: list[tuple[str, str]],
    ) -> None:
        self._descriptor = descriptor
        self._body = body
        self._metadata = metadata
        self._candidates = candidates
        self._failure: tuple[int, ParseError] | None = None

    def read(self) -> list[_Segment]:
        segments = self._read(0, None)
        if segments is None:
            if self._failure is None:  # pragma: no cover
                raise ParseError("unreadable criteria", self._descriptor)
            raise self._failure[1]
        return segments

    def _read(self, pos: int, combinator: str | None) -> list[_Segment] | None:
        body = self._body
        matched = False
        for name, capitalized in self._candidates:
            if not body.startswith(capitalized, pos):
                continue
            attribute = self._metadata.get(name)
            if attribute is None or not attribute.queryable:
                kind = (
                    "the identifier"
                    if attribute and attribute.identifier
                    else "transient"
                )
                self._fail(pos, f"property '{name}' is {kind} and cannot be queried")
                continue
            matched = True
            rest = pos + len(capitalized)
            for keyword in _KEYWORDS_BY_LENGTH:
                if not body.startswith(keyword, rest):
                    continue
                end = rest + len(keyword)
                segment = _Segment(name, keyword, combinator)
                if end == len(body):
                    return [segment]
                for next_combinator in _COMBINATORS:
                    start = end + len(next_combinator)
                    if body.startswith(next_combinator, end) and start < len(body):
                        tail = self._read(start, next_combinator)
                        if tail is not None:
                            return [segment, *tail]
            self._fail_keyword(rest, name)
        if not matched:
            fragment = _SEGMENT_SPLIT_RE.split(body[pos:], maxsplit=1)[0]
            self._fail(
                pos,
                f"no property matches '{fragment}' on '{self._metadata.name}'",
                fragment=_strip_keyword(fragment),
            )
        return None

    def _fail_keyword(self, pos: int, property_name: str) -> None:
        remainder = _SEGMENT_SPLIT_RE.split(self._body[pos:], maxsplit=1)[0]
        if remainder in _UNSUPPORTED_KEYWORDS:
            message = (
                f"keyword '{remainder}' on '{property_name}' has no "
                "directory filter equivalent"
            )
        else:
            message = f"unrecognized keyword '{remainder}' after '{property_name}'"
        self._fail(pos, message)

    def _fail(self, pos: int, message: str, *, fragment: str | None = None) -> None:
        if self._failure is not None and self._failure[0] >= pos:
            return
        error = ParseError(
            message,
            self._descriptor,
            fragment=fragment,
            available=self._metadata.queryable_properties if fragment else None,
        )
        self._failure = (pos, error)


def _capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def _strip_keyword(fragment: str) -> str:
    for keyword in _ALL_KEYWORDS_BY_LENGTH:
        if keyword and fragment.endswith(keyword) and len(fragment) > len(keyword):
            return fragment[: -len(keyword)]
    return fragment


def parse(descriptor: str, metadata: EntityMetadata) -> ParsedQuery:
    """Parse ``descriptor`` against ``metadata``; see :class:`DescriptorParser`."""
    return DescriptorParser(metadata).parse(descriptor)
