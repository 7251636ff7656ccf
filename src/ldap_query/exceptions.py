"""
Query derivation exception hierarchy with fuzzy-match suggestions.

All exceptions inherit from ``QueryDerivationError`` and provide
``to_dict()`` for API-friendly error responses.

- :class:`MappingError`: malformed entity metadata (startup, fatal).
- :class:`ParseError`: unreadable method descriptor (interface construction).
- :class:`CompileError`: literal value cannot be rendered (per invocation).
- :class:`UnsupportedFeatureError`: paging / sorting requested.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class QueryDerivationError(Exception):
    """Base exception for all query derivation errors."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class MappingError(QueryDerivationError):
    """Entity metadata is inconsistent."""

    def __init__(self, message: str, entity: str | None = None) -> None:
        self.message = message
        self.entity = entity
        prefix = f"Invalid mapping for '{entity}': " if entity else ""
        super().__init__(prefix + message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "MAPPING_ERROR",
            "message": self.message,
            "entity": self.entity,
        }


class ParseError(QueryDerivationError):
    """
    A method descriptor could not be read.

    When the failure is an unknown property, ``suggestions`` holds the
    closest queryable property names.

    Example error message::

        Cannot derive query from 'findByLastnme': no property matches
        'Lastnme' on 'Person'.
        Did you mean: lastname?
    """

    def __init__(
        self,
        message: str,
        descriptor: str,
        *,
        fragment: str | None = None,
        available: list[str] | None = None,
    ) -> None:
        self.message = message
        self.descriptor = descriptor
        self.fragment = fragment
        self.suggestions: list[str] = []
        if fragment and available:
            lowered = {name.lower(): name for name in available}
            matches = get_close_matches(
                fragment.lower(), list(lowered), n=3, cutoff=0.6
            )
            self.suggestions = [lowered[m] for m in matches]

        text = f"Cannot derive query from '{descriptor}': {message}"
        if self.suggestions:
            text += f"\nDid you mean: {', '.join(self.suggestions)}?"
        super().__init__(text)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "PARSE_ERROR",
            "message": self.message,
            "descriptor": self.descriptor,
            "fragment": self.fragment,
            "suggestions": self.suggestions,
        }


class CompileError(QueryDerivationError):
    """A predicate tree could not be rendered as a filter."""

    def __init__(self, message: str, property_name: str | None = None) -> None:
        self.message = message
        self.property_name = property_name
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "COMPILE_ERROR",
            "message": self.message,
            "property": self.property_name,
        }


class UnsupportedFeatureError(QueryDerivationError):
    """
    Paging or sorting was requested.

    The directory protocol has no offset or server-side ordering in a plain
    search, so these requests are refused instead of emulated.
    """

    def __init__(self, feature: str, detail: str | None = None) -> None:
        self.feature = feature
        self.detail = detail
        message = f"'{feature}' is not supported by directory queries"
        if detail:
            message += f": {detail}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNSUPPORTED_FEATURE",
            "feature": self.feature,
            "detail": self.detail,
        }


class IncorrectResultSizeError(QueryDerivationError, LookupError):
    """A single-result lookup matched more than one entry."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected at most {expected} result(s), got {actual}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "INCORRECT_RESULT_SIZE",
            "expected": self.expected,
            "actual": self.actual,
        }
