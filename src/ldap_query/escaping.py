"""
Literal rendering for filter assertion values (RFC 4515).

Every caller-supplied value goes through :func:`render_value`; the
reserved characters ``( ) \\ NUL *`` are always hex-escaped so no value
can change the structure of a filter.
"""

from __future__ import annotations

import datetime
import re
from decimal import Decimal
from enum import Enum
from typing import Any

from ldap3.utils.conv import escape_bytes, escape_filter_chars

from .dn import DistinguishedName
from .exceptions import CompileError

WILDCARD = "*"

_GENERALIZED_TIME = "%Y%m%d%H%M%SZ"
_WILDCARD_RUN_RE = re.compile(r"\*{2,}")


def escape(text: str) -> str:
    """Escape ``( ) \\ NUL *`` in ``text``."""
    return escape_filter_chars(text)


def escape_like(pattern: str) -> str:
    """
    Escape ``pattern`` but keep each ``*`` as a wildcard.

    Runs of ``*`` collapse to one so no substring component is empty.
    """
    pattern = _WILDCARD_RUN_RE.sub(WILDCARD, pattern)
    return WILDCARD.join(escape(part) for part in pattern.split(WILDCARD))


def render_value(value: Any, *, property_name: str | None = None) -> str:
    """
    Render a Python value as an escaped assertion value.

    Raises:
        CompileError: If the value has no directory representation.
    """
    if value is None:
        raise CompileError(
            "None cannot be used as an assertion value; use IsNull instead",
            property_name,
        )
    if isinstance(value, bytes | bytearray):
        return escape_bytes(bytes(value))
    if isinstance(value, Enum):
        return render_value(value.value, property_name=property_name)
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise CompileError(f"Cannot render {value!r}", property_name)
        return str(value)
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(datetime.timezone.utc)
        return value.strftime(_GENERALIZED_TIME)
    if isinstance(value, DistinguishedName):
        return escape(str(value))
    if isinstance(value, str):
        return escape(value)
    raise CompileError(
        f"Values of type {type(value).__name__} cannot be rendered in a filter",
        property_name,
    )


def render_substring(value: Any, *, property_name: str | None = None) -> str:
    """
    Render a value used inside a substring assertion.

    Only textual values are accepted; binary and boolean values have no
    substring matching rule.
    """
    if isinstance(value, bytes | bytearray | bool):
        raise CompileError(
            f"Substring matching is not defined for {type(value).__name__} values",
            property_name,
        )
    rendered = render_value(value, property_name=property_name)
    if not rendered:
        raise CompileError(
            "Substring assertion value must not be empty", property_name
        )
    return rendered
