"""
Hierarchical entry names.

Parsing and RDN escaping delegate to ``ldap3.utils.dn`` (RFC 4514).
Components are stored in their escaped textual form, leaf first, exactly
as they appear in the string representation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ldap3.core.exceptions import LDAPInvalidDnError
from ldap3.utils.dn import escape_rdn, parse_dn

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True)
class DistinguishedName:
    """
    Immutable distinguished name.

    ``rdns[0]`` is the leaf (left-most) component. An empty name denotes
    the root of the directory tree, or the connection's default base.
    """

    rdns: tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str | DistinguishedName | None) -> DistinguishedName:
        """
        Parse a DN string.

        Raises:
            ValueError: If the text is not a valid DN.
        """
        if isinstance(text, DistinguishedName):
            return text
        if text is None or not text.strip():
            return cls()
        try:
            components = parse_dn(text, escape=False, strip=True)
        except LDAPInvalidDnError as exc:
            raise ValueError(f"Invalid distinguished name {text!r}: {exc}") from exc

        rdns: list[str] = []
        current: list[str] = []
        for attr, value, separator in components:
            current.append(f"{attr}={value}")
            if separator != "+":
                rdns.append("+".join(current))
                current = []
        if current:
            rdns.append("+".join(current))
        return cls(tuple(rdns))

    def child(self, attribute: str, value: Any) -> DistinguishedName:
        """Return the DN one level below this one, escaping ``value``."""
        text = value if isinstance(value, str) else str(value)
        if not attribute or not text:
            raise ValueError("RDN attribute and value must be non-empty")
        return DistinguishedName((f"{attribute}={escape_rdn(text)}", *self.rdns))

    def __iter__(self) -> Iterator[str]:
        return iter(self.rdns)

    def __len__(self) -> int:
        return len(self.rdns)

    def __bool__(self) -> bool:
        return bool(self.rdns)

    def __str__(self) -> str:
        return ",".join(self.rdns)
