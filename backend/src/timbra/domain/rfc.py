"""
RFC (Registro Federal de Contribuyentes) value object.

An RFC identifies a Mexican taxpayer. Besides the per-person and
per-company formats, SAT publishes two generic constants used when the
receiver is the general public or a foreign resident.

Design Decisions:
- Frozen dataclass so the value and its type never change after parsing
- The type is derived from the normalized value, never passed in
- RFC.create raises; parse_rfc returns the error instead, for callers that
  prefer to branch on the result
"""

import re
from dataclasses import dataclass
from enum import Enum

from .exceptions import InvalidRFCError


GENERIC_RFC = "XAXX010101000"  # Público en general
FOREIGN_RFC = "XEXX010101000"  # Residentes en el extranjero

_RFC_PATTERNS = (
    re.compile(r"^[A-ZÑ&]{4}[0-9]{6}[A-Z0-9]{2}[0-9A]$"),  # Personas morales (13 chars)
    re.compile(r"^[A-ZÑ&]{3}[0-9]{6}[A-Z0-9]{2}[0-9A]$"),  # Personas físicas (12 chars)
    re.compile(rf"^({GENERIC_RFC}|{FOREIGN_RFC})$"),
)


class RFCType(Enum):
    """Taxpayer classification derived from the RFC."""
    MORAL = "MORAL"
    FISICA = "FISICA"
    GENERICO = "GENERICO"
    EXTRANJERO = "EXTRANJERO"


def _normalize(value: str) -> str:
    return value.strip().upper()


def _is_valid_format(rfc: str) -> bool:
    return any(pattern.fullmatch(rfc) for pattern in _RFC_PATTERNS)


def _determine_type(rfc: str) -> RFCType:
    if rfc == GENERIC_RFC:
        return RFCType.GENERICO
    if rfc == FOREIGN_RFC:
        return RFCType.EXTRANJERO
    if len(rfc) == 13:
        return RFCType.MORAL
    if len(rfc) == 12:
        return RFCType.FISICA

    raise InvalidRFCError(rfc, f"No se pudo determinar el tipo de RFC: {rfc}")


@dataclass(frozen=True)
class RFC:
    """
    A validated, normalized RFC.

    Build instances with RFC.create (or parse_rfc); the constructor does not
    validate.
    """
    value: str
    type: RFCType

    @classmethod
    def create(cls, value: str) -> "RFC":
        """
        Parse and classify an RFC.

        Args:
            value: Raw RFC, surrounding whitespace and case are ignored

        Raises:
            InvalidRFCError: If the value matches none of the SAT formats
        """
        normalized = _normalize(value or "")

        if not _is_valid_format(normalized):
            raise InvalidRFCError(value)

        return cls(value=normalized, type=_determine_type(normalized))

    @classmethod
    def create_nullable(cls, value: str | None) -> "RFC | None":
        """Like create, but empty input yields None instead of an error."""
        if not value:
            return None
        return cls.create(value)

    def is_generic(self) -> bool:
        return self.type is RFCType.GENERICO

    def is_foreign(self) -> bool:
        return self.type is RFCType.EXTRANJERO

    def is_moral(self) -> bool:
        return self.type is RFCType.MORAL

    def is_fisica(self) -> bool:
        return self.type is RFCType.FISICA

    def is_valid_for_company(self) -> bool:
        """Issuing companies are expected to be personas morales or generic."""
        return self.is_moral() or self.is_generic()

    def can_issue_to(self, other: "RFC") -> bool:
        """
        Check whether an invoice issued by this RFC may target `other`.

        Issuer and receiver must differ unless one of them is generic.
        """
        if self.is_generic() or other.is_generic():
            return True
        return self.value != other.value

    def __str__(self) -> str:
        return self.value


def parse_rfc(value: str | None) -> RFC | InvalidRFCError:
    """
    Parse an RFC without raising.

    Returns:
        The RFC on success, otherwise the InvalidRFCError describing why
        the value was rejected.

    Example:
        >>> result = parse_rfc("xaxx010101000 ")
        >>> isinstance(result, RFC) and result.is_generic()
        True
    """
    try:
        return RFC.create(value or "")
    except InvalidRFCError as e:
        return e
