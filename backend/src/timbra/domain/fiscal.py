"""
Receiver fiscal value objects.

TaxInfo pairs the CFDI use a customer registers with their fiscal regime.
FiscalInfo holds the customer's domicilio fiscal, which CFDI 4.0 requires
for any non-generic receiver.
"""

from dataclasses import dataclass

from .catalogs import CUSTOMER_CFDI_USES, VALID_TAX_REGIMES, is_valid_mexican_zip_code
from .exceptions import InvalidFiscalInfoError, InvalidTaxInfoError


DEFAULT_COUNTRY = "México"


@dataclass(frozen=True)
class TaxInfo:
    """CFDI use and fiscal regime of a receiver."""
    uso_cfdi: str
    tax_regime: str

    @classmethod
    def create(cls, uso_cfdi: str | None, tax_regime: str | None) -> "TaxInfo | None":
        """
        Build TaxInfo from optional customer fields.

        Returns None when either field is missing; a customer without
        both is invoiced with defaults instead.

        Raises:
            InvalidTaxInfoError: If a present value is not in the SAT catalog
        """
        if not uso_cfdi or not tax_regime:
            return None

        if uso_cfdi not in CUSTOMER_CFDI_USES:
            raise InvalidTaxInfoError(f"Uso CFDI inválido: {uso_cfdi}")

        if tax_regime not in VALID_TAX_REGIMES:
            raise InvalidTaxInfoError(f"Régimen fiscal inválido: {tax_regime}")

        return cls(uso_cfdi=uso_cfdi, tax_regime=tax_regime)


@dataclass(frozen=True)
class FiscalInfo:
    """
    Domicilio fiscal of a receiver.

    All parts except the interior number and country are mandatory.
    """
    address: str
    street: str
    exterior_number: str
    neighborhood: str
    postal_code: str
    city: str
    state: str
    municipality: str
    interior_number: str | None = None
    country: str = DEFAULT_COUNTRY

    @classmethod
    def create(
        cls,
        address: str,
        street: str,
        exterior_number: str,
        neighborhood: str,
        postal_code: str,
        city: str,
        state: str,
        municipality: str,
        interior_number: str | None = None,
        country: str | None = None,
    ) -> "FiscalInfo":
        """
        Validate and build a fiscal address.

        Raises:
            InvalidFiscalInfoError: If a mandatory part is missing or the
                postal code is not five digits
        """
        required = (
            address, street, exterior_number, neighborhood,
            postal_code, city, state, municipality,
        )
        if not all(required):
            raise InvalidFiscalInfoError(
                "Faltan campos obligatorios en la información fiscal"
            )

        if not is_valid_mexican_zip_code(postal_code):
            raise InvalidFiscalInfoError(f"Código postal inválido: {postal_code}")

        return cls(
            address=address,
            street=street,
            exterior_number=exterior_number,
            neighborhood=neighborhood,
            postal_code=postal_code,
            city=city,
            state=state,
            municipality=municipality,
            interior_number=(interior_number or "").strip() or None,
            country=(country or "").strip() or DEFAULT_COUNTRY,
        )

    @property
    def full_address(self) -> str:
        """Single-line address as printed on the invoice."""
        address = f"{self.street} {self.exterior_number}"
        if self.interior_number:
            address += f" Int. {self.interior_number}"
        return (
            f"{address}, {self.neighborhood}, {self.postal_code}, "
            f"{self.city}, {self.state}, {self.country}"
        )
