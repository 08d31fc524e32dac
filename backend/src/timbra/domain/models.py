"""
Domain models for CFDI validation.

Snapshots are read-only projections of the ERP's invoice, issuing company,
receiving customer and line items. The ERP owns and persists them; the
validator only reads them.

Design Decisions:
- Frozen dataclasses for snapshots so rules cannot mutate their input
- Optional fields mirror the ERP, where most fiscal data is nullable
- Decimal for all monetary values to avoid floating-point errors
- ValidationResult derives its flags from the findings instead of storing them
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


class Severity(str, Enum):
    """How much a validation finding matters."""
    ERROR = "error"      # Blocks stamping
    WARNING = "warning"  # Informational, never blocks stamping


class InvoiceStatus(str, Enum):
    """Lifecycle states of an invoice in the ERP."""
    PENDING = "pending"
    STAMPED = "stamped"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class InvoiceSnapshot:
    id: str
    status: str
    payment_method: str | None = None
    payment_form: str | None = None
    cfdi_use: str | None = None
    subtotal: Decimal | None = None
    taxes: Decimal | None = None
    serie: str | None = None
    folio: str | None = None
    pac_id: str | None = None   # PAC-side identifier, set once stamped
    uuid: str | None = None     # Folio fiscal assigned by SAT


@dataclass(frozen=True)
class CompanySnapshot:
    """The issuer (emisor) of the CFDI."""
    id: str
    rfc: str
    name: str
    regime: str
    postal_code: str
    csd_cert: str | None = None
    csd_key: str | None = None
    csd_password: str | None = None

    @property
    def has_csd_certificates(self) -> bool:
        """True when certificate, key and password are all configured."""
        return bool(self.csd_cert and self.csd_key and self.csd_password)


@dataclass(frozen=True)
class CustomerSnapshot:
    """The receiver (receptor) of the CFDI."""
    id: str
    name: str
    email: str | None = None
    rfc: str | None = None
    razon_social: str | None = None
    tax_regime: str | None = None
    fiscal_address: str | None = None
    fiscal_postal_code: str | None = None
    uso_cfdi: str | None = None


@dataclass(frozen=True)
class ProductSnapshot:
    name: str
    sku: str | None = None
    sat_key: str | None = None
    sat_unit_key: str | None = None
    sale_unit: str | None = None
    iva: Decimal | None = None
    ieps: Decimal | None = None


@dataclass(frozen=True)
class SaleItemSnapshot:
    description: str | None = None
    product: ProductSnapshot | None = None


@dataclass(frozen=True)
class InvoiceItemSnapshot:
    """
    A concept (line item) of the invoice.

    Descriptive data comes from the originating sale item and its product,
    either of which may be missing.
    """
    id: str
    quantity: Decimal | None
    unit_price: Decimal | None
    total_price: Decimal | None
    sale_item: SaleItemSnapshot | None = None

    @property
    def product(self) -> ProductSnapshot | None:
        return self.sale_item.product if self.sale_item else None

    @property
    def description(self) -> str | None:
        """Sale item description, falling back to the product name."""
        if self.sale_item and self.sale_item.description:
            return self.sale_item.description
        if self.product:
            return self.product.name
        return None


@dataclass(frozen=True)
class InvoiceValidationData:
    """Everything the validator needs to judge one invoice."""
    invoice: InvoiceSnapshot
    company: CompanySnapshot
    customer: CustomerSnapshot
    items: list[InvoiceItemSnapshot] = field(default_factory=list)


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation finding.

    Plain data, not an exception: callers branch on ValidationResult.can_stamp.
    """
    field: str
    message: str
    severity: Severity
    code: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "message": self.message,
            "severity": self.severity.value,
            "code": self.code,
        }


@dataclass
class ValidationResult:
    """
    Aggregate outcome of validating one invoice.

    Built fresh on every validation call and discarded after use.
    """
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationError] = field(default_factory=list)

    @classmethod
    def from_findings(cls, findings: list[ValidationError]) -> "ValidationResult":
        """Split findings by severity, preserving their order."""
        return cls(
            errors=[f for f in findings if f.severity is Severity.ERROR],
            warnings=[f for f in findings if f.severity is Severity.WARNING],
        )

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def can_stamp(self) -> bool:
        """True only if there are no error-severity findings."""
        return not self.errors

    @property
    def can_preview(self) -> bool:
        """A preview is always allowed, even with errors."""
        return True

    @property
    def codes(self) -> list[str]:
        """Codes of all findings, errors first."""
        return [f.code for f in self.errors + self.warnings]

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "canStamp": self.can_stamp,
            "canPreview": self.can_preview,
        }
