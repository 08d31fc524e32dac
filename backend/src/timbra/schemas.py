"""
Pydantic schemas for JSON input/output.

These schemas define the contract with the ERP: invoice snapshots arrive in
the ERP's camelCase shape and validation results leave in it.
All monetary values are parsed as Decimal to avoid floating point issues.
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from timbra.domain.models import (
    CompanySnapshot,
    CustomerSnapshot,
    InvoiceItemSnapshot,
    InvoiceSnapshot,
    InvoiceValidationData,
    ProductSnapshot,
    SaleItemSnapshot,
    ValidationError,
    ValidationResult,
)
from timbra.domain.rfc import RFC, parse_rfc


class CamelModel(BaseModel):
    """Base schema accepting both camelCase aliases and field names."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class SeverityEnum(str, Enum):
    """Finding severity for API responses."""
    ERROR = "error"
    WARNING = "warning"


# =============================================================================
# Request Schemas
# =============================================================================

class InvoiceSchema(CamelModel):
    id: str
    status: str
    payment_method: str | None = None
    payment_form: str | None = None
    cfdi_use: str | None = None
    subtotal: Decimal | None = None
    taxes: Decimal | None = None
    serie: str | None = None
    folio: str | None = None
    pac_id: str | None = None
    uuid: str | None = None


class CompanySchema(CamelModel):
    """Issuer data. Missing fields are reported by the validator, not here."""
    id: str = ""
    rfc: str = ""
    name: str = ""
    regime: str = ""
    postal_code: str = ""
    csd_cert: str | None = None
    csd_key: str | None = None
    csd_password: str | None = None


class CustomerSchema(CamelModel):
    id: str = ""
    name: str = ""
    email: str | None = None
    rfc: str | None = None
    razon_social: str | None = None
    tax_regime: str | None = None
    fiscal_address: str | None = None
    fiscal_postal_code: str | None = None
    uso_cfdi: str | None = Field(default=None, alias="usoCFDI")


class ProductSchema(CamelModel):
    name: str
    sku: str | None = None
    sat_key: str | None = None
    sat_unit_key: str | None = None
    sale_unit: str | None = None
    iva: Decimal | None = None
    ieps: Decimal | None = None


class SaleItemSchema(CamelModel):
    description: str | None = None
    product: ProductSchema | None = None


class InvoiceItemSchema(CamelModel):
    id: str = ""
    quantity: Decimal | None = None
    unit_price: Decimal | None = None
    total_price: Decimal | None = None
    sale_item: SaleItemSchema | None = None


class InvoiceValidationRequest(CamelModel):
    """Snapshot of an invoice and its parties, as sent by the ERP."""
    invoice: InvoiceSchema
    company: CompanySchema
    customer: CustomerSchema
    items: list[InvoiceItemSchema] = []

    def to_domain(self) -> InvoiceValidationData:
        """Convert to the validator's snapshot bundle."""
        return InvoiceValidationData(
            invoice=InvoiceSnapshot(**self.invoice.model_dump()),
            company=CompanySnapshot(**self.company.model_dump()),
            customer=CustomerSnapshot(**self.customer.model_dump()),
            items=[_item_to_domain(item) for item in self.items],
        )


def _item_to_domain(item: InvoiceItemSchema) -> InvoiceItemSnapshot:
    sale_item = None
    if item.sale_item:
        product = None
        if item.sale_item.product:
            product = ProductSnapshot(**item.sale_item.product.model_dump())
        sale_item = SaleItemSnapshot(
            description=item.sale_item.description,
            product=product,
        )

    return InvoiceItemSnapshot(
        id=item.id,
        quantity=item.quantity,
        unit_price=item.unit_price,
        total_price=item.total_price,
        sale_item=sale_item,
    )


# =============================================================================
# Response Schemas
# =============================================================================

class ValidationErrorResponse(CamelModel):
    """Single validation finding."""
    field: str
    message: str
    severity: SeverityEnum
    code: str

    @classmethod
    def from_domain(cls, finding: ValidationError) -> "ValidationErrorResponse":
        return cls(
            field=finding.field,
            message=finding.message,
            severity=SeverityEnum(finding.severity.value),
            code=finding.code,
        )


class ValidationResultResponse(CamelModel):
    """Response from invoice validation."""
    is_valid: bool
    errors: list[ValidationErrorResponse] = []
    warnings: list[ValidationErrorResponse] = []
    can_stamp: bool
    can_preview: bool

    @classmethod
    def from_domain(cls, result: ValidationResult) -> "ValidationResultResponse":
        return cls(
            is_valid=result.is_valid,
            errors=[ValidationErrorResponse.from_domain(e) for e in result.errors],
            warnings=[ValidationErrorResponse.from_domain(w) for w in result.warnings],
            can_stamp=result.can_stamp,
            can_preview=result.can_preview,
        )


class RFCResponse(CamelModel):
    """Classification of a single RFC."""
    input: str
    valid: bool
    value: str | None = None
    type: str | None = None
    is_generic: bool = False
    is_foreign: bool = False
    error: str | None = None

    @classmethod
    def classify(cls, raw: str) -> "RFCResponse":
        result = parse_rfc(raw)
        if not isinstance(result, RFC):
            return cls(input=raw, valid=False, error=str(result))

        return cls(
            input=raw,
            valid=True,
            value=result.value,
            type=result.type.value,
            is_generic=result.is_generic(),
            is_foreign=result.is_foreign(),
        )


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: str | None = None
