"""
Stamping draft: the SAT-level content of a CFDI ready for a PAC.

The ERP stores many fiscal fields as optional. When the invoice is stamped,
empty fields are resolved to SAT defaults (público en general, regime 616,
generic product/unit keys). This module applies those defaults and computes
per-concept IVA, producing a draft a PAC adapter can translate into its own
wire format.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from urllib.parse import urlencode

from .catalogs import (
    DEFAULT_IVA_RATE,
    NO_TAX_OBLIGATIONS_REGIME,
    get_default_cfdi_use,
    round_amount,
    to_decimal,
    validate_expedition_place_for_rfc,
)
from .models import InvoiceItemSnapshot, InvoiceValidationData
from .rfc import GENERIC_RFC


CFDI_TYPE_INCOME = "I"
EXPORTATION_NOT_APPLICABLE = "01"
TAX_OBJECT_SUBJECT = "02"

DEFAULT_PRODUCT_KEY = "01010101"
DEFAULT_UNIT_KEY = "H87"
DEFAULT_UNIT = "Pieza"
DEFAULT_DESCRIPTION = "Producto o servicio"
DEFAULT_RECEIVER_ZIP_CODE = "00000"
DEFAULT_PAYMENT_FORM = "01"
DEFAULT_PAYMENT_METHOD = "PUE"

SAT_VERIFICATION_URL = "https://verificacfdi.facturaelectronica.sat.gob.mx/default.aspx"


@dataclass(frozen=True)
class ReceiverDraft:
    rfc: str
    name: str
    cfdi_use: str
    fiscal_regime: str
    tax_zip_code: str


@dataclass(frozen=True)
class TransferredTax:
    """A transferred (non-retained) federal tax on a concept."""
    name: str
    rate: Decimal
    base: Decimal
    total: Decimal


@dataclass(frozen=True)
class ConceptDraft:
    quantity: Decimal
    product_code: str
    unit_code: str
    unit: str
    description: str
    unit_price: Decimal
    subtotal: Decimal
    tax_object: str
    taxes: tuple[TransferredTax, ...]
    identification_number: str | None = None

    @property
    def total(self) -> Decimal:
        return self.subtotal + sum((t.total for t in self.taxes), Decimal(0))


@dataclass(frozen=True)
class StampDraft:
    """Everything a PAC needs to stamp an income CFDI."""
    invoice_id: str
    receiver: ReceiverDraft
    expedition_place: str
    payment_form: str
    payment_method: str
    serie: str | None = None
    folio: str | None = None
    cfdi_type: str = CFDI_TYPE_INCOME
    exportation: str = EXPORTATION_NOT_APPLICABLE
    concepts: tuple[ConceptDraft, ...] = field(default_factory=tuple)

    @property
    def subtotal(self) -> Decimal:
        return round_amount(sum((c.subtotal for c in self.concepts), Decimal(0)))

    @property
    def taxes(self) -> Decimal:
        return round_amount(sum(
            (t.total for c in self.concepts for t in c.taxes),
            Decimal(0),
        ))

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.taxes


def _build_concept(item: InvoiceItemSnapshot, iva_rate: Decimal) -> ConceptDraft:
    product = item.product
    base = to_decimal(item.total_price or 0)

    iva = TransferredTax(
        name="IVA",
        rate=iva_rate,
        base=base,
        total=round_amount(base * iva_rate),
    )

    return ConceptDraft(
        quantity=to_decimal(item.quantity or 0),
        product_code=(product and product.sat_key) or DEFAULT_PRODUCT_KEY,
        unit_code=(product and product.sat_unit_key) or DEFAULT_UNIT_KEY,
        unit=(product and product.sale_unit) or DEFAULT_UNIT,
        description=item.description or DEFAULT_DESCRIPTION,
        identification_number=(product and product.sku) or None,
        unit_price=to_decimal(item.unit_price or 0),
        subtotal=base,
        tax_object=TAX_OBJECT_SUBJECT,
        taxes=(iva,),
    )


def build_stamp_draft(
    data: InvoiceValidationData,
    iva_rate: Decimal = DEFAULT_IVA_RATE,
) -> StampDraft:
    """
    Resolve defaults and build the stamping draft for an invoice.

    Does not validate: run the InvoiceValidator first and only build a
    draft for invoices whose result allows stamping.
    """
    invoice = data.invoice
    customer = data.customer

    receiver_rfc = customer.rfc or GENERIC_RFC
    receiver_regime = customer.tax_regime or NO_TAX_OBLIGATIONS_REGIME
    receiver_zip = customer.fiscal_postal_code or DEFAULT_RECEIVER_ZIP_CODE

    receiver = ReceiverDraft(
        rfc=receiver_rfc,
        name=customer.razon_social or customer.name,
        cfdi_use=invoice.cfdi_use or get_default_cfdi_use(receiver_regime),
        fiscal_regime=receiver_regime,
        tax_zip_code=receiver_zip,
    )

    return StampDraft(
        invoice_id=invoice.id,
        receiver=receiver,
        expedition_place=validate_expedition_place_for_rfc(
            receiver_rfc,
            data.company.postal_code,
            receiver_zip,
        ),
        payment_form=invoice.payment_form or DEFAULT_PAYMENT_FORM,
        payment_method=invoice.payment_method or DEFAULT_PAYMENT_METHOD,
        serie=invoice.serie,
        folio=invoice.folio,
        concepts=tuple(_build_concept(item, to_decimal(iva_rate)) for item in data.items),
    )


def build_verification_url(
    uuid: str,
    issuer_rfc: str,
    receiver_rfc: str,
    total: Decimal | float | str,
    cfdi_sign: str,
) -> str:
    """
    Build the SAT public verification URL for a stamped CFDI.

    The `fe` parameter is the last eight characters of the CFDI seal.
    """
    query = urlencode({
        "id": uuid,
        "re": issuer_rfc,
        "rr": receiver_rfc,
        "tt": str(total),
        "fe": cfdi_sign[-8:],
    })
    return f"{SAT_VERIFICATION_URL}?&{query}"
