"""
Pre-stamping validation rules for CFDI invoices.

This module contains pure functions that decide whether an invoice is
fiscally well-formed before it is sent to a PAC for stamping.
No side effects, no I/O - just business rule validation.

Every rule receives the same snapshot bundle and returns a list of
findings. Findings with severity "error" block stamping; warnings are
informational.

Design Decisions:
- Rules are independent functions run in a fixed order, so the order of
  findings is stable and rules can be added or tested one by one
- Missing optional fields fall back to the same defaults used when the
  CFDI is stamped (generic RFC, regime 616, PUE, form 01)
- Decimal comparison uses explicit tolerance for rounding differences
"""

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from .catalogs import (
    DEFAULT_IVA_RATE,
    NO_TAX_OBLIGATIONS_REGIME,
    VALID_CFDI_USES,
    VALID_PAYMENT_FORMS,
    VALID_PAYMENT_METHODS,
    VALID_TAX_REGIMES,
    is_valid_mexican_zip_code,
    to_decimal,
    validate_cfdi_use_for_regime,
)
from .models import (
    CompanySnapshot,
    CustomerSnapshot,
    InvoiceItemSnapshot,
    InvoiceSnapshot,
    InvoiceStatus,
    InvoiceValidationData,
    Severity,
    ValidationError,
    ValidationResult,
)
from .rfc import GENERIC_RFC, RFC, parse_rfc

logger = logging.getLogger(__name__)


# Tolerance for decimal comparisons (handles rounding in financial calculations)
DECIMAL_TOLERANCE = Decimal("0.01")

DEFAULT_PAYMENT_METHOD = "PUE"
DEFAULT_PAYMENT_FORM = "01"
DEFAULT_RECEIVER_POSTAL_CODE = "00000"

# Format check only; 12 or 13 characters, homoclave not range-checked
_RFC_RE = re.compile(r"^[A-ZÑ&]{3,4}[0-9]{6}[A-Z0-9]{3}$")


@dataclass(frozen=True)
class TaxPolicy:
    """
    Rates and tolerances used by the amount checks.

    IVA is applied as a flat rate to the whole invoice; per-product
    iva/ieps fields are not consulted.
    """
    iva_rate: Decimal = DEFAULT_IVA_RATE
    tolerance: Decimal = DECIMAL_TOLERANCE


Rule = Callable[[InvoiceValidationData, TaxPolicy], list[ValidationError]]


def _error(field: str, message: str, code: str) -> ValidationError:
    return ValidationError(field=field, message=message, severity=Severity.ERROR, code=code)


def _warning(field: str, message: str, code: str) -> ValidationError:
    return ValidationError(field=field, message=message, severity=Severity.WARNING, code=code)


def is_valid_rfc_format(rfc: str) -> bool:
    return bool(_RFC_RE.fullmatch(rfc))


def is_valid_tax_regime(regime: str) -> bool:
    return regime in VALID_TAX_REGIMES


def _is_blank(value: str | None) -> bool:
    return not value or not value.strip()


def _receiver_rfc(customer: CustomerSnapshot) -> str:
    return customer.rfc or GENERIC_RFC


def validate_invoice_status(data: InvoiceValidationData, policy: TaxPolicy) -> list[ValidationError]:
    """Only pending invoices can be stamped."""
    invoice = data.invoice
    if invoice.status != InvoiceStatus.PENDING.value:
        return [_error(
            "status",
            f"La factura no está en estado pendiente (estado actual: {invoice.status})",
            "INVALID_STATUS",
        )]
    return []


def validate_issuer(data: InvoiceValidationData, policy: TaxPolicy) -> list[ValidationError]:
    """
    Validate the issuing company.

    RFC, name, fiscal regime and postal code (lugar de expedición) are
    mandatory. CSD certificates are only required outside the sandbox, so
    their absence is a warning.
    """
    company: CompanySnapshot = data.company
    findings: list[ValidationError] = []

    if not company.rfc:
        findings.append(_error(
            "company.rfc",
            "El RFC de la empresa emisora es requerido",
            "MISSING_ISSUER_RFC",
        ))
    elif not is_valid_rfc_format(company.rfc):
        findings.append(_error(
            "company.rfc",
            f"El RFC de la empresa emisora es inválido: {company.rfc}",
            "INVALID_ISSUER_RFC",
        ))

    if _is_blank(company.name):
        findings.append(_error(
            "company.name",
            "El nombre de la empresa emisora es requerido",
            "MISSING_ISSUER_NAME",
        ))

    if not company.regime:
        findings.append(_error(
            "company.regime",
            "El régimen fiscal de la empresa es requerido",
            "MISSING_ISSUER_REGIME",
        ))
    elif not is_valid_tax_regime(company.regime):
        findings.append(_warning(
            "company.regime",
            f"El régimen fiscal podría no ser válido: {company.regime}",
            "SUSPICIOUS_ISSUER_REGIME",
        ))

    if not company.postal_code:
        findings.append(_error(
            "company.postalCode",
            "El código postal de la empresa es requerido (lugar de expedición)",
            "MISSING_EXPEDITION_PLACE",
        ))
    elif not is_valid_mexican_zip_code(company.postal_code):
        findings.append(_error(
            "company.postalCode",
            f"El código postal de la empresa no es válido: {company.postal_code}",
            "INVALID_EXPEDITION_PLACE",
        ))

    if not company.has_csd_certificates:
        findings.append(_warning(
            "company.certificates",
            "No se han configurado los certificados CSD. Solo funcionará en modo sandbox",
            "MISSING_CSD_CERTIFICATES",
        ))

    return findings


def validate_receiver(data: InvoiceValidationData, policy: TaxPolicy) -> list[ValidationError]:
    """
    Validate the receiving customer.

    A customer without RFC is invoiced as público en general
    (XAXX010101000), which relaxes the RFC, address and postal code checks.
    """
    customer = data.customer
    findings: list[ValidationError] = []

    if _is_blank(customer.name):
        findings.append(_error(
            "customer.name",
            "El nombre del cliente es requerido",
            "MISSING_RECEIVER_NAME",
        ))

    customer_rfc = _receiver_rfc(customer)
    is_generic = customer_rfc == GENERIC_RFC

    if not is_generic:
        if not is_valid_rfc_format(customer_rfc):
            findings.append(_error(
                "customer.rfc",
                f"El RFC del cliente es inválido: {customer_rfc}",
                "INVALID_RECEIVER_RFC",
            ))

        if not customer.razon_social:
            findings.append(_warning(
                "customer.razonSocial",
                "Se recomienda especificar la razón social del cliente",
                "MISSING_RAZON_SOCIAL",
            ))

        if not customer.fiscal_address:
            findings.append(_warning(
                "customer.fiscalAddress",
                "Se recomienda especificar el domicilio fiscal del cliente",
                "MISSING_FISCAL_ADDRESS",
            ))

    tax_regime = customer.tax_regime or NO_TAX_OBLIGATIONS_REGIME
    if not is_valid_tax_regime(tax_regime):
        findings.append(_warning(
            "customer.taxRegime",
            f"El régimen fiscal del cliente podría no ser válido: {tax_regime}",
            "SUSPICIOUS_RECEIVER_REGIME",
        ))

    postal_code = customer.fiscal_postal_code or DEFAULT_RECEIVER_POSTAL_CODE
    if not is_generic and not is_valid_mexican_zip_code(postal_code):
        findings.append(_error(
            "customer.fiscalPostalCode",
            f"El código postal del cliente no es válido: {postal_code}",
            "INVALID_RECEIVER_POSTAL_CODE",
        ))

    return findings


def validate_parties(data: InvoiceValidationData, policy: TaxPolicy) -> list[ValidationError]:
    """Warn when a non-generic issuer invoices itself."""
    issuer = parse_rfc(data.company.rfc)
    receiver = parse_rfc(_receiver_rfc(data.customer))

    if not isinstance(issuer, RFC) or not isinstance(receiver, RFC):
        return []

    if not issuer.can_issue_to(receiver):
        return [_warning(
            "customer.rfc",
            f"El RFC del cliente es igual al de la empresa emisora: {receiver}",
            "SAME_ISSUER_RECEIVER_RFC",
        )]
    return []


def _validate_item(index: int, item: InvoiceItemSnapshot) -> list[ValidationError]:
    findings: list[ValidationError] = []
    position = index + 1
    prefix = f"items[{index}]"

    if not item.quantity or item.quantity <= 0:
        findings.append(_error(
            f"{prefix}.quantity",
            f"El concepto {position} tiene cantidad inválida",
            "INVALID_ITEM_QUANTITY",
        ))

    if item.unit_price is None or item.unit_price < 0:
        findings.append(_error(
            f"{prefix}.unitPrice",
            f"El concepto {position} tiene precio unitario inválido",
            "INVALID_ITEM_PRICE",
        ))

    if item.total_price is None or item.total_price < 0:
        findings.append(_error(
            f"{prefix}.totalPrice",
            f"El concepto {position} tiene precio total inválido",
            "INVALID_ITEM_TOTAL",
        ))

    if _is_blank(item.description):
        findings.append(_error(
            f"{prefix}.description",
            f"El concepto {position} no tiene descripción",
            "MISSING_ITEM_DESCRIPTION",
        ))

    product = item.product

    if not (product and product.sat_key):
        findings.append(_warning(
            f"{prefix}.satKey",
            f"El concepto {position} no tiene clave de producto/servicio SAT",
            "MISSING_SAT_PRODUCT_KEY",
        ))

    if not (product and product.sat_unit_key):
        findings.append(_warning(
            f"{prefix}.satUnitKey",
            f"El concepto {position} no tiene clave de unidad SAT",
            "MISSING_SAT_UNIT_KEY",
        ))

    if not (product and product.sale_unit):
        findings.append(_warning(
            f"{prefix}.saleUnit",
            f"El concepto {position} no tiene unidad de venta especificada",
            "MISSING_SALE_UNIT",
        ))

    return findings


def validate_items(data: InvoiceValidationData, policy: TaxPolicy) -> list[ValidationError]:
    """
    Validate invoice concepts.

    A CFDI needs at least one concept; each needs a positive quantity,
    non-negative prices and a description. SAT keys are recommended but
    the PAC payload falls back to generic keys, so they only warn.
    """
    if not data.items:
        return [_error(
            "items",
            "La factura debe tener al menos un concepto",
            "NO_ITEMS",
        )]

    findings: list[ValidationError] = []
    for index, item in enumerate(data.items):
        findings.extend(_validate_item(index, item))
    return findings


def validate_payment_info(data: InvoiceValidationData, policy: TaxPolicy) -> list[ValidationError]:
    invoice: InvoiceSnapshot = data.invoice
    findings: list[ValidationError] = []

    payment_method = invoice.payment_method or DEFAULT_PAYMENT_METHOD
    if payment_method not in VALID_PAYMENT_METHODS:
        findings.append(_error(
            "paymentMethod",
            f"Método de pago inválido: {payment_method}",
            "INVALID_PAYMENT_METHOD",
        ))

    payment_form = invoice.payment_form or DEFAULT_PAYMENT_FORM
    if payment_form not in VALID_PAYMENT_FORMS:
        findings.append(_error(
            "paymentForm",
            f"Forma de pago inválida: {payment_form}",
            "INVALID_PAYMENT_FORM",
        ))

    return findings


def calculate_subtotal(items: Sequence[InvoiceItemSnapshot]) -> Decimal:
    """Sum of concept totals; missing totals count as zero."""
    return sum(
        (to_decimal(item.total_price) for item in items if item.total_price),
        Decimal(0),
    )


def validate_tax_calculations(data: InvoiceValidationData, policy: TaxPolicy) -> list[ValidationError]:
    """
    Compare stored subtotal and taxes with the amounts implied by the items.

    Rule: |subtotal - sum(items.total)| <= tolerance
    Rule: |taxes - sum(items.total) * iva_rate| <= tolerance

    Mismatches only warn: the PAC recomputes amounts from the concepts.
    """
    invoice = data.invoice
    findings: list[ValidationError] = []

    calculated_subtotal = calculate_subtotal(data.items)
    calculated_taxes = calculated_subtotal * policy.iva_rate

    if invoice.subtotal is not None:
        subtotal = to_decimal(invoice.subtotal)
        if abs(subtotal - calculated_subtotal) > policy.tolerance:
            findings.append(_warning(
                "subtotal",
                f"El subtotal de la factura (${subtotal:.2f}) no coincide "
                f"con la suma de items (${calculated_subtotal:.2f})",
                "SUBTOTAL_MISMATCH",
            ))

    if invoice.taxes is not None:
        taxes = to_decimal(invoice.taxes)
        if abs(taxes - calculated_taxes) > policy.tolerance:
            findings.append(_warning(
                "taxes",
                f"Los impuestos de la factura (${taxes:.2f}) no coinciden "
                f"con el cálculo esperado (${calculated_taxes:.2f})",
                "TAXES_MISMATCH",
            ))

    return findings


def validate_cfdi_use(data: InvoiceValidationData, policy: TaxPolicy) -> list[ValidationError]:
    """
    Validate the CFDI use (invoice value, else the customer's default).

    Also warns when the use is incompatible with the receiver's declared
    fiscal regime (616 only admits S01 and vice versa).
    """
    cfdi_use = data.invoice.cfdi_use or data.customer.uso_cfdi

    if not cfdi_use:
        return [_warning(
            "cfdiUse",
            "No se especificó el uso del CFDI",
            "MISSING_CFDI_USE",
        )]

    if cfdi_use not in VALID_CFDI_USES:
        return [_error(
            "cfdiUse",
            f"Uso de CFDI inválido: {cfdi_use}",
            "INVALID_CFDI_USE",
        )]

    tax_regime = data.customer.tax_regime
    if tax_regime and not validate_cfdi_use_for_regime(cfdi_use, tax_regime):
        return [_warning(
            "cfdiUse",
            f"El uso de CFDI {cfdi_use} no es compatible con el régimen fiscal "
            f"del cliente ({tax_regime})",
            "CFDI_USE_REGIME_MISMATCH",
        )]

    return []


DEFAULT_RULES: tuple[Rule, ...] = (
    validate_invoice_status,
    validate_issuer,
    validate_receiver,
    validate_parties,
    validate_items,
    validate_payment_info,
    validate_tax_calculations,
    validate_cfdi_use,
)


class InvoiceValidator:
    """
    Runs the validation rules over an invoice snapshot.

    The validator keeps no state between calls; one instance can be shared.

    Example:
        validator = InvoiceValidator()
        result = validator.validate(data)

        if result.can_stamp:
            # Send to the PAC
    """

    def __init__(
        self,
        rules: Sequence[Rule] = DEFAULT_RULES,
        policy: TaxPolicy | None = None,
    ) -> None:
        """
        Initialize validator.

        Args:
            rules: Rules to run, in order
            policy: IVA rate and amount tolerance (defaults: 16%, 0.01)
        """
        self.rules = tuple(rules)
        self.policy = policy or TaxPolicy()

    def validate(self, data: InvoiceValidationData) -> ValidationResult:
        """
        Validate an invoice in a single synchronous pass.

        Returns:
            ValidationResult whose can_stamp is True iff no rule produced an
            error-severity finding
        """
        findings: list[ValidationError] = []
        for rule in self.rules:
            findings.extend(rule(data, self.policy))

        result = ValidationResult.from_findings(findings)

        logger.debug(
            f"Invoice {data.invoice.id} validated: "
            f"errors={len(result.errors)} warnings={len(result.warnings)} "
            f"can_stamp={result.can_stamp}"
        )
        return result


def validate_invoice(
    data: InvoiceValidationData,
    policy: TaxPolicy | None = None,
) -> ValidationResult:
    """Validate with the default rule set."""
    return InvoiceValidator(policy=policy).validate(data)
