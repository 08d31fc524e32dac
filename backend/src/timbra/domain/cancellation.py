"""
Pre-checks for cancelling a stamped CFDI.

SAT accepts four cancellation reasons (c_MotivoCancelacion). Reason 01
replaces the invoice with a new one, so it must name the replacement's
folio fiscal. Only stamped invoices that the PAC knows about can be
cancelled.

Findings reuse ValidationError; every cancellation finding is an error.
"""

import re
from dataclasses import dataclass

from .models import InvoiceSnapshot, InvoiceStatus, Severity, ValidationError, ValidationResult


CANCELLATION_REASONS: dict[str, str] = {
    "01": "Comprobante emitido con errores con relación",
    "02": "Comprobante emitido con errores sin relación",
    "03": "No se llevó a cabo la operación",
    "04": "Operación nominativa relacionada en una factura global",
}

REPLACEMENT_REQUIRED_REASON = "01"

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE | re.ASCII,
)


@dataclass(frozen=True)
class CancellationRequest:
    reason: str | None
    replacement_uuid: str | None = None  # folio sustituto


def _error(field: str, message: str, code: str) -> ValidationError:
    return ValidationError(field=field, message=message, severity=Severity.ERROR, code=code)


def is_valid_uuid(value: str | None) -> bool:
    if not value:
        return False
    return bool(_UUID_RE.fullmatch(value))


def validate_cancellation_request(request: CancellationRequest) -> list[ValidationError]:
    """Check the reason code and, for reason 01, the replacement UUID."""
    if not request.reason:
        return [_error(
            "motivo",
            "El motivo de cancelación es requerido",
            "MISSING_CANCELLATION_REASON",
        )]

    if request.reason not in CANCELLATION_REASONS:
        return [_error(
            "motivo",
            f"Motivo de cancelación no válido: {request.reason}",
            "INVALID_CANCELLATION_REASON",
        )]

    if request.reason != REPLACEMENT_REQUIRED_REASON:
        return []

    if not request.replacement_uuid:
        return [_error(
            "folioSustituto",
            "El folio sustituto es requerido para el motivo 01",
            "MISSING_REPLACEMENT_UUID",
        )]

    if not is_valid_uuid(request.replacement_uuid):
        return [_error(
            "folioSustituto",
            f"El folio sustituto debe ser un UUID válido: {request.replacement_uuid}",
            "INVALID_REPLACEMENT_UUID",
        )]

    return []


def validate_cancellable(invoice: InvoiceSnapshot) -> list[ValidationError]:
    findings: list[ValidationError] = []

    if invoice.status != InvoiceStatus.STAMPED.value:
        findings.append(_error(
            "status",
            f"Solo se pueden cancelar facturas timbradas (estado actual: {invoice.status})",
            "INVOICE_NOT_STAMPED",
        ))

    if not invoice.pac_id:
        findings.append(_error(
            "pacId",
            "La factura no tiene ID del PAC",
            "MISSING_PAC_ID",
        ))

    return findings


def can_be_cancelled(invoice: InvoiceSnapshot) -> bool:
    """True for stamped invoices that carry a PAC id."""
    return not validate_cancellable(invoice)


def validate_cancellation(
    invoice: InvoiceSnapshot,
    request: CancellationRequest,
) -> ValidationResult:
    """
    Run every cancellation pre-check.

    Request findings come first, then invoice findings. The result's
    is_valid tells whether the PAC may be asked to cancel.
    """
    findings = validate_cancellation_request(request) + validate_cancellable(invoice)
    return ValidationResult.from_findings(findings)
