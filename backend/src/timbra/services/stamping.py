"""
Stamping orchestrator service.

Coordinates the pre-stamping pipeline:
1. Validation of the invoice snapshot
2. Resolution of SAT defaults into a stamping draft
3. Stamping through a PAC adapter
4. SAT verification URL for the stamped CFDI

Cancellation follows the same shape: pre-checks first, then the PAC.

The PAC itself is an external collaborator reached through the PACClient
interface; this module never speaks a PAC wire protocol.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from timbra.domain.cancellation import CancellationRequest, validate_cancellation
from timbra.domain.exceptions import CancellationError, StampingError
from timbra.domain.models import InvoiceSnapshot, InvoiceStatus, InvoiceValidationData, ValidationResult
from timbra.domain.stamping import StampDraft, build_stamp_draft, build_verification_url
from timbra.domain.validation import InvoiceValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StampReceipt:
    """What a PAC returns after stamping a CFDI."""
    pac_id: str      # PAC-side identifier, used to fetch PDF/XML later
    uuid: str        # Folio fiscal assigned by SAT
    cfdi_sign: str   # Sello digital of the CFDI
    subtotal: Decimal
    total: Decimal
    serie: str | None = None
    folio: str | None = None

    @property
    def taxes(self) -> Decimal:
        return self.total - self.subtotal


@dataclass(frozen=True)
class CancellationReceipt:
    """What a PAC returns after a cancellation request."""
    status: str                       # PAC status; "canceled" once SAT accepts it
    message: str | None = None        # Acuse (cancellation receipt) text
    cancelled_at: datetime | None = None

    @property
    def accepted(self) -> bool:
        return self.status.lower() == "canceled"


class PACClient(ABC):
    """Abstract interface for PAC (stamping provider) adapters."""

    @abstractmethod
    def stamp(self, draft: StampDraft) -> StampReceipt:
        """
        Stamp a CFDI draft.

        Implementations raise on rejection; the service wraps any
        exception in StampingError.
        """

    @abstractmethod
    def cancel(
        self,
        pac_id: str,
        reason: str,
        replacement_uuid: str | None = None,
    ) -> CancellationReceipt:
        """
        Ask the PAC to cancel a stamped CFDI.

        Implementations raise on failure; the service wraps any
        exception in CancellationError.
        """


@dataclass
class StampingOutcome:
    """
    Result of a stamping attempt.

    When validation blocks stamping, receipt and draft are None and the
    validation result explains why.
    """
    validation: ValidationResult
    draft: StampDraft | None = None
    receipt: StampReceipt | None = None
    verification_url: str | None = None

    @property
    def stamped(self) -> bool:
        return self.receipt is not None


@dataclass
class CancellationOutcome:
    """
    Result of a cancellation attempt.

    receipt is None when the pre-checks failed and the PAC was not called.
    """
    validation: ValidationResult
    receipt: CancellationReceipt | None = None

    @property
    def cancelled(self) -> bool:
        return self.receipt is not None and self.receipt.accepted

    @property
    def status(self) -> InvoiceStatus | None:
        """Status the invoice should move to, or None if nothing changed."""
        if self.receipt is None:
            return None
        return InvoiceStatus.CANCELLED if self.receipt.accepted else InvoiceStatus.STAMPED


class StampingService:
    """
    Validates invoices and hands stampable ones to a PAC; also cancels
    stamped invoices after the cancellation pre-checks pass.

    Example:
        service = StampingService(pac=MyPacAdapter())
        outcome = service.stamp(data)

        if not outcome.stamped:
            for error in outcome.validation.errors:
                ...
    """

    def __init__(
        self,
        pac: PACClient,
        validator: InvoiceValidator | None = None,
    ) -> None:
        """
        Initialize stamping service.

        Args:
            pac: PAC adapter used to stamp valid invoices
            validator: Invoice validator (default rules if None)
        """
        self.pac = pac
        self.validator = validator or InvoiceValidator()

    def preview(self, data: InvoiceValidationData) -> ValidationResult:
        """Validate without stamping."""
        return self.validator.validate(data)

    def stamp(self, data: InvoiceValidationData) -> StampingOutcome:
        """
        Validate an invoice and stamp it if no errors were found.

        Raises:
            StampingError: If the PAC fails or rejects the draft
        """
        invoice_id = data.invoice.id
        validation = self.validator.validate(data)

        if not validation.can_stamp:
            logger.warning(
                f"Invoice {invoice_id} not stamped: "
                f"{', '.join(e.code for e in validation.errors)}"
            )
            return StampingOutcome(validation=validation)

        draft = build_stamp_draft(data, iva_rate=self.validator.policy.iva_rate)
        logger.info(
            f"Stamping invoice {invoice_id}: receiver={draft.receiver.rfc} "
            f"concepts={len(draft.concepts)} total={draft.total}"
        )

        try:
            receipt = self.pac.stamp(draft)
        except Exception as e:
            logger.exception(f"PAC failed to stamp invoice {invoice_id}")
            raise StampingError(
                f"Error al timbrar la factura {invoice_id}: {e}",
                invoice_id=invoice_id,
            ) from e

        verification_url = build_verification_url(
            uuid=receipt.uuid,
            issuer_rfc=data.company.rfc,
            receiver_rfc=draft.receiver.rfc,
            total=receipt.total,
            cfdi_sign=receipt.cfdi_sign,
        )

        logger.info(f"Invoice {invoice_id} stamped: uuid={receipt.uuid} pac_id={receipt.pac_id}")

        return StampingOutcome(
            validation=validation,
            draft=draft,
            receipt=receipt,
            verification_url=verification_url,
        )

    def cancel(
        self,
        invoice: InvoiceSnapshot,
        request: CancellationRequest,
    ) -> CancellationOutcome:
        """
        Check that an invoice can be cancelled and ask the PAC to do it.

        Raises:
            CancellationError: If the PAC fails to process the request
        """
        validation = validate_cancellation(invoice, request)

        if not validation.is_valid:
            logger.warning(
                f"Invoice {invoice.id} not cancelled: "
                f"{', '.join(e.code for e in validation.errors)}"
            )
            return CancellationOutcome(validation=validation)

        logger.info(
            f"Cancelling invoice {invoice.id}: pac_id={invoice.pac_id} "
            f"uuid={invoice.uuid} reason={request.reason}"
        )

        try:
            receipt = self.pac.cancel(
                invoice.pac_id,
                request.reason,
                request.replacement_uuid,
            )
        except Exception as e:
            logger.exception(f"PAC failed to cancel invoice {invoice.id}")
            raise CancellationError(
                f"Error al cancelar la factura {invoice.id}: {e}",
                invoice_id=invoice.id,
            ) from e

        logger.info(f"Invoice {invoice.id} cancellation status: {receipt.status}")

        return CancellationOutcome(validation=validation, receipt=receipt)
