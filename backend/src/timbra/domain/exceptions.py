"""
Exception types raised by the domain and the stamping pipeline.

Validation findings are returned as data (see models.ValidationError);
exceptions are reserved for malformed value objects and PAC failures.
"""


class CfdiError(Exception):
    """Base class for all Timbra errors."""


class InvalidRFCError(CfdiError):
    """Raised when a string is not a well-formed RFC."""

    def __init__(self, value: str, message: str | None = None) -> None:
        self.value = value
        super().__init__(message or f"Formato de RFC inválido: {value}")


class InvalidTaxInfoError(CfdiError):
    """Raised when a CFDI use or fiscal regime is not in the SAT catalog."""


class InvalidFiscalInfoError(CfdiError):
    """Raised when a fiscal address is incomplete or malformed."""


class StampingError(CfdiError):
    """Raised when the PAC rejects or fails to stamp a CFDI."""

    def __init__(self, message: str, invoice_id: str | None = None) -> None:
        self.invoice_id = invoice_id
        super().__init__(message)


class CancellationError(CfdiError):
    """Raised when the PAC fails to cancel a stamped CFDI."""

    def __init__(self, message: str, invoice_id: str | None = None) -> None:
        self.invoice_id = invoice_id
        super().__init__(message)
