"""
Command-line entry point.

Validates invoice snapshots exported by the ERP and classifies RFCs:

    timbra validate invoice.json [more.json ...]
    timbra rfc EKU9003173C9 XAXX010101000

Exit codes: 0 when every invoice can be stamped, 1 when at least one
cannot, 2 when an input file is unreadable or malformed.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError as SchemaError

from timbra import __version__
from timbra.config import Settings, get_settings
from timbra.domain.validation import InvoiceValidator
from timbra.schemas import (
    ErrorResponse,
    InvoiceValidationRequest,
    RFCResponse,
    ValidationResultResponse,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CANNOT_STAMP = 1
EXIT_BAD_INPUT = 2


def setup_logging(settings: Settings) -> None:
    """Configure root logging once for the process."""
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stderr,
    )


def _dump(payload: object) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def validate_file(path: Path, validator: InvoiceValidator) -> tuple[dict, int]:
    """
    Validate one JSON snapshot file.

    Returns:
        (report, exit_code) for this file
    """
    try:
        raw = path.read_text(encoding="utf-8")
        request = InvoiceValidationRequest.model_validate_json(raw)
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Cannot read {path}: {e}")
        error = ErrorResponse(error="No se pudo leer el archivo", detail=str(e))
        return {"file": str(path), **error.model_dump()}, EXIT_BAD_INPUT
    except SchemaError as e:
        logger.error(f"Invalid invoice snapshot in {path}: {e.error_count()} errors")
        error = ErrorResponse(error="Datos de factura inválidos", detail=str(e))
        return {"file": str(path), **error.model_dump()}, EXIT_BAD_INPUT

    result = validator.validate(request.to_domain())
    response = ValidationResultResponse.from_domain(result)

    logger.info(
        f"{path.name}: can_stamp={result.can_stamp} "
        f"errors={len(result.errors)} warnings={len(result.warnings)}"
    )

    report = {
        "file": str(path),
        "validation": response.model_dump(mode="json", by_alias=True),
    }
    return report, EXIT_OK if result.can_stamp else EXIT_CANNOT_STAMP


def run_validate(files: list[Path], settings: Settings) -> int:
    validator = InvoiceValidator(policy=settings.tax_policy)

    reports = []
    exit_code = EXIT_OK
    for path in files:
        report, code = validate_file(path, validator)
        reports.append(report)
        exit_code = max(exit_code, code)

    _dump(reports)
    return exit_code


def run_rfc(values: list[str]) -> int:
    responses = [RFCResponse.classify(value) for value in values]
    _dump([r.model_dump(mode="json", by_alias=True) for r in responses])
    return EXIT_OK if all(r.valid for r in responses) else EXIT_CANNOT_STAMP


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timbra",
        description="Validate CFDI invoices before stamping",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate an invoice snapshot exported by the ERP
  timbra validate invoice.json

  # Classify RFCs
  timbra rfc EKU9003173C9 XAXX010101000
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Validate invoice snapshot files")
    validate.add_argument(
        "files",
        nargs="+",
        type=Path,
        help="JSON files with invoice, company, customer and items",
    )

    rfc = subparsers.add_parser("rfc", help="Parse and classify RFCs")
    rfc.add_argument("values", nargs="+", help="RFC strings")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    setup_logging(settings)

    if args.command == "validate":
        return run_validate(args.files, settings)
    return run_rfc(args.values)


if __name__ == "__main__":
    sys.exit(main())
