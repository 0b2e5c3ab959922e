"""
Command-line entry point — builds, optionally decorates, and seals one invoice.

    cfdi-sealer request.json --output invoice.xml

Responsibilities:
  1. Load and validate configuration from environment
  2. Configure structlog
  3. Validate the JSON request into an InvoiceRequest
  4. Load the CSD credentials named by the settings
  5. Build the document, attach the Carta Porte complement when requested, seal
  6. Write the XML to the output path or stdout

Exit codes: 0 success, 1 configuration or request error, 2 CFDI error.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import structlog
from pydantic import TypeAdapter, ValidationError

from cfdi_sealer import __version__
from cfdi_sealer.complement import attach
from cfdi_sealer.config import CfdiSettings
from cfdi_sealer.domain.models import InvoiceRequest
from cfdi_sealer.errors import CfdiError, SigningError
from cfdi_sealer.invoice import CfdiInvoice

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_CFDI = 2

_request_adapter = TypeAdapter(InvoiceRequest)


def configure_structlog(log_level: str = "INFO") -> None:
    """Colored console output on stderr, ISO timestamps, level filtering."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="cfdi-sealer", description="Build and seal a CFDI 4.0 invoice.")
    parser.add_argument("request", type=Path, help="JSON invoice request")
    parser.add_argument("-o", "--output", type=Path, help="write the XML here instead of stdout")
    parser.add_argument("--unsealed", action="store_true", help="skip sealing")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def load_request(path: Path) -> InvoiceRequest:
    """Read and validate a request file. Raises OSError or pydantic.ValidationError."""
    return _request_adapter.validate_json(path.read_bytes())


def _prepare(invoice: CfdiInvoice, settings: CfdiSettings, request: InvoiceRequest, sealed: bool) -> None:
    if settings.credentials is not None:
        invoice.load_certificate(settings.credentials.certificate_path)
        if sealed:
            invoice.load_private_key(
                settings.credentials.private_key_path,
                settings.credentials.private_key_password.get_secret_value(),
            )
    elif sealed:
        raise SigningError("private key not provided")

    issuer, recipient = request.issuer, request.recipient
    invoice.set_issuer(issuer.rfc, issuer.nombre, issuer.regimen_fiscal)
    invoice.set_recipient(
        recipient.rfc,
        recipient.nombre,
        recipient.regimen_fiscal_receptor,
        recipient.domicilio_fiscal_receptor,
        recipient.uso_cfdi,
    )
    invoice.set_line_items(request.line_items)
    if request.global_info is not None:
        info = request.global_info
        invoice.set_global_info(info.periodicidad, info.meses, info.anio)


def run(settings: CfdiSettings, request: InvoiceRequest, sealed: bool = True) -> str:
    """Produce the final XML for a validated request. Raises CfdiError."""
    invoice = CfdiInvoice(settings=settings)
    _prepare(invoice, settings, request, sealed)
    xml = invoice.generate_xml(request.attributes)

    if request.shipment is not None:
        shipment = request.shipment
        result = attach(
            xml,
            shipment.attributes,
            shipment.origin,
            shipment.destination,
            shipment.customs_regimes,
        )
        if result.is_failure():
            raise CfdiError(f"Cannot attach shipment complement: {result.error().message}")
        xml = result.value()

    if sealed:
        xml = asyncio.run(invoice.seal_document(xml))
    return xml


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        settings = CfdiSettings()
    except ValidationError as e:
        print(f"FATAL: Configuration error: {e}", file=sys.stderr)  # noqa: T201
        return EXIT_CONFIG

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    try:
        request = load_request(args.request)
    except (OSError, ValidationError) as e:
        print(f"FATAL: Invalid request {args.request}: {e}", file=sys.stderr)  # noqa: T201
        return EXIT_CONFIG

    log.info("app.starting", version=__version__, request=str(args.request), sealed=not args.unsealed)

    try:
        xml = run(settings, request, sealed=not args.unsealed)
    except CfdiError as e:
        log.error("app.cfdi_error", error_type=type(e).__name__, error=str(e))
        return EXIT_CFDI

    if args.output is None:
        sys.stdout.write(xml)
    else:
        args.output.write_text(xml, encoding="utf-8")
        log.info("app.written", output=str(args.output))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
