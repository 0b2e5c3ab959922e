"""
Invoice facade — one object per invoice, wiring loader, builder and sealing.

    invoice = CfdiInvoice()
    invoice.load_certificate("CSD.cer")
    invoice.load_private_key("CSD.key", "12345678a")
    invoice.set_issuer("AAA010101AAA", "Test SA", "601")
    invoice.set_recipient("XAXX010101000", "Publico", "616", "06000", "S01")
    invoice.set_line_items([...])
    xml = await invoice.generate_sealed_xml(attributes)

This is the composition root of the library API: the only place where the
concrete adapters are created from settings. An instance owns mutable state
and must not be shared across concurrent calls.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path
from typing import Any

import structlog

from cfdi_sealer.adapters.catalogs import SatCatalogs
from cfdi_sealer.adapters.credential_loader import CredentialLoader
from cfdi_sealer.builder import InvoiceBuilder
from cfdi_sealer.config import CfdiSettings
from cfdi_sealer.domain.models import (
    CertificateMaterial,
    Credential,
    InvoiceAttributes,
    InvoiceTree,
    LineItem,
)
from cfdi_sealer.domain.ports import CredentialPrecheck, InvoiceRenderer
from cfdi_sealer.errors import RenderError, SigningError
from cfdi_sealer.sealing import SealingEngine
from cfdi_sealer.serializer import render

log = structlog.get_logger()


class CfdiInvoice:
    def __init__(
        self,
        settings: CfdiSettings | None = None,
        renderer: InvoiceRenderer | None = None,
        precheck: CredentialPrecheck | None = None,
    ) -> None:
        self._settings = settings or CfdiSettings()
        self._renderer = renderer
        self._loader = CredentialLoader(precheck=precheck)
        self._builder = InvoiceBuilder()
        self._engine = SealingEngine(self._settings.resources.root_template_path)
        self._catalogs = SatCatalogs(self._settings.resources.catalogs_dir)
        self._credential = Credential()

    @property
    def credential(self) -> Credential:
        return self._credential

    @property
    def catalogs(self) -> SatCatalogs:
        return self._catalogs

    @property
    def engine(self) -> SealingEngine:
        return self._engine

    # ─── Credentials ───

    def load_certificate(self, path: str | Path) -> CertificateMaterial:
        material = self._loader.load_certificate(path)
        self._credential = replace(self._credential, certificate=material)
        return material

    def load_private_key(self, path: str | Path, passphrase: str) -> None:
        pem = self._loader.load_private_key(path, passphrase)
        self._credential = replace(self._credential, private_key_pem=pem)

    # ─── Document content ───

    def set_issuer(self, rfc: str, name: str, regime: str | int) -> None:
        self._builder.set_issuer(rfc, name, regime)

    def set_recipient(
        self,
        rfc: str,
        name: str,
        regime: str | int,
        postal_code: str | int,
        use_code: str,
    ) -> None:
        self._builder.set_recipient(rfc, name, regime, postal_code, use_code)

    def set_line_items(self, items: Iterable[LineItem]) -> None:
        self._builder.set_line_items(items)

    def set_global_info(self, periodicity: str | int, months: str | int, year: str | int) -> None:
        self._builder.set_global_info(periodicity, months, year)

    def build(self, attributes: InvoiceAttributes) -> InvoiceTree:
        return self._builder.build(attributes, certificate=self._credential.certificate)

    # ─── Output ───

    def generate_xml(self, attributes: InvoiceAttributes) -> str:
        """Unsealed XML; NoCertificado/Certificado appear once a certificate is loaded."""
        xml = render(self.build(attributes))
        log.info("invoice.generated", sealed=False)
        return xml

    async def generate_sealed_xml(self, attributes: InvoiceAttributes) -> str:
        """
        Build, render and seal in one call.

        Raises SigningError before anything is built when the private key has
        not been loaded.
        """
        if not self._credential.private_key_pem:
            raise SigningError("private key not provided")
        sealed = await self._engine.seal(render(self.build(attributes)), self._credential)
        log.info("invoice.generated", sealed=True)
        return sealed

    async def seal_document(self, xml: str) -> str:
        """Seal an already rendered document, e.g. after attaching a complement."""
        return await self._engine.seal(xml, self._credential)

    async def generate_pdf(self, params: dict[str, Any]) -> bytes:
        if self._renderer is None:
            raise RenderError("No invoice renderer configured")
        return await self._renderer.render(params)
