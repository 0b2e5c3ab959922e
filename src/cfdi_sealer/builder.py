"""
Invoice tree builder — collects parties, line items and global-invoice data.

Setters are plain assignments (last write wins, no validation beyond the
types); `build()` merges the current state with the per-document attributes
into an immutable InvoiceTree. Calling `build()` twice with equal inputs
yields equal trees.
"""

from __future__ import annotations

from collections.abc import Iterable

from cfdi_sealer.domain.models import (
    CertificateMaterial,
    GlobalInvoiceInfo,
    InvoiceAttributes,
    InvoiceTree,
    Issuer,
    LineItem,
    Recipient,
)


class InvoiceBuilder:
    """Mutable staging area for one invoice; not safe to share across concurrent calls."""

    def __init__(self) -> None:
        self._issuer = Issuer(rfc="", nombre="", regimen_fiscal="")
        self._recipient = Recipient(
            rfc="",
            nombre="",
            regimen_fiscal_receptor="",
            domicilio_fiscal_receptor="",
            uso_cfdi="",
        )
        self._line_items: tuple[LineItem, ...] = ()
        self._global_info = GlobalInvoiceInfo()

    @property
    def issuer(self) -> Issuer:
        return self._issuer

    @property
    def recipient(self) -> Recipient:
        return self._recipient

    @property
    def line_items(self) -> tuple[LineItem, ...]:
        return self._line_items

    @property
    def global_info(self) -> GlobalInvoiceInfo:
        return self._global_info

    def set_issuer(self, rfc: str, name: str, regime: str | int) -> None:
        self._issuer = Issuer(rfc=rfc, nombre=name, regimen_fiscal=str(regime))

    def set_recipient(
        self,
        rfc: str,
        name: str,
        regime: str | int,
        postal_code: str | int,
        use_code: str,
    ) -> None:
        self._recipient = Recipient(
            rfc=rfc,
            nombre=name,
            regimen_fiscal_receptor=str(regime),
            domicilio_fiscal_receptor=str(postal_code),
            uso_cfdi=use_code,
        )

    def set_line_items(self, items: Iterable[LineItem]) -> None:
        """Replace the whole line-item collection."""
        self._line_items = tuple(items)

    def set_global_info(self, periodicity: str | int, months: str | int, year: str | int) -> None:
        self._global_info = GlobalInvoiceInfo(
            periodicidad=str(periodicity),
            meses=str(months),
            anio=str(year),
        )

    def build(
        self,
        attributes: InvoiceAttributes,
        certificate: CertificateMaterial | None = None,
    ) -> InvoiceTree:
        return InvoiceTree(
            attributes=attributes,
            issuer=self._issuer,
            recipient=self._recipient,
            line_items=self._line_items,
            global_info=self._global_info if self._global_info.is_present else None,
            certificate=certificate,
        )
