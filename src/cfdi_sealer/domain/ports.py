"""
Ports — Protocol-based interfaces for the collaborators this library does not own.

  Domain ← Ports (protocols) ← Adapters (implementations supplied by the caller)

Each port is a Protocol (structural typing) so adapters satisfy the contract
simply by implementing the methods — no inheritance.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CredentialPrecheck(Protocol):
    """
    Port: sniff certificate and key files before they are decoded.

    Implementations raise CredentialError for files that are obviously not a
    DER certificate or PKCS#8 key (wrong extension, PEM instead of DER, empty
    file). The loader still validates the ASN.1 structure afterwards.
    """

    def check_certificate(self, path: Path) -> None: ...

    def check_private_key(self, path: Path, passphrase: str) -> None: ...


@runtime_checkable
class InvoiceRenderer(Protocol):
    """
    Port: render a printable representation (PDF) of a finalized invoice.

    Receives the caller's parameters untouched and returns an opaque artifact.
    """

    async def render(self, params: dict[str, Any]) -> bytes: ...
