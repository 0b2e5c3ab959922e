"""
Sealing engine — cadena original, signature and Sello embedding.

The seal moves through four states, each produced by a pure function:

  UNSEALED
    → compute_canonical_string()   resolved template applied with lxml XSLT
  CANONICAL_STRING_COMPUTED
    → sign()                       SHA-256 + RSA PKCS#1 v1.5, base64
  SIGNED
    → embed()                      Sello attribute on cfdi:Comprobante
  EMBEDDED

Only the cadena original is signed, never the XML itself. Its bytes must be
identical to what the SAT derives with the same template, so the template is
the sole authority on field order and optional-field inclusion.

SealingEngine.seal() runs the whole chain. It checks credentials before any
template work and writes NoCertificado and Certificado from the loaded
certificate, so a document rendered before the certificate was loaded still
yields a complete cadena original. Any failure aborts without exposing a
partial seal.
"""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

import structlog
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from lxml import etree

from cfdi_sealer.adapters.credential_loader import parse_certificate
from cfdi_sealer.adapters.template_resolver import CanonicalTemplate, resolve
from cfdi_sealer.domain.models import CertificateMaterial, Credential
from cfdi_sealer.errors import SigningError, TemplateError
from cfdi_sealer.serializer import cfdi, parse_xml, to_xml

log = structlog.get_logger()

SEAL_ATTR = "Sello"
CERTIFICATE_NUMBER_ATTR = "NoCertificado"
CERTIFICATE_ATTR = "Certificado"


class SealState(Enum):
    UNSEALED = "UNSEALED"
    CANONICAL_STRING_COMPUTED = "CANONICAL_STRING_COMPUTED"
    SIGNED = "SIGNED"
    EMBEDDED = "EMBEDDED"


@dataclass(frozen=True, slots=True)
class SealProgress:
    """Immutable snapshot of a document on its way to being sealed."""

    document: str = field(repr=False)
    state: SealState = SealState.UNSEALED
    canonical_string: str | None = None
    signature: str | None = None


def _require(progress: SealProgress, expected: SealState) -> None:
    if progress.state is not expected:
        raise SigningError(
            f"Cannot leave state {progress.state.value}: expected {expected.value}"
        )


def apply_template(document: str, template: CanonicalTemplate) -> str:
    """Run the resolved transform over the document and return the cadena original."""
    transform = template.to_xslt()
    try:
        result = transform(parse_xml(document))
    except etree.XSLTApplyError as e:
        raise TemplateError(f"Transform {template.source.name!r} failed: {e}") from e
    return str(result)


def compute_canonical_string(progress: SealProgress, template: CanonicalTemplate) -> SealProgress:
    _require(progress, SealState.UNSEALED)
    canonical = apply_template(progress.document, template)
    log.debug("sealing.canonical_string_computed", length=len(canonical))
    return replace(progress, state=SealState.CANONICAL_STRING_COMPUTED, canonical_string=canonical)


def sign_canonical_string(canonical_string: str, private_key_pem: str) -> str:
    """SHA-256 / PKCS#1 v1.5 signature over the UTF-8 bytes, base64 encoded."""
    key = serialization.load_pem_private_key(private_key_pem.encode("ascii"), password=None)
    if not isinstance(key, rsa.RSAPrivateKey):
        raise SigningError("Private key is not an RSA key")
    signature = key.sign(canonical_string.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
    return base64.b64encode(signature).decode("ascii")


def sign(progress: SealProgress, private_key_pem: str) -> SealProgress:
    _require(progress, SealState.CANONICAL_STRING_COMPUTED)
    assert progress.canonical_string is not None
    signature = sign_canonical_string(progress.canonical_string, private_key_pem)
    log.debug("sealing.signed")
    return replace(progress, state=SealState.SIGNED, signature=signature)


def embed(progress: SealProgress) -> SealProgress:
    _require(progress, SealState.SIGNED)
    root = parse_xml(progress.document)
    if root.tag != cfdi("Comprobante"):
        raise SigningError(f"Root element is {root.tag!r}, not cfdi:Comprobante")
    root.set(SEAL_ATTR, progress.signature or "")
    return replace(progress, state=SealState.EMBEDDED, document=to_xml(root))


def bind_certificate(document: str, certificate: CertificateMaterial) -> str:
    """
    Return the document with NoCertificado and Certificado set from the certificate.

    Missing attributes are filled in. Raises SigningError when the document
    already names a different certificate.
    """
    root = parse_xml(document)
    if root.tag != cfdi("Comprobante"):
        raise SigningError(f"Root element is {root.tag!r}, not cfdi:Comprobante")
    for name, expected in (
        (CERTIFICATE_NUMBER_ATTR, certificate.serial_number),
        (CERTIFICATE_ATTR, certificate.body),
    ):
        current = root.get(name)
        if current and current != expected:
            raise SigningError(f"Document {name} does not match the loaded certificate")
        root.set(name, expected)
    return to_xml(root)


def verify(document: str, certificate_pem: str, template: CanonicalTemplate) -> bool:
    """
    Check a sealed document's Sello against the certificate's public key.

    The cadena original is recomputed from the document itself, so any change
    to a selected field after sealing makes verification fail. A document
    whose NoCertificado is not this certificate's serial fails as well.
    """
    root = parse_xml(document)
    seal = root.get(SEAL_ATTR)
    if not seal:
        return False

    certificate = x509.load_pem_x509_certificate(certificate_pem.encode("ascii"))
    serial_number = parse_certificate(certificate.public_bytes(serialization.Encoding.DER)).serial_number
    if root.get(CERTIFICATE_NUMBER_ATTR) != serial_number:
        return False

    # Sello itself is not part of the cadena original
    canonical = apply_template(document, template)

    public_key = certificate.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        return False
    try:
        public_key.verify(
            base64.b64decode(seal),
            canonical.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
    except (InvalidSignature, ValueError):
        return False
    return True


class SealingEngine:
    """
    Seal CFDI documents with a root template resolved per call.

    No resolved template is cached between calls.
    """

    def __init__(self, root_template: Path) -> None:
        self._root_template = root_template

    def resolve_template(self) -> CanonicalTemplate:
        return resolve(self._root_template)

    async def seal(self, document: str, credential: Credential) -> str:
        """
        Seal an unsealed document and return the sealed XML text.

        Raises SigningError before any template work when the private key or
        certificate is missing, or when the document names another certificate.
        """
        if not credential.private_key_pem:
            raise SigningError("private key not provided")
        if credential.certificate is None:
            raise SigningError("certificate not provided")

        document = bind_certificate(document, credential.certificate)
        template = await asyncio.to_thread(self.resolve_template)
        progress = await asyncio.to_thread(compute_canonical_string, SealProgress(document=document), template)
        progress = sign(progress, credential.private_key_pem)
        progress = embed(progress)
        log.info(
            "sealing.embedded",
            certificate=credential.certificate.serial_number,
            canonical_length=len(progress.canonical_string or ""),
        )
        return progress.document
