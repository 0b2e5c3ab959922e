"""
Credential loader adapter — CSD certificate (.cer) and private key (.key) ingestion.

Uses:
  - asn1crypto: raw access to the certificate's serialNumber content octets
  - cryptography (PyCA): PEM re-encoding and PKCS#8 decryption

Pipeline:
  .cer bytes
    → asn1crypto: Certificate.load() → tbs_certificate.serial_number.contents
    → each octet read as an ASCII character → NoCertificado
    → cryptography: load_der_x509_certificate() → PEM
  .key bytes + passphrase
    → cryptography: load_der_private_key() → RSA key → PKCS#8 PEM (unencrypted)

SAT serial numbers are ASCII digit strings stored as the integer's bytes, so
the hex text "3330303031..." means "30001...". Rendering it as hex (what most
tools display) produces a NoCertificado the SAT rejects.

Error messages never include the passphrase or key bytes, and the underlying
exception is not chained for key failures.
"""

from __future__ import annotations

from pathlib import Path

import structlog
from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from cfdi_sealer.domain.models import CertificateMaterial
from cfdi_sealer.domain.ports import CredentialPrecheck
from cfdi_sealer.errors import CredentialError

log = structlog.get_logger()


def decode_serial_number(serial_octets: bytes) -> str:
    """Read every serial-number octet as the ASCII character with that code point."""
    return "".join(chr(octet) for octet in serial_octets)


def _read_bytes(path: Path, kind: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise CredentialError(f"Cannot read {kind} file {path.name!r}: {e.strerror}") from e


def parse_certificate(der_bytes: bytes) -> CertificateMaterial:
    """
    Decode a DER certificate into its SAT serial identifier and PEM encoding.

    Raises CredentialError if the bytes are not a valid X.509 structure.
    """
    try:
        asn1_cert = asn1_x509.Certificate.load(der_bytes, strict=True)
        serial_octets = asn1_cert["tbs_certificate"]["serial_number"].contents
        cert = x509.load_der_x509_certificate(der_bytes)
    except (ValueError, TypeError) as e:
        raise CredentialError("File is not a valid DER-encoded X.509 certificate") from e

    pem = cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
    return CertificateMaterial(serial_number=decode_serial_number(serial_octets), pem=pem)


def decrypt_private_key(der_bytes: bytes, passphrase: str) -> str:
    """
    Decrypt a DER PKCS#8 private key and return it as unencrypted PKCS#8 PEM.

    Raises CredentialError on a wrong passphrase, a malformed container or a
    non-RSA key.
    """
    try:
        key = serialization.load_der_private_key(der_bytes, password=passphrase.encode("utf-8"))
    except (ValueError, TypeError):
        raise CredentialError(
            "Unable to decrypt private key: wrong passphrase or malformed PKCS#8 container"
        ) from None
    except UnsupportedAlgorithm:
        raise CredentialError("Unable to decrypt private key: unsupported key container") from None

    if not isinstance(key, rsa.RSAPrivateKey):
        raise CredentialError("Private key is not an RSA key")

    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


class CredentialLoader:
    """
    Load CSD files from disk.

    An optional CredentialPrecheck runs before each file is decoded.
    """

    def __init__(self, precheck: CredentialPrecheck | None = None) -> None:
        self._precheck = precheck

    def load_certificate(self, path: str | Path) -> CertificateMaterial:
        path = Path(path)
        if self._precheck is not None:
            self._precheck.check_certificate(path)
        material = parse_certificate(_read_bytes(path, "certificate"))
        log.info(
            "credentials.certificate_loaded",
            file=path.name,
            serial_number=material.serial_number,
        )
        return material

    def load_private_key(self, path: str | Path, passphrase: str) -> str:
        path = Path(path)
        if self._precheck is not None:
            self._precheck.check_private_key(path, passphrase)
        pem = decrypt_private_key(_read_bytes(path, "private key"), passphrase)
        log.info("credentials.private_key_loaded", file=path.name)
        return pem
