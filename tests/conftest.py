"""
Shared test fixtures for the cfdi-sealer test suite.

CSD credentials are generated once per session with cryptography instead of
shipping real SAT test certificates: an RSA-2048 key, a self-signed
certificate whose serial number is the ASCII text of a SAT NoCertificado, and
the key as a password-protected DER PKCS#8 container.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from cfdi_sealer.domain.models import (
    InvoiceAttributes,
    LineItem,
    TaxDescriptor,
)

RESOURCES_DIR = Path(__file__).parent.parent / "src" / "cfdi_sealer" / "resources"
XSLT_DIR = RESOURCES_DIR / "xslt"
ROOT_TEMPLATE = XSLT_DIR / "cadenaoriginal_4_0.xslt"
CATALOGS_DIR = RESOURCES_DIR / "catalogos"

SERIAL_NUMBER = "30001000000500003416"
KEY_PASSPHRASE = "12345678a"


@dataclass(frozen=True)
class CsdFiles:
    """Paths and raw material of one generated CSD."""

    certificate_path: Path
    private_key_path: Path
    passphrase: str
    private_key: rsa.RSAPrivateKey
    certificate: x509.Certificate


def resource_path(*parts: str) -> Path:
    """
    Resolve the absolute path to a bundled resource file.

    Raises FileNotFoundError if the resource does not exist.
    """
    path = RESOURCES_DIR.joinpath(*parts)
    if not path.exists():
        raise FileNotFoundError(f"Bundled resource not found: {path}")
    return path


def _self_signed_certificate(key: rsa.RSAPrivateKey, serial_number: str) -> x509.Certificate:
    name = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, "Test SA"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test SA"),
    ])
    now = datetime.datetime.now(datetime.UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(int.from_bytes(serial_number.encode("ascii"), "big"))
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=365))
        .sign(key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def csd(tmp_path_factory: pytest.TempPathFactory) -> CsdFiles:
    """Generate a CSD pair on disk: DER certificate and encrypted DER PKCS#8 key."""
    directory = tmp_path_factory.mktemp("csd")
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    certificate = _self_signed_certificate(key, SERIAL_NUMBER)

    certificate_path = directory / "CSD_Test.cer"
    certificate_path.write_bytes(certificate.public_bytes(serialization.Encoding.DER))

    private_key_path = directory / "CSD_Test.key"
    private_key_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(KEY_PASSPHRASE.encode("ascii")),
        )
    )
    return CsdFiles(
        certificate_path=certificate_path,
        private_key_path=private_key_path,
        passphrase=KEY_PASSPHRASE,
        private_key=key,
        certificate=certificate,
    )


@pytest.fixture()
def line_item() -> LineItem:
    """One taxable service at 100.00 with 16% VAT."""
    return LineItem(
        clave_prod_serv="01010101",
        cantidad=1,
        clave_unidad="H87",
        descripcion="Servicio",
        valor_unitario=Decimal("100"),
        importe=Decimal("100"),
        impuesto=TaxDescriptor(impuesto="002", tipo_factor="Tasa", tasa_o_cuota=Decimal("0.16")),
    )


@pytest.fixture()
def invoice_attributes() -> InvoiceAttributes:
    return InvoiceAttributes(
        fecha="2024-01-15T10:00:00",
        lugar_expedicion="06000",
        subtotal=Decimal("100"),
        total=Decimal("116"),
        serie="A",
        folio="1",
        forma_pago="01",
        metodo_pago="PUE",
    )
