"""
Domain models — immutable data structures for CFDI 4.0 documents.

These are pure value objects. Field names follow the SAT attribute names in
snake_case (`clave_prod_serv` → `ClaveProdServ`); the serializer owns the
mapping. Optional attributes default to None and are omitted from the XML.

All models are frozen dataclasses, so a built InvoiceTree is a snapshot that
later setter calls on the builder cannot alter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TypeAlias

Amount: TypeAlias = Decimal | int | float | str


@dataclass(frozen=True, slots=True)
class CertificateMaterial:
    """
    Parsed issuer certificate (CSD).

    `serial_number` is the SAT "NoCertificado": the raw serial octets read
    as ASCII, e.g. "30001000000500003416".
    """

    serial_number: str
    pem: str = field(repr=False)

    @property
    def body(self) -> str:
        """PEM body without armour lines or line breaks — the `Certificado` attribute."""
        return "".join(
            line
            for line in self.pem.splitlines()
            if line and not line.startswith("-----")
        )


@dataclass(frozen=True, slots=True)
class Credential:
    """
    Signing material for one sealing session.

    A seal may only be produced when both the certificate and the private key
    are populated.
    """

    certificate: CertificateMaterial | None = None
    private_key_pem: str | None = field(default=None, repr=False)

    @property
    def can_sign(self) -> bool:
        return self.certificate is not None and bool(self.private_key_pem)


@dataclass(frozen=True, slots=True)
class Issuer:
    """cfdi:Emisor."""

    rfc: str
    nombre: str
    regimen_fiscal: str


@dataclass(frozen=True, slots=True)
class Recipient:
    """cfdi:Receptor."""

    rfc: str
    nombre: str
    regimen_fiscal_receptor: str
    domicilio_fiscal_receptor: str
    uso_cfdi: str


@dataclass(frozen=True, slots=True)
class TaxDescriptor:
    """
    Transferred tax of a line item (cfdi:Traslado).

    `tasa_o_cuota` is ignored for the "Exento" factor.
    """

    impuesto: str
    tipo_factor: str
    tasa_o_cuota: Amount | None = None


@dataclass(frozen=True, slots=True)
class LineItem:
    """cfdi:Concepto."""

    clave_prod_serv: str
    cantidad: Amount
    clave_unidad: str
    descripcion: str
    valor_unitario: Amount
    importe: Amount
    objeto_imp: str = "02"
    unidad: str | None = None
    descuento: Amount | None = None
    impuesto: TaxDescriptor | None = None
    no_identificacion: str | None = None


@dataclass(frozen=True, slots=True)
class GlobalInvoiceInfo:
    """
    cfdi:InformacionGlobal — only for global invoices to the general public.

    Present in the document only when `periodicidad` is non-empty.
    """

    periodicidad: str = ""
    meses: str = ""
    anio: str = ""

    @property
    def is_present(self) -> bool:
        return str(self.periodicidad).strip() != ""


@dataclass(frozen=True, slots=True)
class InvoiceAttributes:
    """Per-document attributes of cfdi:Comprobante supplied by the caller."""

    fecha: str
    lugar_expedicion: str
    subtotal: Amount
    total: Amount
    moneda: str = "MXN"
    tipo_de_comprobante: str = "I"
    exportacion: str = "01"
    version: str = "4.0"
    serie: str | None = None
    folio: str | None = None
    forma_pago: str | None = None
    metodo_pago: str | None = None
    condiciones_de_pago: str | None = None
    descuento: Amount | None = None
    tipo_cambio: Amount | None = None
    confirmacion: str | None = None


@dataclass(frozen=True, slots=True)
class InvoiceTree:
    """
    The merged, immutable document produced by InvoiceBuilder.build().

    `certificate` is None for documents built before a certificate was loaded.
    """

    attributes: InvoiceAttributes
    issuer: Issuer
    recipient: Recipient
    line_items: tuple[LineItem, ...]
    global_info: GlobalInvoiceInfo | None = None
    certificate: CertificateMaterial | None = None


# ─────────────────────── Carta Porte 3.1 ───────────────────────


@dataclass(frozen=True, slots=True)
class Location:
    """
    cartaporte31:Ubicacion of type Origen.

    Address fields (calle … codigo_postal) are written to the nested Domicilio
    element; the rest stay on Ubicacion.
    """

    id_ubicacion: str
    rfc_remitente_destinatario: str
    fecha_hora_salida_llegada: str
    estado: str
    pais: str
    codigo_postal: str
    nombre_remitente_destinatario: str | None = None
    num_reg_id_trib: str | None = None
    residencia_fiscal: str | None = None
    calle: str | None = None
    numero_exterior: str | None = None
    numero_interior: str | None = None
    colonia: str | None = None
    localidad: str | None = None
    referencia: str | None = None
    municipio: str | None = None


@dataclass(frozen=True, slots=True)
class DestinationLocation(Location):
    """cartaporte31:Ubicacion of type Destino, which also carries the distance traveled."""

    distancia_recorrida: Amount | None = None


@dataclass(frozen=True, slots=True)
class ShipmentAttributes:
    """
    Top-level attributes of cartaporte31:CartaPorte.

    The two flags are tri-state: None omits the attribute, True/False render
    as "Sí"/"No".
    """

    transp_internac: bool | None = None
    entrada_salida_merc: str | None = None
    pais_origen_destino: str | None = None
    via_entrada_salida: str | None = None
    total_dist_rec: Amount | None = None
    registro_istmo: bool | None = None
    ubicacion_polo_origen: str | None = None
    ubicacion_polo_destino: str | None = None


# ─────────────────────── Request envelopes ───────────────────────


@dataclass(frozen=True, slots=True)
class ShipmentRequest:
    """Everything needed to attach a Carta Porte complement."""

    attributes: ShipmentAttributes
    origin: Location
    destination: DestinationLocation
    customs_regimes: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class InvoiceRequest:
    """
    A complete invoice request as read from JSON by the command line.

    Validated with pydantic.TypeAdapter before any document work starts.
    """

    issuer: Issuer
    recipient: Recipient
    line_items: tuple[LineItem, ...]
    attributes: InvoiceAttributes
    global_info: GlobalInvoiceInfo | None = None
    shipment: ShipmentRequest | None = None
