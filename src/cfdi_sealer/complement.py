"""
Carta Porte 3.1 complement — shipment tracking data attached to an unsealed CFDI.

Layout appended under cfdi:Comprobante/cfdi:Complemento:

  cartaporte31:CartaPorte  Version="3.1" IdCCP="CCC…" [conditional attributes]
  ├── cartaporte31:RegimenesAduaneros       (international transport only)
  │   └── cartaporte31:RegimenAduaneroCCP*
  └── cartaporte31:Ubicaciones
      ├── cartaporte31:Ubicacion TipoUbicacion="Origen"
      │   └── cartaporte31:Domicilio
      └── cartaporte31:Ubicacion TipoUbicacion="Destino"
          └── cartaporte31:Domicilio

A document that already carries a tfd:TimbreFiscalDigital is immutable here.
That and a missing document are business outcomes returned as Result failures;
the input text is never modified.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Iterable
from dataclasses import fields
from decimal import InvalidOperation

import structlog
from lxml import etree

from cfdi_sealer.domain.models import (
    DestinationLocation,
    Location,
    ShipmentAttributes,
)
from cfdi_sealer.failure import ErrorCode
from cfdi_sealer.result import Result
from cfdi_sealer.sealing import SEAL_ATTR
from cfdi_sealer.serializer import (
    SCHEMA_LOCATION_ATTR,
    cfdi,
    format_quantity,
    parse_xml,
    set_optional,
    to_decimal,
    to_xml,
)

log = structlog.get_logger()

CARTA_PORTE_NS = "http://www.sat.gob.mx/CartaPorte31"
CARTA_PORTE_SCHEMA_LOCATION = (
    "http://www.sat.gob.mx/CartaPorte31 "
    "http://www.sat.gob.mx/sitio_internet/cfd/CartaPorte/CartaPorte31.xsd"
)
CARTA_PORTE_VERSION = "3.1"
TFD_NS = "http://www.sat.gob.mx/TimbreFiscalDigital"
STAMP_TAG = f"{{{TFD_NS}}}TimbreFiscalDigital"

ID_PREFIX = "CCC"

# snake_case field → SAT attribute, in emission order
LOCATION_ATTRIBUTES: dict[str, str] = {
    "id_ubicacion": "IDUbicacion",
    "rfc_remitente_destinatario": "RFCRemitenteDestinatario",
    "nombre_remitente_destinatario": "NombreRemitenteDestinatario",
    "fecha_hora_salida_llegada": "FechaHoraSalidaLlegada",
    "num_reg_id_trib": "NumRegIdTrib",
    "residencia_fiscal": "ResidenciaFiscal",
    "distancia_recorrida": "DistanciaRecorrida",
    "calle": "Calle",
    "numero_exterior": "NumeroExterior",
    "numero_interior": "NumeroInterior",
    "colonia": "Colonia",
    "localidad": "Localidad",
    "referencia": "Referencia",
    "municipio": "Municipio",
    "estado": "Estado",
    "pais": "Pais",
    "codigo_postal": "CodigoPostal",
}

ADDRESS_FIELDS = frozenset({
    "calle",
    "numero_exterior",
    "numero_interior",
    "colonia",
    "localidad",
    "referencia",
    "municipio",
    "estado",
    "pais",
    "codigo_postal",
})


def cartaporte(tag: str) -> str:
    return f"{{{CARTA_PORTE_NS}}}{tag}"


def generate_id_ccp() -> str:
    """36-character IdCCP: the fixed prefix replaces the first three characters of a UUID4."""
    return f"{ID_PREFIX}{str(uuid.uuid4())[3:]}"


def _yes_no(flag: bool) -> str:
    return "Sí" if flag else "No"


def is_stamped(root: etree._Element) -> bool:
    return next(root.iter(STAMP_TAG), None) is not None


def _invalid_distances(attributes: ShipmentAttributes, destination: DestinationLocation) -> list[str]:
    """SAT names of distance attributes that are present but not a finite number."""
    invalid: list[str] = []
    for name, value in (
        ("TotalDistRec", attributes.total_dist_rec),
        ("DistanciaRecorrida", destination.distancia_recorrida),
    ):
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        try:
            finite = to_decimal(value).is_finite()
        except InvalidOperation:
            finite = False
        if not finite:
            invalid.append(name)
    return invalid


# ─────────────────────── Subtree construction ───────────────────────


def _set_shipment_attributes(node: etree._Element, attributes: ShipmentAttributes) -> None:
    set_optional(node, "EntradaSalidaMerc", attributes.entrada_salida_merc)
    if attributes.transp_internac is not None:
        node.set("TranspInternac", _yes_no(attributes.transp_internac))
    set_optional(node, "PaisOrigenDestino", attributes.pais_origen_destino)
    set_optional(node, "ViaEntradaSalida", attributes.via_entrada_salida)
    set_optional(node, "TotalDistRec", attributes.total_dist_rec, format_quantity)
    if attributes.registro_istmo is not None:
        node.set("RegistroISTMO", _yes_no(attributes.registro_istmo))
        if attributes.registro_istmo:
            set_optional(node, "UbicacionPoloOrigen", attributes.ubicacion_polo_origen)
            set_optional(node, "UbicacionPoloDestino", attributes.ubicacion_polo_destino)


def _append_customs_regimes(node: etree._Element, customs_regimes: Iterable[str]) -> None:
    regimes = etree.SubElement(node, cartaporte("RegimenesAduaneros"))
    for code in customs_regimes:
        if code and code.strip():
            etree.SubElement(regimes, cartaporte("RegimenAduaneroCCP")).set("RegimenAduanero", code)


def _append_location(parent: etree._Element, kind: str, location: Location) -> None:
    """Split a location into Ubicacion (identity, timing) and Domicilio (address) attributes."""
    ubicacion = etree.SubElement(parent, cartaporte("Ubicacion"))
    ubicacion.set("TipoUbicacion", kind)
    domicilio = etree.SubElement(ubicacion, cartaporte("Domicilio"))

    values = {f.name: getattr(location, f.name) for f in fields(location)}
    for field_name, attr_name in LOCATION_ATTRIBUTES.items():
        if field_name not in values:
            continue
        formatter = format_quantity if field_name == "distancia_recorrida" else str
        target = domicilio if field_name in ADDRESS_FIELDS else ubicacion
        set_optional(target, attr_name, values[field_name], formatter)


def build_carta_porte(
    attributes: ShipmentAttributes,
    origin: Location,
    destination: DestinationLocation,
    customs_regimes: Iterable[str] = (),
) -> etree._Element:
    """Build a detached cartaporte31:CartaPorte element."""
    node = etree.Element(cartaporte("CartaPorte"), nsmap={"cartaporte31": CARTA_PORTE_NS})
    node.set("Version", CARTA_PORTE_VERSION)
    node.set("IdCCP", generate_id_ccp())
    _set_shipment_attributes(node, attributes)
    if attributes.transp_internac:
        _append_customs_regimes(node, customs_regimes)

    ubicaciones = etree.SubElement(node, cartaporte("Ubicaciones"))
    _append_location(ubicaciones, "Origen", origin)
    _append_location(ubicaciones, "Destino", destination)
    return node


def _add_schema_location(root: etree._Element) -> None:
    current = root.get(SCHEMA_LOCATION_ATTR, "").strip()
    if CARTA_PORTE_SCHEMA_LOCATION not in current:
        root.set(SCHEMA_LOCATION_ATTR, f"{current} {CARTA_PORTE_SCHEMA_LOCATION}".strip())


# ─────────────────────── Public API ───────────────────────


def attach(
    document: str | None,
    attributes: ShipmentAttributes,
    origin: Location,
    destination: DestinationLocation,
    customs_regimes: Iterable[str] = (),
) -> Result[str]:
    """
    Attach a Carta Porte complement and return the new XML text.

    Failures (no exception raised, input untouched):
      - VALIDATION_ERROR: no document, unparsable XML, root is not
        cfdi:Comprobante, or a distance that is not a number
      - BUSINESS_RULE_ERROR: the document has already been stamped
    """
    if not document or not document.strip():
        return Result.failure(ErrorCode.VALIDATION_ERROR, "No document provided")

    try:
        source = parse_xml(document)
    except etree.XMLSyntaxError as e:
        return Result.failure(ErrorCode.VALIDATION_ERROR, "Document is not well-formed XML", e)

    if source.tag != cfdi("Comprobante"):
        return Result.failure(ErrorCode.VALIDATION_ERROR, "Document root is not cfdi:Comprobante")
    if is_stamped(source):
        log.warning("complement.rejected_stamped")
        return Result.failure(ErrorCode.BUSINESS_RULE_ERROR, "Document has already been stamped")
    if source.get(SEAL_ATTR):
        log.warning("complement.sealed_document", detail="existing Sello no longer matches; reseal the document")

    invalid = _invalid_distances(attributes, destination)
    if invalid:
        log.warning("complement.invalid_distance", attributes=invalid)
        return Result.failure(ErrorCode.VALIDATION_ERROR, f"Not a number: {', '.join(invalid)}")

    root = copy.deepcopy(source)
    complemento = root.find(cfdi("Complemento"))
    if complemento is None:
        complemento = etree.SubElement(root, cfdi("Complemento"))
        # cfdv40 places Addenda last
        addenda = root.find(cfdi("Addenda"))
        if addenda is not None:
            addenda.addprevious(complemento)

    carta_porte = build_carta_porte(attributes, origin, destination, customs_regimes)
    complemento.append(carta_porte)
    _add_schema_location(root)

    log.info("complement.attached", id_ccp=carta_porte.get("IdCCP"))
    return Result.success(to_xml(root))


class ShipmentComplementBuilder:
    """
    Setter-style front end over `attach()` for one document.

        builder = ShipmentComplementBuilder(xml)
        builder.set_origin(origin)
        builder.set_destination(destination)
        result = builder.attach(ShipmentAttributes(transp_internac=False))
    """

    def __init__(self, document: str | None) -> None:
        self._document = document
        self._customs_regimes: tuple[str, ...] = ()
        self._origin: Location | None = None
        self._destination: DestinationLocation | None = None

    def set_customs_regimes(self, regimes: Iterable[str]) -> None:
        self._customs_regimes = tuple(regimes)

    def set_origin(self, origin: Location) -> None:
        self._origin = origin

    def set_destination(self, destination: DestinationLocation) -> None:
        self._destination = destination

    def attach(self, attributes: ShipmentAttributes) -> Result[str]:
        if self._origin is None or self._destination is None:
            return Result.failure(ErrorCode.VALIDATION_ERROR, "Origin and destination locations are required")
        return attach(
            self._document,
            attributes,
            self._origin,
            self._destination,
            self._customs_regimes,
        )
