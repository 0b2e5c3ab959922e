"""
Serializer — renders an InvoiceTree as CFDI 4.0 XML.

Element layout (cfdv40.xsd):

  cfdi:Comprobante
  ├── cfdi:InformacionGlobal      (global invoices only)
  ├── cfdi:Emisor
  ├── cfdi:Receptor
  ├── cfdi:Conceptos
  │   └── cfdi:Concepto*
  │       └── cfdi:Impuestos/cfdi:Traslados/cfdi:Traslado
  └── cfdi:Impuestos              (only when some concept transfers a tax)
      └── cfdi:Traslados/cfdi:Traslado*   (aggregated per tax, factor, rate)

Optional attributes whose value is None or blank are omitted entirely. The
output carries no Sello; sealing is a separate step.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable

from lxml import etree

from cfdi_sealer.domain.models import Amount, InvoiceTree, LineItem

CFDI_NS = "http://www.sat.gob.mx/cfd/4"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
CFDI_SCHEMA_LOCATION = "http://www.sat.gob.mx/cfd/4 http://www.sat.gob.mx/sitio_internet/cfd/4/cfdv40.xsd"
SCHEMA_LOCATION_ATTR = f"{{{XSI_NS}}}schemaLocation"

EXEMPT = "Exento"
TAXABLE = "02"

_TWO_PLACES = Decimal("0.01")
_SIX_PLACES = Decimal("0.000001")


def cfdi(tag: str) -> str:
    """Clark-notation name in the CFDI 4.0 namespace."""
    return f"{{{CFDI_NS}}}{tag}"


# ─────────────────────── Number formatting ───────────────────────


def to_decimal(value: Amount) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value).strip())


def format_money(value: Amount) -> str:
    """Two decimal places, half-up: 100 → "100.00"."""
    return str(to_decimal(value).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def format_rate(value: Amount) -> str:
    """Six decimal places: 0.16 → "0.160000"."""
    return str(to_decimal(value).quantize(_SIX_PLACES, rounding=ROUND_HALF_UP))


def format_quantity(value: Amount) -> str:
    """Up to six decimal places without trailing zeros: 1 → "1", 2.50 → "2.5"."""
    amount = to_decimal(value).quantize(_SIX_PLACES, rounding=ROUND_HALF_UP).normalize()
    return format(amount, "f")


def format_unit_value(value: Amount) -> str:
    """At least two and at most six decimal places: 100 → "100.00", 0.123456 → "0.123456"."""
    amount = to_decimal(value).quantize(_SIX_PLACES, rounding=ROUND_HALF_UP).normalize()
    if amount.as_tuple().exponent > -2:
        amount = amount.quantize(_TWO_PLACES)
    return format(amount, "f")


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def set_optional(
    element: etree._Element,
    name: str,
    value: object,
    formatter: Callable[[object], str] = str,
) -> None:
    """Set `name` only when `value` is present; blank strings count as absent."""
    if _is_blank(value):
        return
    element.set(name, formatter(value))


# ─────────────────────── Taxes ───────────────────────


@dataclass(frozen=True, slots=True)
class Transfer:
    """A transferred tax (cfdi:Traslado) with amounts already rounded."""

    base: Decimal
    impuesto: str
    tipo_factor: str
    tasa_o_cuota: Decimal | None = None
    importe: Decimal | None = None

    @property
    def key(self) -> tuple[str, str, Decimal | None]:
        return (self.impuesto, self.tipo_factor, self.tasa_o_cuota)


def line_item_transfer(item: LineItem) -> Transfer | None:
    """
    Derive the transferred tax of a concept, or None when it carries none.

    Base = Importe - Descuento; Importe = Base × TasaOCuota. Exempt transfers
    have neither rate nor amount.
    """
    tax = item.impuesto
    if item.objeto_imp != TAXABLE or tax is None or _is_blank(tax.impuesto):
        return None

    base = to_decimal(item.importe) - to_decimal(item.descuento or 0)
    base = base.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    if tax.tipo_factor == EXEMPT:
        return Transfer(base=base, impuesto=tax.impuesto, tipo_factor=EXEMPT)

    rate = to_decimal(tax.tasa_o_cuota or 0).quantize(_SIX_PLACES, rounding=ROUND_HALF_UP)
    importe = (base * rate).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    return Transfer(base=base, impuesto=tax.impuesto, tipo_factor=tax.tipo_factor, tasa_o_cuota=rate, importe=importe)


def aggregate_transfers(transfers: list[Transfer]) -> list[Transfer]:
    """Sum bases and amounts per (tax, factor, rate), keeping first-seen order."""
    totals: dict[tuple[str, str, Decimal | None], Transfer] = {}
    for transfer in transfers:
        current = totals.get(transfer.key)
        if current is None:
            totals[transfer.key] = transfer
            continue
        importe = None
        if current.importe is not None and transfer.importe is not None:
            importe = current.importe + transfer.importe
        totals[transfer.key] = Transfer(
            base=current.base + transfer.base,
            impuesto=current.impuesto,
            tipo_factor=current.tipo_factor,
            tasa_o_cuota=current.tasa_o_cuota,
            importe=importe,
        )
    return list(totals.values())


def _append_transfer(parent: etree._Element, transfer: Transfer) -> None:
    node = etree.SubElement(parent, cfdi("Traslado"))
    node.set("Base", format_money(transfer.base))
    node.set("Impuesto", transfer.impuesto)
    node.set("TipoFactor", transfer.tipo_factor)
    set_optional(node, "TasaOCuota", transfer.tasa_o_cuota, format_rate)
    set_optional(node, "Importe", transfer.importe, format_money)


# ─────────────────────── Document ───────────────────────


def _render_comprobante(tree: InvoiceTree) -> etree._Element:
    attrs = tree.attributes
    root = etree.Element(cfdi("Comprobante"), nsmap={"cfdi": CFDI_NS, "xsi": XSI_NS})
    root.set(SCHEMA_LOCATION_ATTR, CFDI_SCHEMA_LOCATION)
    root.set("Version", attrs.version)
    set_optional(root, "Serie", attrs.serie)
    set_optional(root, "Folio", attrs.folio)
    root.set("Fecha", attrs.fecha)
    set_optional(root, "FormaPago", attrs.forma_pago)
    if tree.certificate is not None:
        set_optional(root, "NoCertificado", tree.certificate.serial_number)
        set_optional(root, "Certificado", tree.certificate.body)
    set_optional(root, "CondicionesDePago", attrs.condiciones_de_pago)
    root.set("SubTotal", format_money(attrs.subtotal))
    set_optional(root, "Descuento", attrs.descuento, format_money)
    root.set("Moneda", attrs.moneda)
    set_optional(root, "TipoCambio", attrs.tipo_cambio, format_quantity)
    root.set("Total", format_money(attrs.total))
    root.set("TipoDeComprobante", attrs.tipo_de_comprobante)
    root.set("Exportacion", attrs.exportacion)
    set_optional(root, "MetodoPago", attrs.metodo_pago)
    root.set("LugarExpedicion", str(attrs.lugar_expedicion))
    set_optional(root, "Confirmacion", attrs.confirmacion)
    return root


def _render_concepto(parent: etree._Element, item: LineItem) -> Transfer | None:
    node = etree.SubElement(parent, cfdi("Concepto"))
    node.set("ClaveProdServ", item.clave_prod_serv)
    set_optional(node, "NoIdentificacion", item.no_identificacion)
    node.set("Cantidad", format_quantity(item.cantidad))
    node.set("ClaveUnidad", item.clave_unidad)
    set_optional(node, "Unidad", item.unidad)
    node.set("Descripcion", item.descripcion)
    node.set("ValorUnitario", format_unit_value(item.valor_unitario))
    node.set("Importe", format_money(item.importe))
    set_optional(node, "Descuento", item.descuento, format_money)
    node.set("ObjetoImp", item.objeto_imp)

    transfer = line_item_transfer(item)
    if transfer is not None:
        impuestos = etree.SubElement(node, cfdi("Impuestos"))
        _append_transfer(etree.SubElement(impuestos, cfdi("Traslados")), transfer)
    return transfer


def render_element(tree: InvoiceTree) -> etree._Element:
    """Build the cfdi:Comprobante element tree."""
    root = _render_comprobante(tree)

    if tree.global_info is not None and tree.global_info.is_present:
        info = etree.SubElement(root, cfdi("InformacionGlobal"))
        info.set("Periodicidad", tree.global_info.periodicidad)
        info.set("Meses", tree.global_info.meses)
        info.set("Año", tree.global_info.anio)

    emisor = etree.SubElement(root, cfdi("Emisor"))
    emisor.set("Rfc", tree.issuer.rfc)
    emisor.set("Nombre", tree.issuer.nombre)
    emisor.set("RegimenFiscal", tree.issuer.regimen_fiscal)

    receptor = etree.SubElement(root, cfdi("Receptor"))
    receptor.set("Rfc", tree.recipient.rfc)
    receptor.set("Nombre", tree.recipient.nombre)
    receptor.set("DomicilioFiscalReceptor", tree.recipient.domicilio_fiscal_receptor)
    receptor.set("RegimenFiscalReceptor", tree.recipient.regimen_fiscal_receptor)
    receptor.set("UsoCFDI", tree.recipient.uso_cfdi)

    conceptos = etree.SubElement(root, cfdi("Conceptos"))
    transfers = [
        transfer
        for transfer in (_render_concepto(conceptos, item) for item in tree.line_items)
        if transfer is not None
    ]

    if transfers:
        aggregated = aggregate_transfers(transfers)
        impuestos = etree.SubElement(root, cfdi("Impuestos"))
        charged = [t.importe for t in aggregated if t.importe is not None]
        if charged:
            impuestos.set("TotalImpuestosTrasladados", format_money(sum(charged, Decimal("0"))))
        traslados = etree.SubElement(impuestos, cfdi("Traslados"))
        for transfer in aggregated:
            _append_transfer(traslados, transfer)

    return root


def to_xml(root: etree._Element) -> str:
    """Serialize with an XML declaration; the result is UTF-8 text."""
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8").decode("utf-8")


def parse_xml(document: str) -> etree._Element:
    """Parse XML text produced by `to_xml` (the declaration names an encoding, so parse bytes)."""
    return etree.fromstring(document.encode("utf-8"))


def render(tree: InvoiceTree) -> str:
    """Render the unsealed CFDI document as XML text."""
    return to_xml(render_element(tree))
