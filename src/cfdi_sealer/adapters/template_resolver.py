"""
Canonical template resolver — flattens `xsl:include` directives into one stylesheet.

The SAT publishes the cadena original transform as a root stylesheet plus one
fragment per complement, wired together with `xsl:include`. Applying it must
not depend on the filesystem layout or on network access, so the tree is
rebuilt node by node with every include replaced, in document order, by the
children of the referenced file's root element.

The rebuild never mutates the parsed source: each element is re-created with
its full in-scope namespace map, because XPath expressions in attribute
values (`match="cartaporte31:CartaPorte"`) need prefixes that were declared
only on the fragment's root.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path

import structlog
from lxml import etree

from cfdi_sealer.errors import TemplateError

log = structlog.get_logger()

XSL_NS = "http://www.w3.org/1999/XSL/Transform"
INCLUDE_TAG = f"{{{XSL_NS}}}include"


@dataclass(frozen=True, slots=True)
class CanonicalTemplate:
    """
    A resolved, inclusion-free stylesheet.

    `included` lists the fragment files inlined, in the order they were
    expanded.
    """

    source: Path
    document: bytes = field(repr=False)
    included: tuple[Path, ...] = ()

    def has_inclusions(self) -> bool:
        return _find_include(self.document)

    def to_xslt(self) -> etree.XSLT:
        try:
            return etree.XSLT(etree.fromstring(self.document))
        except etree.XSLTParseError as e:
            raise TemplateError(f"Resolved template {self.source.name!r} is not a valid stylesheet: {e}") from e


def _find_include(document: bytes) -> bool:
    return next(etree.fromstring(document).iter(INCLUDE_TAG), None) is not None


def _parse(path: Path) -> etree._Element:
    try:
        return etree.parse(str(path)).getroot()
    except OSError as e:
        raise TemplateError(f"Template file not found: {path}") from e
    except etree.XMLSyntaxError as e:
        raise TemplateError(f"Template file {path.name!r} is not well-formed XML: {e}") from e


class _Flattener:
    """Rebuilds one template tree; tracks the include stack for cycle detection."""

    def __init__(self) -> None:
        self._stack: list[Path] = []
        self.included: list[Path] = []

    def flatten_file(self, path: Path) -> etree._Element:
        path = path.resolve()
        self._stack.append(path)
        source = _parse(path)
        target = etree.Element(source.tag, attrib=dict(source.attrib), nsmap=source.nsmap)
        target.text = source.text
        self._copy_children(source, target, path.parent)
        self._stack.pop()
        return target

    def _copy_children(self, source: etree._Element, target: etree._Element, base_dir: Path) -> None:
        for child in source:
            if not isinstance(child.tag, str):
                # comments and processing instructions
                target.append(copy.deepcopy(child))
            elif child.tag == INCLUDE_TAG:
                self._inline(child, target, base_dir)
            else:
                node = etree.SubElement(target, child.tag, attrib=dict(child.attrib), nsmap=child.nsmap)
                node.text = child.text
                node.tail = child.tail
                self._copy_children(child, node, base_dir)

    def _inline(self, directive: etree._Element, target: etree._Element, base_dir: Path) -> None:
        href = directive.get("href")
        if not href:
            raise TemplateError("xsl:include directive without href")

        include_path = (base_dir / href).resolve()
        if include_path in self._stack:
            chain = " -> ".join(p.name for p in [*self._stack, include_path])
            raise TemplateError(f"Cyclic template inclusion: {chain}")

        self._stack.append(include_path)
        self.included.append(include_path)
        included_root = _parse(include_path)
        inlined_from = len(target)
        self._copy_children(included_root, target, include_path.parent)
        self._stack.pop()

        # the directive's trailing whitespace replaces the fragment's closing indentation
        if len(target) > inlined_from:
            target[-1].tail = directive.tail
        log.debug("template.include_inlined", href=href)


def resolve(root_template_path: str | Path) -> CanonicalTemplate:
    """
    Flatten a root template and all of its (nested) includes.

    Raises TemplateError for missing or malformed files, directives without
    href, and inclusion cycles.
    """
    path = Path(root_template_path)
    flattener = _Flattener()
    root = flattener.flatten_file(path)
    document = etree.tostring(root, encoding="UTF-8")
    log.info("template.resolved", template=path.name, includes=len(flattener.included))
    return CanonicalTemplate(source=path, document=document, included=tuple(flattener.included))
