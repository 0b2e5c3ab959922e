"""
cfdi_sealer — CFDI 4.0 electronic invoice assembly and sealing.

Builds the SAT invoice XML, derives its cadena original with the bundled SAT
XSLT templates, seals it with the issuer's CSD, and can decorate unsealed
documents with the Carta Porte 3.1 complement.

Expected business outcomes (stamped documents, unknown catalog keys) come back
as Result values; faults are raised as CfdiError subclasses.
"""

__version__ = "0.1.0"
