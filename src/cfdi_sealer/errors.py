"""
Raised errors — faults the caller must handle with try/except.

Expected business outcomes (stamped document, unknown catalog record) are not
exceptions; they come back as `Result` failures.
"""

from __future__ import annotations


class CfdiError(Exception):
    """Base class for every error raised by cfdi_sealer."""


class CredentialError(CfdiError):
    """Certificate or private key could not be parsed or decrypted."""


class TemplateError(CfdiError):
    """Canonical template missing, unreadable, or with cyclic inclusions."""


class SigningError(CfdiError):
    """Sealing requested without credentials, or sealing steps out of order."""


class CatalogError(CfdiError):
    """A catalog file exists but cannot be read or decoded."""


class RenderError(CfdiError):
    """No printable-representation renderer is configured."""
