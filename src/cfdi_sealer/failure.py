"""
Failure description — structured error information for the failure track.

Only business outcomes travel as failures (complement attachment, catalog
lookups). Credential, template and signing faults are raised instead,
see `cfdi_sealer.errors`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique


@unique
class ErrorCode(Enum):
    """Structured error codes carried by a Failure."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Missing or malformed caller input (no document, unparsable XML)."""

    NOT_FOUND = "NOT_FOUND"
    """Catalog file or catalog record does not exist."""

    BUSINESS_RULE_ERROR = "BUSINESS_RULE_ERROR"
    """Fiscal rule violated, e.g. complementing an already stamped CFDI."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.NOT_FOUND, "Catalog 'Foo' does not exist")
    >>> desc.code
    <ErrorCode.NOT_FOUND: 'NOT_FOUND'>
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
