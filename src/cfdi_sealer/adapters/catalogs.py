"""
SAT catalog adapter — keyed lookups over bundled JSON catalog files.

A catalog named "FormaPago" lives in `cat_forma_pago.json`. Files hold a JSON
array of flat records, e.g. {"clave": "03", "descripcion": "Transferencia…"}.

"Catalog missing" and "record missing" are expected outcomes and come back as
Result failures (NOT_FOUND). A catalog file that exists but cannot be read or
decoded raises CatalogError.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import structlog

from cfdi_sealer.errors import CatalogError
from cfdi_sealer.failure import ErrorCode
from cfdi_sealer.result import Result

log = structlog.get_logger()

_UPPER = re.compile(r"([A-Z])")


def catalog_file_name(catalog_name: str) -> str:
    """
    Map a catalog name to its file name.

        >>> catalog_file_name("FormaPago")
        'cat_forma_pago.json'
    """
    snake_case = _UPPER.sub(r"_\1", catalog_name).lower().removeprefix("_")
    return f"cat_{snake_case}.json"


class SatCatalogs:
    """Read-only access to a directory of SAT catalogs."""

    def __init__(self, catalogs_dir: Path) -> None:
        self._catalogs_dir = catalogs_dir

    def get_catalog(self, catalog_name: str) -> Result[list[dict[str, Any]]]:
        """
        Load every record of a catalog.

        Returns Result.failure(NOT_FOUND) when no such catalog file exists.
        Raises CatalogError when the file cannot be read or is not a JSON array.
        """
        json_file = self._catalogs_dir / catalog_file_name(catalog_name)
        if not json_file.is_file():
            log.info("catalog.not_found", catalog=catalog_name)
            return Result.failure(ErrorCode.NOT_FOUND, f'Catalog "{catalog_name}" does not exist.')

        try:
            data = json.loads(json_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogError(f'Error loading catalog "{catalog_name}"') from e

        if not isinstance(data, list):
            raise CatalogError(f'Catalog "{catalog_name}" is not a list of records')
        return Result.success(data)

    def find_in_catalog(self, value: Any, key: str, catalog_name: str) -> Result[dict[str, Any]]:
        """
        Find the first record whose `key` field equals `value`.

        Comparison is strict equality: "03" does not match 3.
        """
        return self.get_catalog(catalog_name).flat_map(
            lambda records: self._first_match(records, value, key, catalog_name)
        )

    @staticmethod
    def _first_match(
        records: list[dict[str, Any]],
        value: Any,
        key: str,
        catalog_name: str,
    ) -> Result[dict[str, Any]]:
        for record in records:
            if isinstance(record, dict) and key in record and record[key] == value and type(record[key]) is type(value):
                return Result.success(record)
        return Result.failure(
            ErrorCode.NOT_FOUND,
            f'Key "{value}" not found in catalog "{catalog_name}"',
        )
