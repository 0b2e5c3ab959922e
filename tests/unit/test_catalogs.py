"""
Unit tests for SAT catalog lookups over the bundled JSON files.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from cfdi_sealer.adapters.catalogs import SatCatalogs, catalog_file_name
from cfdi_sealer.errors import CatalogError
from cfdi_sealer.failure import ErrorCode
from tests.assertions import ResultAssertions
from tests.conftest import CATALOGS_DIR


@pytest.fixture()
def catalogs() -> SatCatalogs:
    return SatCatalogs(CATALOGS_DIR)


class TestCatalogFileName:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("FormaPago", "cat_forma_pago.json"),
            ("formaPago", "cat_forma_pago.json"),
            ("UsoCfdi", "cat_uso_cfdi.json"),
            ("Moneda", "cat_moneda.json"),
        ],
    )
    def test_camel_case_maps_to_snake_case_file(self, name: str, expected: str) -> None:
        assert catalog_file_name(name) == expected


class TestGetCatalog:
    def test_bundled_catalog_loads(self, catalogs: SatCatalogs) -> None:
        records = ResultAssertions.assert_success(catalogs.get_catalog("TipoFactor"))
        assert [r["clave"] for r in records] == ["Tasa", "Cuota", "Exento"]

    def test_unknown_catalog_is_not_found(self, catalogs: SatCatalogs) -> None:
        result = catalogs.get_catalog("Inexistente")
        ResultAssertions.assert_failure(result, ErrorCode.NOT_FOUND)
        assert result.to_payload() == {
            "status": False,
            "data": None,
            "message": 'Catalog "Inexistente" does not exist.',
        }

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        (tmp_path / "cat_roto.json").write_text("[{", encoding="utf-8")
        with pytest.raises(CatalogError, match="Roto"):
            SatCatalogs(tmp_path).get_catalog("Roto")

    def test_non_list_body_raises(self, tmp_path: Path) -> None:
        (tmp_path / "cat_objeto.json").write_text('{"clave": "01"}', encoding="utf-8")
        with pytest.raises(CatalogError, match="not a list"):
            SatCatalogs(tmp_path).get_catalog("Objeto")


class TestFindInCatalog:
    def test_finds_record_by_key(self, catalogs: SatCatalogs) -> None:
        """
        GIVEN the FormaPago catalog
        WHEN searching clave "03"
        THEN the bank-transfer record is returned.
        """
        record = ResultAssertions.assert_success(catalogs.find_in_catalog("03", "clave", "FormaPago"))
        assert record["descripcion"] == "Transferencia electrónica de fondos"

    def test_missing_value_is_not_found(self, catalogs: SatCatalogs) -> None:
        result = catalogs.find_in_catalog("ZZ", "clave", "FormaPago")
        ResultAssertions.assert_failure(result, ErrorCode.NOT_FOUND)
        ResultAssertions.assert_failure_message_contains(result, 'Key "ZZ" not found in catalog "FormaPago"')

    def test_comparison_is_strict(self, catalogs: SatCatalogs) -> None:
        ResultAssertions.assert_failure(catalogs.find_in_catalog(3, "clave", "FormaPago"), ErrorCode.NOT_FOUND)

    def test_other_keys_are_searchable(self, catalogs: SatCatalogs) -> None:
        record = ResultAssertions.assert_success(catalogs.find_in_catalog(True, "moral", "RegimenFiscal"))
        assert record["clave"] == "601"

    def test_unknown_catalog_propagates(self, catalogs: SatCatalogs) -> None:
        ResultAssertions.assert_failure_message_contains(
            catalogs.find_in_catalog("03", "clave", "Inexistente"),
            "does not exist",
        )

    def test_every_record_of_a_catalog_is_findable(self, catalogs: SatCatalogs) -> None:
        records = catalogs.get_catalog("MetodoPago").value()
        for record in records:
            assert catalogs.find_in_catalog(record["clave"], "clave", "MetodoPago").value() == record
