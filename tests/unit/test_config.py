"""
Unit tests for CfdiSettings — defaults, env loading and validation.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from cfdi_sealer.config import CfdiSettings, ResourceSettings
from tests.conftest import CATALOGS_DIR, ROOT_TEMPLATE


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run from an empty directory so no .env file leaks into the tests."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "CFDI_LOG_LEVEL",
        "CFDI_RESOURCES__XSLT_DIR",
        "CFDI_RESOURCES__CATALOGS_DIR",
        "CFDI_CREDENTIALS__CERTIFICATE_PATH",
        "CFDI_CREDENTIALS__PRIVATE_KEY_PATH",
        "CFDI_CREDENTIALS__PRIVATE_KEY_PASSWORD",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_bundled_resources_are_the_default(self) -> None:
        settings = CfdiSettings()
        assert settings.resources.root_template_path.samefile(ROOT_TEMPLATE)
        assert settings.resources.catalogs_dir.samefile(CATALOGS_DIR)
        assert settings.credentials is None
        assert settings.log_level == "INFO"


class TestEnvironment:
    def test_nested_credentials_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CFDI_CREDENTIALS__CERTIFICATE_PATH", "/tmp/csd.cer")
        monkeypatch.setenv("CFDI_CREDENTIALS__PRIVATE_KEY_PATH", "/tmp/csd.key")
        monkeypatch.setenv("CFDI_CREDENTIALS__PRIVATE_KEY_PASSWORD", "12345678a")

        settings = CfdiSettings()

        assert settings.credentials is not None
        assert settings.credentials.certificate_path == Path("/tmp/csd.cer")
        assert settings.credentials.private_key_password.get_secret_value() == "12345678a"
        assert "12345678a" not in repr(settings)

    def test_dotenv_file_is_read(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("CFDI_LOG_LEVEL=debug\n", encoding="utf-8")
        assert CfdiSettings().log_level == "DEBUG"


class TestValidation:
    def test_unknown_log_level_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CFDI_LOG_LEVEL", "CHATTY")
        with pytest.raises(ValidationError, match="log_level"):
            CfdiSettings()

    def test_missing_xslt_dir_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValidationError, match="Directory does not exist"):
            ResourceSettings(xslt_dir=tmp_path / "absent")

    def test_custom_root_template(self, tmp_path: Path) -> None:
        resources = ResourceSettings(xslt_dir=tmp_path, root_template="cadena.xslt")
        assert resources.root_template_path == tmp_path / "cadena.xslt"
