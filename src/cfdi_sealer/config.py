"""
Configuration — typed, validated settings loaded from environment/.env.

Only CfdiSettings is a BaseSettings instance. Sub-settings are plain BaseModel
classes populated through env_nested_delimiter="__", so the env var
CFDI_RESOURCES__XSLT_DIR maps to resources.xslt_dir and
CFDI_CREDENTIALS__PRIVATE_KEY_PASSWORD to credentials.private_key_password.

Resource directories default to the templates and catalogs bundled with the
package; overriding them is only needed to track a newer SAT release.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_RESOURCES = Path(__file__).parent / "resources"
_ENV_FILE = Path(".env")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ResourceSettings(BaseModel):
    """Location of the canonical-string templates and SAT catalogs."""

    xslt_dir: Path = Field(default=_RESOURCES / "xslt", description="Directory holding the SAT XSLT files")
    root_template: str = Field(default="cadenaoriginal_4_0.xslt", description="Entry template file name")
    catalogs_dir: Path = Field(default=_RESOURCES / "catalogos", description="Directory of cat_*.json files")

    @field_validator("xslt_dir", "catalogs_dir")
    @classmethod
    def require_directory(cls, value: Path) -> Path:
        if not value.is_dir():
            raise ValueError(f"Directory does not exist: {value}")
        return value

    @property
    def root_template_path(self) -> Path:
        return self.xslt_dir / self.root_template


class CredentialSettings(BaseModel):
    """
    CSD files used by the command line.

    The library API takes paths directly; these settings only feed `main`.
    """

    certificate_path: Path = Field(description="DER-encoded .cer file")
    private_key_path: Path = Field(description="DER PKCS#8 .key file")
    private_key_password: SecretStr = Field(description="Passphrase of the .key file")


class CfdiSettings(BaseSettings):
    """
    Root settings.

    Load order (highest priority first):
      1. Environment variables (CFDI_ prefix)
      2. .env file in the working directory
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="CFDI_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    resources: ResourceSettings = Field(default_factory=lambda: ResourceSettings())
    credentials: CredentialSettings | None = None
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {value!r}")
        return level
