"""
Configuration Schemas for fhirsdc.

Security:
    Bearer tokens use SecretStr to prevent accidental logging of
    credentials. Access the value with `.get_secret_value()`.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator


class ServerType(str, Enum):
    """What a server profile is used for."""

    FHIR = "fhir"
    TERMINOLOGY = "terminology"


class AuthType(str, Enum):
    """How requests to a server authenticate."""

    NONE = "none"
    BEARER = "bearer"


class ServerConfig(BaseModel):
    """
    A saved FHIR server profile.

    Persisted in the servers file (see `fhirsdc.config.servers`).
    """

    id: str = Field(..., description="Unique profile identifier")
    name: str = Field(..., description="Display name")
    url: str = Field(..., description="Base URL, no trailing slash")
    type: ServerType = ServerType.FHIR
    auth: AuthType = AuthType.NONE
    token: SecretStr | None = Field(None, description="Bearer token when auth=bearer")
    headers: dict[str, str] = Field(default_factory=dict, description="Extra request headers")
    active: bool = False

    @field_validator("url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def bearer_token(self) -> str | None:
        """Token to send, if this profile uses bearer auth."""
        if self.auth is AuthType.BEARER and self.token:
            return self.token.get_secret_value() or None
        return None

    def to_storage(self) -> dict:
        """Serialize for the servers file (token in clear)."""
        data = self.model_dump(mode="json")
        data["token"] = self.token.get_secret_value() if self.token else None
        return data


class AppSettings(BaseModel):
    """
    Application settings model.

    Built from FHIRSDC_* environment variables by
    `fhirsdc.app.dependencies.get_settings()`.
    """

    # Service identity
    service_name: str = "fhirsdc"
    environment: str = "development"
    debug: bool = False

    # Server profiles
    servers_file: Path = Field(
        default_factory=lambda: Path.home() / ".fhirsdc" / "servers.json",
        description="JSON file holding saved server profiles",
    )
    fhir_base_url: str | None = Field(
        None, description="Overrides the active server profile when set"
    )
    fhir_token: SecretStr | None = Field(None, description="Bearer token for fhir_base_url")

    # Resolution
    match_policy: str = Field("strict", description="strict | latest")
    request_timeout: float = Field(30.0, gt=0)
    max_retries: int = Field(2, ge=0)
